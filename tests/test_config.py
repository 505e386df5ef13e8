from __future__ import annotations

from pathlib import Path

from config import DEFAULT_FIX_PROMPT, JsonConfigStore
from options import DEFAULT_OPTION_KEY


def test_config_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_option_key() == DEFAULT_OPTION_KEY
    assert store.get_diarization() is False
    assert store.get_transcription_key_url() == ""
    assert store.get_fix_prompt() == DEFAULT_FIX_PROMPT

    store.set_option_key("nova2-de")
    store.set_diarization(True)
    store.set_transcription_key_url("http://localhost:3000/api/deepgram")
    store.set_correction_key_url("http://localhost:3000/api/gemini")
    store.set_fix_prompt("Make it formal.")

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_option_key() == "nova2-de"
    assert reloaded.get_diarization() is True
    assert reloaded.get_transcription_key_url() == "http://localhost:3000/api/deepgram"
    assert reloaded.get_correction_key_url() == "http://localhost:3000/api/gemini"
    assert reloaded.get_fix_prompt() == "Make it formal."


def test_config_invalid_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_option_key() == DEFAULT_OPTION_KEY
    assert store.get_diarization() is False


def test_config_non_object_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[1, 2]", encoding="utf-8")

    store = JsonConfigStore(path=path)
    store.set_diarization(True)

    assert JsonConfigStore(path=path).get_diarization() is True


def test_config_creates_parent_directory(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "dir" / "config.json"

    JsonConfigStore(path=path).set_option_key("nova3-en")

    assert path.exists()
