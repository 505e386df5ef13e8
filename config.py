"""Simple JSON-based preferences store."""

from __future__ import annotations

import json
from pathlib import Path

from options import DEFAULT_OPTION_KEY

DEFAULT_FIX_PROMPT = "Fix grammar and clarity without changing the meaning."


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "live_scribe" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_option_key(self) -> str:
        return str(self._read_all().get("option_key", DEFAULT_OPTION_KEY))

    def set_option_key(self, key: str) -> None:
        self._update("option_key", key)

    def get_diarization(self) -> bool:
        return bool(self._read_all().get("diarization", False))

    def set_diarization(self, enabled: bool) -> None:
        self._update("diarization", bool(enabled))

    def get_transcription_key_url(self) -> str:
        return str(self._read_all().get("transcription_key_url", ""))

    def set_transcription_key_url(self, url: str) -> None:
        self._update("transcription_key_url", url)

    def get_correction_key_url(self) -> str:
        return str(self._read_all().get("correction_key_url", ""))

    def set_correction_key_url(self, url: str) -> None:
        self._update("correction_key_url", url)

    def get_fix_prompt(self) -> str:
        return str(self._read_all().get("fix_prompt", DEFAULT_FIX_PROMPT))

    def set_fix_prompt(self, prompt: str) -> None:
        self._update("fix_prompt", prompt)

    def _update(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
