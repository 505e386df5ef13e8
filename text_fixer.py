"""Prompt-driven transcript correction through the Gemini generateContent API."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from errors import LiveScribeError, TextFixError
from interfaces import KeyProvider
from models import FixResult

logger = logging.getLogger(__name__)

GEMINI_MODEL = "gemini-1.5-flash-latest"
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
LOOKAHEAD_WORDS = 3


def build_request_body(text: str, user_prompt: str) -> dict[str, Any]:
    return {
        "contents": [
            {"parts": [{"text": f"{user_prompt}\n\nOriginal Text:\n{text}\n\nFixed Text:"}]}
        ],
        "generationConfig": {
            "temperature": 0.7,
            "topK": 1,
            "topP": 1,
            "maxOutputTokens": 1024,
        },
    }


def fetch_fixed_transcript(
    text: str,
    user_prompt: str,
    api_key: str,
    client: Optional[httpx.Client] = None,
    model: str = GEMINI_MODEL,
    timeout_s: float = 30.0,
) -> str:
    if not text.strip():
        raise TextFixError("There is no transcript to fix.")
    if not user_prompt.strip():
        raise TextFixError("A correction prompt is required.")

    url = f"{GEMINI_API_BASE}/{model}:generateContent"
    http = client or httpx.Client(timeout=timeout_s)
    try:
        body = build_request_body(text, user_prompt)
        response = http.post(url, params={"key": api_key}, json=body)
    except httpx.HTTPError as exc:
        logger.error(f"Gemini request failed: {exc}")
        raise TextFixError(f"Gemini request failed: {exc}") from exc
    finally:
        if client is None:
            http.close()

    try:
        data = response.json()
    except ValueError:
        data = {}

    if not response.is_success:
        error = data.get("error") if isinstance(data, dict) else None
        logger.error(f"Gemini API error: {error or response.status_code}")
        if isinstance(error, dict):
            raise TextFixError(f"Gemini API Error: {error.get('code')} {error.get('message')}")
        raise TextFixError(f"Gemini API HTTP Error: {response.status_code}")

    fixed = _first_candidate_text(data)
    if not fixed:
        logger.error("Gemini response did not contain any text")
        raise TextFixError("No fixed text found in Gemini response.")
    return fixed.strip()


def _first_candidate_text(data: Any) -> str:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return ""
    return text if isinstance(text, str) else ""


def highlight_changes(original: str, fixed: str) -> list[tuple[str, bool]]:
    """Pair every word of ``fixed`` with whether it differs from ``original``.

    Words are matched in order; a fixed word that shows up within the next
    three original words counts as unchanged and skips the words in between.
    """
    original_words = original.split()
    result = []
    orig_idx = 0
    for word in fixed.split():
        if orig_idx < len(original_words) and original_words[orig_idx] == word:
            result.append((word, False))
            orig_idx += 1
            continue
        match = _find_ahead(original_words, orig_idx, word)
        if match is not None:
            result.append((word, False))
            orig_idx = match + 1
            continue
        result.append((word, True))
        if orig_idx < len(original_words):
            orig_idx += 1
    return result


def _find_ahead(words: list[str], start: int, word: str) -> Optional[int]:
    for index in range(start + 1, min(start + LOOKAHEAD_WORDS + 1, len(words))):
        if words[index] == word:
            return index
    return None


def fix_transcript(text: str, user_prompt: str, api_key: str, **kwargs: Any) -> FixResult:
    fixed = fetch_fixed_transcript(text, user_prompt, api_key, **kwargs)
    return FixResult(original=text, fixed=fixed, changes=highlight_changes(text, fixed))


def fix_with_key_provider(
    key_provider: KeyProvider, text: str, user_prompt: str, **kwargs: Any
) -> FixResult:
    """Fetch a correction key and fix ``text``. Every failure surfaces as ``TextFixError``."""
    try:
        api_key = key_provider.get_key()
        return fix_transcript(text, user_prompt, api_key, **kwargs)
    except TextFixError:
        raise
    except LiveScribeError as exc:
        raise TextFixError(exc.message, code=exc.code) from exc
    except Exception as exc:
        logger.exception("Transcript correction failed unexpectedly")
        raise TextFixError(f"Transcript correction failed: {exc}") from exc
