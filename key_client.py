"""API key providers.

``HttpKeyProvider`` asks a key endpoint for a key. The endpoint answers
``{"key": "..."}`` (``{"apiKey": "..."}`` is accepted too) on success and
``{"error": "..."}`` when no key is configured. ``EnvKeyProvider`` reads the key
from an environment variable, the way the key endpoint itself does.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import httpx

from errors import KeyFetchError, KeyNotConfiguredError

logger = logging.getLogger(__name__)

DEEPGRAM_KEY_ENV = "DEEPGRAM_API_KEY"
GEMINI_KEY_ENV = "GEMINI_API_KEY"


class HttpKeyProvider:
    def __init__(
        self,
        url: str,
        client: Optional[httpx.Client] = None,
        timeout_s: float = 10.0,
    ) -> None:
        self.url = url
        self._client = client or httpx.Client(timeout=timeout_s)

    def get_key(self) -> str:
        try:
            response = self._client.get(self.url)
        except httpx.HTTPError as exc:
            raise KeyFetchError(f"key request to {self.url} failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise KeyFetchError(
                f"key endpoint returned non-JSON body (HTTP {response.status_code})"
            ) from exc
        if not isinstance(data, dict):
            raise KeyFetchError(
                f"key endpoint returned unexpected payload (HTTP {response.status_code})"
            )

        key = data.get("key") or data.get("apiKey")
        if isinstance(key, str) and key:
            logger.info(f"API key received from {self.url}")
            return key
        error = data.get("error") or f"no key in response (HTTP {response.status_code})"
        raise KeyNotConfiguredError(str(error))


class EnvKeyProvider:
    def __init__(self, variable: str = DEEPGRAM_KEY_ENV) -> None:
        self.variable = variable

    def get_key(self) -> str:
        key = os.environ.get(self.variable, "").strip()
        if not key:
            raise KeyNotConfiguredError(f"{self.variable} is not set in environment variables.")
        return key
