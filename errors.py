"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_UNAVAILABLE = "DEVICE_UNAVAILABLE"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
KEY_NOT_CONFIGURED = "KEY_NOT_CONFIGURED"
KEY_FETCH_FAILED = "KEY_FETCH_FAILED"
TEXT_FIX_FAILED = "TEXT_FIX_FAILED"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone access denied or error. Please grant permission.",
    DEVICE_UNAVAILABLE: "No usable microphone was found.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    ASR_PROTOCOL_ERROR: "Transcription service response is invalid.",
    KEY_NOT_CONFIGURED: "Error: DEEPGRAM_API_KEY not configured.",
    KEY_FETCH_FAILED: "Error fetching API key. Check the logs.",
    TEXT_FIX_FAILED: "Transcript correction failed.",
}


class LiveScribeError(Exception):
    code = ASR_PROTOCOL_ERROR

    def __init__(self, message: str = "", code: str | None = None) -> None:
        if code is not None:
            self.code = code
        super().__init__(message or ERROR_MESSAGES.get(self.code, self.code))

    @property
    def message(self) -> str:
        return str(self)


class CaptureError(LiveScribeError):
    code = PERMISSION_DENIED


class KeyNotConfiguredError(LiveScribeError):
    """The key endpoint answered but has no key to hand out. Not worth retrying."""

    code = KEY_NOT_CONFIGURED


class KeyFetchError(LiveScribeError):
    code = KEY_FETCH_FAILED


class TextFixError(LiveScribeError):
    code = TEXT_FIX_FAILED
