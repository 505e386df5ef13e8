"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SessionStatus(str, Enum):
    KEY_PENDING = "KEY_PENDING"
    KEY_UNAVAILABLE = "KEY_UNAVAILABLE"
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    LISTENING = "LISTENING"
    STOPPING = "STOPPING"
    CONNECTION_ERROR = "CONNECTION_ERROR"


class EventKind(str, Enum):
    OPENED = "opened"
    TRANSCRIPT = "transcript"
    METADATA = "metadata"
    ERROR = "error"
    CLOSED = "closed"


class MessageKind(str, Enum):
    ERROR = "error"
    SUCCESS = "success"
    INFO = "info"


@dataclass(frozen=True)
class SessionConfig:
    model: str
    language: str
    filler_words: bool = False
    diarize: bool = False


@dataclass(frozen=True)
class RawWord:
    """A word as decoded from a backend frame, before display mapping."""

    word: str = ""
    punctuated_word: str = ""
    confidence: Optional[float] = None
    speaker: Optional[int] = None


@dataclass(frozen=True)
class Word:
    text: str
    confidence: float
    speaker: Optional[int] = None


@dataclass
class AudioChunk:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0
    sequence: int = 0


@dataclass
class ConnectionEvent:
    kind: str
    is_final: bool = False
    words: tuple[RawWord, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)
    code: str = ""
    message: str = ""
    retryable: bool = False


@dataclass(frozen=True)
class UserMessage:
    kind: str
    text: str


@dataclass(frozen=True)
class TranscriptSegment:
    """One rendered word, with the speaker label to show before it (if any)."""

    word: Word
    interim: bool
    speaker_label: Optional[int] = None


@dataclass
class FixResult:
    original: str
    fixed: str
    changes: list[tuple[str, bool]] = field(default_factory=list)


@dataclass
class CopyResult:
    success: bool
    reason: str
