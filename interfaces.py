"""Protocol interfaces used by SessionController."""

from __future__ import annotations

from typing import Callable, Protocol

from models import AudioChunk, ConnectionEvent, CopyResult, SessionConfig

ChunkCallback = Callable[[AudioChunk], None]
EventCallback = Callable[[ConnectionEvent], None]


class CaptureHandle(Protocol):
    def start(self, on_chunk: ChunkCallback) -> None: ...

    def stop(self) -> None: ...


class CaptureSource(Protocol):
    def acquire(self) -> CaptureHandle: ...


class LiveConnection(Protocol):
    def send(self, chunk: AudioChunk) -> None: ...

    def keep_alive(self) -> None: ...

    def finish(self) -> None: ...


class Transcriber(Protocol):
    def open(
        self,
        api_key: str,
        config: SessionConfig,
        on_event: EventCallback,
    ) -> LiveConnection: ...


class KeyProvider(Protocol):
    def get_key(self) -> str: ...


class CopyService(Protocol):
    def copy_text(self, text: str) -> CopyResult: ...


class ConfigStore(Protocol):
    def get_option_key(self) -> str: ...

    def set_option_key(self, key: str) -> None: ...

    def get_diarization(self) -> bool: ...

    def set_diarization(self, enabled: bool) -> None: ...
