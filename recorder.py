"""Microphone capture source.

``SoundDeviceRecorder.acquire()`` opens the input device once and hands out a
handle; the handle emits 250 ms PCM16 chunks between ``start()`` and ``stop()``.
``stop()`` also closes the device, so the next ``acquire()`` opens it again.

The PortAudio callback only enqueues; a dispatcher thread delivers chunks to the
consumer in capture order, so a slow consumer never stalls the audio thread.
"""

from __future__ import annotations

import logging
import threading
import time
from queue import Queue
from typing import Any, Optional

from errors import DEVICE_UNAVAILABLE, PERMISSION_DENIED, CaptureError
from interfaces import ChunkCallback
from models import AudioChunk

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

CHUNK_MS = 250


class SoundDeviceCaptureHandle:
    def __init__(self, sample_rate: int, channels: int) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunks_captured = 0
        self._stream: Any = None
        self._on_chunk: Optional[ChunkCallback] = None
        self._chunks: Queue[AudioChunk | None] = Queue()
        self._dispatcher: Optional[threading.Thread] = None
        self._running = False
        self._released = False
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._running

    @property
    def released(self) -> bool:
        return self._released

    def start(self, on_chunk: ChunkCallback) -> None:
        with self._lock:
            if self._released:
                raise CaptureError("capture handle already released", code=DEVICE_UNAVAILABLE)
            if self._running:
                return
            try:
                self._stream.start()
            except sd.PortAudioError as exc:
                logger.error(f"Microphone could not be started: {exc}")
                raise CaptureError(str(exc), code=_capture_error_code(exc)) from exc
            self._on_chunk = on_chunk
            self._running = True
            self._dispatcher = threading.Thread(
                target=self._dispatch, name="AudioChunkDispatcher", daemon=True
            )
            self._dispatcher.start()
        logger.info("Microphone capture started")

    def stop(self) -> None:
        with self._lock:
            if self._released:
                return
            self._running = False
            self._released = True
            stream, self._stream = self._stream, None
        self._chunks.put(None)
        if stream is not None:
            stream.stop()
            stream.close()
        logger.info(f"Microphone released after {self.chunks_captured} chunks")

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.debug(f"Input stream status: {status}")
        if not self._running or np is None:
            return
        self.chunks_captured += 1
        self._chunks.put_nowait(
            AudioChunk(
                pcm16_bytes=np.asarray(indata, dtype=np.int16).tobytes(),
                sample_rate=self.sample_rate,
                channels=self.channels,
                timestamp_ms=int(time.time() * 1000),
                sequence=self.chunks_captured,
            )
        )

    def _dispatch(self) -> None:
        while True:
            chunk = self._chunks.get()
            if chunk is None:
                return
            if not self._running or self._on_chunk is None:
                continue
            self._on_chunk(chunk)


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = CHUNK_MS,
        device: Any = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self._handle: Optional[SoundDeviceCaptureHandle] = None
        self._lock = threading.Lock()

    def acquire(self) -> SoundDeviceCaptureHandle:
        with self._lock:
            if self._handle is not None and not self._handle.released:
                return self._handle
            if sd is None:
                raise CaptureError("sounddevice is not installed", code=DEVICE_UNAVAILABLE)
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            handle = SoundDeviceCaptureHandle(self.sample_rate, self.channels)
            try:
                handle._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self.device,
                    callback=handle._on_audio,
                )
            except sd.PortAudioError as exc:
                logger.error(f"Microphone could not be opened: {exc}")
                raise CaptureError(str(exc), code=_capture_error_code(exc)) from exc
            except ValueError as exc:
                logger.error(f"No usable input device: {exc}")
                raise CaptureError(str(exc), code=DEVICE_UNAVAILABLE) from exc
            self._handle = handle
            logger.info(
                f"Microphone acquired: {self.sample_rate}Hz, {self.channels} channel(s), "
                f"{blocksize} frames/chunk"
            )
            return handle


def _capture_error_code(exc: Exception) -> str:
    low = str(exc).lower()
    if "permission" in low or "not permitted" in low or "denied" in low:
        return PERMISSION_DENIED
    return DEVICE_UNAVAILABLE
