"""Live transcription connection to Deepgram's streaming endpoint.

One ``DeepgramLiveConnection`` is one WebSocket session. A reader thread opens the
socket, decodes incoming frames into ``ConnectionEvent`` objects and hands them to
``on_event`` in arrival order. Outgoing audio and control messages go through a
FIFO queue drained by a sender thread, so chunks reach the backend in the order
they were captured. Every connection ends with exactly one ``CLOSED`` event.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from enum import Enum
from queue import Full, Queue
from typing import Any, Optional, Union
from urllib.parse import urlencode

from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, InvalidStatus
from websockets.sync.client import connect

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, NETWORK_ERROR
from interfaces import EventCallback
from models import AudioChunk, ConnectionEvent, EventKind, RawWord, SessionConfig

logger = logging.getLogger(__name__)

DEEPGRAM_LISTEN_URL = "wss://api.deepgram.com/v1/listen"
UTTERANCE_END_MS = 3000
KEEPALIVE_MESSAGE = json.dumps({"type": "KeepAlive"})
CLOSE_STREAM_MESSAGE = json.dumps({"type": "CloseStream"})

Outgoing = Union[bytes, str, None]


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    FINISHING = "finishing"
    CLOSED = "closed"


def build_listen_params(
    config: SessionConfig,
    sample_rate: int = 16000,
    channels: int = 1,
) -> dict[str, str]:
    params = {
        "model": config.model,
        "language": config.language,
        "interim_results": "true",
        "smart_format": "true",
        "utterance_end_ms": str(UTTERANCE_END_MS),
        "encoding": "linear16",
        "sample_rate": str(sample_rate),
        "channels": str(channels),
    }
    if config.filler_words:
        params["filler_words"] = "true"
    if config.diarize:
        params["diarize"] = "true"
    return params


def build_listen_url(
    config: SessionConfig,
    base_url: str = DEEPGRAM_LISTEN_URL,
    sample_rate: int = 16000,
    channels: int = 1,
) -> str:
    return f"{base_url}?{urlencode(build_listen_params(config, sample_rate, channels))}"


def decode_message(raw: Union[str, bytes]) -> Optional[ConnectionEvent]:
    """Turn one backend frame into an event, or ``None`` if it cannot be read."""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Skipping undecodable frame from transcription backend")
        return None
    if not isinstance(payload, dict):
        logger.warning(f"Skipping unexpected frame of type {type(payload).__name__}")
        return None

    frame_type = payload.get("type")
    if frame_type == "Results":
        return ConnectionEvent(
            kind=EventKind.TRANSCRIPT.value,
            is_final=bool(payload.get("is_final")),
            words=_extract_words(payload),
        )
    if frame_type == "Error":
        message = payload.get("description") or payload.get("message") or "unknown backend error"
        return ConnectionEvent(
            kind=EventKind.ERROR.value,
            code=ASR_PROTOCOL_ERROR,
            message=str(message),
            retryable=True,
        )
    # Metadata, UtteranceEnd, SpeechStarted and anything newer are informational.
    return ConnectionEvent(kind=EventKind.METADATA.value, metadata=payload)


def _extract_words(payload: dict[str, Any]) -> tuple[RawWord, ...]:
    channel = payload.get("channel")
    if not isinstance(channel, dict):
        return ()
    alternatives = channel.get("alternatives") or []
    if not alternatives or not isinstance(alternatives[0], dict):
        return ()
    words = []
    for item in alternatives[0].get("words") or []:
        if not isinstance(item, dict):
            continue
        confidence = item.get("confidence")
        words.append(
            RawWord(
                word=str(item.get("word") or ""),
                punctuated_word=str(item.get("punctuated_word") or ""),
                confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
                speaker=_speaker_label(item.get("speaker")),
            )
        )
    return tuple(words)


def _speaker_label(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _to_error_event(exc: Exception) -> ConnectionEvent:
    """Map a transport exception to a standard error event."""
    message = str(exc) or type(exc).__name__
    low = message.lower()
    status = exc.response.status_code if isinstance(exc, InvalidStatus) else None
    if status in (401, 403) or "401" in low or "auth" in low or "api key" in low:
        code = AUTH_FAILED
        retryable = False
    elif (
        isinstance(exc, (OSError, TimeoutError))
        or "timeout" in low
        or "timed out" in low
        or "network" in low
        or "connection" in low
    ):
        code = NETWORK_ERROR
        retryable = True
    else:
        code = ASR_PROTOCOL_ERROR
        retryable = True
    return ConnectionEvent(
        kind=EventKind.ERROR.value,
        code=code,
        message=message,
        retryable=retryable,
    )


class DeepgramLiveConnection:
    def __init__(
        self,
        api_key: str,
        config: SessionConfig,
        on_event: EventCallback,
        url: str = DEEPGRAM_LISTEN_URL,
        sample_rate: int = 16000,
        channels: int = 1,
        queue_maxsize: int = 0,
        open_timeout_s: float = 10.0,
        finish_timeout_s: float = 5.0,
        poll_interval_s: float = 0.5,
    ) -> None:
        self.config = config
        self.dropped_chunks = 0
        self._api_key = api_key
        self._on_event = on_event
        self._url = build_listen_url(config, url, sample_rate, channels)
        self._open_timeout_s = open_timeout_s
        self._finish_timeout_s = finish_timeout_s
        self._poll_interval_s = poll_interval_s

        self._lock = threading.Lock()
        self._state = ConnectionState.CONNECTING
        self._outbox: Queue[Outgoing] = Queue(maxsize=queue_maxsize)
        self._finish_deadline: Optional[float] = None
        self._closed_emitted = False
        self._reader: Optional[threading.Thread] = None
        self._sender: Optional[threading.Thread] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def url(self) -> str:
        return self._url

    def open(self) -> None:
        if self._reader is not None:
            return
        self._reader = threading.Thread(target=self._run, name="DeepgramReader", daemon=True)
        self._reader.start()

    def send(self, chunk: AudioChunk) -> None:
        with self._lock:
            if self._state != ConnectionState.OPEN:
                logger.warning(
                    f"Dropping audio chunk {chunk.sequence}: connection is {self._state.value}"
                )
                return
            try:
                self._outbox.put_nowait(chunk.pcm16_bytes)
            except Full:
                self.dropped_chunks += 1
                logger.warning(f"Outgoing queue full, dropped audio chunk {chunk.sequence}")

    def keep_alive(self) -> None:
        with self._lock:
            if self._state != ConnectionState.OPEN:
                logger.warning(f"Keep-alive skipped: connection is {self._state.value}")
                return
            self._outbox.put(KEEPALIVE_MESSAGE)

    def finish(self) -> None:
        with self._lock:
            if self._state in (ConnectionState.FINISHING, ConnectionState.CLOSED):
                return
            was_open = self._state == ConnectionState.OPEN
            self._state = ConnectionState.FINISHING
            self._finish_deadline = time.monotonic() + self._finish_timeout_s
            if was_open:
                self._outbox.put(CLOSE_STREAM_MESSAGE)
        logger.info("Finish requested on live transcription connection")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run(self) -> None:
        try:
            ws = connect(
                self._url,
                additional_headers={"Authorization": f"Token {self._api_key}"},
                open_timeout=self._open_timeout_s,
            )
        except Exception as exc:
            if self._state == ConnectionState.FINISHING:
                logger.info(f"Connection attempt abandoned after finish request: {exc}")
            else:
                logger.error(f"Could not open live transcription connection: {exc}")
                self._emit(_to_error_event(exc))
            self._mark_closed()
            return

        with self._lock:
            finish_early = self._state == ConnectionState.FINISHING
            if not finish_early:
                self._state = ConnectionState.OPEN
        if finish_early:
            logger.info("Finish requested before the connection opened; closing")
            ws.close()
            self._mark_closed()
            return

        self._sender = threading.Thread(
            target=self._send_loop, args=(ws,), name="DeepgramSender", daemon=True
        )
        self._sender.start()
        logger.info(
            f"Live transcription connection opened ({self.config.model}/{self.config.language})"
        )
        self._emit(ConnectionEvent(kind=EventKind.OPENED.value))

        try:
            self._receive_loop(ws)
        except ConnectionClosedOK:
            logger.info("Backend closed the connection")
        except ConnectionClosed as exc:
            if self._state != ConnectionState.FINISHING:
                logger.error(f"Connection closed abnormally: {exc}")
                self._emit(_to_error_event(exc))
        except Exception as exc:
            logger.error(f"Live transcription connection failed: {exc}")
            self._emit(_to_error_event(exc))
        finally:
            self._outbox.put(None)
            ws.close()
            if self._sender is not None:
                self._sender.join(timeout=1.0)
            self._mark_closed()

    def _receive_loop(self, ws: Any) -> None:
        while True:
            deadline = self._finish_deadline
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning("Backend did not close after finish request; closing locally")
                return
            try:
                raw = ws.recv(timeout=self._poll_interval_s)
            except TimeoutError:
                continue
            event = decode_message(raw)
            if event is not None:
                self._emit(event)

    def _send_loop(self, ws: Any) -> None:
        while True:
            item = self._outbox.get()
            if item is None:
                return
            try:
                ws.send(item)
            except ConnectionClosed:
                logger.warning("Outgoing message dropped: connection already closed")
                return

    def _mark_closed(self) -> None:
        with self._lock:
            self._state = ConnectionState.CLOSED
            if self._closed_emitted:
                return
            self._closed_emitted = True
        logger.info("Live transcription connection closed")
        self._emit(ConnectionEvent(kind=EventKind.CLOSED.value))

    def _emit(self, event: ConnectionEvent) -> None:
        try:
            self._on_event(event)
        except Exception:
            logger.exception(f"Event handler failed for {event.kind} event")


class DeepgramTranscriber:
    """Opens one ``DeepgramLiveConnection`` per session."""

    def __init__(
        self,
        url: str = DEEPGRAM_LISTEN_URL,
        sample_rate: int = 16000,
        channels: int = 1,
        **connection_options: Any,
    ) -> None:
        self._url = url
        self._sample_rate = sample_rate
        self._channels = channels
        self._connection_options = connection_options

    def open(
        self,
        api_key: str,
        config: SessionConfig,
        on_event: EventCallback,
    ) -> DeepgramLiveConnection:
        connection = DeepgramLiveConnection(
            api_key,
            config,
            on_event,
            url=self._url,
            sample_rate=self._sample_rate,
            channels=self._channels,
            **self._connection_options,
        )
        connection.open()
        return connection
