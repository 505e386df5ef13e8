"""State-machine based session orchestration.

The controller owns the microphone handle, the live connection and the keep-alive
timer of the current session. Every entry point (user calls, connection events,
audio chunks, keep-alive ticks) runs under one re-entrant lock, so the state
machine sees one thing at a time and in delivery order.

    KEY_PENDING -> IDLE -> CONNECTING -> LISTENING -> STOPPING -> IDLE
                             |              |
                             +--------------+--> CONNECTION_ERROR -> IDLE
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from errors import (
    ASR_PROTOCOL_ERROR,
    ERROR_MESSAGES,
    KEY_FETCH_FAILED,
    NETWORK_ERROR,
    PERMISSION_DENIED,
    CaptureError,
    KeyFetchError,
    KeyNotConfiguredError,
)
from interfaces import CaptureHandle, CaptureSource, KeyProvider, LiveConnection, Transcriber
from keepalive import KEEPALIVE_INTERVAL_S, KeepAliveTimer
from models import (
    AudioChunk,
    ConnectionEvent,
    EventKind,
    MessageKind,
    SessionConfig,
    SessionStatus,
    TranscriptSegment,
    UserMessage,
)
from options import DEFAULT_OPTION_KEY, TRANSCRIPTION_OPTIONS, TranscriptionOption, find_option
from transcript import TranscriptState, reduce_transcript, speaker_segments, transcript_text

logger = logging.getLogger(__name__)

StatusCallback = Callable[[SessionStatus, SessionStatus], None]
TranscriptCallback = Callable[[TranscriptState], None]
MessageCallback = Callable[[UserMessage], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]

_KEY_STATES = (SessionStatus.KEY_PENDING, SessionStatus.KEY_UNAVAILABLE)
_ACTIVE_STATES = (SessionStatus.CONNECTING, SessionStatus.LISTENING, SessionStatus.STOPPING)


class SessionController:
    def __init__(
        self,
        capture: CaptureSource,
        transcriber: Transcriber,
        key_provider: Optional[KeyProvider] = None,
        option_key: str = DEFAULT_OPTION_KEY,
        diarize: bool = False,
        keepalive_interval_s: float = KEEPALIVE_INTERVAL_S,
        timer_factory: TimerFactory = KeepAliveTimer,
        on_status_change: Optional[StatusCallback] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_message: Optional[MessageCallback] = None,
    ) -> None:
        self._capture = capture
        self._transcriber = transcriber
        self._key_provider = key_provider
        self._keepalive_interval_s = keepalive_interval_s
        self._timer_factory = timer_factory
        self._on_status_change = on_status_change
        self._on_transcript = on_transcript
        self._on_message = on_message

        self._lock = threading.RLock()
        self._status = SessionStatus.KEY_PENDING
        self._api_key: Optional[str] = None
        self._key_terminal = False
        self._option: TranscriptionOption = find_option(option_key) or TRANSCRIPTION_OPTIONS[0]
        self._diarize = diarize
        self._message: Optional[UserMessage] = None

        self._session_id = 0
        self._active_config: Optional[SessionConfig] = None
        self._capture_handle: Optional[CaptureHandle] = None
        self._connection: Optional[LiveConnection] = None
        self._keepalive: Any = None
        self._transcript = TranscriptState()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def message(self) -> Optional[UserMessage]:
        return self._message

    @property
    def transcript(self) -> TranscriptState:
        return self._transcript

    @property
    def selected_option(self) -> TranscriptionOption:
        return self._option

    @property
    def diarize(self) -> bool:
        return self._diarize

    @property
    def config(self) -> SessionConfig:
        return self._option.to_config(self._diarize)

    @property
    def active_config(self) -> Optional[SessionConfig]:
        return self._active_config

    @property
    def can_start(self) -> bool:
        return self._status == SessionStatus.IDLE

    @property
    def can_stop(self) -> bool:
        return self._status in (SessionStatus.CONNECTING, SessionStatus.LISTENING)

    @property
    def can_retry_key(self) -> bool:
        return self._status == SessionStatus.KEY_UNAVAILABLE and not self._key_terminal

    def segments(self) -> list[TranscriptSegment]:
        return speaker_segments(self._transcript, self._diarize)

    def final_text(self) -> str:
        return transcript_text(self._transcript.final_words)

    # ------------------------------------------------------------------
    # API key
    # ------------------------------------------------------------------

    def load_api_key(self) -> bool:
        """Fetch the key from the provider. Safe to call again after a retryable failure."""
        with self._lock:
            if self._api_key is not None:
                return True
            if self._key_terminal or self._key_provider is None:
                return False
            self._transition(SessionStatus.KEY_PENDING)
            provider = self._key_provider

        try:
            key = provider.get_key()
        except KeyNotConfiguredError as exc:
            logger.error(f"Transcription API key is not configured: {exc}")
            with self._lock:
                self._key_terminal = True
                self._transition(SessionStatus.KEY_UNAVAILABLE)
                self._set_message(MessageKind.ERROR, exc.message)
            return False
        except KeyFetchError as exc:
            logger.error(f"Failed to fetch transcription API key: {exc}")
            with self._lock:
                self._transition(SessionStatus.KEY_UNAVAILABLE)
                self._set_message(MessageKind.ERROR, ERROR_MESSAGES[KEY_FETCH_FAILED])
            return False

        self.set_api_key(key)
        return True

    def set_api_key(self, key: str) -> None:
        with self._lock:
            if self._status in _ACTIVE_STATES:
                logger.warning(f"Ignoring API key change while session is {self._status.value}")
                return
            if not key:
                self._api_key = None
                self._transition(SessionStatus.KEY_UNAVAILABLE)
                self._set_message(MessageKind.ERROR, "API key not available.")
                return
            self._api_key = key
            if self._status in _KEY_STATES:
                self._transition(SessionStatus.IDLE)
            logger.info("Transcription API key loaded")
            self._set_message(MessageKind.SUCCESS, "API key loaded.")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_selected_option(self, key: str) -> bool:
        with self._lock:
            if not self._settings_editable("transcription option"):
                return False
            option = find_option(key)
            if option is None:
                self._set_message(MessageKind.ERROR, "Invalid transcription option.")
                return False
            self._option = option
            return True

    def set_diarization(self, enabled: bool) -> bool:
        with self._lock:
            if not self._settings_editable("diarization"):
                return False
            self._diarize = enabled
            return True

    def _settings_editable(self, setting: str) -> bool:
        if self._status in _KEY_STATES or self._status == SessionStatus.IDLE:
            return True
        logger.warning(f"Ignoring {setting} change while session is {self._status.value}")
        self._set_message(MessageKind.INFO, "Settings are locked while a session is active.")
        return False

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        with self._lock:
            if self._api_key is None or self._status in _KEY_STATES:
                self._set_message(MessageKind.ERROR, "API key not loaded or configured.")
                return False
            if self._status != SessionStatus.IDLE:
                logger.info(f"start() ignored: session is {self._status.value}")
                self._set_message(MessageKind.INFO, "A session is already active.")
                return False

            config = self.config
            try:
                handle = self._capture.acquire()
            except CaptureError as exc:
                logger.error(f"Microphone setup failed: {exc}")
                if exc.code == PERMISSION_DENIED:
                    self._set_message(MessageKind.ERROR, ERROR_MESSAGES[PERMISSION_DENIED])
                else:
                    self._set_message(MessageKind.ERROR, f"Microphone setup failed: {exc}")
                return False

            self._session_id += 1
            session_id = self._session_id
            self._capture_handle = handle
            self._active_config = config
            self._set_transcript(TranscriptState())
            self._transition(SessionStatus.CONNECTING)
            self._set_message(MessageKind.INFO, "Connecting...")

            try:
                connection = self._transcriber.open(
                    self._api_key,
                    config,
                    lambda event: self._handle_event(session_id, event),
                )
            except Exception as exc:
                self._fail(f"Connection error: {exc}")
                return False

            if self._session_id == session_id and self._status in _ACTIVE_STATES:
                self._connection = connection
            return True

    def stop(self) -> bool:
        with self._lock:
            if self._status == SessionStatus.LISTENING:
                self._transition(SessionStatus.STOPPING)
                self._set_message(MessageKind.INFO, "Stopping...")
                self._cancel_keepalive()
                self._safe_finish(self._connection)
                return True
            if self._status == SessionStatus.CONNECTING:
                # Nothing was captured yet; release the microphone now and let
                # CLOSED confirm the connection is gone.
                self._transition(SessionStatus.STOPPING)
                self._set_message(MessageKind.INFO, "Stopping...")
                connection = self._connection
                self._cancel_keepalive()
                self._release_capture()
                if connection is None:
                    self._teardown()
                    self._transition(SessionStatus.IDLE)
                else:
                    self._safe_finish(connection)
                return True
            logger.debug(f"stop() ignored: session is {self._status.value}")
            return False

    def toggle(self) -> bool:
        if self._status == SessionStatus.IDLE:
            return self.start()
        return self.stop()

    def shutdown(self) -> None:
        """Tear everything down immediately, e.g. when the window closes."""
        with self._lock:
            connection = self._connection
            self._session_id += 1
            self._teardown()
            self._safe_finish(connection)
            if self._status in _ACTIVE_STATES or self._status == SessionStatus.CONNECTION_ERROR:
                self._transition(SessionStatus.IDLE)

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def _handle_event(self, session_id: int, event: ConnectionEvent) -> None:
        with self._lock:
            if session_id != self._session_id:
                logger.debug(f"Ignoring {event.kind} event from a superseded connection")
                return
            kind = event.kind
            if kind == EventKind.OPENED.value:
                self._on_opened(session_id)
            elif kind == EventKind.TRANSCRIPT.value:
                if self._status in _ACTIVE_STATES:
                    self._set_transcript(reduce_transcript(self._transcript, event))
            elif kind == EventKind.METADATA.value:
                logger.debug(f"Backend metadata: {event.metadata.get('type', 'unknown')}")
            elif kind == EventKind.ERROR.value:
                if self._status in _ACTIVE_STATES:
                    code = event.code or ASR_PROTOCOL_ERROR
                    logger.error(f"Connection error [{code}]: {event.message}")
                    self._fail(f"Connection error: {event.message}")
            elif kind == EventKind.CLOSED.value:
                self._on_closed()

    def _on_opened(self, session_id: int) -> None:
        if self._status != SessionStatus.CONNECTING:
            logger.info(f"Connection opened while {self._status.value}; not starting capture")
            return
        handle = self._capture_handle
        if handle is None:
            self._fail("Microphone setup failed.")
            return
        try:
            handle.start(lambda chunk: self._on_chunk(session_id, chunk))
        except CaptureError as exc:
            logger.error(f"Microphone could not start: {exc}")
            if exc.code == PERMISSION_DENIED:
                self._fail(ERROR_MESSAGES[PERMISSION_DENIED])
            else:
                self._fail(f"Microphone setup failed: {exc}")
            return
        except Exception as exc:
            logger.exception("Unexpected error while starting the microphone")
            self._fail(f"Microphone setup failed: {exc}")
            return
        self._start_keepalive(session_id)
        self._transition(SessionStatus.LISTENING)
        self._set_message(MessageKind.INFO, "Connection opened. Listening...")

    def _on_closed(self) -> None:
        if self._status == SessionStatus.STOPPING:
            self._teardown()
            self._transition(SessionStatus.IDLE)
            self._set_message(MessageKind.INFO, "Connection closed.")
        elif self._status in (SessionStatus.CONNECTING, SessionStatus.LISTENING):
            logger.error(f"Connection closed unexpectedly while {self._status.value}")
            self._fail(ERROR_MESSAGES[NETWORK_ERROR])
        else:
            self._teardown()

    def _on_chunk(self, session_id: int, chunk: AudioChunk) -> None:
        with self._lock:
            connection = self._connection
            if (
                session_id != self._session_id
                or self._status != SessionStatus.LISTENING
                or connection is None
            ):
                logger.warning(f"Dropping audio chunk {chunk.sequence}: no open connection")
                return
            connection.send(chunk)

    def _on_keepalive_tick(self, session_id: int) -> None:
        with self._lock:
            connection = self._connection
            if (
                session_id != self._session_id
                or self._keepalive is None
                or connection is None
                or self._status != SessionStatus.LISTENING
            ):
                logger.debug("Keep-alive tick after teardown ignored")
                return
            connection.keep_alive()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _fail(self, message: str) -> None:
        self._transition(SessionStatus.CONNECTION_ERROR)
        self._set_message(MessageKind.ERROR, message)
        connection = self._connection
        self._teardown()
        self._safe_finish(connection)
        self._transition(SessionStatus.IDLE)

    def _teardown(self) -> None:
        self._cancel_keepalive()
        self._release_capture()
        self._connection = None
        self._active_config = None

    def _start_keepalive(self, session_id: int) -> None:
        self._cancel_keepalive()
        timer = self._timer_factory(
            self._keepalive_interval_s,
            lambda: self._on_keepalive_tick(session_id),
        )
        self._keepalive = timer
        timer.start()

    def _cancel_keepalive(self) -> None:
        timer, self._keepalive = self._keepalive, None
        if timer is not None:
            timer.cancel()

    def _release_capture(self) -> None:
        handle, self._capture_handle = self._capture_handle, None
        if handle is None:
            return
        try:
            handle.stop()
        except Exception:
            logger.exception("Failed to release the microphone")

    def _safe_finish(self, connection: Optional[LiveConnection]) -> None:
        if connection is None:
            return
        try:
            connection.finish()
        except Exception:
            logger.exception("Failed to finish the live connection")

    def _set_transcript(self, state: TranscriptState) -> None:
        self._transcript = state
        if self._on_transcript:
            self._on_transcript(state)

    def _set_message(self, kind: MessageKind, text: str) -> None:
        self._message = UserMessage(kind=kind.value, text=text)
        if self._on_message:
            self._on_message(self._message)

    def _transition(self, to_state: SessionStatus) -> None:
        from_state = self._status
        if from_state == to_state:
            return
        self._status = to_state
        logger.info(f"Session status {from_state.value} -> {to_state.value}")
        if self._on_status_change:
            self._on_status_change(from_state, to_state)
