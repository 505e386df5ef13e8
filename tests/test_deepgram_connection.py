"""Tests for DeepgramLiveConnection."""

from __future__ import annotations

import json
import logging
import threading
import time
from queue import Empty, Queue
from unittest.mock import patch

from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from deepgram_connection import (
    CLOSE_STREAM_MESSAGE,
    KEEPALIVE_MESSAGE,
    ConnectionState,
    DeepgramLiveConnection,
    DeepgramTranscriber,
    _to_error_event,
    build_listen_params,
    decode_message,
)
from models import AudioChunk, ConnectionEvent, EventKind, RawWord, SessionConfig

CONFIG = SessionConfig(model="nova-3", language="en")


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class FakeWebSocket:
    """Minimal stand-in for a websockets sync ClientConnection."""

    def __init__(self, close_on_close_stream: bool = True) -> None:
        self.incoming: Queue[str | None] = Queue()
        self.sent: list[bytes | str] = []
        self.closed = threading.Event()
        self.close_on_close_stream = close_on_close_stream

    def recv(self, timeout: float | None = None) -> str:
        if self.closed.is_set():
            raise ConnectionClosedOK(None, None)
        try:
            item = self.incoming.get(timeout=timeout)
        except Empty:
            raise TimeoutError
        if item is None:
            raise ConnectionClosedOK(None, None)
        if isinstance(item, Exception):
            raise item
        return item

    def send(self, message: bytes | str) -> None:
        self.sent.append(message)
        if message == CLOSE_STREAM_MESSAGE and self.close_on_close_stream:
            self.incoming.put(None)

    def close(self) -> None:
        self.closed.set()


def _results(is_final: bool, *words: dict) -> str:
    return json.dumps(
        {
            "type": "Results",
            "is_final": is_final,
            "channel": {"alternatives": [{"transcript": "", "words": list(words)}]},
        }
    )


def _chunk(sequence: int) -> AudioChunk:
    return AudioChunk(pcm16_bytes=bytes([sequence]) * 8, sequence=sequence)


def _wait_for(events: list, kind: EventKind, *, timeout: float = 3.0) -> None:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if any(e.kind == kind.value for e in events):
            return
        time.sleep(0.01)
    raise AssertionError(f"no {kind.value} event within {timeout}s: {events}")


def _kinds(events: list[ConnectionEvent]) -> list[str]:
    return [e.kind for e in events]


def _connection(events: list, **kwargs) -> DeepgramLiveConnection:  # noqa: ANN003
    kwargs.setdefault("poll_interval_s", 0.02)
    return DeepgramLiveConnection("dg-key", CONFIG, events.append, **kwargs)


# ---------------------------------------------------------------
# Connection parameters
# ---------------------------------------------------------------

def test_listen_params_match_backend_protocol() -> None:
    params = build_listen_params(CONFIG)

    assert params["model"] == "nova-3"
    assert params["language"] == "en"
    assert params["interim_results"] == "true"
    assert params["smart_format"] == "true"
    assert params["utterance_end_ms"] == "3000"
    assert params["encoding"] == "linear16"
    assert params["sample_rate"] == "16000"
    assert "filler_words" not in params
    assert "diarize" not in params


def test_listen_params_optional_flags() -> None:
    config = SessionConfig(model="nova-3", language="en", filler_words=True, diarize=True)

    params = build_listen_params(config, sample_rate=48000, channels=2)

    assert params["filler_words"] == "true"
    assert params["diarize"] == "true"
    assert params["sample_rate"] == "48000"
    assert params["channels"] == "2"


# ---------------------------------------------------------------
# Frame decoding
# ---------------------------------------------------------------

def test_decode_results_frame() -> None:
    raw = _results(
        True,
        {"word": "hello", "punctuated_word": "Hello,", "confidence": 0.98, "speaker": 0},
        {"word": "world", "confidence": 0.6},
    )

    event = decode_message(raw)

    assert event.kind == EventKind.TRANSCRIPT.value
    assert event.is_final is True
    assert event.words == (
        RawWord(word="hello", punctuated_word="Hello,", confidence=0.98, speaker=0),
        RawWord(word="world", punctuated_word="", confidence=0.6, speaker=None),
    )


def test_decode_results_without_alternatives_is_empty_batch() -> None:
    event = decode_message(json.dumps({"type": "Results", "is_final": True, "channel": {}}))

    assert event.kind == EventKind.TRANSCRIPT.value
    assert event.words == ()


def test_decode_informational_frames_as_metadata() -> None:
    for frame_type in ("Metadata", "UtteranceEnd", "SpeechStarted"):
        event = decode_message(json.dumps({"type": frame_type}))
        assert event.kind == EventKind.METADATA.value
        assert event.metadata["type"] == frame_type


def test_decode_error_frame() -> None:
    event = decode_message(json.dumps({"type": "Error", "description": "bad audio"}))

    assert event.kind == EventKind.ERROR.value
    assert event.message == "bad audio"


def test_decode_garbage_is_skipped(caplog) -> None:  # noqa: ANN001
    with caplog.at_level(logging.WARNING):
        assert decode_message("{not json") is None
        assert decode_message(json.dumps([1, 2])) is None

    assert "Skipping" in caplog.text


# ---------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------

def test_network_error_maps_correctly() -> None:
    event = _to_error_event(ConnectionRefusedError("Connection refused"))

    assert event.code == "NETWORK_ERROR"
    assert event.retryable is True


def test_auth_error_maps_correctly() -> None:
    event = _to_error_event(Exception("server rejected WebSocket connection: HTTP 401"))

    assert event.code == "AUTH_FAILED"
    assert event.retryable is False


# ---------------------------------------------------------------
# Session behaviour
# ---------------------------------------------------------------

def test_streaming_session_delivers_events_in_order() -> None:
    ws = FakeWebSocket()
    events: list[ConnectionEvent] = []
    connection = _connection(events)

    with patch("deepgram_connection.connect", return_value=ws) as mock_connect:
        connection.open()
        _wait_for(events, EventKind.OPENED)

        connection.send(_chunk(1))
        connection.send(_chunk(2))
        ws.incoming.put(_results(False, {"word": "hel", "confidence": 0.5}))
        ws.incoming.put(_results(True, {"word": "hello", "confidence": 0.9}))
        ws.incoming.put(json.dumps({"type": "Metadata"}))
        connection.finish()
        _wait_for(events, EventKind.CLOSED)

    _, kwargs = mock_connect.call_args
    assert kwargs["additional_headers"] == {"Authorization": "Token dg-key"}
    assert _kinds(events) == ["opened", "transcript", "transcript", "metadata", "closed"]
    assert [e.is_final for e in events[1:3]] == [False, True]
    assert ws.sent == [bytes([1]) * 8, bytes([2]) * 8, CLOSE_STREAM_MESSAGE]
    assert connection.state == ConnectionState.CLOSED
    assert ws.closed.is_set()


def test_send_before_open_is_dropped_with_warning(caplog) -> None:  # noqa: ANN001
    connection = _connection([])

    with caplog.at_level(logging.WARNING):
        connection.send(_chunk(1))
        connection.keep_alive()

    assert "Dropping audio chunk 1" in caplog.text
    assert "Keep-alive skipped" in caplog.text
    assert connection.state == ConnectionState.CONNECTING


def test_keep_alive_sends_control_message() -> None:
    ws = FakeWebSocket()
    events: list[ConnectionEvent] = []
    connection = _connection(events)

    with patch("deepgram_connection.connect", return_value=ws):
        connection.open()
        _wait_for(events, EventKind.OPENED)
        connection.keep_alive()
        connection.finish()
        _wait_for(events, EventKind.CLOSED)

    assert ws.sent == [KEEPALIVE_MESSAGE, CLOSE_STREAM_MESSAGE]


def test_connect_failure_emits_error_then_closed() -> None:
    events: list[ConnectionEvent] = []
    connection = _connection(events)

    with patch("deepgram_connection.connect", side_effect=ConnectionRefusedError("refused")):
        connection.open()
        _wait_for(events, EventKind.CLOSED)

    assert _kinds(events) == ["error", "closed"]
    assert events[0].code == "NETWORK_ERROR"


def test_finish_before_open_closes_without_opening() -> None:
    ws = FakeWebSocket()
    release = threading.Event()
    events: list[ConnectionEvent] = []
    connection = _connection(events)

    def slow_connect(*args, **kwargs) -> FakeWebSocket:  # noqa: ANN002, ANN003
        release.wait(2.0)
        return ws

    with patch("deepgram_connection.connect", side_effect=slow_connect):
        connection.open()
        connection.finish()
        release.set()
        _wait_for(events, EventKind.CLOSED)

    assert _kinds(events) == ["closed"]
    assert ws.closed.is_set()
    assert ws.sent == []


def test_backend_that_never_closes_is_closed_locally() -> None:
    ws = FakeWebSocket(close_on_close_stream=False)
    events: list[ConnectionEvent] = []
    connection = _connection(events, finish_timeout_s=0.1)

    with patch("deepgram_connection.connect", return_value=ws):
        connection.open()
        _wait_for(events, EventKind.OPENED)
        connection.finish()
        _wait_for(events, EventKind.CLOSED)

    assert _kinds(events) == ["opened", "closed"]
    assert ws.closed.is_set()


def test_abnormal_close_emits_error() -> None:
    ws = FakeWebSocket()
    events: list[ConnectionEvent] = []
    connection = _connection(events)

    with patch("deepgram_connection.connect", return_value=ws):
        connection.open()
        _wait_for(events, EventKind.OPENED)
        ws.incoming.put(ConnectionClosedError(None, None))
        _wait_for(events, EventKind.CLOSED)

    assert _kinds(events) == ["opened", "error", "closed"]


def test_send_after_close_is_dropped() -> None:
    ws = FakeWebSocket()
    events: list[ConnectionEvent] = []
    connection = _connection(events)

    with patch("deepgram_connection.connect", return_value=ws):
        connection.open()
        _wait_for(events, EventKind.OPENED)
        connection.finish()
        _wait_for(events, EventKind.CLOSED)
        connection.send(_chunk(7))

    assert ws.sent == [CLOSE_STREAM_MESSAGE]


def test_transcriber_opens_connection_with_config() -> None:
    ws = FakeWebSocket()
    events: list[ConnectionEvent] = []
    transcriber = DeepgramTranscriber(poll_interval_s=0.02)
    config = SessionConfig(model="nova-2", language="de", diarize=True)

    with patch("deepgram_connection.connect", return_value=ws) as mock_connect:
        connection = transcriber.open("dg-key", config, events.append)
        _wait_for(events, EventKind.OPENED)
        connection.finish()
        _wait_for(events, EventKind.CLOSED)

    url = mock_connect.call_args[0][0]
    assert url.startswith("wss://api.deepgram.com/v1/listen?")
    assert "model=nova-2" in url
    assert "language=de" in url
    assert "diarize=true" in url
    assert "filler_words" not in url
