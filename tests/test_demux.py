"""Tests for the inbound demultiplexer and its protocol profiles.

Tests cover:
- Classification of text frames (server events, raw JSON, malformed text)
- Binary audio assembly and terminal markers (TTS profile)
- Strict marker mode
- Base64 audio deltas (realtime profile)
- Observer notifications and isolation from observer failures
"""

from __future__ import annotations

import base64
import json
import sys

import pytest

from sakurakit.demux import InboundDemultiplexer, RealtimeProfile, TTSProfile
from sakurakit.events import (
    AudioArtifact,
    InboundEventKind,
    MalformedMessage,
    RawEvent,
    ServerEvent,
    classify_message,
)
from sakurakit.frames import BinaryFrame, TextFrame

INT_DIGIT_LIMIT = getattr(sys, "get_int_max_str_digits", lambda: 0)()

UNPARSEABLE_TEXT = [
    pytest.param("{not json", id="syntax-error"),
    pytest.param(
        "1" * (INT_DIGIT_LIMIT + 1),
        id="oversized-integer",
        marks=pytest.mark.skipif(not INT_DIGIT_LIMIT, reason="no integer digit limit"),
    ),
    pytest.param("[" * 100_000 + "]" * 100_000, id="deep-nesting"),
]


def text(message) -> TextFrame:
    return TextFrame(json.dumps(message))


# =============================================================================
# Classification
# =============================================================================


class TestClassification:
    """Tests for text frame classification."""

    def test_known_server_event(self) -> None:
        """Test that recognized control events become ServerEvent."""
        demux = InboundDemultiplexer()
        events = demux.handle(text({"type": "session.created", "event_id": "event_1"}))

        assert len(events) == 1
        assert isinstance(events[0], ServerEvent)
        assert events[0].type == "session.created"
        assert events[0].event_id == "event_1"
        assert events[0].kind == InboundEventKind.SERVER_EVENT

    def test_unknown_type_is_raw(self) -> None:
        """Test that unrecognized JSON is surfaced, never dropped."""
        demux = InboundDemultiplexer()
        events = demux.handle(text({"type": "something.new", "x": 1}))

        assert events == [RawEvent(payload={"type": "something.new", "x": 1})]

    @pytest.mark.parametrize("payload", [[1, 2, 3], "just a string", 42, None, {"no": "type"}])
    def test_non_event_json_is_raw(self, payload) -> None:
        assert classify_message(payload) == RawEvent(payload=payload)

    def test_malformed_text(self, observer) -> None:
        """Test that unparseable text produces a diagnostic, not an exception."""
        demux = InboundDemultiplexer(observer=observer)
        events = demux.handle(TextFrame("{not json"))

        assert len(events) == 1
        assert isinstance(events[0], MalformedMessage)
        assert events[0].text == "{not json"
        assert "Invalid JSON" in events[0].error
        assert observer.names() == ["on_malformed_message"]

    @pytest.mark.parametrize("payload", UNPARSEABLE_TEXT)
    def test_parser_failures_become_malformed(self, observer, payload: str) -> None:
        """Test that every parser failure, not only syntax errors, is reported."""
        demux = InboundDemultiplexer(TTSProfile(), observer=observer)
        demux.handle(BinaryFrame(b"abc"))

        events = demux.handle(TextFrame(payload))

        assert len(events) == 1
        assert isinstance(events[0], MalformedMessage)
        assert events[0].error.startswith("Invalid JSON")
        assert observer.names() == ["on_malformed_message"]
        assert demux.buffer.byte_count == 3

    def test_error_event_helpers(self) -> None:
        """Test the error accessors on server error events."""
        demux = InboundDemultiplexer()
        [event] = demux.handle(
            text(
                {
                    "type": "error",
                    "error": {"message": "bad request", "event_id": "evt_abc123_000003"},
                }
            )
        )
        assert event.is_error
        assert event.error_message == "bad request"
        assert event.client_event_id == "evt_abc123_000003"


# =============================================================================
# TTS Profile
# =============================================================================


class TestTTSAssembly:
    """Tests for binary audio assembly with the TTS profile."""

    def test_assembles_chunks_on_marker(self, observer) -> None:
        """Test 100 + 250 + 50 bytes then a marker yields one 400-byte artifact."""
        demux = InboundDemultiplexer(TTSProfile(), observer=observer)
        chunks = [b"\x01" * 100, b"\x02" * 250, b"\x03" * 50]

        for chunk in chunks:
            assert demux.handle(BinaryFrame(chunk)) == []

        events = demux.handle(text({"request_id": "req-1"}))

        assert isinstance(events[0], RawEvent)
        artifact = events[1]
        assert isinstance(artifact, AudioArtifact)
        assert artifact.audio == b"".join(chunks)
        assert artifact.size == 400
        assert artifact.chunk_count == 3
        assert artifact.request_id == "req-1"
        assert observer.names() == ["on_artifact"]

    def test_next_stream_starts_empty(self) -> None:
        """Test that audio after a marker belongs to a new artifact."""
        demux = InboundDemultiplexer(TTSProfile())
        demux.handle(BinaryFrame(b"first"))
        demux.handle(text({"request_id": "req-1"}))
        demux.handle(BinaryFrame(b"second"))

        [_, artifact] = demux.handle(text({"request_id": "req-2"}))

        assert artifact.audio == b"second"
        assert artifact.request_id == "req-2"

    def test_marker_without_audio(self) -> None:
        """Test that a marker with no preceding audio yields an empty artifact."""
        demux = InboundDemultiplexer(TTSProfile())
        [_, artifact] = demux.handle(text({"request_id": "req-1"}))
        assert artifact.audio == b""
        assert artifact.chunk_count == 0

    def test_non_marker_text_does_not_finalize(self) -> None:
        demux = InboundDemultiplexer(TTSProfile())
        demux.handle(BinaryFrame(b"abc"))

        events = demux.handle(text({"status": "generating"}))

        assert len(events) == 1
        assert demux.buffer.byte_count == 3

    def test_malformed_does_not_finalize(self) -> None:
        demux = InboundDemultiplexer(TTSProfile())
        demux.handle(BinaryFrame(b"abc"))
        demux.handle(TextFrame("not json"))
        assert demux.buffer.chunk_count == 1

    def test_reset_discards_partial_audio(self) -> None:
        demux = InboundDemultiplexer(TTSProfile())
        demux.handle(BinaryFrame(b"abc"))
        demux.reset()
        [_, artifact] = demux.handle(text({"request_id": "req-1"}))
        assert artifact.audio == b""

    def test_observer_failure_isolated(self) -> None:
        """Test that a raising observer does not affect delivery."""

        class BrokenObserver:
            def on_artifact(self, artifact) -> None:
                raise RuntimeError("observer bug")

        demux = InboundDemultiplexer(TTSProfile(), observer=BrokenObserver())
        demux.handle(BinaryFrame(b"abc"))
        [_, artifact] = demux.handle(text({"request_id": "req-1"}))
        assert artifact.audio == b"abc"


class TestStrictMarker:
    """Tests for TTSProfile(strict=True)."""

    @pytest.mark.parametrize(
        "message",
        [
            {"request_id": "req-1"},
            {"request_id": "req-1", "type": "end"},
            {"request_id": "req-1", "status": "completed"},
        ],
    )
    def test_completion_accepted(self, message) -> None:
        assert TTSProfile(strict=True).terminal_marker(message) is not None

    @pytest.mark.parametrize(
        "message",
        [
            {"request_id": "req-1", "type": "progress"},
            {"request_id": "req-1", "status": "queued"},
            {"request_id": "req-1", "error": "voice not found"},
        ],
    )
    def test_non_completion_rejected(self, message) -> None:
        """Test that strict mode ignores messages that merely echo the request id."""
        assert TTSProfile(strict=True).terminal_marker(message) is None
        assert TTSProfile().terminal_marker(message) is not None

    def test_non_object_never_marker(self) -> None:
        assert TTSProfile().terminal_marker(["request_id"]) is None


# =============================================================================
# Realtime Profile
# =============================================================================


class TestRealtimeAssembly:
    """Tests for base64 audio deltas with the realtime profile."""

    def test_deltas_assembled_on_done(self) -> None:
        """Test that decoded deltas are joined when response.audio.done arrives."""
        demux = InboundDemultiplexer(RealtimeProfile())
        for chunk in (b"hello ", b"world"):
            events = demux.handle(
                text(
                    {
                        "type": "response.audio.delta",
                        "response_id": "resp_1",
                        "delta": base64.b64encode(chunk).decode("ascii"),
                    }
                )
            )
            assert [e.kind for e in events] == [InboundEventKind.SERVER_EVENT]

        events = demux.handle(text({"type": "response.audio.done", "response_id": "resp_1"}))

        assert isinstance(events[0], ServerEvent)
        assert events[1] == AudioArtifact(audio=b"hello world", chunk_count=2, request_id="resp_1")

    def test_invalid_delta_reported(self) -> None:
        """Test that undecodable audio is reported after the control event."""
        demux = InboundDemultiplexer(RealtimeProfile())
        events = demux.handle(text({"type": "response.audio.delta", "delta": "@@not base64@@"}))

        assert isinstance(events[0], ServerEvent)
        assert isinstance(events[1], MalformedMessage)
        assert demux.buffer.is_empty

    def test_binary_frames_also_buffered(self) -> None:
        demux = InboundDemultiplexer(RealtimeProfile())
        demux.handle(BinaryFrame(b"raw"))
        [_, artifact] = demux.handle(text({"type": "response.audio.done"}))
        assert artifact.audio == b"raw"
        assert artifact.request_id is None

    def test_default_profile_is_realtime(self) -> None:
        assert isinstance(InboundDemultiplexer().profile, RealtimeProfile)
