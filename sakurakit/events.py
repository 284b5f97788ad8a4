"""
Inbound events delivered to the caller.

Everything a session reports travels on one ordered sequence: socket
lifecycle notifications (opened, closed, failed), protocol control events,
unrecognized JSON, malformed frames, and completed audio artifacts. Each
event class carries a ``kind`` discriminator so consumers can branch with a
simple comparison or ``match`` statement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

from .exceptions import TransportError

# =============================================================================
# Event Type Enums
# =============================================================================


class ServerEventType(str, Enum):
    """Control event types sent by the realtime server."""

    ERROR = "error"
    SESSION_CREATED = "session.created"
    SESSION_UPDATED = "session.updated"
    CONVERSATION_CREATED = "conversation.created"
    CONVERSATION_ITEM_CREATED = "conversation.item.created"
    CONVERSATION_ITEM_INPUT_AUDIO_TRANSCRIPTION_COMPLETED = (
        "conversation.item.input_audio_transcription.completed"
    )
    CONVERSATION_ITEM_INPUT_AUDIO_TRANSCRIPTION_FAILED = (
        "conversation.item.input_audio_transcription.failed"
    )
    CONVERSATION_ITEM_TRUNCATED = "conversation.item.truncated"
    CONVERSATION_ITEM_DELETED = "conversation.item.deleted"
    INPUT_AUDIO_BUFFER_COMMITTED = "input_audio_buffer.committed"
    INPUT_AUDIO_BUFFER_CLEARED = "input_audio_buffer.cleared"
    INPUT_AUDIO_BUFFER_SPEECH_STARTED = "input_audio_buffer.speech_started"
    INPUT_AUDIO_BUFFER_SPEECH_STOPPED = "input_audio_buffer.speech_stopped"
    RESPONSE_CREATED = "response.created"
    RESPONSE_DONE = "response.done"
    RESPONSE_OUTPUT_ITEM_ADDED = "response.output_item.added"
    RESPONSE_OUTPUT_ITEM_DONE = "response.output_item.done"
    RESPONSE_CONTENT_PART_ADDED = "response.content_part.added"
    RESPONSE_CONTENT_PART_DONE = "response.content_part.done"
    RESPONSE_TEXT_DELTA = "response.text.delta"
    RESPONSE_TEXT_DONE = "response.text.done"
    RESPONSE_AUDIO_TRANSCRIPT_DELTA = "response.audio_transcript.delta"
    RESPONSE_AUDIO_TRANSCRIPT_DONE = "response.audio_transcript.done"
    RESPONSE_AUDIO_DELTA = "response.audio.delta"
    RESPONSE_AUDIO_DONE = "response.audio.done"
    RESPONSE_FUNCTION_CALL_ARGUMENTS_DELTA = "response.function_call_arguments.delta"
    RESPONSE_FUNCTION_CALL_ARGUMENTS_DONE = "response.function_call_arguments.done"
    RATE_LIMITS_UPDATED = "rate_limits.updated"


SERVER_EVENT_TYPES: frozenset[str] = frozenset(t.value for t in ServerEventType)


class InboundEventKind(str, Enum):
    """Discriminator for every event a session can deliver."""

    CONNECTION_OPENED = "connection_opened"
    SERVER_EVENT = "server_event"
    RAW = "raw"
    MALFORMED = "malformed"
    AUDIO_ARTIFACT = "audio_artifact"
    CONNECTION_CLOSED = "connection_closed"
    CONNECTION_FAILED = "connection_failed"


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class ConnectionOpened:
    """The socket finished its opening handshake."""

    url: str

    kind: ClassVar[InboundEventKind] = InboundEventKind.CONNECTION_OPENED


@dataclass(frozen=True, slots=True)
class ServerEvent:
    """A recognized control event from the server.

    Attributes:
        type: Server event type string (e.g. "response.done").
        payload: The full decoded JSON object, ``type`` included.
    """

    type: str
    payload: dict[str, Any]

    kind: ClassVar[InboundEventKind] = InboundEventKind.SERVER_EVENT

    @property
    def event_id(self) -> str | None:
        """Server-assigned event id, if present."""
        value = self.payload.get("event_id")
        return value if isinstance(value, str) else None

    @property
    def is_error(self) -> bool:
        return self.type == ServerEventType.ERROR.value

    @property
    def error_message(self) -> str | None:
        """Message of an ``error`` event, or None for other types."""
        if not self.is_error:
            return None
        error = self.payload.get("error")
        if isinstance(error, dict):
            return str(error.get("message", "Unknown error"))
        return "Unknown error"

    @property
    def client_event_id(self) -> str | None:
        """The client event id an ``error`` event refers to, if any."""
        error = self.payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("event_id"), str):
            return error["event_id"]
        return None


@dataclass(frozen=True, slots=True)
class RawEvent:
    """Valid JSON that does not match a recognized control event shape."""

    payload: Any

    kind: ClassVar[InboundEventKind] = InboundEventKind.RAW


@dataclass(frozen=True, slots=True)
class MalformedMessage:
    """A text frame that could not be parsed as JSON.

    Attributes:
        text: The frame payload as received.
        error: Parser error message.
    """

    text: str
    error: str

    kind: ClassVar[InboundEventKind] = InboundEventKind.MALFORMED


@dataclass(frozen=True, slots=True)
class AudioArtifact:
    """A fully assembled audio clip.

    Attributes:
        audio: Concatenated audio bytes in arrival order.
        chunk_count: Number of chunks that made up the clip.
        request_id: Correlation id from the terminal marker, if any.
    """

    audio: bytes = field(repr=False)
    chunk_count: int
    request_id: str | None = None

    kind: ClassVar[InboundEventKind] = InboundEventKind.AUDIO_ARTIFACT

    @property
    def size(self) -> int:
        return len(self.audio)


@dataclass(frozen=True, slots=True)
class ConnectionClosed:
    """The connection ended normally (local disconnect or remote normal closure)."""

    code: int | None = None
    reason: str | None = None

    kind: ClassVar[InboundEventKind] = InboundEventKind.CONNECTION_CLOSED


@dataclass(frozen=True, slots=True)
class ConnectionFailed:
    """The connection ended abnormally. Always the last event of its stream."""

    error: TransportError

    kind: ClassVar[InboundEventKind] = InboundEventKind.CONNECTION_FAILED


InboundEvent = Union[
    ConnectionOpened,
    ServerEvent,
    RawEvent,
    MalformedMessage,
    AudioArtifact,
    ConnectionClosed,
    ConnectionFailed,
]


def classify_message(data: Any) -> ServerEvent | RawEvent:
    """
    Classify a decoded JSON value.

    Args:
        data: Value returned by ``json.loads``.

    Returns:
        ServerEvent when ``data`` is an object whose ``type`` is a known
        server event type, RawEvent otherwise.
    """
    if isinstance(data, dict):
        msg_type = data.get("type")
        if isinstance(msg_type, str) and msg_type in SERVER_EVENT_TYPES:
            return ServerEvent(type=msg_type, payload=data)
    return RawEvent(payload=data)


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    "ServerEventType",
    "SERVER_EVENT_TYPES",
    "InboundEventKind",
    "ConnectionOpened",
    "ServerEvent",
    "RawEvent",
    "MalformedMessage",
    "AudioArtifact",
    "ConnectionClosed",
    "ConnectionFailed",
    "InboundEvent",
    "classify_message",
]
