"""
Outbound commands and their wire encoding.

Every command is an immutable dataclass with a ``to_dict()`` method that
returns the full wire shape, ``None`` included. ``encode()`` is the single
place that turns a command into a text frame and applies the field omission
rule:

- a field set to ``None`` is omitted from the JSON object;
- a field set to ``NULL`` is sent as an explicit JSON ``null`` (used by the
  realtime protocol to switch features off, e.g. ``turn_detection``).

Realtime commands carry an ``event_id``. When it is ``None`` the session
assigns one from its ``EventIdSequence`` before encoding, via
``with_event_id()``, which returns a new command and leaves the caller's
object untouched.
"""

from __future__ import annotations

import base64
import dataclasses
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Protocol, Union, runtime_checkable

from .exceptions import EncodeError
from .frames import TextFrame
from .ids import EventIdSequence

# =============================================================================
# Message Type Enums
# =============================================================================


class ClientEventType(str, Enum):
    """Message types sent from client to the realtime server."""

    SESSION_UPDATE = "session.update"
    INPUT_AUDIO_BUFFER_APPEND = "input_audio_buffer.append"
    INPUT_AUDIO_BUFFER_COMMIT = "input_audio_buffer.commit"
    INPUT_AUDIO_BUFFER_CLEAR = "input_audio_buffer.clear"
    CONVERSATION_ITEM_CREATE = "conversation.item.create"
    CONVERSATION_ITEM_TRUNCATE = "conversation.item.truncate"
    CONVERSATION_ITEM_DELETE = "conversation.item.delete"
    RESPONSE_CREATE = "response.create"
    RESPONSE_CANCEL = "response.cancel"


class OutputFormat(str, Enum):
    """Audio container/encoding requested from the TTS server."""

    MP3 = "mp3"
    WAV = "wav"
    OGG = "ogg"
    FLAC = "flac"
    MULAW = "mulaw"
    RAW = "raw"


class Quality(str, Enum):
    """TTS quality presets."""

    DRAFT = "draft"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    PREMIUM = "premium"


class _ExplicitNull:
    """Marker for a field that must be sent as JSON null."""

    _instance: ClassVar[_ExplicitNull | None] = None

    def __new__(cls) -> _ExplicitNull:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NULL"


NULL = _ExplicitNull()


# =============================================================================
# Value Objects
# =============================================================================


@dataclass(frozen=True, slots=True)
class InputAudioTranscription:
    """Input audio transcription settings (e.g. model="whisper-1")."""

    model: str = "whisper-1"

    def to_dict(self) -> dict[str, Any]:
        return {"model": self.model}


@dataclass(frozen=True, slots=True)
class TurnDetection:
    """Server-side voice activity detection settings.

    Attributes:
        type: Detection mode ("server_vad").
        threshold: Activation threshold (0.0-1.0).
        prefix_padding_ms: Audio kept before detected speech, in milliseconds.
        silence_duration_ms: Silence that ends a turn, in milliseconds.
    """

    type: str = "server_vad"
    threshold: float | None = None
    prefix_padding_ms: int | None = None
    silence_duration_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "threshold": self.threshold,
            "prefix_padding_ms": self.prefix_padding_ms,
            "silence_duration_ms": self.silence_duration_ms,
        }


@dataclass(frozen=True, slots=True)
class Tool:
    """A function tool the model may call.

    ``parameters`` is a JSON schema object describing the arguments.
    """

    name: str
    description: str
    parameters: Mapping[str, Any]
    type: str = "function"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "parameters": dict(self.parameters),
        }


@dataclass(frozen=True, slots=True)
class SessionConfiguration:
    """Session-wide settings sent with ``session.update``."""

    modalities: Sequence[str] | None = None
    instructions: str | None = None
    voice: str | None = None
    input_audio_format: str | None = None
    output_audio_format: str | None = None
    input_audio_transcription: InputAudioTranscription | _ExplicitNull | None = None
    turn_detection: TurnDetection | _ExplicitNull | None = None
    tools: Sequence[Tool] | None = None
    tool_choice: str | None = None
    temperature: float | None = None
    max_output_tokens: int | str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "modalities": _list_or_none(self.modalities),
            "instructions": self.instructions,
            "voice": self.voice,
            "input_audio_format": self.input_audio_format,
            "output_audio_format": self.output_audio_format,
            "input_audio_transcription": _nested(self.input_audio_transcription),
            "turn_detection": _nested(self.turn_detection),
            "tools": None if self.tools is None else [t.to_dict() for t in self.tools],
            "tool_choice": self.tool_choice,
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }


@dataclass(frozen=True, slots=True)
class ResponseConfiguration:
    """Per-response overrides sent with ``response.create``."""

    modalities: Sequence[str] | None = None
    instructions: str | None = None
    voice: str | None = None
    output_audio_format: str | None = None
    tools: Sequence[Tool] | None = None
    tool_choice: str | None = None
    temperature: float | None = None
    max_output_tokens: int | str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "modalities": _list_or_none(self.modalities),
            "instructions": self.instructions,
            "voice": self.voice,
            "output_audio_format": self.output_audio_format,
            "tools": None if self.tools is None else [t.to_dict() for t in self.tools],
            "tool_choice": self.tool_choice,
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }


@dataclass(frozen=True, slots=True)
class ContentPart:
    """One content part of a conversation item (input_text, input_audio, text)."""

    type: str
    text: str | None = None
    audio: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text, "audio": self.audio}


@dataclass(frozen=True, slots=True)
class ConversationItem:
    """A conversation item (message, function_call, function_call_output)."""

    type: str
    role: str
    content: Sequence[ContentPart]
    id: str | None = None
    status: str | None = None

    @classmethod
    def user_text(cls, text: str) -> ConversationItem:
        """Build a user message item carrying a single input_text part."""
        return cls(type="message", role="user", content=(ContentPart("input_text", text=text),))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "role": self.role,
            "content": [part.to_dict() for part in self.content],
        }


# =============================================================================
# Realtime Commands
# =============================================================================


@runtime_checkable
class RealtimeCommand(Protocol):
    """Interface shared by every realtime client event."""

    type: ClassVar[ClientEventType]
    event_id: str | None

    def to_dict(self) -> dict[str, Any]: ...


def _envelope(command: Any, **fields: Any) -> dict[str, Any]:
    return {"type": command.type.value, "event_id": command.event_id, **fields}


@dataclass(frozen=True, slots=True)
class SessionUpdate:
    """Update the session's default configuration."""

    session: SessionConfiguration
    event_id: str | None = None

    type: ClassVar[ClientEventType] = ClientEventType.SESSION_UPDATE

    def to_dict(self) -> dict[str, Any]:
        return _envelope(self, session=self.session.to_dict())


@dataclass(frozen=True, slots=True)
class ConversationItemCreate:
    """Add an item to the conversation."""

    item: ConversationItem
    previous_item_id: str | None = None
    event_id: str | None = None

    type: ClassVar[ClientEventType] = ClientEventType.CONVERSATION_ITEM_CREATE

    def to_dict(self) -> dict[str, Any]:
        return _envelope(self, previous_item_id=self.previous_item_id, item=self.item.to_dict())


@dataclass(frozen=True, slots=True)
class InputAudioBufferAppend:
    """Append base64-encoded audio to the input buffer."""

    audio: str
    event_id: str | None = None

    type: ClassVar[ClientEventType] = ClientEventType.INPUT_AUDIO_BUFFER_APPEND

    @classmethod
    def from_bytes(cls, chunk: bytes, event_id: str | None = None) -> InputAudioBufferAppend:
        """Build an append command from raw audio bytes."""
        return cls(audio=base64.b64encode(chunk).decode("ascii"), event_id=event_id)

    def to_dict(self) -> dict[str, Any]:
        return _envelope(self, audio=self.audio)


@dataclass(frozen=True, slots=True)
class InputAudioBufferCommit:
    """Commit the input buffer as a user message."""

    event_id: str | None = None

    type: ClassVar[ClientEventType] = ClientEventType.INPUT_AUDIO_BUFFER_COMMIT

    def to_dict(self) -> dict[str, Any]:
        return _envelope(self)


@dataclass(frozen=True, slots=True)
class InputAudioBufferClear:
    """Discard the input buffer."""

    event_id: str | None = None

    type: ClassVar[ClientEventType] = ClientEventType.INPUT_AUDIO_BUFFER_CLEAR

    def to_dict(self) -> dict[str, Any]:
        return _envelope(self)


@dataclass(frozen=True, slots=True)
class ConversationItemTruncate:
    """Truncate a previous assistant audio message."""

    item_id: str
    content_index: int
    audio_end_ms: int
    event_id: str | None = None

    type: ClassVar[ClientEventType] = ClientEventType.CONVERSATION_ITEM_TRUNCATE

    def to_dict(self) -> dict[str, Any]:
        return _envelope(
            self,
            item_id=self.item_id,
            content_index=self.content_index,
            audio_end_ms=self.audio_end_ms,
        )


@dataclass(frozen=True, slots=True)
class ConversationItemDelete:
    """Remove an item from the conversation history."""

    item_id: str
    event_id: str | None = None

    type: ClassVar[ClientEventType] = ClientEventType.CONVERSATION_ITEM_DELETE

    def to_dict(self) -> dict[str, Any]:
        return _envelope(self, item_id=self.item_id)


@dataclass(frozen=True, slots=True)
class ResponseCreate:
    """Ask the server to generate a response."""

    response: ResponseConfiguration | None = None
    event_id: str | None = None

    type: ClassVar[ClientEventType] = ClientEventType.RESPONSE_CREATE

    def to_dict(self) -> dict[str, Any]:
        return _envelope(self, response=_nested(self.response))


@dataclass(frozen=True, slots=True)
class ResponseCancel:
    """Cancel the in-progress response."""

    event_id: str | None = None

    type: ClassVar[ClientEventType] = ClientEventType.RESPONSE_CANCEL

    def to_dict(self) -> dict[str, Any]:
        return _envelope(self)


# =============================================================================
# TTS Command
# =============================================================================


@dataclass(frozen=True, slots=True)
class TTSCommand:
    """One synthesis request on the TTS websocket.

    Attributes:
        text: Text to speak.
        voice: Voice selector (manifest URL or voice id).
        output_format: Audio format of the returned clip.
        quality: Optional quality preset.
        temperature: Optional sampling temperature.
        speed: Optional speaking rate multiplier.
        request_id: Optional correlation id echoed by the completion message.
    """

    text: str
    voice: str
    output_format: OutputFormat | str = OutputFormat.MP3
    quality: Quality | str | None = None
    temperature: float | None = None
    speed: float | None = None
    request_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "voice": self.voice,
            "output_format": self.output_format,
            "quality": self.quality,
            "temperature": self.temperature,
            "speed": self.speed,
            "request_id": self.request_id,
        }


OutboundCommand = Union[
    SessionUpdate,
    ConversationItemCreate,
    InputAudioBufferAppend,
    InputAudioBufferCommit,
    InputAudioBufferClear,
    ConversationItemTruncate,
    ConversationItemDelete,
    ResponseCreate,
    ResponseCancel,
    TTSCommand,
]


# =============================================================================
# Encoding
# =============================================================================


def with_event_id(command: OutboundCommand, sequence: EventIdSequence) -> OutboundCommand:
    """Return the command with an event id, drawing one from ``sequence`` if unset.

    TTS commands have no event id and are returned unchanged.
    """
    if isinstance(command, TTSCommand) or command.event_id is not None:
        return command
    return dataclasses.replace(command, event_id=sequence.next())


def encode(command: OutboundCommand) -> TextFrame:
    """
    Serialize a command to a compact JSON text frame.

    Args:
        command: Any outbound command.

    Returns:
        TextFrame holding the canonical JSON.

    Raises:
        EncodeError: If the command holds a value JSON/UTF-8 cannot represent
            (lone surrogates, NaN or infinity, arbitrary objects).
    """
    try:
        data = _compact(command.to_dict())
        text = json.dumps(data, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
        text.encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncodeError(f"Cannot encode {type(command).__name__}: {e}") from e
    return TextFrame(text)


def _compact(value: Any) -> Any:
    """Apply the omission rule recursively and unwrap enums."""
    if value is NULL:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): _compact(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_compact(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _nested(value: Any) -> Any:
    if value is None or value is NULL:
        return value
    return value.to_dict()


def _list_or_none(value: Sequence[str] | None) -> list[str] | None:
    return None if value is None else list(value)


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Enums
    "ClientEventType",
    "OutputFormat",
    "Quality",
    "NULL",
    # Value objects
    "InputAudioTranscription",
    "TurnDetection",
    "Tool",
    "SessionConfiguration",
    "ResponseConfiguration",
    "ContentPart",
    "ConversationItem",
    # Commands
    "RealtimeCommand",
    "SessionUpdate",
    "ConversationItemCreate",
    "InputAudioBufferAppend",
    "InputAudioBufferCommit",
    "InputAudioBufferClear",
    "ConversationItemTruncate",
    "ConversationItemDelete",
    "ResponseCreate",
    "ResponseCancel",
    "TTSCommand",
    "OutboundCommand",
    # Encoding
    "with_event_id",
    "encode",
]
