"""
Inbound event demultiplexer.

Turns each received frame into zero or more inbound events, in the order
the frames arrived:

- Text frames are parsed as JSON. Recognized control events become
  ``ServerEvent``; any other JSON becomes ``RawEvent`` (never dropped);
  unparseable text becomes ``MalformedMessage``. Nothing here raises.
- Binary frames are appended to the ``AudioAssemblyBuffer``.
- After each text frame the protocol profile decides whether the message is
  a terminal marker. If so, the buffer is finalized and an ``AudioArtifact``
  is emitted right after the control event for that frame.

Profiles:
- ``TTSProfile``: audio arrives as binary frames; the marker is a JSON
  object carrying ``request_id``.
- ``RealtimeProfile``: audio arrives base64-encoded in
  ``response.audio.delta`` events; ``response.audio.done`` is the marker.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from .audio_buffer import AudioAssemblyBuffer
from .events import (
    AudioArtifact,
    InboundEvent,
    MalformedMessage,
    ServerEventType,
    classify_message,
)
from .exceptions import ProtocolError
from .frames import BinaryFrame, MessageFrame
from .observer import SessionObserver, notify_observer

logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Profiles
# =============================================================================


@dataclass(frozen=True, slots=True)
class TerminalMarker:
    """A matched terminal marker and the correlation id it carried."""

    request_id: str | None = None


class StreamProfile(Protocol):
    """Per-protocol rules for audio extraction and terminal markers."""

    name: str

    def audio_payload(self, message: Any) -> bytes | None:
        """Audio carried inside a control message, or None.

        Raises:
            ProtocolError: If the message claims to carry audio that cannot be decoded.
        """
        ...

    def terminal_marker(self, message: Any) -> TerminalMarker | None:
        """Return a marker when ``message`` ends the current audio stream."""
        ...


# Values accepted as a completion signal by TTSProfile(strict=True).
COMPLETION_VALUES = frozenset({"end", "done", "complete", "completed", "finished"})


@dataclass(frozen=True)
class TTSProfile:
    """Profile for the streaming TTS websocket.

    Attributes:
        strict: When False (default), any JSON object with a ``request_id``
            key ends the stream. When True, the object must also carry no
            ``type``/``status`` field other than a completion value and no
            ``error`` field, so an unrelated message that happens to echo the
            request id does not cut the clip short.
    """

    strict: bool = False
    name: str = "tts"

    def audio_payload(self, message: Any) -> bytes | None:
        return None

    def terminal_marker(self, message: Any) -> TerminalMarker | None:
        if not isinstance(message, dict) or "request_id" not in message:
            return None
        if self.strict:
            if "error" in message:
                return None
            for key in ("type", "status"):
                value = message.get(key)
                if value is not None and str(value).lower() not in COMPLETION_VALUES:
                    return None
        request_id = message["request_id"]
        return TerminalMarker(request_id=None if request_id is None else str(request_id))


@dataclass(frozen=True)
class RealtimeProfile:
    """Profile for the realtime conversation websocket."""

    name: str = "realtime"

    def audio_payload(self, message: Any) -> bytes | None:
        if not _is_type(message, ServerEventType.RESPONSE_AUDIO_DELTA):
            return None
        delta = message.get("delta")
        if not isinstance(delta, str):
            raise ProtocolError("response.audio.delta without a string 'delta' field")
        try:
            return base64.b64decode(delta, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProtocolError(f"Invalid base64 audio delta: {e}") from e

    def terminal_marker(self, message: Any) -> TerminalMarker | None:
        if not _is_type(message, ServerEventType.RESPONSE_AUDIO_DONE):
            return None
        response_id = message.get("response_id")
        return TerminalMarker(request_id=response_id if isinstance(response_id, str) else None)


def _is_type(message: Any, event_type: ServerEventType) -> bool:
    return isinstance(message, dict) and message.get("type") == event_type.value


# =============================================================================
# Demultiplexer
# =============================================================================


class InboundDemultiplexer:
    """Classifies frames and assembles audio for one connection.

    The demultiplexer and its buffer are owned by a single connection
    manager and touched only from its receive task.
    """

    def __init__(
        self,
        profile: StreamProfile | None = None,
        buffer: AudioAssemblyBuffer | None = None,
        observer: SessionObserver | None = None,
    ) -> None:
        self.profile: StreamProfile = profile or RealtimeProfile()
        self.buffer = buffer or AudioAssemblyBuffer()
        self._observer = observer

    def handle(self, frame: MessageFrame) -> list[InboundEvent]:
        """
        Process one frame.

        Args:
            frame: Frame read from the socket.

        Returns:
            Events produced by the frame, in delivery order (possibly empty).
        """
        if isinstance(frame, BinaryFrame):
            self.buffer.append(frame.payload)
            return []

        text = frame.payload
        try:
            data = json.loads(text)
        except (ValueError, RecursionError) as e:
            # Oversized integers and deep nesting fail outside JSONDecodeError.
            return [self._malformed(text, f"Invalid JSON: {e}")]

        events: list[InboundEvent] = [classify_message(data)]

        try:
            audio = self.profile.audio_payload(data)
        except ProtocolError as e:
            events.append(self._malformed(text, str(e)))
            audio = None
        if audio is not None:
            self.buffer.append(audio)

        marker = self.profile.terminal_marker(data)
        if marker is not None:
            events.append(self._finalize(marker))

        return events

    def reset(self) -> None:
        """Discard partially assembled audio (used when a new socket opens)."""
        if not self.buffer.is_empty:
            logger.debug(
                "Discarding %d unfinished audio chunks (%d bytes)",
                self.buffer.chunk_count,
                self.buffer.byte_count,
            )
        self.buffer.clear()

    def _finalize(self, marker: TerminalMarker) -> AudioArtifact:
        chunk_count = self.buffer.chunk_count
        artifact = AudioArtifact(
            audio=self.buffer.finalize(),
            chunk_count=chunk_count,
            request_id=marker.request_id,
        )
        notify_observer(self._observer, "on_artifact", artifact)
        return artifact

    def _malformed(self, text: str, error: str) -> MalformedMessage:
        message = MalformedMessage(text=text, error=error)
        notify_observer(self._observer, "on_malformed_message", message)
        return message


__all__ = [
    "TerminalMarker",
    "StreamProfile",
    "TTSProfile",
    "RealtimeProfile",
    "COMPLETION_VALUES",
    "InboundDemultiplexer",
]
