"""Wire-level message frames.

A frame is one discrete unit read from or written to the socket: either a
text frame carrying JSON, or a binary frame carrying raw audio bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class TextFrame:
    """A UTF-8 text frame (JSON control message)."""

    payload: str

    @property
    def size(self) -> int:
        """Encoded size in bytes."""
        return len(self.payload.encode("utf-8", errors="replace"))


@dataclass(frozen=True, slots=True)
class BinaryFrame:
    """A binary frame (raw audio bytes, no framing header)."""

    payload: bytes

    @property
    def size(self) -> int:
        """Payload size in bytes."""
        return len(self.payload)


MessageFrame = Union[TextFrame, BinaryFrame]


def frame_from_wire(message: str | bytes | bytearray | memoryview) -> MessageFrame:
    """Wrap a raw socket message in the matching frame type.

    Args:
        message: Value returned by the underlying socket's receive call.

    Returns:
        TextFrame for str values, BinaryFrame for bytes-like values.

    Raises:
        TypeError: If the value is neither text nor bytes.
    """
    if isinstance(message, str):
        return TextFrame(message)
    if isinstance(message, (bytes, bytearray, memoryview)):
        return BinaryFrame(bytes(message))
    raise TypeError(f"Unsupported websocket message type: {type(message).__name__}")


__all__ = [
    "TextFrame",
    "BinaryFrame",
    "MessageFrame",
    "frame_from_wire",
]
