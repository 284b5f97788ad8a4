"""
Client-side correlation ID generators.

ID Formats:
- event_id:   `evt_{tag}_{seq}` where tag is 6 random alphanumeric characters
              fixed for the lifetime of one sequence and seq is a zero-padded,
              monotonically increasing positive integer
- request_id: `req-{uuid4}` (TTS requests)

Event ids are attached to every outbound realtime command so the caller can
match server acknowledgements and errors to the command that caused them.

Example:
    >>> from sakurakit.ids import EventIdSequence
    >>> seq = EventIdSequence(tag="x7k9p2")
    >>> seq.next()
    'evt_x7k9p2_000001'
    >>> seq.next()
    'evt_x7k9p2_000002'
"""

from __future__ import annotations

import random
import string
import threading
import uuid
from dataclasses import dataclass, field

# =============================================================================
# ID Format Constants
# =============================================================================

EVENT_ID_PREFIX = "evt"
REQUEST_ID_PREFIX = "req"

EVENT_TAG_CHARS = string.ascii_lowercase + string.digits
EVENT_TAG_LENGTH = 6
EVENT_SEQ_WIDTH = 6


# =============================================================================
# ID Generation Functions
# =============================================================================


def generate_event_tag() -> str:
    """Generate the random tag that scopes one event id sequence."""
    return "".join(random.choices(EVENT_TAG_CHARS, k=EVENT_TAG_LENGTH))


def format_event_id(tag: str, sequence: int) -> str:
    """
    Format an event id from its tag and sequence number.

    Args:
        tag: Sequence tag.
        sequence: Positive sequence number.

    Returns:
        An event id string.

    Example:
        >>> format_event_id("abc123", 42)
        'evt_abc123_000042'
    """
    return f"{EVENT_ID_PREFIX}_{tag}_{sequence:0{EVENT_SEQ_WIDTH}d}"


def generate_request_id() -> str:
    """Generate a unique request id for a TTS command (`req-{uuid4}`)."""
    return f"{REQUEST_ID_PREFIX}-{uuid.uuid4()}"


# =============================================================================
# ID Validation Functions
# =============================================================================


def is_valid_event_id(event_id: str) -> bool:
    """
    Validate that a string matches the client event_id format.

    Example:
        >>> is_valid_event_id('evt_abc123_000001')
        True
        >>> is_valid_event_id('invalid')
        False
    """
    parts = event_id.split("_")
    if len(parts) != 3:
        return False

    prefix, tag, seq_part = parts
    if prefix != EVENT_ID_PREFIX:
        return False
    if len(tag) != EVENT_TAG_LENGTH or not all(c in EVENT_TAG_CHARS for c in tag):
        return False
    return seq_part.isdigit() and int(seq_part) > 0


def parse_event_sequence(event_id: str) -> int:
    """
    Extract the sequence number from a client event id.

    Raises:
        ValueError: If the event_id is not valid.
    """
    if not is_valid_event_id(event_id):
        raise ValueError(f"Invalid event_id format: {event_id}")
    return int(event_id.rsplit("_", 1)[1])


# =============================================================================
# Event ID Sequence
# =============================================================================


@dataclass
class EventIdSequence:
    """
    Monotonically increasing client event id generator.

    One sequence belongs to one session object and survives reconnects, so
    ids never repeat within a session. ``next()`` may be called from several
    threads; the counter is guarded by a lock.

    Attributes:
        tag: Random tag embedded in every id of this sequence.
    """

    tag: str = field(default_factory=generate_event_tag)
    _counter: int = field(default=0, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def next(self) -> str:
        """Generate the next event id."""
        with self._lock:
            self._counter += 1
            return format_event_id(self.tag, self._counter)

    @property
    def current(self) -> int:
        """Last sequence number handed out, or 0 if none."""
        return self._counter


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    "EVENT_ID_PREFIX",
    "REQUEST_ID_PREFIX",
    "generate_event_tag",
    "format_event_id",
    "generate_request_id",
    "is_valid_event_id",
    "parse_event_sequence",
    "EventIdSequence",
]
