"""Observer protocol for session diagnostics.

Sessions report diagnostics (connects, closes, frames, malformed messages,
transport failures) to an observer passed in at construction instead of
writing to shared process-wide state. The default ``LoggingObserver``
forwards to the standard ``logging`` module; tests can pass their own
observer and assert on exactly what was reported.

Observer methods must not raise. If one does, the exception is caught and
logged by ``notify_observer`` and the session carries on.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .events import AudioArtifact, MalformedMessage
    from .exceptions import TransportError
    from .frames import MessageFrame

logger = logging.getLogger(__name__)


@runtime_checkable
class SessionObserver(Protocol):
    """Diagnostics interface for a session.

    All methods are optional; ``notify_observer`` skips the ones an observer
    does not define.

    Example:
        >>> class Recorder:
        ...     def __init__(self):
        ...         self.malformed = []
        ...
        ...     def on_malformed_message(self, message):
        ...         self.malformed.append(message)
        ...
        >>> session = RealtimeSession(api_key="sk-...", observer=Recorder())
    """

    def on_connected(self, url: str) -> None:
        """Called after the socket opened and before the handshake is sent."""
        ...

    def on_closed(self, code: int | None, reason: str | None) -> None:
        """Called when the connection ends normally."""
        ...

    def on_frame_sent(self, frame: MessageFrame) -> None:
        """Called after a frame was handed to the transport."""
        ...

    def on_frame_received(self, frame: MessageFrame) -> None:
        """Called for every frame read by the receive loop."""
        ...

    def on_malformed_message(self, message: MalformedMessage) -> None:
        """Called when a text frame fails to parse as JSON."""
        ...

    def on_artifact(self, artifact: AudioArtifact) -> None:
        """Called when a complete audio clip was assembled."""
        ...

    def on_transport_error(self, error: TransportError) -> None:
        """Called once when the receive loop ends with a transport failure."""
        ...


class NoOpObserver:
    """Observer that ignores every notification."""

    def on_connected(self, url: str) -> None:
        pass

    def on_closed(self, code: int | None, reason: str | None) -> None:
        pass

    def on_frame_sent(self, frame: MessageFrame) -> None:
        pass

    def on_frame_received(self, frame: MessageFrame) -> None:
        pass

    def on_malformed_message(self, message: MalformedMessage) -> None:
        pass

    def on_artifact(self, artifact: AudioArtifact) -> None:
        pass

    def on_transport_error(self, error: TransportError) -> None:
        pass


class LoggingObserver(NoOpObserver):
    """Observer that writes diagnostics to a ``logging.Logger``."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logging.getLogger("sakurakit.session")

    def on_connected(self, url: str) -> None:
        self._log.info("Connected to %s", url)

    def on_closed(self, code: int | None, reason: str | None) -> None:
        self._log.info("Connection closed: code=%s reason=%s", code, reason or "")

    def on_frame_sent(self, frame: MessageFrame) -> None:
        self._log.debug("Sent %s (%d bytes)", type(frame).__name__, frame.size)

    def on_frame_received(self, frame: MessageFrame) -> None:
        self._log.debug("Received %s (%d bytes)", type(frame).__name__, frame.size)

    def on_malformed_message(self, message: MalformedMessage) -> None:
        self._log.warning("Malformed message from server: %s", message.error)

    def on_artifact(self, artifact: AudioArtifact) -> None:
        self._log.info(
            "Audio artifact ready: %d bytes from %d chunks (request_id=%s)",
            artifact.size,
            artifact.chunk_count,
            artifact.request_id,
        )

    def on_transport_error(self, error: TransportError) -> None:
        self._log.error("Transport failure: %s", error)


def notify_observer(
    observer: SessionObserver | object | None,
    method_name: str,
    *args: object,
) -> bool:
    """Invoke an observer method, catching and logging any exception.

    Args:
        observer: The observer (may be None).
        method_name: Method to invoke (e.g. "on_connected").
        *args: Arguments for the method.

    Returns:
        True if the method ran without raising, False if it failed, was
        missing, or the observer was None.
    """
    if observer is None:
        return False

    method = getattr(observer, method_name, None)
    if method is None:
        return False

    try:
        method(*args)
        return True
    except Exception as e:
        logger.warning("Observer %s raised exception: %s", method_name, e, exc_info=True)
        return False


__all__ = [
    "SessionObserver",
    "NoOpObserver",
    "LoggingObserver",
    "notify_observer",
]
