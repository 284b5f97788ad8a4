"""
Connection lifecycle manager.

Owns the single active socket of a session together with its background
receive task and its ordered event stream:

- ``connect()`` tears down any previous socket and receive task, opens a new
  socket, queues ``ConnectionOpened``, sends the handshake frames and starts
  exactly one receive task.
- The receive task is the only reader of the socket. Every frame goes
  through the demultiplexer and the resulting events are queued in arrival
  order. A graceful remote close ends the stream with ``ConnectionClosed``;
  any other transport failure ends it with ``ConnectionFailed`` and moves
  the state to FAILED. There is no automatic reconnection.
- ``disconnect()`` cancels the receive task, closes the socket with a
  normal-closure code and ends the stream so pending consumers wake up.
- ``connect()`` and ``disconnect()`` are serialized by a separate lifecycle
  lock, so concurrent calls never leave more than one socket open.
- ``send()`` writes are serialized with an ``asyncio.Lock``.

State machine:
    DISCONNECTED --connect--> CONNECTING --ok--> OPEN
    CONNECTING --failure--> DISCONNECTED
    OPEN --disconnect--> CLOSING --> CLOSED
    OPEN --remote normal close--> CLOSED
    OPEN --transport failure--> FAILED
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .demux import InboundDemultiplexer, StreamProfile
from .events import (
    AudioArtifact,
    ConnectionClosed,
    ConnectionFailed,
    ConnectionOpened,
    InboundEvent,
    MalformedMessage,
)
from .exceptions import ConnectError, EventTimeoutError, SessionError, TransportError
from .frames import BinaryFrame, MessageFrame, TextFrame
from .observer import SessionObserver, notify_observer
from .transport import NORMAL_CLOSURE, SocketHandle, WebSocketTransport

logger = logging.getLogger(__name__)


# =============================================================================
# Connection State
# =============================================================================


class ConnectionState(str, Enum):
    """Connection lifecycle states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


# =============================================================================
# Statistics
# =============================================================================


@dataclass
class ConnectionStats:
    """Statistics tracked across every connection of one manager.

    Attributes:
        connects: Number of sockets successfully opened.
        frames_sent: Number of frames written.
        bytes_sent: Total bytes written.
        text_frames_received: Number of text frames read.
        binary_frames_received: Number of binary frames read.
        bytes_received: Total bytes read.
        artifacts_completed: Number of audio artifacts assembled.
        malformed_received: Number of text frames that failed to parse.
    """

    connects: int = 0
    frames_sent: int = 0
    bytes_sent: int = 0
    text_frames_received: int = 0
    binary_frames_received: int = 0
    bytes_received: int = 0
    artifacts_completed: int = 0
    malformed_received: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {
            "connects": self.connects,
            "frames_sent": self.frames_sent,
            "bytes_sent": self.bytes_sent,
            "text_frames_received": self.text_frames_received,
            "binary_frames_received": self.binary_frames_received,
            "bytes_received": self.bytes_received,
            "artifacts_completed": self.artifacts_completed,
            "malformed_received": self.malformed_received,
        }


# =============================================================================
# Event Stream
# =============================================================================


_END: Any = object()


class EventStream:
    """Ordered event queue for one connection with an end-of-stream marker.

    With ``maxsize > 0`` the receive task blocks on a full queue, which stops
    socket reads until the consumer catches up. Terminal events queued by
    ``end()`` never block: whatever does not fit waits in an overflow tail
    and is delivered after the queued events.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize)
        self._tail: deque[Any] = deque()
        self._ended = False
        self._finished = False

    @property
    def ended(self) -> bool:
        return self._ended

    async def put(self, event: InboundEvent) -> None:
        if self._ended:
            return
        await self._queue.put(event)

    def put_nowait(self, event: InboundEvent) -> None:
        if self._ended:
            return
        self._queue.put_nowait(event)

    def end(self, *final_events: InboundEvent) -> None:
        """Queue the final events followed by the end marker. Idempotent."""
        if self._ended:
            return
        self._ended = True
        for item in (*final_events, _END):
            if self._tail or self._queue.full():
                self._tail.append(item)
            else:
                self._queue.put_nowait(item)

    async def get(self) -> InboundEvent | None:
        """Next event, or None once the stream has ended."""
        if self._finished:
            return None
        if self._queue.empty() and self._tail:
            item = self._tail.popleft()
        else:
            item = await self._queue.get()
        while self._tail and not self._queue.full():
            self._queue.put_nowait(self._tail.popleft())
        if item is _END:
            self._finished = True
            # Wake any other consumer still waiting on this stream.
            self._queue.put_nowait(_END)
            return None
        return item


# =============================================================================
# Connection Manager
# =============================================================================


class ConnectionManager:
    """Owns one socket, one receive task and one event stream at a time.

    Example:
        manager = ConnectionManager(WebsocketsTransport(), profile=TTSProfile())
        await manager.connect(url, headers, handshake=[encode(command)])
        async for event in manager.events():
            ...
        await manager.disconnect()
    """

    def __init__(
        self,
        transport: WebSocketTransport,
        profile: StreamProfile | None = None,
        observer: SessionObserver | None = None,
        max_pending_events: int = 0,
    ) -> None:
        """
        Initialize the connection manager.

        Args:
            transport: Socket factory.
            profile: Demultiplexer profile (defaults to the realtime profile).
            observer: Diagnostics observer.
            max_pending_events: Bound on undelivered events per connection
                (0 for unbounded). When reached, socket reads pause.
        """
        self._transport = transport
        self._observer = observer
        self._demux = InboundDemultiplexer(profile, observer=observer)
        self._max_pending_events = max_pending_events

        self._state = ConnectionState.DISCONNECTED
        self._socket: SocketHandle | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self._stream: EventStream | None = None
        self._url: str | None = None
        self._failure: TransportError | None = None
        self._write_lock = asyncio.Lock()
        self._lifecycle_lock = asyncio.Lock()

        self.stats = ConnectionStats()

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def url(self) -> str | None:
        """URL of the current (or last) connection."""
        return self._url

    @property
    def failure(self) -> TransportError | None:
        """Transport error that ended the last connection, if it failed."""
        return self._failure

    @property
    def demultiplexer(self) -> InboundDemultiplexer:
        return self._demux

    async def connect(
        self,
        url: str,
        headers: Mapping[str, str],
        handshake: Sequence[TextFrame] = (),
    ) -> None:
        """
        Open a new connection, replacing any existing one.

        Args:
            url: Socket URL.
            headers: Handshake headers (authentication etc.).
            handshake: Frames sent right after the socket opens, before the
                receive task starts and before this call returns.

        Raises:
            ConnectError: If the socket fails to open or the handshake frames
                cannot be written. The state returns to DISCONNECTED.
        """
        async with self._lifecycle_lock:
            await self._connect(url, headers, handshake)

    async def _connect(
        self,
        url: str,
        headers: Mapping[str, str],
        handshake: Sequence[TextFrame],
    ) -> None:
        if self._socket is not None or self._receive_task is not None:
            logger.info("Replacing existing connection to %s", self._url)
            await self._disconnect()

        self._state = ConnectionState.CONNECTING
        self._failure = None
        self._demux.reset()

        logger.info("Connecting to %s", url)
        try:
            socket = await self._transport.open(url, headers)
        except ConnectError:
            self._state = ConnectionState.DISCONNECTED
            raise
        except Exception as e:
            self._state = ConnectionState.DISCONNECTED
            raise ConnectError(f"Failed to connect to {url}: {e}") from e

        stream = EventStream(self._max_pending_events)
        self._socket = socket
        self._stream = stream
        self._url = url
        self.stats.connects += 1
        notify_observer(self._observer, "on_connected", url)
        stream.put_nowait(ConnectionOpened(url=url))

        try:
            for frame in handshake:
                await self._write(socket, frame)
        except TransportError as e:
            logger.error("Handshake failed: %s", e)
            self._socket = None
            stream.end(ConnectionFailed(error=e))
            await self._close_socket(socket)
            self._state = ConnectionState.DISCONNECTED
            raise ConnectError(f"Handshake with {url} failed: {e}") from e

        self._state = ConnectionState.OPEN
        self._receive_task = asyncio.create_task(
            self._receive_loop(socket, stream), name="sakurakit-receive"
        )
        logger.info("Connected to %s", url)

    async def disconnect(self) -> None:
        """
        Close the connection.

        Safe to call multiple times or in any state; a no-op when there is
        no socket.
        """
        async with self._lifecycle_lock:
            await self._disconnect()

    async def _disconnect(self) -> None:
        socket = self._socket
        task = self._receive_task
        if socket is None and task is None:
            return

        logger.info("Closing connection to %s", self._url)
        self._state = ConnectionState.CLOSING
        self._socket = None
        self._receive_task = None

        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if socket is not None:
            await self._close_socket(socket)

        if self._stream is not None:
            self._stream.end(ConnectionClosed(code=NORMAL_CLOSURE, reason="client disconnect"))

        notify_observer(self._observer, "on_closed", NORMAL_CLOSURE, "client disconnect")
        self._state = ConnectionState.CLOSED
        logger.info("Connection closed")

    async def send(self, frame: MessageFrame) -> None:
        """
        Write one frame.

        Raises:
            SessionError: If the connection is not open.
            TransportError: If the write fails.
        """
        async with self._write_lock:
            socket = self._socket
            if socket is None or self._state != ConnectionState.OPEN:
                raise SessionError(f"Cannot send in state {self._state.value}")
            await self._write(socket, frame)

    async def events(self, raise_on_failure: bool = True) -> AsyncIterator[InboundEvent]:
        """
        Async iterator over the current connection's events.

        Yields events in receipt order. The iterator ends after the
        connection closes normally. When the connection failed, the final
        item is a ``ConnectionFailed`` event and its error is raised after it
        has been yielded, unless ``raise_on_failure`` is False.

        Yields:
            InboundEvent objects.

        Raises:
            TransportError: After ``ConnectionFailed``, when ``raise_on_failure``.
        """
        stream = self._stream
        if stream is None:
            return
        while True:
            event = await stream.get()
            if event is None:
                return
            yield event
            if isinstance(event, ConnectionFailed):
                if raise_on_failure:
                    raise event.error
                return

    async def next_event(self, timeout: float | None = None) -> InboundEvent | None:
        """
        Wait for the next event of the current connection.

        Args:
            timeout: Seconds to wait (None waits until the stream ends).

        Returns:
            The next event, or None when the stream has ended or no
            connection was ever opened.

        Raises:
            EventTimeoutError: If no event arrived within ``timeout``.
        """
        stream = self._stream
        if stream is None:
            return None
        if timeout is None:
            return await stream.get()
        try:
            return await asyncio.wait_for(stream.get(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise EventTimeoutError(f"No event within {timeout}s") from e

    async def wait_for_artifact(self, request_id: str | None = None) -> AudioArtifact:
        """
        Consume events until an audio artifact completes.

        Args:
            request_id: When given, artifacts carrying a different request id
                are skipped.

        Returns:
            The matching artifact.

        Raises:
            TransportError: If the connection failed first.
            SessionError: If the connection closed first.
        """
        while True:
            event = await self.next_event()
            if event is None:
                raise SessionError("Connection ended before the audio stream completed")
            if isinstance(event, ConnectionFailed):
                raise event.error
            if isinstance(event, AudioArtifact):
                if request_id is None or event.request_id in (None, request_id):
                    return event
                logger.warning(
                    "Skipping artifact for request_id=%s (waiting for %s)",
                    event.request_id,
                    request_id,
                )

    # =========================================================================
    # Internal Methods
    # =========================================================================

    async def _write(self, socket: SocketHandle, frame: MessageFrame) -> None:
        try:
            await socket.send(frame)
        except TransportError:
            logger.error("Failed to send %s", type(frame).__name__)
            raise
        self.stats.frames_sent += 1
        self.stats.bytes_sent += frame.size
        notify_observer(self._observer, "on_frame_sent", frame)

    async def _receive_loop(self, socket: SocketHandle, stream: EventStream) -> None:
        """Background task: the only reader of ``socket``."""
        try:
            while True:
                frame = await socket.receive()
                self._count_received(frame)
                notify_observer(self._observer, "on_frame_received", frame)
                for event in self._demux.handle(frame):
                    if isinstance(event, AudioArtifact):
                        self.stats.artifacts_completed += 1
                    elif isinstance(event, MalformedMessage):
                        self.stats.malformed_received += 1
                    await stream.put(event)
        except asyncio.CancelledError:
            raise
        except TransportError as e:
            await self._handle_loop_end(socket, stream, e)
        except Exception as e:
            logger.error("Receive loop error: %s", e, exc_info=True)
            await self._handle_loop_end(socket, stream, TransportError(f"Receive failed: {e}"))

    async def _handle_loop_end(
        self, socket: SocketHandle, stream: EventStream, error: TransportError
    ) -> None:
        if socket is not self._socket:
            return
        self._socket = None
        self._receive_task = None

        if error.graceful:
            logger.info("Server closed the connection: code=%s", error.code)
            self._state = ConnectionState.CLOSED
            stream.end(ConnectionClosed(code=error.code, reason=error.reason))
            notify_observer(self._observer, "on_closed", error.code, error.reason)
        else:
            logger.error("Connection failed: %s", error)
            self._state = ConnectionState.FAILED
            self._failure = error
            stream.end(ConnectionFailed(error=error))
            notify_observer(self._observer, "on_transport_error", error)

        await self._close_socket(socket)

    async def _close_socket(self, socket: SocketHandle) -> None:
        try:
            await socket.close(NORMAL_CLOSURE, "")
        except Exception as e:
            logger.warning("Error closing websocket: %s", e)

    def _count_received(self, frame: MessageFrame) -> None:
        if isinstance(frame, BinaryFrame):
            self.stats.binary_frames_received += 1
        else:
            self.stats.text_frames_received += 1
        self.stats.bytes_received += frame.size


__all__ = [
    "ConnectionState",
    "ConnectionStats",
    "EventStream",
    "ConnectionManager",
]
