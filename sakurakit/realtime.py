"""
Realtime conversation session.

``RealtimeSession`` is the public entry point for the realtime speech API.
It builds the connection target from a ``RealtimeConfig``, stamps every
outbound command with an event id, encodes it and hands the frame to its
``ConnectionManager``. Inbound traffic, including connection lifecycle
notifications and assembled response audio, arrives on ``events()``.

Example:
    async with RealtimeSession(api_key="sk-...") as session:
        await session.send_text("Hello!")
        async for event in session.events():
            if isinstance(event, AudioArtifact):
                play(event.audio)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .commands import (
    ConversationItem,
    ConversationItemCreate,
    ConversationItemDelete,
    ConversationItemTruncate,
    InputAudioBufferAppend,
    InputAudioBufferClear,
    InputAudioBufferCommit,
    OutboundCommand,
    ResponseCancel,
    ResponseConfiguration,
    ResponseCreate,
    SessionConfiguration,
    SessionUpdate,
    encode,
    with_event_id,
)
from .config import OPENAI_API_KEY_ENV, RealtimeConfig, resolve_credential
from .connection import ConnectionManager, ConnectionState, ConnectionStats
from .demux import RealtimeProfile
from .events import AudioArtifact, InboundEvent
from .exceptions import ConnectError
from .frames import TextFrame
from .ids import EventIdSequence
from .observer import LoggingObserver, SessionObserver
from .transport import WebSocketTransport, WebsocketsTransport

logger = logging.getLogger(__name__)


def build_realtime_url(config: RealtimeConfig) -> str:
    """
    Build the websocket URL for ``config``.

    Query parameters already present in ``config.url`` are kept; ``model``
    is set from ``config.model``.

    Raises:
        ConnectError: If the URL is not a ws:// or wss:// URL with a host.
    """
    try:
        parts = urlsplit(config.url)
    except ValueError as e:
        raise ConnectError(f"Invalid realtime URL {config.url!r}: {e}") from e
    if parts.scheme not in ("ws", "wss") or not parts.netloc:
        raise ConnectError(f"Invalid realtime URL {config.url!r}: expected ws:// or wss://")
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "model"]
    query.append(("model", config.model))
    return urlunsplit(parts._replace(query=urlencode(query)))


class RealtimeSession:
    """Session façade for the realtime conversation API.

    Attributes:
        config: Session configuration.
        event_ids: Sequence used to stamp outbound commands.
    """

    def __init__(
        self,
        api_key: str | None = None,
        config: RealtimeConfig | None = None,
        transport: WebSocketTransport | None = None,
        observer: SessionObserver | None = None,
    ) -> None:
        """
        Initialize the session.

        Args:
            api_key: API key (defaults to the OPENAI_API_KEY environment variable).
            config: Session configuration (defaults to RealtimeConfig()).
            transport: Websocket transport (defaults to WebsocketsTransport).
            observer: Diagnostics observer (defaults to LoggingObserver).

        Raises:
            ConfigurationError: If no API key is available.
        """
        self._api_key = resolve_credential(api_key, OPENAI_API_KEY_ENV)
        self.config = config or RealtimeConfig()
        self.event_ids = EventIdSequence()
        self._connection = ConnectionManager(
            transport or WebsocketsTransport(open_timeout=self.config.open_timeout),
            profile=RealtimeProfile(),
            observer=observer if observer is not None else LoggingObserver(),
            max_pending_events=self.config.max_pending_events,
        )

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._connection.state

    @property
    def stats(self) -> ConnectionStats:
        return self._connection.stats

    @property
    def url(self) -> str:
        """Websocket URL this session connects to."""
        return build_realtime_url(self.config)

    def headers(self) -> dict[str, str]:
        """Handshake headers for the realtime endpoint."""
        return {
            "Authorization": f"Bearer {self._api_key}",
            "OpenAI-Beta": self.config.beta_header,
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """
        Open the websocket, replacing any existing connection.

        When ``config.session`` is set, ``session.update`` is sent before
        this call returns.

        Raises:
            ConnectError: If the URL is invalid or the socket cannot be opened.
            EncodeError: If ``config.session`` cannot be encoded.
        """
        url = build_realtime_url(self.config)
        logger.debug("Connecting realtime session (model=%s)", self.config.model)
        handshake = []
        if self.config.session is not None:
            handshake.append(self._encode(SessionUpdate(session=self.config.session)))
        await self._connection.connect(url, self.headers(), handshake=handshake)

    async def disconnect(self) -> None:
        """Close the websocket. Safe to call in any state."""
        await self._connection.disconnect()

    async def __aenter__(self) -> RealtimeSession:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()

    # =========================================================================
    # Outbound
    # =========================================================================

    async def send(self, command: OutboundCommand) -> str | None:
        """
        Encode and send one command.

        Args:
            command: Command to send. A missing event id is filled in.

        Returns:
            The event id the command was sent with.

        Raises:
            EncodeError: If the command cannot be encoded.
            SessionError: If the session is not connected.
            TransportError: If the write fails.
        """
        stamped = with_event_id(command, self.event_ids)
        await self._connection.send(encode(stamped))
        return getattr(stamped, "event_id", None)

    async def send_text(self, text: str) -> None:
        """Add a user text message and ask for a response."""
        await self.send(ConversationItemCreate(item=ConversationItem.user_text(text)))
        await self.send(ResponseCreate())

    async def send_audio_chunk(self, chunk: bytes) -> None:
        """Append raw audio bytes to the input buffer."""
        await self.send(InputAudioBufferAppend.from_bytes(chunk))

    async def commit_audio(self) -> None:
        await self.send(InputAudioBufferCommit())

    async def clear_audio(self) -> None:
        await self.send(InputAudioBufferClear())

    async def create_response(self, config: ResponseConfiguration | None = None) -> None:
        """Ask the server to respond, optionally overriding session defaults."""
        await self.send(ResponseCreate(response=config))

    async def cancel_response(self) -> None:
        await self.send(ResponseCancel())

    async def update_session(self, config: SessionConfiguration) -> None:
        """Send ``session.update`` with new session defaults."""
        await self.send(SessionUpdate(session=config))

    async def truncate_item(self, item_id: str, content_index: int, audio_end_ms: int) -> None:
        """Truncate an assistant audio item at ``audio_end_ms``."""
        await self.send(
            ConversationItemTruncate(
                item_id=item_id,
                content_index=content_index,
                audio_end_ms=audio_end_ms,
            )
        )

    async def delete_item(self, item_id: str) -> None:
        await self.send(ConversationItemDelete(item_id=item_id))

    # =========================================================================
    # Inbound
    # =========================================================================

    def events(self, raise_on_failure: bool = True) -> AsyncIterator[InboundEvent]:
        """Events of the current connection, in receipt order.

        Ends normally after a graceful close. After an abnormal close the
        final ``ConnectionFailed`` event is yielded and its ``TransportError``
        raised, unless ``raise_on_failure`` is False.
        """
        return self._connection.events(raise_on_failure=raise_on_failure)

    async def next_event(self, timeout: float | None = None) -> InboundEvent | None:
        """Next event, or None once the connection has ended.

        Raises:
            EventTimeoutError: If ``timeout`` elapses first.
        """
        return await self._connection.next_event(timeout=timeout)

    async def next_artifact(self, response_id: str | None = None) -> AudioArtifact:
        """Wait for the next assembled response audio clip.

        Events consumed while waiting are not delivered again.
        """
        return await self._connection.wait_for_artifact(response_id)

    def _encode(self, command: OutboundCommand) -> TextFrame:
        return encode(with_event_id(command, self.event_ids))


__all__ = [
    "RealtimeSession",
    "build_realtime_url",
]
