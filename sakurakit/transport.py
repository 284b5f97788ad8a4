"""
Transport boundary: websocket and HTTP abstractions.

The session core depends only on the two protocols defined here:

- ``WebSocketTransport.open(url, headers) -> SocketHandle`` with
  ``send(frame)``, ``receive() -> frame`` and ``close(code, reason)``;
- ``HttpClientProtocol.request(method, url, ...) -> HttpResponse``.

``WebsocketsTransport`` and ``HttpxAdapter`` are the default
implementations, built on the ``websockets`` and ``httpx`` packages. Tests
inject in-memory fakes instead.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    InvalidHandshake,
    InvalidStatus,
    InvalidURI,
)

from .exceptions import ConnectError, TransportError
from .frames import MessageFrame, frame_from_wire

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000


# =============================================================================
# WebSocket boundary
# =============================================================================


class SocketHandle(Protocol):
    """One open bidirectional message socket."""

    async def send(self, frame: MessageFrame) -> None:
        """Write one frame. Raises TransportError on failure."""
        ...

    async def receive(self) -> MessageFrame:
        """Wait for the next frame. Raises TransportError when the socket ends."""
        ...

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Close the socket. Must be safe to call more than once."""
        ...


class WebSocketTransport(Protocol):
    """Factory for socket handles."""

    async def open(self, url: str, headers: Mapping[str, str]) -> SocketHandle:
        """Open a socket. Raises ConnectError on failure."""
        ...


def _close_details(exc: ConnectionClosed) -> tuple[int | None, str | None]:
    close = exc.rcvd or exc.sent
    if close is None:
        return None, None
    return close.code, close.reason


def _transport_error(exc: ConnectionClosed) -> TransportError:
    code, reason = _close_details(exc)
    graceful = isinstance(exc, ConnectionClosedOK)
    kind = "closed" if graceful else "closed abnormally"
    return TransportError(
        f"Connection {kind} (code={code}, reason={reason or ''})",
        graceful=graceful,
        code=code,
        reason=reason,
    )


class WebsocketsHandle:
    """SocketHandle backed by a ``websockets`` client connection."""

    def __init__(self, connection: ClientConnection) -> None:
        self._connection = connection

    async def send(self, frame: MessageFrame) -> None:
        try:
            await self._connection.send(frame.payload)
        except ConnectionClosed as e:
            raise _transport_error(e) from e
        except OSError as e:
            raise TransportError(f"Failed to send frame: {e}") from e

    async def receive(self) -> MessageFrame:
        try:
            message = await self._connection.recv()
        except ConnectionClosed as e:
            raise _transport_error(e) from e
        except OSError as e:
            raise TransportError(f"Failed to receive frame: {e}") from e
        return frame_from_wire(message)

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        await self._connection.close(code=code, reason=reason)


@dataclass
class WebsocketsTransport:
    """Default websocket transport.

    Attributes:
        open_timeout: Seconds allowed for the opening handshake.
        ping_interval: Keepalive ping interval in seconds (None disables).
        ping_timeout: Seconds to wait for a pong before failing the socket.
        max_size: Maximum incoming message size in bytes (None for no limit).
    """

    open_timeout: float | None = 10.0
    ping_interval: float | None = 20.0
    ping_timeout: float | None = 20.0
    max_size: int | None = 16 * 1024 * 1024

    async def open(self, url: str, headers: Mapping[str, str]) -> SocketHandle:
        try:
            connection = await connect(
                url,
                additional_headers=dict(headers),
                open_timeout=self.open_timeout,
                ping_interval=self.ping_interval,
                ping_timeout=self.ping_timeout,
                max_size=self.max_size,
            )
        except InvalidURI as e:
            raise ConnectError(f"Invalid websocket URL {url!r}: {e}") from e
        except InvalidStatus as e:
            status = e.response.status_code
            raise ConnectError(f"Handshake rejected by {url} with HTTP {status}") from e
        except InvalidHandshake as e:
            raise ConnectError(f"Handshake with {url} failed: {e}") from e
        except (OSError, TimeoutError) as e:
            raise ConnectError(f"Failed to connect to {url}: {e}") from e
        logger.debug("Websocket opened: %s", url)
        return WebsocketsHandle(connection)


# =============================================================================
# HTTP boundary
# =============================================================================


@dataclass
class HttpResponse:
    """Simple HTTP response wrapper."""

    status_code: int
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON. Raises ValueError on invalid JSON."""
        return json.loads(self.content)


class HttpClientProtocol(Protocol):
    """Protocol for HTTP client (for dependency injection in tests)."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: bytes | None = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        """Send a request and return the full response."""
        ...


class HttpxAdapter:
    """HttpClientProtocol implementation wrapping ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client
        self._owns_client = client is None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: bytes | None = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        client = await self._ensure_client()
        try:
            response = await client.request(
                method,
                url,
                headers=dict(headers),
                content=body,
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise ConnectError(f"{method} {url} failed: {e}") from e
        return HttpResponse(
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


__all__ = [
    "NORMAL_CLOSURE",
    "SocketHandle",
    "WebSocketTransport",
    "WebsocketsHandle",
    "WebsocketsTransport",
    "HttpResponse",
    "HttpClientProtocol",
    "HttpxAdapter",
]
