"""
Pytest configuration and fixtures for tests.

This module provides in-memory stand-ins for the two transport boundaries:

- FakeSocket / FakeTransport: scripted websocket connections
- FakeHttpClient: canned responses for the PlayAI auth exchange
- RecordingObserver: observer that records every notification
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping
from typing import Any

import pytest

from sakurakit.exceptions import ConnectError, TransportError
from sakurakit.frames import BinaryFrame, MessageFrame, TextFrame
from sakurakit.transport import NORMAL_CLOSURE, HttpResponse

# ============================================================================
# Websocket fakes
# ============================================================================


class FakeSocket:
    """Scripted socket handle.

    Frames fed with ``feed_*`` are returned by ``receive()`` in order.
    ``feed_close`` and ``feed_error`` end the stream the way a real transport
    does, by raising TransportError from ``receive()``.
    """

    def __init__(self, responder: Callable[[FakeSocket, MessageFrame], None] | None = None):
        self.sent: list[MessageFrame] = []
        self.closed = False
        self.close_calls: list[tuple[int, str]] = []
        self.send_error: Exception | None = None
        self._responder = responder
        self._incoming: asyncio.Queue[MessageFrame | Exception] = asyncio.Queue()

    async def send(self, frame: MessageFrame) -> None:
        if self.closed:
            raise TransportError("Connection closed")
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(frame)
        if self._responder is not None:
            self._responder(self, frame)

    async def receive(self) -> MessageFrame:
        item = await self._incoming.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        self.closed = True
        self.close_calls.append((code, reason))

    def feed_text(self, text: str) -> None:
        self._incoming.put_nowait(TextFrame(text))

    def feed_json(self, message: Any) -> None:
        self.feed_text(json.dumps(message))

    def feed_binary(self, data: bytes) -> None:
        self._incoming.put_nowait(BinaryFrame(data))

    def feed_close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        self._incoming.put_nowait(
            TransportError("Connection closed", graceful=True, code=code, reason=reason)
        )

    def feed_error(self, message: str = "Connection reset", code: int | None = 1006) -> None:
        self._incoming.put_nowait(TransportError(message, graceful=False, code=code))

    def sent_json(self) -> list[Any]:
        """Decoded JSON of every text frame sent so far."""
        return [json.loads(f.payload) for f in self.sent if isinstance(f, TextFrame)]


class FakeTransport:
    """Transport that hands out FakeSocket instances and records open calls."""

    def __init__(
        self,
        error: Exception | None = None,
        responder: Callable[[FakeSocket, MessageFrame], None] | None = None,
    ) -> None:
        self.error = error
        self.responder = responder
        self.opened: list[tuple[str, dict[str, str]]] = []
        self.sockets: list[FakeSocket] = []

    async def open(self, url: str, headers: Mapping[str, str]) -> FakeSocket:
        self.opened.append((url, dict(headers)))
        if self.error is not None:
            raise self.error
        socket = FakeSocket(responder=self.responder)
        self.sockets.append(socket)
        return socket

    @property
    def socket(self) -> FakeSocket:
        """Most recently opened socket."""
        return self.sockets[-1]


# ============================================================================
# HTTP fake
# ============================================================================


def build_json_response(status_code: int, body: Any) -> HttpResponse:
    return HttpResponse(status_code=status_code, content=json.dumps(body).encode("utf-8"))


class FakeHttpClient:
    """HttpClientProtocol implementation returning one canned response."""

    def __init__(self, response: HttpResponse | None = None, error: Exception | None = None):
        self.response = response or build_json_response(
            200, {"websocket_url": "wss://tts.example.test/v1/ws?token=abc"}
        )
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: bytes | None = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": dict(headers),
                "body": body,
                "timeout": timeout,
            }
        )
        if self.error is not None:
            raise self.error
        return self.response


# ============================================================================
# Observer
# ============================================================================


class RecordingObserver:
    """Observer that records (method, args) for every notification."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def on_connected(self, url: str) -> None:
        self._record("on_connected", url)

    def on_closed(self, code: int | None, reason: str | None) -> None:
        self._record("on_closed", code, reason)

    def on_frame_sent(self, frame: MessageFrame) -> None:
        self._record("on_frame_sent", frame)

    def on_frame_received(self, frame: MessageFrame) -> None:
        self._record("on_frame_received", frame)

    def on_malformed_message(self, message: Any) -> None:
        self._record("on_malformed_message", message)

    def on_artifact(self, artifact: Any) -> None:
        self._record("on_artifact", artifact)

    def on_transport_error(self, error: TransportError) -> None:
        self._record("on_transport_error", error)

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def failing_transport() -> FakeTransport:
    return FakeTransport(error=ConnectError("Failed to connect: connection refused"))


@pytest.fixture
def http_client() -> FakeHttpClient:
    return FakeHttpClient()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def make_transport() -> type[FakeTransport]:
    """FakeTransport class, for tests that need a responder or an error."""
    return FakeTransport


@pytest.fixture
def make_http_client() -> type[FakeHttpClient]:
    return FakeHttpClient


@pytest.fixture
def json_response() -> Callable[[int, Any], HttpResponse]:
    return build_json_response


@pytest.fixture(autouse=True)
def _clear_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real credentials in the environment from leaking into tests."""
    for name in ("OPENAI_API_KEY", "PLAYHT_API_KEY", "PLAYHT_USER_ID"):
        monkeypatch.delenv(name, raising=False)
