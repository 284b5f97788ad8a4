"""
PlayAI streaming text-to-speech client.

Synthesis is a two-step exchange:

1. ``POST`` the credentials to the websocket-auth endpoint, which answers
   with a short-lived ``websocket_url``.
2. Open that websocket, send one TTS command and collect the binary audio
   frames until the JSON completion message carrying the request id arrives.

``PlayAIClient.synthesize()`` runs both steps on a dedicated connection and
always closes the socket before returning, whether the clip completed,
timed out, failed or the caller was cancelled.

Example:
    async with PlayAIClient() as client:
        audio = await client.synthesize("Hello there", voice=VOICE_MANIFEST_URL)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from .commands import OutputFormat, Quality, TTSCommand, encode
from .config import PLAYHT_API_KEY_ENV, PLAYHT_USER_ID_ENV, PlayAIConfig, resolve_credential
from .connection import ConnectionManager, ConnectionStats
from .demux import TTSProfile
from .exceptions import (
    ActiveGenerationError,
    AuthenticationError,
    InvalidResponseError,
    PlayAIServerError,
    SynthesisTimeoutError,
)
from .ids import generate_request_id
from .observer import LoggingObserver, SessionObserver
from .transport import (
    HttpClientProtocol,
    HttpResponse,
    HttpxAdapter,
    WebSocketTransport,
    WebsocketsTransport,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TTSOptions:
    """Per-call synthesis options.

    Attributes:
        output_format: Audio format (defaults to ``PlayAIConfig.output_format``).
        quality: Quality preset.
        temperature: Sampling temperature.
        speed: Speaking rate multiplier.
        request_id: Correlation id; one is generated when omitted.
    """

    output_format: OutputFormat | str | None = None
    quality: Quality | str | None = None
    temperature: float | None = None
    speed: float | None = None
    request_id: str | None = None


class PlayAIClient:
    """Client for the PlayAI websocket TTS service."""

    def __init__(
        self,
        api_key: str | None = None,
        user_id: str | None = None,
        config: PlayAIConfig | None = None,
        http_client: HttpClientProtocol | None = None,
        transport: WebSocketTransport | None = None,
        observer: SessionObserver | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: API key (defaults to PLAYHT_API_KEY).
            user_id: Account user id (defaults to PLAYHT_USER_ID).
            config: Client configuration (defaults to PlayAIConfig()).
            http_client: HTTP client for the auth exchange (defaults to HttpxAdapter).
            transport: Websocket transport (defaults to WebsocketsTransport).
            observer: Diagnostics observer (defaults to LoggingObserver).

        Raises:
            ConfigurationError: If the API key or user id is unavailable.
        """
        self._api_key = resolve_credential(api_key, PLAYHT_API_KEY_ENV)
        self._user_id = resolve_credential(user_id, PLAYHT_USER_ID_ENV)
        self.config = config or PlayAIConfig()
        self._owns_http_client = http_client is None
        self._http_client: HttpClientProtocol = http_client or HttpxAdapter()
        self._transport = transport or WebsocketsTransport(open_timeout=self.config.open_timeout)
        self._observer = observer if observer is not None else LoggingObserver()
        self.last_stats: ConnectionStats | None = None

    async def __aenter__(self) -> PlayAIClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the HTTP client if this instance created it."""
        if self._owns_http_client and isinstance(self._http_client, HttpxAdapter):
            await self._http_client.aclose()

    async def authenticate_and_fetch_websocket_url(self) -> str:
        """
        Exchange credentials for a websocket URL.

        Returns:
            The ``websocket_url`` from the response, unchanged.

        Raises:
            ConnectError: If the request could not be sent.
            AuthenticationError: On HTTP 401.
            ActiveGenerationError: On HTTP 403.
            PlayAIServerError: On any other non-2xx status.
            InvalidResponseError: If a 2xx body lacks a string ``websocket_url``.
        """
        response = await self._http_client.request(
            "POST",
            self.config.auth_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "X-User-Id": self._user_id,
                "Content-Type": "application/json",
            },
            timeout=self.config.http_timeout,
        )
        _raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(f"Auth response is not valid JSON: {e}") from e
        websocket_url = data.get("websocket_url") if isinstance(data, dict) else None
        if not isinstance(websocket_url, str):
            raise InvalidResponseError("Auth response has no 'websocket_url' string")

        logger.debug("Obtained websocket URL from %s", self.config.auth_url)
        return websocket_url

    async def synthesize(
        self,
        text: str,
        voice: str,
        options: TTSOptions | None = None,
        timeout: float | None = None,
    ) -> bytes:
        """
        Synthesize ``text`` and return the complete audio clip.

        Args:
            text: Text to speak.
            voice: Voice selector.
            options: Per-call options.
            timeout: Seconds to wait for the clip once the command is sent
                (defaults to ``config.synthesis_timeout``).

        Returns:
            The audio bytes, concatenated in arrival order.

        Raises:
            EncodeError: If the command cannot be encoded.
            PlayAIError: If authentication fails.
            ConnectError: If the websocket cannot be opened.
            SynthesisTimeoutError: If the clip did not complete in time.
            TransportError: If the connection failed before completion.
            SessionError: If the server closed the connection before completion.
        """
        options = options or TTSOptions()
        if timeout is None:
            timeout = self.config.synthesis_timeout
        command = TTSCommand(
            text=text,
            voice=voice,
            output_format=options.output_format or self.config.output_format,
            quality=options.quality,
            temperature=options.temperature,
            speed=options.speed,
            request_id=options.request_id or generate_request_id(),
        )
        frame = encode(command)

        url = await self.authenticate_and_fetch_websocket_url()
        connection = ConnectionManager(
            self._transport,
            profile=TTSProfile(strict=self.config.strict_marker),
            observer=self._observer,
        )
        self.last_stats = connection.stats
        try:
            await connection.connect(url, {})
            await connection.send(frame)
            try:
                artifact = await asyncio.wait_for(
                    connection.wait_for_artifact(command.request_id), timeout=timeout
                )
            except asyncio.TimeoutError as e:
                raise SynthesisTimeoutError(
                    f"No audio for request {command.request_id} within {timeout}s"
                ) from e
        finally:
            await connection.disconnect()

        logger.info(
            "Synthesized %d bytes in %d chunks (request_id=%s)",
            artifact.size,
            artifact.chunk_count,
            command.request_id,
        )
        return artifact.audio


def _raise_for_status(response: HttpResponse) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    if status == 401:
        raise AuthenticationError("PlayAI rejected the API key or user id (HTTP 401)")
    if status == 403:
        raise ActiveGenerationError("An active generation already exists for this account")
    raise PlayAIServerError(_error_message(response), status_code=status)


def _error_message(response: HttpResponse) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("error_message", "message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return response.text.strip() or f"HTTP {response.status_code}"


__all__ = [
    "TTSOptions",
    "PlayAIClient",
]
