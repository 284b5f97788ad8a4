"""Custom exception classes for the sakurakit library."""

from __future__ import annotations


class SakuraKitError(Exception):
    """Base error for this library."""


class ConfigurationError(SakuraKitError):
    """Raised when configuration is invalid or credentials are missing."""


class ConnectError(SakuraKitError):
    """Raised when a connection target cannot be built or the socket fails to open."""


class EncodeError(SakuraKitError):
    """Raised when an outbound command contains a value that cannot be encoded."""


class TransportError(SakuraKitError):
    """Raised when the socket fails mid-stream.

    Attributes:
        graceful: True when the remote side closed with a normal closure.
        code: Close code reported by the transport, if any.
        reason: Close reason reported by the transport, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        graceful: bool = False,
        code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.graceful = graceful
        self.code = code
        self.reason = reason


class ProtocolError(SakuraKitError):
    """Raised when the server sends a frame that violates the wire protocol."""


class SessionError(SakuraKitError):
    """Raised when an operation is attempted in the wrong connection state."""


class EventTimeoutError(SessionError):
    """Raised when no event arrives within the requested timeout."""


class SynthesisTimeoutError(SessionError):
    """Raised when a synthesis call does not receive its audio in time."""


# =============================================================================
# PlayAI HTTP boundary
# =============================================================================


class PlayAIError(SakuraKitError):
    """Base error for the PlayAI authentication exchange."""


class AuthenticationError(PlayAIError):
    """Raised when the API key / user id pair is rejected."""


class ActiveGenerationError(PlayAIError):
    """Raised when the account already has a generation in progress (HTTP 403)."""


class PlayAIServerError(PlayAIError):
    """Raised when the server answers with an error message.

    Attributes:
        status_code: HTTP status code of the failed response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidResponseError(PlayAIError):
    """Raised when a successful response body cannot be decoded."""
