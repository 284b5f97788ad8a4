"""Configuration for realtime sessions and the PlayAI client.

This module defines the configuration dataclasses used by the session
façades:

- RealtimeConfig: endpoint, model and handshake settings for RealtimeSession
- PlayAIConfig: authentication endpoint and synthesis defaults for PlayAIClient

Both are frozen and can be loaded from environment variables with
``from_env()``. Credentials are never part of a config object; they are
passed to the façades directly or resolved from the usual environment
variables with ``resolve_credential()``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from .commands import OutputFormat, SessionConfiguration
from .exceptions import ConfigurationError

DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-10-01"
DEFAULT_BETA_HEADER = "realtime=v1"
DEFAULT_PLAYAI_AUTH_URL = "https://api.play.ht/api/v3/websocket-auth"

OPENAI_API_KEY_ENV = "OPENAI_API_KEY"
PLAYHT_API_KEY_ENV = "PLAYHT_API_KEY"
PLAYHT_USER_ID_ENV = "PLAYHT_USER_ID"

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


# ============================================================================
# Realtime
# ============================================================================


@dataclass(frozen=True)
class RealtimeConfig:
    """
    Settings for a realtime conversation session.

    Attributes:
        url: Websocket endpoint without query string.
        model: Model name sent as the ``model`` query parameter.
        beta_header: Value of the ``OpenAI-Beta`` handshake header.
        session: When set, sent as ``session.update`` right after connecting.
        max_pending_events: Bound on undelivered events (0 for unbounded).
        open_timeout: Seconds allowed for the websocket opening handshake.
    """

    url: str = DEFAULT_REALTIME_URL
    model: str = DEFAULT_REALTIME_MODEL
    beta_header: str = DEFAULT_BETA_HEADER
    session: SessionConfiguration | None = None
    max_pending_events: int = 0
    open_timeout: float = 10.0

    def __post_init__(self) -> None:
        if not self.model:
            raise ConfigurationError("model must not be empty")
        if self.max_pending_events < 0:
            raise ConfigurationError("max_pending_events cannot be negative")
        if self.open_timeout <= 0:
            raise ConfigurationError("open_timeout must be positive")

    @classmethod
    def from_env(cls, prefix: str = "SAKURAKIT_") -> RealtimeConfig:
        """
        Load configuration from environment variables.

        Environment variables are mapped to config fields by converting:
        - {prefix}REALTIME_URL -> url
        - {prefix}REALTIME_MODEL -> model
        - {prefix}REALTIME_BETA -> beta_header
        - {prefix}MAX_PENDING_EVENTS -> max_pending_events
        - {prefix}OPEN_TIMEOUT -> open_timeout

        Args:
            prefix: Environment variable prefix (default: "SAKURAKIT_")

        Returns:
            RealtimeConfig instance with values from environment.

        Raises:
            ValueError: If environment variables contain invalid values.

        Example:
            export SAKURAKIT_REALTIME_MODEL=gpt-4o-realtime-preview
            export SAKURAKIT_MAX_PENDING_EVENTS=256
        """
        config_dict: dict[str, Any] = {}

        if url := os.getenv(f"{prefix}REALTIME_URL"):
            if not url.startswith(("ws://", "wss://")):
                raise ValueError(
                    f"Invalid {prefix}REALTIME_URL: {url}. Must start with ws:// or wss://"
                )
            config_dict["url"] = url

        if model := os.getenv(f"{prefix}REALTIME_MODEL"):
            config_dict["model"] = model

        if beta := os.getenv(f"{prefix}REALTIME_BETA"):
            config_dict["beta_header"] = beta

        if pending := os.getenv(f"{prefix}MAX_PENDING_EVENTS"):
            try:
                pending_value = int(pending)
                if pending_value < 0:
                    raise ValueError(
                        f"{prefix}MAX_PENDING_EVENTS must be non-negative, got {pending_value}"
                    )
                config_dict["max_pending_events"] = pending_value
            except ValueError as e:
                raise ValueError(
                    f"Invalid {prefix}MAX_PENDING_EVENTS: {pending}. "
                    "Must be a non-negative integer."
                ) from e

        if open_timeout := os.getenv(f"{prefix}OPEN_TIMEOUT"):
            config_dict["open_timeout"] = _parse_positive_float(
                f"{prefix}OPEN_TIMEOUT", open_timeout
            )

        return cls(**config_dict)


# ============================================================================
# PlayAI
# ============================================================================


@dataclass(frozen=True)
class PlayAIConfig:
    """
    Settings for the PlayAI streaming TTS client.

    Attributes:
        auth_url: Endpoint that exchanges credentials for a websocket URL.
        http_timeout: Seconds allowed for the authentication request.
        output_format: Default audio format for synthesis.
        strict_marker: Use the strict completion marker check (see TTSProfile).
        synthesis_timeout: Default seconds to wait for a clip (None waits forever).
        open_timeout: Seconds allowed for the websocket opening handshake.
    """

    auth_url: str = DEFAULT_PLAYAI_AUTH_URL
    http_timeout: float = 30.0
    output_format: OutputFormat = OutputFormat.MP3
    strict_marker: bool = False
    synthesis_timeout: float | None = 60.0
    open_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.http_timeout <= 0:
            raise ConfigurationError("http_timeout must be positive")
        if self.synthesis_timeout is not None and self.synthesis_timeout <= 0:
            raise ConfigurationError("synthesis_timeout must be positive or None")
        if self.open_timeout <= 0:
            raise ConfigurationError("open_timeout must be positive")

    @classmethod
    def from_env(cls, prefix: str = "SAKURAKIT_") -> PlayAIConfig:
        """
        Load configuration from environment variables.

        Environment variables are mapped to config fields by converting:
        - {prefix}PLAYAI_AUTH_URL -> auth_url
        - {prefix}HTTP_TIMEOUT -> http_timeout
        - {prefix}OUTPUT_FORMAT -> output_format
        - {prefix}STRICT_MARKER -> strict_marker
        - {prefix}SYNTHESIS_TIMEOUT -> synthesis_timeout ("none" disables)
        - {prefix}OPEN_TIMEOUT -> open_timeout

        Args:
            prefix: Environment variable prefix (default: "SAKURAKIT_")

        Returns:
            PlayAIConfig instance with values from environment.

        Raises:
            ValueError: If environment variables contain invalid values.

        Example:
            export SAKURAKIT_OUTPUT_FORMAT=wav
            export SAKURAKIT_STRICT_MARKER=true
            export SAKURAKIT_SYNTHESIS_TIMEOUT=none
        """
        config_dict: dict[str, Any] = {}

        if auth_url := os.getenv(f"{prefix}PLAYAI_AUTH_URL"):
            if not auth_url.startswith(("http://", "https://")):
                raise ValueError(
                    f"Invalid {prefix}PLAYAI_AUTH_URL: {auth_url}. "
                    "Must start with http:// or https://"
                )
            config_dict["auth_url"] = auth_url

        if http_timeout := os.getenv(f"{prefix}HTTP_TIMEOUT"):
            config_dict["http_timeout"] = _parse_positive_float(
                f"{prefix}HTTP_TIMEOUT", http_timeout
            )

        if output_format := os.getenv(f"{prefix}OUTPUT_FORMAT"):
            try:
                config_dict["output_format"] = OutputFormat(output_format.lower())
            except ValueError as e:
                valid = ", ".join(f.value for f in OutputFormat)
                raise ValueError(
                    f"Invalid {prefix}OUTPUT_FORMAT: {output_format}. Must be one of: {valid}"
                ) from e

        if strict := os.getenv(f"{prefix}STRICT_MARKER"):
            config_dict["strict_marker"] = _parse_bool(f"{prefix}STRICT_MARKER", strict)

        if synthesis_timeout := os.getenv(f"{prefix}SYNTHESIS_TIMEOUT"):
            if synthesis_timeout.lower() == "none":
                config_dict["synthesis_timeout"] = None
            else:
                config_dict["synthesis_timeout"] = _parse_positive_float(
                    f"{prefix}SYNTHESIS_TIMEOUT", synthesis_timeout
                )

        if open_timeout := os.getenv(f"{prefix}OPEN_TIMEOUT"):
            config_dict["open_timeout"] = _parse_positive_float(
                f"{prefix}OPEN_TIMEOUT", open_timeout
            )

        return cls(**config_dict)


# ============================================================================
# Credentials
# ============================================================================


def resolve_credential(value: str | None, env_var: str) -> str:
    """
    Return ``value`` or fall back to the environment.

    Raises:
        ConfigurationError: If neither is set.
    """
    if value:
        return value
    if resolved := os.getenv(env_var):
        return resolved
    raise ConfigurationError(f"Missing credential: pass it explicitly or set {env_var}")


def _parse_bool(name: str, value: str) -> bool:
    value_lower = value.lower()
    if value_lower in _TRUE_VALUES:
        return True
    if value_lower in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid {name}: {value}. Must be true/false, 1/0, yes/no, or on/off")


def _parse_positive_float(name: str, value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as e:
        raise ValueError(f"Invalid {name}: {value}. Must be a number.") from e
    if not parsed > 0:
        raise ValueError(f"Invalid {name}: {value}. Must be positive.")
    return parsed


__all__ = [
    "DEFAULT_REALTIME_URL",
    "DEFAULT_REALTIME_MODEL",
    "DEFAULT_BETA_HEADER",
    "DEFAULT_PLAYAI_AUTH_URL",
    "OPENAI_API_KEY_ENV",
    "PLAYHT_API_KEY_ENV",
    "PLAYHT_USER_ID_ENV",
    "RealtimeConfig",
    "PlayAIConfig",
    "resolve_credential",
]
