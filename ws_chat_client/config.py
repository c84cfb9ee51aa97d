"""Configuration dataclasses for the resilient chat client.

This module provides immutable, validated configuration objects for the
reconnect backoff policy, the WebSocket transport and endpoint resolution.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

# Environment variables read by ChatClientConfig.from_env()
BACKEND_URL_ENV_VAR = "CHAT_BACKEND_URL"
ORIGIN_ENV_VAR = "CHAT_ORIGIN"


@dataclass(frozen=True)
class BackoffConfig:
    """Configuration for the reconnect backoff schedule.

    Delays are expressed in milliseconds. The delay before reconnect attempt
    ``n`` (counted before incrementing) is::

        max(min_delay_ms, min(base_delay_ms * 2**n, max_delay_ms) + uniform(0, max_jitter_ms))

    Parameters
    ----------
    base_delay_ms : float, default 500
        Delay for the first retry, before jitter. Doubles on every further
        consecutive failure.
    max_delay_ms : float, default 10000
        Cap applied to the exponential part of the delay. Attempts themselves
        are never capped - the client retries forever until stopped.
    max_jitter_ms : float, default 300
        Upper bound of the uniform random jitter added to every delay.
    min_delay_ms : float, default 300
        Floor applied to the final delay.
    fallback_delay_ms : float, default 1000
        Fixed delay used when the transport cannot even be constructed. This
        path bypasses the exponential table and leaves the attempt count alone.

    Examples
    --------
    >>> config = BackoffConfig()
    >>> assert config.base_delay_ms == 500

    >>> # Faster schedule for tests
    >>> config = BackoffConfig(base_delay_ms=10, max_delay_ms=100, max_jitter_ms=0)
    >>> config.validate()
    """

    base_delay_ms: float = 500
    max_delay_ms: float = 10_000
    max_jitter_ms: float = 300
    min_delay_ms: float = 300
    fallback_delay_ms: float = 1_000

    def __post_init__(self) -> None:
        """Validate configuration after initialization.

        Raises
        ------
        ValueError
            If any delay is negative, if base_delay_ms is zero, or if
            max_delay_ms is less than base_delay_ms.
        """
        if self.base_delay_ms <= 0:
            raise ValueError(f"base_delay_ms must be positive, got {self.base_delay_ms}")

        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= base_delay_ms ({self.base_delay_ms})"
            )

        for name in ("max_jitter_ms", "min_delay_ms", "fallback_delay_ms"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    @property
    def ceiling_ms(self) -> float:
        """Largest delay this configuration can ever produce."""
        return max(self.min_delay_ms, self.max_delay_ms + self.max_jitter_ms)

    def validate(self) -> None:
        """Explicitly validate the configuration.

        Validation is automatically performed in __post_init__, so this is
        typically not needed.
        """
        # Validation is already done in __post_init__


@dataclass(frozen=True)
class WebSocketConnectionConfig:
    """Configuration for the ``websockets``-backed transport.

    Parameters
    ----------
    open_timeout : float | None, default 10.0
        Timeout in seconds for the opening handshake. A handshake timeout is
        reported as a transport error followed by a close.
    close_timeout : float | None, default 10.0
        Timeout in seconds for the closing handshake.
    ping_interval : float | None, default 20.0
        Interval for protocol-level keepalive pings. None disables pings.
    ping_timeout : float | None, default 20.0
        Time to wait for a pong before the connection is considered dead.
    compression : str | None, default "deflate"
        "deflate" for permessage-deflate (RFC 7692) or None to disable.
    max_message_size : int | None, default 1 MiB
        Maximum size of an incoming message. Oversized frames make the
        ``websockets`` library close the connection (which then reconnects).
    websocket_kwargs : dict[str, Any], default {}
        Additional keyword arguments passed verbatim to ``websockets.connect``
        (headers, proxy settings, etc.).
    """

    open_timeout: float | None = 10.0
    close_timeout: float | None = 10.0
    ping_interval: float | None = 20.0
    ping_timeout: float | None = 20.0
    compression: str | None = "deflate"
    max_message_size: int | None = 1024 * 1024  # 1 MiB
    websocket_kwargs: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """Explicitly validate the configuration.

        Raises
        ------
        ValueError
            If compression is not None or "deflate", or if any timeout or
            size is negative.
        """
        if self.compression is not None and self.compression != "deflate":
            raise ValueError(
                f"Invalid compression method: '{self.compression}'. "
                f"Supported values: None (disabled) or 'deflate' (permessage-deflate)"
            )

        for name in ("open_timeout", "close_timeout", "ping_interval", "ping_timeout"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

        if self.max_message_size is not None and self.max_message_size <= 0:
            raise ValueError(
                f"max_message_size must be positive, got {self.max_message_size}"
            )

    def connect_kwargs(self) -> dict[str, Any]:
        """Build the keyword arguments for ``websockets.connect``."""
        kwargs: dict[str, Any] = {
            "open_timeout": self.open_timeout,
            "close_timeout": self.close_timeout,
            "ping_interval": self.ping_interval,
            "ping_timeout": self.ping_timeout,
            "compression": self.compression,
            "max_size": self.max_message_size,
        }
        kwargs.update(self.websocket_kwargs)
        return kwargs


@dataclass(frozen=True)
class ChatConnectionConfig:
    """Configuration for endpoint resolution.

    Parameters
    ----------
    backend_url : str | None, default None
        Configured base address (``http(s)://`` or ``ws(s)://``). Takes
        precedence over origin.
    origin : str | None, default None
        Fallback base address, typically the origin the client was served
        from.
    endpoint_path : str, default "/ws"
        Path suffix appended to the resolved base.
    """

    backend_url: str | None = None
    origin: str | None = None
    endpoint_path: str = "/ws"

    def __post_init__(self) -> None:
        if not self.endpoint_path.startswith("/"):
            raise ValueError(
                f"endpoint_path must start with '/', got {self.endpoint_path!r}"
            )

    def validate(self) -> None:
        """Explicitly validate the configuration.

        Validation is automatically performed in __post_init__, so this is
        typically not needed.
        """
        # Validation is already done in __post_init__


@dataclass(frozen=True)
class ChatClientConfig:
    """Complete configuration for the chat client.

    Parameters
    ----------
    connection : ChatConnectionConfig, default ChatConnectionConfig()
        Where to connect.
    backoff : BackoffConfig, default BackoffConfig()
        Reconnect delay schedule.
    websocket : WebSocketConnectionConfig, default WebSocketConnectionConfig()
        Settings of the default ``websockets`` transport.

    Examples
    --------
    >>> config = ChatClientConfig(
    ...     connection=ChatConnectionConfig(backend_url="https://chat.example.com/")
    ... )
    >>> config.validate()

    >>> # Read CHAT_BACKEND_URL / CHAT_ORIGIN from the environment
    >>> config = ChatClientConfig.from_env()
    """

    connection: ChatConnectionConfig = field(default_factory=ChatConnectionConfig)
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    websocket: WebSocketConnectionConfig = field(
        default_factory=WebSocketConnectionConfig
    )

    def validate(self) -> None:
        """Validate all sub-configurations.

        Raises
        ------
        ValueError
            If any sub-configuration validation fails.
        """
        self.connection.validate()
        self.backoff.validate()
        self.websocket.validate()

    @classmethod
    def from_env(cls, **overrides: Any) -> ChatClientConfig:
        """Create a configuration whose addresses come from the environment.

        ``CHAT_BACKEND_URL`` supplies the backend URL and ``CHAT_ORIGIN`` the
        fallback origin. Empty values count as unset. Any keyword argument is
        forwarded to the constructor (e.g., ``backoff=BackoffConfig(...)``).
        """
        connection = ChatConnectionConfig(
            backend_url=os.environ.get(BACKEND_URL_ENV_VAR) or None,
            origin=os.environ.get(ORIGIN_ENV_VAR) or None,
        )
        overrides.setdefault("connection", connection)
        return cls(**overrides)
