"""
ws_chat_client - resilient real-time chat client

Keeps a single logical WebSocket connection to a chat endpoint alive,
reconnecting with exponential backoff and jitter, and admits only
well-formed chat frames into the session's message log.

BackoffPolicy doubles as a tenacity wait strategy, so the reconnect schedule
can drive any other retry loop: ``tenacity.retry(wait=BackoffPolicy())``.
"""

# Protocol definitions
from ws_chat_client._internal.protocols import (
    Scheduler,
    Transport,
    TransportHandle,
    TransportListener,
)
from ws_chat_client._internal.scheduling import AsyncioScheduler

# Core components
from ws_chat_client.admission import MessageAdmissionFilter
from ws_chat_client.backoff import BackoffPolicy, BackoffScheduler
from ws_chat_client.chat_client import WebSocketChatClient

# Configuration classes
from ws_chat_client.config import (
    BackoffConfig,
    ChatClientConfig,
    ChatConnectionConfig,
    WebSocketConnectionConfig,
)
from ws_chat_client.endpoint import resolve_endpoint

# Exceptions
from ws_chat_client.exceptions import (
    ChatClientError,
    EndpointResolutionError,
    TransportError,
    TransportUnavailableError,
)
from ws_chat_client.lifecycle import (
    ConnectionLifecycleManager,
    OnMessageCallback,
    OnStatusCallback,
)

# Logging utilities
from ws_chat_client.logger import LoggingModes, get_logger, logging_config

# Wire schemas
from ws_chat_client.schemas import ChatFrame, ChatMessage, ConnectionState, MessageKind

# WebSocket transport
from ws_chat_client.transport import WebSocketHandle, WebSocketTransport

__version__ = "0.1.0"

__all__ = [
    "AsyncioScheduler",
    "BackoffConfig",
    "BackoffPolicy",
    "BackoffScheduler",
    "ChatClientConfig",
    "ChatClientError",
    "ChatConnectionConfig",
    "ChatFrame",
    "ChatMessage",
    "ConnectionLifecycleManager",
    "ConnectionState",
    "EndpointResolutionError",
    "LoggingModes",
    "MessageAdmissionFilter",
    "MessageKind",
    "OnMessageCallback",
    "OnStatusCallback",
    "Scheduler",
    "Transport",
    "TransportError",
    "TransportHandle",
    "TransportListener",
    "TransportUnavailableError",
    "WebSocketChatClient",
    "WebSocketConnectionConfig",
    "WebSocketHandle",
    "WebSocketTransport",
    "get_logger",
    "logging_config",
    "resolve_endpoint",
]
