"""
Exception classes for ws_chat_client.

This module defines all custom exceptions raised by the library.
All exceptions inherit from ChatClientError, which inherits from Exception.

None of these escape the connection lifecycle state machine: they are raised
at the edges (configuration, direct transport use) and recovered internally
everywhere else.
"""


class ChatClientError(Exception):
    """
    Base exception for all chat client errors.

    Catching this exception will catch all library-specific errors.
    """


class EndpointResolutionError(ChatClientError, ValueError):
    """
    Raised when no connection target can be derived.

    This happens when neither a backend URL nor an origin is configured,
    so there is nothing to rewrite into a ``ws(s)://`` endpoint.
    """


class TransportError(ChatClientError):
    """
    Raised by a transport handle when an operation is attempted in an
    invalid state (e.g., sending on a handle that is not open).
    """


class TransportUnavailableError(TransportError):
    """
    Raised synchronously by a transport's ``connect()`` when a connection
    cannot even be constructed.

    Examples of such failures:
    - No running asyncio event loop to host the connection
    - A malformed ``ws://`` / ``wss://`` URL

    The lifecycle manager treats this as a construction failure and retries
    after the fixed fallback delay.
    """
