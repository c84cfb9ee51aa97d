from __future__ import annotations

import re

from .exceptions import EndpointResolutionError

_HTTP_SCHEME = re.compile(r"^http(s?)(?=://)", re.IGNORECASE)


def resolve_endpoint(
    backend_url: str | None, origin: str | None = None, path: str = "/ws"
) -> str:
    """
    Derive the WebSocket endpoint of the chat server.

    The configured backend URL wins; the origin is the fallback. A single
    trailing slash is stripped, an ``http``/``https`` scheme is rewritten to
    ``ws``/``wss`` and ``path`` is appended. The result is computed once per
    client - there is no re-resolution mid-session.

    Args:
        backend_url: Configured base address, or None/"" if unset.
        origin: Fallback base address (e.g. the page origin).
        path: Suffix to append. Defaults to "/ws".

    Returns:
        The ``ws(s)://`` URL to connect to.

    Raises:
        EndpointResolutionError: If neither address is set.

    Examples:
        >>> resolve_endpoint("https://chat.example.com/")
        'wss://chat.example.com/ws'
        >>> resolve_endpoint(None, "http://localhost:5173")
        'ws://localhost:5173/ws'
    """
    base = _strip_trailing_slash(backend_url or "")
    if not base:
        base = _strip_trailing_slash(origin or "")
    if not base:
        raise EndpointResolutionError(
            "Cannot resolve chat endpoint: neither a backend URL nor an origin is configured"
        )
    return f"{_HTTP_SCHEME.sub(_to_ws_scheme, base)}{path}"


def _strip_trailing_slash(address: str) -> str:
    address = address.strip()
    return address[:-1] if address.endswith("/") else address


def _to_ws_scheme(match: re.Match[str]) -> str:
    return "wss" if match.group(1) else "ws"
