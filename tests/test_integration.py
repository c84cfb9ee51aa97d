"""
End-to-end tests against a real local WebSocket server.

This test module covers:
- Connecting, receiving the welcome frame and echoing a sent message
- Automatic reconnect after the server closes the connection
"""

from __future__ import annotations

import asyncio
import json
import random
from typing import Any, Callable

import pytest
from websockets.asyncio.server import serve

from ws_chat_client.chat_client import WebSocketChatClient
from ws_chat_client.config import (
    BackoffConfig,
    ChatClientConfig,
    ChatConnectionConfig,
    WebSocketConnectionConfig,
)
from ws_chat_client.schemas import ConnectionState, MessageKind

pytestmark = pytest.mark.integration

FAST_BACKOFF = BackoffConfig(
    base_delay_ms=20, max_delay_ms=100, max_jitter_ms=10, min_delay_ms=0, fallback_delay_ms=20
)


async def wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not reached in time")
        await asyncio.sleep(0.01)


class ChatServer:
    """Tiny chat backend: greets every connection and echoes messages."""

    def __init__(self, drop_first: int = 0) -> None:
        self.drop_first = drop_first
        self.connections = 0
        self.received: list[dict[str, Any]] = []

    async def handler(self, websocket: Any) -> None:
        self.connections += 1
        await websocket.send(json.dumps({"type": "system", "text": "welcome"}))
        if self.connections <= self.drop_first:
            await websocket.close()
            return
        async for raw in websocket:
            frame = json.loads(raw)
            self.received.append(frame)
            await websocket.send(json.dumps({"type": "message", "text": frame["text"]}))


def make_config(port: int) -> ChatClientConfig:
    return ChatClientConfig(
        connection=ChatConnectionConfig(backend_url=f"http://127.0.0.1:{port}/"),
        backoff=FAST_BACKOFF,
        websocket=WebSocketConnectionConfig(open_timeout=2.0, close_timeout=2.0),
    )


@pytest.mark.asyncio
async def test_send_and_receive_echo() -> None:
    backend = ChatServer()
    async with serve(backend.handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        async with WebSocketChatClient(make_config(port)) as client:
            assert await client.wait_until_connected(timeout=3)
            await wait_for(lambda: len(client.messages) == 1)
            assert client.messages[0].kind is MessageKind.SYSTEM

            assert client.send("  hello there  ")
            await wait_for(lambda: len(client.messages) == 2)

    assert backend.received == [{"type": "message", "text": "hello there"}]
    assert client.messages[1].kind is MessageKind.TEXT
    assert client.messages[1].body == "hello there"
    assert client.state is ConnectionState.CONNECTED  # stop() publishes nothing


@pytest.mark.asyncio
@pytest.mark.slow
async def test_reconnects_after_server_close() -> None:
    backend = ChatServer(drop_first=2)
    statuses: list[tuple[ConnectionState, int]] = []
    async with serve(backend.handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        client = WebSocketChatClient(
            make_config(port),
            rng=random.Random(3),
            on_status=[lambda state, attempt: statuses.append((state, attempt))],
        )
        async with client:
            await wait_for(lambda: backend.connections == 3)
            assert await client.wait_until_connected(timeout=3)
            assert client.attempt == 0

            assert client.send("after reconnect")
            await wait_for(lambda: backend.received != [])
            await wait_for(
                lambda: sum(m.kind is MessageKind.SYSTEM for m in client.messages) == 3
            )

    # Every successful open resets the count, so each drop restarts at 1
    assert statuses.count((ConnectionState.DISCONNECTED, 1)) == 2
    assert statuses[-1] == (ConnectionState.CONNECTED, 0)


@pytest.mark.asyncio
async def test_unreachable_server_keeps_retrying() -> None:
    # Bind and release a port so nothing is listening on it
    async with serve(ChatServer().handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]

    statuses: list[tuple[ConnectionState, int]] = []
    async with WebSocketChatClient(
        make_config(port), on_status=[lambda s, a: statuses.append((s, a))]
    ) as client:
        await wait_for(lambda: client.attempt >= 2)
        assert not client.is_connected

    assert ConnectionState.ERRORED in [state for state, _ in statuses]
