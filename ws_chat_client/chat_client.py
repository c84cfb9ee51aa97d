"""
WebSocketChatClient wires the chat core together: it resolves the endpoint
once, builds the transport and the lifecycle manager, and offers an async
context manager for a clean teardown.
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Any

from ._internal.scheduling import AsyncioScheduler
from .config import ChatClientConfig
from .endpoint import resolve_endpoint
from .lifecycle import ConnectionLifecycleManager, OnMessageCallback, OnStatusCallback
from .logger import get_logger
from .schemas import ChatMessage, ConnectionState
from .transport import WebSocketTransport

if TYPE_CHECKING:
    from ._internal.protocols import Scheduler, Transport

logger = get_logger(__name__)


class WebSocketChatClient:
    """
    Resilient client for an anonymous, single-room chat endpoint.

    The client keeps one logical connection open, reconnecting with
    exponential backoff and jitter until it is closed. Incoming ``message``
    and ``system`` frames are collected in ``messages`` (and pushed to the
    ``on_message`` callbacks); status changes are pushed to ``on_status`` as
    ``(state, attempt)``.

    Parameters
    ----------
    config : ChatClientConfig | None, optional
        Client configuration. Defaults to ChatClientConfig.from_env().
    transport : Transport | None, optional
        Transport to use. Defaults to a WebSocketTransport built from
        ``config.websocket``.
    scheduler : Scheduler | None, optional
        Timer source for reconnects. Defaults to the running asyncio loop.
    rng : random.Random | None, optional
        Jitter source for the backoff delays.
    on_status : list[OnStatusCallback] | None, optional
        Callbacks executed on every status transition.
    on_message : list[OnMessageCallback] | None, optional
        Callbacks executed for every admitted message.

    Examples
    --------
    ::

        config = ChatClientConfig(
            connection=ChatConnectionConfig(backend_url="https://chat.example.com")
        )
        async with WebSocketChatClient(config, on_message=[print]) as client:
            if await client.wait_until_connected(timeout=10):
                client.send("hello")
            await asyncio.sleep(60)
    """

    def __init__(
        self,
        config: ChatClientConfig | None = None,
        transport: Transport | None = None,
        scheduler: Scheduler | None = None,
        rng: random.Random | None = None,
        on_status: list[OnStatusCallback] | None = None,
        on_message: list[OnMessageCallback] | None = None,
    ) -> None:
        self.config = config or ChatClientConfig.from_env()
        self.config.validate()

        # Resolved once; there is no re-resolution mid-session
        self.url = resolve_endpoint(
            self.config.connection.backend_url,
            self.config.connection.origin,
            self.config.connection.endpoint_path,
        )

        self._transport: Transport = (
            transport if transport is not None else WebSocketTransport(self.config.websocket)
        )
        self._connected = asyncio.Event()
        self.manager = ConnectionLifecycleManager(
            self.url,
            self._transport,
            scheduler or AsyncioScheduler(),
            backoff_config=self.config.backoff,
            rng=rng,
            on_status=[self._track_status, *(on_status or [])],
            on_message=on_message,
        )

    @property
    def state(self) -> ConnectionState:
        return self.manager.state

    @property
    def attempt(self) -> int:
        return self.manager.attempt

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return self.manager.messages

    @property
    def is_connected(self) -> bool:
        return self.manager.state is ConnectionState.CONNECTED

    def start(self) -> None:
        self.manager.start()

    def stop(self) -> None:
        self.manager.stop()
        self._connected.clear()

    def send(self, text: str) -> bool:
        return self.manager.send(text)

    async def aclose(self) -> None:
        """Stop the client and wait for the transport to finish closing."""
        logger.info("Closing chat client...")
        self.stop()
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()

    async def wait_until_connected(self, timeout: float | None = None) -> bool:
        """
        Wait for the CONNECTED state.

        Returns
        -------
        bool
            True once connected, False if the timeout expired first.
        """
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def _track_status(self, state: ConnectionState, attempt: int) -> None:
        if state is ConnectionState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()

    async def __aenter__(self) -> WebSocketChatClient:
        self.start()
        return self

    async def __aexit__(self, *args: Any, **kwargs: Any) -> None:
        await self.aclose()
