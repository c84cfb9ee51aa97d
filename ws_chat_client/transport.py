"""
Callback-style transport over the ``websockets`` library.

WebSocketTransport adapts the coroutine API of ``websockets`` to the event
interface the lifecycle manager consumes: ``connect()`` returns a handle
immediately, and the handle later reports open, message, error and close
events from a background reader task on the running event loop.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Any, Coroutine

import websockets
from websockets.exceptions import (
    ConnectionClosedError,
    ConnectionClosedOK,
    InvalidURI,
    WebSocketException,
)
from websockets.uri import parse_uri

from .config import WebSocketConnectionConfig
from .exceptions import TransportError, TransportUnavailableError
from .logger import get_logger

if TYPE_CHECKING:
    from ._internal.protocols import TransportListener

logger = get_logger(__name__)


class HandleState(Enum):
    CONNECTING = 0
    OPEN = 1
    CLOSED = 2


class WebSocketHandle:
    """
    One WebSocket connection attempt.

    Event contract towards the listener:

    - successful handshake: ``on_open``
    - every received frame (text or binary): ``on_message``
    - handshake failure, abnormal closure or any unexpected failure
      (including a listener raising): ``on_error`` then ``on_close``
    - normal closure (either side): ``on_close``

    ``on_close`` is delivered exactly once per handle. ``send()`` and
    ``close()`` are synchronous; the underlying coroutines run as background
    tasks on the handle's loop.

    Parameters
    ----------
    url : str
        ``ws://`` or ``wss://`` URL.
    listener : TransportListener
        Receiver of this handle's events.
    connect_kwargs : dict[str, Any]
        Keyword arguments for ``websockets.connect``.
    """

    def __init__(
        self, url: str, listener: TransportListener, connect_kwargs: dict[str, Any]
    ) -> None:
        self.url = url
        self._listener = listener
        self._connect_kwargs = connect_kwargs
        self._state = HandleState.CONNECTING
        self._close_requested = False
        self._ws: Any = None
        self._task: asyncio.Task[None] | None = None
        self._connecting: asyncio.Future[Any] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    def __repr__(self) -> str:
        return f"<WebSocketHandle {self.url} {self._state.name}>"

    @property
    def is_open(self) -> bool:
        return self._state is HandleState.OPEN and not self._close_requested

    @property
    def is_closed(self) -> bool:
        return self._state is HandleState.CLOSED or self._close_requested

    @property
    def task(self) -> asyncio.Task[None] | None:
        """Reader task of this handle (None until started)."""
        return self._task

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        self._task = loop.create_task(self._run())

    def send(self, text: str) -> None:
        if not self.is_open:
            raise TransportError(f"Cannot send on a connection that is not open ({self!r})")
        self._spawn(self._ws.send(text))

    def close(self) -> None:
        if self.is_closed:
            return
        self._close_requested = True
        if self._ws is None:
            # Still in the opening handshake. A connection that completes
            # anyway is closed by _run() once it sees the flag.
            if self._connecting is not None:
                self._connecting.cancel()
        else:
            self._spawn(self._ws.close())

    async def _run(self) -> None:
        if self._close_requested:
            self._finish(None)
            return

        try:
            self._connecting = asyncio.ensure_future(
                websockets.connect(self.url, **self._connect_kwargs)
            )
            self._ws = await self._connecting
        except asyncio.CancelledError:
            logger.debug(f"Connection attempt to {self.url} cancelled")
            self._finish(None)
            if self._close_requested:
                return
            raise
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.info(f"WebSocket connection to {self.url} failed: {type(e).__name__}: {e}")
            self._finish(e)
            return
        except Exception as e:
            logger.exception(f"Unexpected error while connecting to {self.url}")
            self._finish(e)
            return

        if self._close_requested:
            # close() arrived after the handshake finished but before we resumed
            await self._close_quietly()
            self._finish(None)
            return

        self._state = HandleState.OPEN

        error: BaseException | None = None
        try:
            self._listener.on_open(self)
            async for raw_message in self._ws:
                self._listener.on_message(self, raw_message)
        except ConnectionClosedOK:
            pass
        except ConnectionClosedError as e:
            rcvd = getattr(e, "rcvd", None)
            if rcvd is not None:
                logger.info(
                    "Connection was terminated. Close code: %d, reason: %s",
                    rcvd.code,
                    rcvd.reason or "(no reason provided)",
                )
            else:
                logger.info("Connection was terminated.")
            error = e
        except asyncio.CancelledError:
            self._finish(None)
            raise
        except Exception as e:
            logger.exception(f"Unexpected error on connection to {self.url}, closing it")
            error = e
            await self._close_quietly()
        self._finish(error)

    async def _close_quietly(self) -> None:
        try:
            await self._ws.close()
        except Exception as e:
            logger.warning(f"Error while closing connection to {self.url}: {type(e).__name__}: {e}")

    def _finish(self, error: BaseException | None) -> None:
        if self._state is HandleState.CLOSED:
            return
        self._state = HandleState.CLOSED
        if error is not None:
            self._listener.on_error(self, error)
        self._listener.on_close(self)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        if self._task is not None:
            loop = self._task.get_loop()
        else:
            loop = asyncio.get_running_loop()
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"WebSocket operation failed: {type(exc).__name__}: {exc}")

    async def wait_closed(self) -> None:
        """Wait until the reader task and all pending sends/closes are done."""
        pending = [t for t in (self._task, *self._background) if t is not None]
        if pending:
            await asyncio.wait(pending)


class WebSocketTransport:
    """
    Transport factory producing WebSocketHandle instances.

    ``connect()`` raises TransportUnavailableError synchronously when the URL
    is malformed or when no event loop is running; everything else (refused
    connection, handshake timeout, bad status) is reported asynchronously as
    an error event followed by a close event.

    Parameters
    ----------
    config : WebSocketConnectionConfig | None, optional
        Connection settings. Defaults to WebSocketConnectionConfig().

    Examples
    --------
    >>> transport = WebSocketTransport(WebSocketConnectionConfig(compression=None))
    >>> handle = transport.connect("ws://localhost:8000/ws", listener)
    """

    def __init__(self, config: WebSocketConnectionConfig | None = None) -> None:
        self.config = config or WebSocketConnectionConfig()
        self.config.validate()
        self._handles: list[WebSocketHandle] = []

    def connect(self, url: str, listener: TransportListener) -> WebSocketHandle:
        try:
            parse_uri(url)
        except InvalidURI as e:
            raise TransportUnavailableError(f"Invalid WebSocket URL {url!r}: {e}") from e

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise TransportUnavailableError(
                "WebSocketTransport.connect() requires a running asyncio event loop"
            ) from e

        logger.info("Connecting to %s...", url)
        handle = WebSocketHandle(url, listener, self.config.connect_kwargs())
        handle.start(loop)
        self._handles = [h for h in self._handles if not self._is_done(h)]
        self._handles.append(handle)
        return handle

    async def aclose(self, timeout: float | None = None) -> None:
        """
        Close every handle this transport created and wait for them to finish.

        Parameters
        ----------
        timeout : float | None, optional
            Maximum time to wait. Defaults to the configured close_timeout.
        """
        handles, self._handles = self._handles, []
        for handle in handles:
            handle.close()
        waiters = [asyncio.ensure_future(handle.wait_closed()) for handle in handles]
        if not waiters:
            return
        _, pending = await asyncio.wait(
            waiters, timeout=timeout if timeout is not None else self.config.close_timeout
        )
        for waiter in pending:
            waiter.cancel()
        if pending:
            logger.warning(f"{len(pending)} connection(s) did not close in time")

    @staticmethod
    def _is_done(handle: WebSocketHandle) -> bool:
        return handle.is_closed and (handle.task is None or handle.task.done())
