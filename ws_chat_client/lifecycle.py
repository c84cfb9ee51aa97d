"""
Connection lifecycle manager.

ConnectionLifecycleManager keeps a single logical connection to the chat
endpoint alive: it owns the current transport handle, the connection state,
the consecutive-failure counter and the teardown flag, and drives reconnects
through the BackoffScheduler.

All entry points (transport events, timer fires, start/stop/send) are expected
to run on one event loop thread and never block, so no locking is needed.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Callable

from .admission import MessageAdmissionFilter
from .backoff import BackoffPolicy, BackoffScheduler
from .config import BackoffConfig
from .logger import get_logger
from .schemas import ChatFrame, ChatMessage, ConnectionState
from .utils import pydantic_serialize

if TYPE_CHECKING:
    from ._internal.protocols import Scheduler, Transport, TransportHandle

logger = get_logger(__name__)

# Type aliases for subscriber callbacks
OnStatusCallback = Callable[[ConnectionState, int], None]
OnMessageCallback = Callable[[ChatMessage], None]


class ConnectionLifecycleManager:
    """
    State machine governing connect, disconnect and reconnect.

    Transitions:

    - ``start()``: -> CONNECTING; a new handle is created
    - open event: -> CONNECTED; attempt count reset to 0
    - close event: -> DISCONNECTED; attempt count + 1; reconnect scheduled
      with backoff (absorbed silently once ``stop()`` was called)
    - error event: -> ERRORED; the close event that follows drives recovery
    - construction failure: -> ERRORED; reconnect after the fixed fallback
      delay, attempt count unchanged
    - ``stop()``: no further transitions are published

    Every transport event is checked against the current handle first; events
    from a superseded handle are discarded with no effect.

    Parameters
    ----------
    url : str
        Endpoint to connect to (already resolved).
    transport : Transport
        Factory of transport handles. The manager registers itself as the
        listener of every handle it creates.
    scheduler : Scheduler
        Timer source for reconnects (``call_later(seconds, callback)``).
    backoff_config : BackoffConfig | None, optional
        Delay schedule. Defaults to BackoffConfig().
    rng : random.Random | None, optional
        Jitter source, injectable for reproducible delays.
    admission : MessageAdmissionFilter | None, optional
        Inbound frame filter.
    on_status : list[OnStatusCallback] | None, optional
        Callbacks invoked with ``(state, attempt)`` on every transition.
    on_message : list[OnMessageCallback] | None, optional
        Callbacks invoked with every admitted message.
    """

    def __init__(
        self,
        url: str,
        transport: Transport,
        scheduler: Scheduler,
        backoff_config: BackoffConfig | None = None,
        rng: random.Random | None = None,
        admission: MessageAdmissionFilter | None = None,
        on_status: list[OnStatusCallback] | None = None,
        on_message: list[OnMessageCallback] | None = None,
    ) -> None:
        self.url = url
        self._transport = transport
        self._backoff_config = backoff_config or BackoffConfig()
        self._backoff = BackoffScheduler(
            BackoffPolicy(self._backoff_config, rng), scheduler
        )
        self._admission = admission or MessageAdmissionFilter()

        self._state = ConnectionState.DISCONNECTED
        self._attempt = 0
        self._handle: TransportHandle | None = None
        self._manual_teardown = True  # Nothing runs until start()
        self._messages: list[ChatMessage] = []

        self._status_listeners: list[OnStatusCallback] = list(on_status or [])
        self._message_listeners: list[OnMessageCallback] = list(on_message or [])

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempt(self) -> int:
        """Consecutive failed connection cycles since the last successful open."""
        return self._attempt

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        """Admitted messages of this session, in arrival order."""
        return tuple(self._messages)

    @property
    def is_stopped(self) -> bool:
        return self._manual_teardown

    @property
    def retry_pending(self) -> bool:
        return self._backoff.pending

    def add_status_listener(self, callback: OnStatusCallback) -> None:
        self._status_listeners.append(callback)

    def add_message_listener(self, callback: OnMessageCallback) -> None:
        self._message_listeners.append(callback)

    def start(self) -> None:
        """
        Begin (or restart) connecting.

        Clears the teardown flag, resets the attempt count, cancels any
        pending reconnect and supersedes any previous handle.
        """
        logger.info("Starting chat connection to %s", self.url)
        self._manual_teardown = False
        self._attempt = 0
        self._backoff.cancel()
        self._release_handle()
        self._transition(ConnectionState.CONNECTING)
        self._connect()

    def stop(self) -> None:
        """
        Tear down deliberately.

        Cancels the pending reconnect and closes the current handle. From this
        point on no transition is published, no timer fires and every late
        event of the torn-down handle is ignored.
        """
        if self._manual_teardown:
            logger.debug("Stop requested but the connection is not running")
        else:
            logger.info("Stopping chat connection to %s", self.url)
        self._manual_teardown = True
        self._backoff.cancel()
        self._release_handle()

    def send(self, text: str) -> bool:
        """
        Send a chat message.

        The text is trimmed of surrounding whitespace. Nothing is echoed
        locally: the message shows up in ``messages`` only when the server
        broadcasts it back.

        Returns
        -------
        bool
            True if the frame was handed to the transport. False (and no
            transport call) if not connected or if the text is blank.
        """
        body = text.strip() if isinstance(text, str) else ""
        handle = self._handle
        if not body or self._state is not ConnectionState.CONNECTED or handle is None:
            logger.debug("Rejecting send: state=%s, blank=%s", self._state.value, not body)
            return False

        payload = pydantic_serialize(ChatFrame.outbound(body))
        try:
            handle.send(payload)
        except Exception as e:
            logger.warning("Send failed on current connection: %s: %s", type(e).__name__, e)
            return False
        return True

    # ------------------------------------------------------------------
    # Transport listener
    # ------------------------------------------------------------------

    def on_open(self, handle: TransportHandle) -> None:
        if not self._is_current(handle, "open"):
            return
        if self._attempt:
            logger.info("Reconnected after %d failed attempt(s)", self._attempt)
        else:
            logger.info("Connected to %s", self.url)
        self._attempt = 0
        self._transition(ConnectionState.CONNECTED)

    def on_message(self, handle: TransportHandle, raw: str | bytes) -> None:
        if not self._is_current(handle, "message"):
            return
        message = self._admission.admit(raw)
        if message is None:
            return
        self._messages.append(message)
        for callback in list(self._message_listeners):
            try:
                callback(message)
            except Exception as e:
                # Subscriber failures never disturb the connection
                logger.exception(f"Message listener failed: {type(e).__name__}")

    def on_error(self, handle: TransportHandle, exc: BaseException | None = None) -> None:
        if not self._is_current(handle, "error"):
            return
        if exc is not None:
            logger.warning("Transport error: %s: %s", type(exc).__name__, exc)
        else:
            logger.warning("Transport error")
        self._transition(ConnectionState.ERRORED)

    def on_close(self, handle: TransportHandle) -> None:
        if not self._is_current(handle, "close"):
            return
        self._handle = None
        if self._manual_teardown:
            return

        previous = self._attempt
        self._attempt = previous + 1
        self._transition(ConnectionState.DISCONNECTED)
        delay_ms = self._backoff.schedule(previous, self._connect)
        logger.info("Connection lost. Reconnecting in %.0fms (attempt %d)", delay_ms, self._attempt)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        if self._manual_teardown:
            return
        try:
            handle = self._transport.connect(self.url, self)
        except Exception as e:
            # Construction failure: fixed fallback delay, attempt count untouched
            self._handle = None
            logger.warning(
                "Could not create connection to %s: %s: %s", self.url, type(e).__name__, e
            )
            self._transition(ConnectionState.ERRORED)
            self._backoff.schedule_fixed(self._backoff_config.fallback_delay_ms, self._connect)
            return
        self._handle = handle

    def _release_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None and not handle.is_closed:
            try:
                handle.close()
            except Exception as e:
                logger.warning("Error while closing connection: %s: %s", type(e).__name__, e)

    def _is_current(self, handle: TransportHandle, event: str) -> bool:
        if handle is self._handle and handle is not None:
            return True
        logger.debug("Ignoring %s event from a superseded connection", event)
        return False

    def _transition(self, state: ConnectionState) -> None:
        if self._manual_teardown:
            return
        self._state = state
        logger.debug("Connection state -> %s (attempt %d)", state.value, self._attempt)
        for callback in list(self._status_listeners):
            try:
                callback(state, self._attempt)
            except Exception as e:
                logger.exception(f"Status listener failed: {type(e).__name__}")
