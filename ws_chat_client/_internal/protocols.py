"""
Protocol definitions for the collaborators of the lifecycle manager.

These protocols let the manager depend on abstractions instead of concrete
implementations: any transport or timer source with the right shape can be
injected, which is how the tests drive the state machine deterministically.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class TransportHandle(Protocol):
    """
    One live connection attempt, as returned by ``Transport.connect()``.

    A handle is never reused: every reconnect produces a fresh handle, and a
    closed handle stays closed.
    """

    @property
    def is_open(self) -> bool:
        """True between the open event and the close event."""
        ...

    @property
    def is_closed(self) -> bool:
        """True once the handle was closed, or a close was requested."""
        ...

    def send(self, text: str) -> None:
        """
        Send one text frame.

        Raises
        ------
        TransportError
            If the handle is not open.
        """
        ...

    def close(self) -> None:
        """
        Close the handle gracefully. Safe to call in any state and more than
        once. A close event will follow unless one was already delivered.
        """
        ...


class TransportListener(Protocol):
    """
    Receiver of transport events.

    Every callback is passed the handle that fired it, so a receiver can tell
    events of the current handle apart from late events of a superseded one.
    """

    def on_open(self, handle: TransportHandle) -> None: ...

    def on_message(self, handle: TransportHandle, raw: str | bytes) -> None: ...

    def on_error(self, handle: TransportHandle, exc: BaseException | None) -> None: ...

    def on_close(self, handle: TransportHandle) -> None: ...


@runtime_checkable
class Transport(Protocol):
    """
    Factory of transport handles.

    ``connect()`` may raise synchronously when a connection cannot even be
    constructed. It must never invoke listener callbacks before returning:
    events are delivered later, from the event loop.
    """

    def connect(self, url: str, listener: TransportListener) -> TransportHandle: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


@runtime_checkable
class Scheduler(Protocol):
    """
    Source of deferred callbacks. ``asyncio.AbstractEventLoop.call_later``
    has exactly this shape.
    """

    def call_later(self, delay: float, callback: Callable[..., Any]) -> TimerHandle: ...
