from __future__ import annotations

import asyncio
from typing import Any, Callable

from .protocols import TimerHandle


class AsyncioScheduler:
    """
    Scheduler backed by the asyncio event loop.

    Parameters
    ----------
    loop : asyncio.AbstractEventLoop | None, optional
        Loop to schedule on. If None, the loop running at scheduling time is
        used, so the scheduler can be created before the loop starts.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[..., Any]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)
