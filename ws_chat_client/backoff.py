"""
Reconnect backoff for the chat connection.

This module provides BackoffPolicy, which computes retry delays (exponential
growth, capped, with random jitter), and BackoffScheduler, which owns the
single pending reconnect timer.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Any, Callable

from tenacity.wait import wait_base

from .config import BackoffConfig
from .logger import get_logger

if TYPE_CHECKING:
    import tenacity

    from ._internal.protocols import Scheduler, TimerHandle

logger = get_logger(__name__)

# 2**MAX_EXPONENT * base is far beyond any sane cap; keeps arithmetic small
# for very long outages where the attempt count keeps growing.
MAX_EXPONENT = 64


class BackoffPolicy(wait_base):
    """
    Computes the delay before a reconnect attempt.

    For an attempt count ``n`` (the number of consecutive failures *before*
    this retry), the delay in milliseconds is::

        max(min_delay, min(base * 2**n, max_delay) + uniform(0, max_jitter))

    With the defaults this yields 500, 1000, 2000, 4000, 8000, 10000, ...
    before jitter, and every delay falls in [300, 10300] ms.

    The policy is also a tenacity wait strategy, so it can be reused directly
    for one-shot retry loops::

        @tenacity.retry(wait=BackoffPolicy(), stop=tenacity.stop_after_attempt(5))
        async def fetch(): ...

    Parameters
    ----------
    config : BackoffConfig | None, optional
        Delay parameters. Defaults to BackoffConfig().
    rng : random.Random | None, optional
        Jitter source. Pass a seeded ``random.Random`` for reproducible
        delays. Defaults to a fresh, unseeded ``random.Random``.
    """

    def __init__(
        self, config: BackoffConfig | None = None, rng: random.Random | None = None
    ) -> None:
        self.config = config or BackoffConfig()
        self._rng = rng or random.Random()

    def base_delay_ms(self, attempt: int) -> float:
        """Exponential part of the delay, capped at max_delay_ms (no jitter)."""
        if attempt < 0:
            raise ValueError(f"attempt must be non-negative, got {attempt}")
        exponent = min(attempt, MAX_EXPONENT)
        return min(self.config.max_delay_ms, self.config.base_delay_ms * (2**exponent))

    def jitter_ms(self) -> float:
        return self._rng.uniform(0, self.config.max_jitter_ms)

    def delay_ms(self, attempt: int) -> float:
        """Full delay in milliseconds for the given attempt count."""
        return max(self.config.min_delay_ms, self.base_delay_ms(attempt) + self.jitter_ms())

    def __call__(self, retry_state: tenacity.RetryCallState) -> float:
        # tenacity counts attempts from 1 and expects seconds
        return self.delay_ms(max(retry_state.attempt_number - 1, 0)) / 1000.0


class BackoffScheduler:
    """
    Owns the single pending reconnect timer.

    At most one timer is outstanding at any instant: every ``schedule*``
    call cancels the previous timer first. Cancelling is idempotent - it is a
    no-op when no timer is pending or when the timer already fired.

    Parameters
    ----------
    policy : BackoffPolicy
        Delay computation.
    scheduler : Scheduler
        Timer source (``call_later(seconds, callback)``).
    """

    def __init__(self, policy: BackoffPolicy, scheduler: Scheduler) -> None:
        self.policy = policy
        self._scheduler = scheduler
        self._timer: TimerHandle | None = None

    @property
    def pending(self) -> bool:
        """True if a reconnect timer is outstanding."""
        return self._timer is not None

    def schedule(self, attempt: int, callback: Callable[[], Any]) -> float:
        """
        Schedule ``callback`` after the backoff delay for ``attempt``.

        Returns
        -------
        float
            The chosen delay in milliseconds.
        """
        delay_ms = self.policy.delay_ms(attempt)
        self._arm(delay_ms, callback)
        return delay_ms

    def schedule_fixed(self, delay_ms: float, callback: Callable[[], Any]) -> float:
        """Schedule ``callback`` after a fixed delay, bypassing the policy."""
        self._arm(delay_ms, callback)
        return delay_ms

    def cancel(self) -> None:
        if self._timer is not None:
            logger.debug("Cancelling pending reconnect timer")
            self._timer.cancel()
            self._timer = None

    def _arm(self, delay_ms: float, callback: Callable[[], Any]) -> None:
        self.cancel()
        timer: TimerHandle | None = None

        def fire() -> None:
            # Ignore fires of a timer that was cancelled or replaced
            if self._timer is not timer:
                return
            # Clear before invoking: the callback may arm a new timer
            self._timer = None
            callback()

        timer = self._scheduler.call_later(delay_ms / 1000.0, fire)
        self._timer = timer
