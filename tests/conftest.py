"""
Pytest configuration and shared fixtures for ws_chat_client tests.

This module provides:
- Custom pytest markers for test categorization
- A fake clock scheduler and a fake transport to drive the lifecycle
  manager deterministically
- Shared fixtures built on those fakes
"""

from __future__ import annotations

import random
from typing import Any, Callable

import pytest

from ws_chat_client.config import BackoffConfig
from ws_chat_client.lifecycle import ConnectionLifecycleManager
from ws_chat_client.schemas import ConnectionState

TEST_URL = "ws://chat.test/ws"


def pytest_configure(config: pytest.Config) -> None:
    """
    Register custom pytest markers.

    This function is called during pytest initialization to register
    custom markers that can be used to categorize and filter tests.
    """
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (real timers, reconnect delays)",
    )
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (real local WebSocket server)",
    )


# ============================================================================
# Fake clock
# ============================================================================


class FakeTimer:
    def __init__(self, when: float, callback: Callable[[], Any]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler on a manually advanced clock (seconds)."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], Any]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    @property
    def last_delay(self) -> float:
        """Delay of the most recently scheduled timer, in seconds."""
        return self.timers[-1].when - self.now

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.now + seconds
        while True:
            due = sorted(
                (t for t in self.pending if t.when <= target), key=lambda t: t.when
            )
            if not due:
                break
            timer = due[0]
            self.now = timer.when
            timer.fired = True
            timer.callback()
        self.now = target

    def run_next(self) -> None:
        """Jump to and fire the next pending timer."""
        pending = sorted(self.pending, key=lambda t: t.when)
        assert pending, "no pending timer"
        self.advance(pending[0].when - self.now)


# ============================================================================
# Fake transport
# ============================================================================


class FakeHandle:
    """Transport handle whose events are fired by the test."""

    def __init__(self, url: str, listener: Any) -> None:
        self.url = url
        self.listener = listener
        self.sent: list[str] = []
        self.close_calls = 0
        self.opened = False
        self.close_delivered = False
        self.fail_send = False

    @property
    def is_open(self) -> bool:
        return self.opened and not self.is_closed

    @property
    def is_closed(self) -> bool:
        return self.close_calls > 0 or self.close_delivered

    @property
    def is_live(self) -> bool:
        return not self.is_closed

    def send(self, text: str) -> None:
        if self.fail_send:
            raise ConnectionError("socket write failed")
        self.sent.append(text)

    def close(self) -> None:
        self.close_calls += 1

    # --- event drivers -------------------------------------------------

    def fire_open(self) -> None:
        self.opened = True
        self.listener.on_open(self)

    def fire_message(self, raw: str | bytes) -> None:
        self.listener.on_message(self, raw)

    def fire_error(self, exc: BaseException | None = None) -> None:
        self.listener.on_error(self, exc or ConnectionError("connection reset"))

    def fire_close(self) -> None:
        self.close_delivered = True
        self.listener.on_close(self)


class FakeTransport:
    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []
        self.connect_calls = 0
        self.fail_next = 0

    def connect(self, url: str, listener: Any) -> FakeHandle:
        self.connect_calls += 1
        if self.fail_next:
            self.fail_next -= 1
            raise OSError("cannot construct transport")
        handle = FakeHandle(url, listener)
        self.handles.append(handle)
        return handle

    @property
    def latest(self) -> FakeHandle:
        return self.handles[-1]

    @property
    def live_handles(self) -> list[FakeHandle]:
        return [h for h in self.handles if h.is_live]


class StatusRecorder:
    def __init__(self) -> None:
        self.events: list[tuple[ConnectionState, int]] = []

    def __call__(self, state: ConnectionState, attempt: int) -> None:
        self.events.append((state, attempt))

    @property
    def states(self) -> list[ConnectionState]:
        return [state for state, _ in self.events]


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def status() -> StatusRecorder:
    return StatusRecorder()


@pytest.fixture
def manager(
    transport: FakeTransport,
    scheduler: FakeScheduler,
    rng: random.Random,
    status: StatusRecorder,
) -> ConnectionLifecycleManager:
    return ConnectionLifecycleManager(
        TEST_URL,
        transport,
        scheduler,
        backoff_config=BackoffConfig(),
        rng=rng,
        on_status=[status],
    )
