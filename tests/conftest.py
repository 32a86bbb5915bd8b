"""Shared fakes for the timer tests."""

from __future__ import annotations

import time
from typing import Callable

import pytest

from pomohost.core.errors import WakeLockError
from pomohost.core.snapshot import TimerSnapshot
from pomohost.core.stream import StateStream
from pomohost.core.surface import FinishedNotice, ProgressNotice
from pomohost.core.timer import TimerMachine
from pomohost.core.wakelock import WakeGuard


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class FakeTicker:
    """Records start/cancel calls; ticks are fired by the test."""

    def __init__(self, interval_ms: int = 1000) -> None:
        self.interval_ms = interval_ms
        self.generation = 0
        self.starts: list[tuple[int, int]] = []
        self.cancels = 0
        self.callback: Callable[[int], None] | None = None
        self.token: int | None = None

    def start(self, origin_ms: int, deadline_ms: int, callback: Callable[[int], None]) -> int:
        self.generation += 1
        self.starts.append((origin_ms, deadline_ms))
        self.callback = callback
        self.token = self.generation
        return self.generation

    def cancel(self) -> None:
        self.cancels += 1
        self.generation += 1

    def fire(self, token: int | None = None) -> None:
        assert self.callback is not None
        self.callback(self.token if token is None else token)


class RecordingBackend:
    """Wake-lock backend counting acquisitions and releases."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.acquired: list[int] = []
        self.releases = 0

    def acquire(self, timeout_ms: int) -> None:
        if self.fail:
            raise WakeLockError("no wake lock for you")
        self.acquired.append(timeout_ms)

    def release(self) -> None:
        self.releases += 1


class RecordingSurface:
    """Status surface that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def show_progress(self, notice: ProgressNotice) -> None:
        self.calls.append(("progress", notice))

    def show_finished(self, notice: FinishedNotice) -> None:
        self.calls.append(("finished", notice))

    def remove_progress(self) -> None:
        self.calls.append(("remove", None))

    def progress(self) -> list[ProgressNotice]:
        return [notice for kind, notice in self.calls if kind == "progress"]  # type: ignore[misc]

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.calls]


class MachineRig:
    """A TimerMachine wired to fakes, with every published snapshot recorded."""

    def __init__(self, fail_wake_lock: bool = False) -> None:
        self.clock = FakeClock()
        self.ticker = FakeTicker()
        self.backend = RecordingBackend(fail=fail_wake_lock)
        self.guard = WakeGuard(self.backend)
        self.stream = StateStream()
        self.finished: list[TimerSnapshot] = []
        self.machine = TimerMachine(
            ticker=self.ticker,  # type: ignore[arg-type]
            guard=self.guard,
            stream=self.stream,
            clock=self.clock,
            on_finished=self.finished.append,
        )
        self.published: list[TimerSnapshot] = []
        self.stream.attach(self.published.append)
        self.published.clear()

    def advance_to(self, now: int) -> None:
        """Move the clock to *now* and deliver the current run's tick."""
        self.clock.now = now
        self.ticker.fire()


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll *predicate* until it holds or *timeout* seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture()
def rig() -> MachineRig:
    return MachineRig()
