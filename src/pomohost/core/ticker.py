"""Deadline-driven ticker that fires once per second on a background thread."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

TICK_INTERVAL_MS = 1000


def _elapsed_seconds() -> float:
    boottime = getattr(time, "CLOCK_BOOTTIME", None)
    if boottime is not None:
        return time.clock_gettime(boottime)
    return time.monotonic()


def monotonic_ms() -> int:
    """Return a monotonic clock in integer milliseconds.

    Uses ``CLOCK_BOOTTIME`` where the platform has it, so time spent in
    system suspend still counts; otherwise ``time.monotonic``.
    """
    return int(_elapsed_seconds() * 1000)


class Ticker:
    """Calls ``callback(token)`` at absolute tick boundaries until cancelled.

    Boundaries are ``origin_ms + k * interval`` for ``k = 1, 2, ...``; the last
    one is capped at ``deadline_ms``.  Each boundary is computed from the
    origin, not from the previous wake-up, so a late wake-up never shifts the
    following ones.  A wake-up that is late by several intervals fires once
    and moves on to the next boundary still in the future.

    Every :meth:`start` and :meth:`cancel` bumps the generation.  The token
    handed to the callback is the generation the run was started with, so a
    consumer can drop ticks that were already queued when the run was
    cancelled.
    """

    def __init__(
        self,
        clock: Callable[[], int] = monotonic_ms,
        interval_ms: int = TICK_INTERVAL_MS,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._clock = clock
        self._interval_ms = interval_ms
        self._lock = threading.Lock()
        self._generation = 0
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def active(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def start(self, origin_ms: int, deadline_ms: int, callback: Callable[[int], None]) -> int:
        """Begin ticking; cancels any run in progress.  Returns the run's token."""
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            token = self._generation
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(token, origin_ms, deadline_ms, callback, stop_event),
                daemon=True,
                name=f"ticker-{token}",
            )
            self._stop_event = stop_event
            self._thread = thread
            thread.start()
        logger.debug("Ticker %d started (deadline in %d ms)", token, deadline_ms - origin_ms)
        return token

    def cancel(self) -> None:
        """Stop the current run.  Safe to call when nothing is running."""
        with self._lock:
            if self._cancel_locked():
                logger.debug("Ticker %d cancelled", self._generation)
            self._generation += 1

    # -- private helpers -----------------------------------------------------

    def _cancel_locked(self) -> bool:
        if self._stop_event is None:
            return False
        self._stop_event.set()
        self._stop_event = None
        self._thread = None
        return True

    def _next_boundary(self, origin_ms: int, deadline_ms: int, now_ms: int) -> int:
        elapsed = max(now_ms - origin_ms, 0)
        k = elapsed // self._interval_ms + 1
        return min(origin_ms + k * self._interval_ms, deadline_ms)

    def _run(
        self,
        token: int,
        origin_ms: int,
        deadline_ms: int,
        callback: Callable[[int], None],
        stop_event: threading.Event,
    ) -> None:
        boundary = self._next_boundary(origin_ms, deadline_ms, self._clock())
        while not stop_event.is_set():
            wait_ms = boundary - self._clock()
            if wait_ms > 0 and stop_event.wait(wait_ms / 1000):
                break
            if stop_event.is_set():
                break
            callback(token)
            if boundary >= deadline_ms:
                self._finish_run(stop_event)
                break
            boundary = self._next_boundary(origin_ms, deadline_ms, self._clock())

    def _finish_run(self, stop_event: threading.Event) -> None:
        with self._lock:
            if self._stop_event is stop_event:
                stop_event.set()
                self._stop_event = None
                self._thread = None
