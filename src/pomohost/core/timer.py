"""Timer core — the countdown state machine."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from pomohost.core.snapshot import (
    Command,
    Pause,
    Reset,
    Start,
    TimerSnapshot,
    TogglePausePlay,
)
from pomohost.core.stream import StateStream
from pomohost.core.ticker import Ticker, monotonic_ms
from pomohost.core.wakelock import WakeGuard

logger = logging.getLogger(__name__)


class TimerState(Enum):
    """Possible states of the timer."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class TimerMachine:
    """Authoritative countdown state.

    Every change is published as a new :class:`TimerSnapshot` on *stream*.
    Remaining time is derived from an absolute deadline on each tick, so a
    late tick lands on the right value instead of drifting.  Invalid or
    redundant commands (a non-positive start, a pause while not running)
    are silent no-ops.

    The machine is not thread-safe: commands and ticks must arrive on one
    thread.  :class:`~pomohost.core.host.TimerHost` routes both through its
    worker.  *tick_sink* receives the ticker's callbacks; by default they are
    applied directly with :meth:`on_tick`.
    """

    def __init__(
        self,
        ticker: Ticker | None = None,
        guard: WakeGuard | None = None,
        stream: StateStream | None = None,
        clock: Callable[[], int] = monotonic_ms,
        on_finished: Callable[[TimerSnapshot], None] | None = None,
        tick_sink: Callable[[int], None] | None = None,
    ) -> None:
        self._ticker = ticker if ticker is not None else Ticker(clock)
        self._guard = guard if guard is not None else WakeGuard()
        self._stream = stream if stream is not None else StateStream()
        self._clock = clock
        self._on_finished = on_finished
        self._tick_sink = tick_sink if tick_sink is not None else self.on_tick
        self._state = TimerState.IDLE
        self._token: int | None = None
        self._origin_ms = 0
        self._deadline_ms = 0
        self._run_start_left_ms = 0

    # -- public interface ----------------------------------------------------

    @property
    def stream(self) -> StateStream:
        return self._stream

    def get_state(self) -> TimerState:
        """Return the current timer state."""
        return self._state

    def get_snapshot(self) -> TimerSnapshot:
        """Return the last published snapshot."""
        return self._stream.value

    def apply(self, command: Command) -> None:
        """Apply one :data:`~pomohost.core.snapshot.Command`."""
        if isinstance(command, Start):
            self.start(command.duration_ms)
        elif isinstance(command, Pause):
            self.pause()
        elif isinstance(command, Reset):
            self.reset(command.duration_ms)
        elif isinstance(command, TogglePausePlay):
            self.toggle()
        else:
            raise TypeError(f"not a timer command: {command!r}")

    def start(self, duration_ms: int) -> None:
        """Start a fresh countdown of *duration_ms*, or resume a paused one.

        Ignored while running or when *duration_ms* is not positive.  A
        resume keeps the duration the run was started with.
        """
        if self._state == TimerState.RUNNING:
            logger.debug("start(%d) ignored: already running", duration_ms)
            return
        if duration_ms <= 0:
            logger.debug("start(%d) ignored: non-positive duration", duration_ms)
            return

        current = self._stream.value
        time_left = current.time_left_ms if current.time_left_ms > 0 else duration_ms
        if self._state == TimerState.PAUSED:
            duration = max(current.duration_ms, time_left)
        else:
            duration = max(duration_ms, time_left)
        self._begin_running(time_left, duration)

    def pause(self) -> None:
        """Freeze the countdown at the last whole tick before now.  Only valid while running.

        Seconds whose tick has not been handled yet still count.
        """
        if self._state != TimerState.RUNNING:
            logger.debug("pause() ignored from %s state", self._state.value)
            return
        now = self._clock()
        if now >= self._deadline_ms:
            # The deadline passed before its tick was handled.
            self._finish()
            return

        self._stop_running()
        self._state = TimerState.PAUSED
        paused = TimerSnapshot(self._time_left_at(now), self._stream.value.duration_ms, False)
        self._stream.publish(paused)
        logger.info("Timer paused at %s", paused.formatted)

    def reset(self, duration_ms: int) -> None:
        """Stop any countdown and preset *duration_ms* (0 clears the timer)."""
        duration = max(duration_ms, 0)
        self._stop_running()
        self._state = TimerState.IDLE
        self._stream.publish(TimerSnapshot(duration, duration, False))
        logger.info("Timer reset to %d ms", duration)

    def toggle(self) -> None:
        """Pause when running, otherwise resume with whatever time remains."""
        if self._state == TimerState.RUNNING:
            self.pause()
        else:
            self.start(self._stream.value.time_left_ms)

    def on_tick(self, token: int) -> None:
        """Advance the countdown for a tick issued under *token*.

        Ticks from a cancelled run, or arriving while not running, are
        dropped.
        """
        if self._state != TimerState.RUNNING or token != self._token:
            logger.debug("Dropped stale tick %d (current %s)", token, self._token)
            return

        now = self._clock()
        if now >= self._deadline_ms:
            self._finish()
            return

        time_left = self._time_left_at(now)
        current = self._stream.value
        if time_left == current.time_left_ms:
            return
        if time_left == 0:
            self._finish()
            return
        self._stream.publish(TimerSnapshot(time_left, current.duration_ms, True))

    def shutdown(self) -> None:
        """Stop ticking and release the wake lock.

        A running countdown is left paused at its current remaining time;
        otherwise nothing is published.
        """
        if self._state != TimerState.RUNNING:
            self._stop_running()
            return
        left = self._time_left_at(self._clock())
        self._stop_running()
        self._state = TimerState.PAUSED if left > 0 else TimerState.IDLE
        self._stream.publish(TimerSnapshot(left, self._stream.value.duration_ms, False))
        logger.info("Timer stopped by shutdown with %d ms left", left)

    # -- private helpers -----------------------------------------------------

    def _time_left_at(self, now: int) -> int:
        """Remaining time after the whole intervals elapsed since the run began."""
        interval = self._ticker.interval_ms
        elapsed_ticks = max(now - self._origin_ms, 0) // interval
        return max(self._run_start_left_ms - elapsed_ticks * interval, 0)

    def _begin_running(self, time_left_ms: int, duration_ms: int) -> None:
        """Acquire the wake lock, arm the ticker and enter the RUNNING state."""
        self._guard.acquire(time_left_ms)
        self._origin_ms = self._clock()
        self._deadline_ms = self._origin_ms + time_left_ms
        self._run_start_left_ms = time_left_ms
        self._state = TimerState.RUNNING
        self._token = self._ticker.start(self._origin_ms, self._deadline_ms, self._tick_sink)
        self._stream.publish(TimerSnapshot(time_left_ms, duration_ms, True))
        logger.info("Timer running: %d ms left of %d ms", time_left_ms, duration_ms)

    def _stop_running(self) -> None:
        if self._token is not None:
            self._ticker.cancel()
            self._token = None
        self._guard.release()

    def _finish(self) -> None:
        self._stop_running()
        self._state = TimerState.IDLE
        final = TimerSnapshot(0, self._stream.value.duration_ms, False)
        self._stream.publish(final)
        logger.info("Timer finished after %d ms", final.duration_ms)
        if self._on_finished is not None:
            self._on_finished(final)
