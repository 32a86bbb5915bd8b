"""Foreground execution host — keeps the timer alive and renders its status."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable

from pomohost.core.errors import HostStoppedError
from pomohost.core.snapshot import COMMAND_TYPES, Command, TimerSnapshot, parse_command
from pomohost.core.stream import Observer, StateStream, Subscription
from pomohost.core.surface import FinishedNotice, StatusSurface, render_progress
from pomohost.core.ticker import Ticker, monotonic_ms
from pomohost.core.timer import TimerMachine, TimerState
from pomohost.core.wakelock import WakeGuard

logger = logging.getLogger(__name__)

_COMMAND = "command"
_TICK = "tick"
_STOP = "stop"


class TimerHost:
    """Owns a :class:`TimerMachine` and drives it from a single worker thread.

    Commands from any thread are queued with :meth:`send`; the ticker's
    callbacks go through the same queue, so commands and ticks are applied
    strictly in arrival order.  The host keeps running with no observers
    attached and stops on its own once a countdown finishes.  Call
    :meth:`shutdown` for a forced stop; it runs the same cleanup.
    """

    def __init__(
        self,
        surface: StatusSurface | None = None,
        guard: WakeGuard | None = None,
        clock: Callable[[], int] = monotonic_ms,
        ticker: Ticker | None = None,
        initial: TimerSnapshot | None = None,
    ) -> None:
        self._queue: queue.Queue[tuple[str, object]] = queue.Queue()
        self._stream = StateStream(initial)
        self._guard = guard if guard is not None else WakeGuard()
        self._machine = TimerMachine(
            ticker=ticker if ticker is not None else Ticker(clock),
            guard=self._guard,
            stream=self._stream,
            clock=clock,
            on_finished=self._handle_finished,
            tick_sink=self._post_tick,
        )
        self._surface = surface
        self._progress_shown = False
        self._lock = threading.Lock()
        self._closed = False
        self._stop_requested = False
        self._cleaned_up = False
        self._finished = threading.Event()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None
        self._surface_subscription: Subscription = self._stream.attach(self._render)

    # -- public API ----------------------------------------------------------

    @property
    def machine(self) -> TimerMachine:
        return self._machine

    @property
    def stream(self) -> StateStream:
        return self._stream

    @property
    def snapshot(self) -> TimerSnapshot:
        return self._stream.value

    @property
    def state(self) -> TimerState:
        return self._machine.get_state()

    @property
    def finished(self) -> threading.Event:
        """Set once a countdown has run to zero."""
        return self._finished

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Run the worker loop on a background thread."""
        with self._lock:
            if self._closed:
                raise HostStoppedError("host has already stopped")
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self.run, name="timer-host", daemon=True)
            self._thread.start()

    def run(self) -> None:
        """Process queued commands and ticks until the host stops."""
        logger.debug("Timer host started")
        try:
            while not self._stop_requested:
                kind, payload = self._queue.get()
                if kind == _STOP:
                    break
                if kind == _COMMAND:
                    logger.debug("Applying %r", payload)
                    self._machine.apply(payload)  # type: ignore[arg-type]
                elif kind == _TICK:
                    self._machine.on_tick(payload)  # type: ignore[arg-type]
        finally:
            with self._lock:
                self._closed = True
            self._cleanup()
            self._stopped.set()
            logger.debug("Timer host stopped")

    def send(self, command: Command) -> None:
        """Queue *command*; returns immediately."""
        if not isinstance(command, COMMAND_TYPES):
            raise TypeError(f"not a timer command: {command!r}")
        with self._lock:
            if self._closed:
                raise HostStoppedError("host has stopped; start a new one")
            self._queue.put((_COMMAND, command))

    def dispatch(self, action: str, duration_ms: int = 0) -> None:
        """Queue the command named by *action* (``start``, ``pause``, ``reset``, ``toggle``)."""
        self.send(parse_command(action, duration_ms))

    def attach(self, observer: Observer) -> Subscription:
        return self._stream.attach(observer)

    def detach(self, subscription: Subscription) -> None:
        self._stream.detach(subscription)

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the worker to stop.  Returns ``True`` if it has."""
        return self._stopped.wait(timeout)

    def shutdown(self, timeout: float | None = 5.0) -> None:
        """Stop the host now: halt ticking, release the wake lock, remove the surface."""
        with self._lock:
            already_closed = self._closed
            self._closed = True
            thread = self._thread
        if thread is None or not thread.is_alive():
            self._cleanup()
            self._stopped.set()
            return
        if not already_closed:
            self._queue.put((_STOP, None))
        if threading.current_thread() is not thread:
            thread.join(timeout)

    # -- private helpers -----------------------------------------------------

    def _post_tick(self, token: int) -> None:
        self._queue.put((_TICK, token))

    def _render(self, snapshot: TimerSnapshot) -> None:
        if self._surface is None:
            return
        if self._machine.get_state() == TimerState.IDLE:
            self._remove_progress()
            return
        alert = not self._progress_shown
        self._progress_shown = True
        self._surface.show_progress(render_progress(snapshot, alert=alert))

    def _remove_progress(self) -> None:
        if self._progress_shown and self._surface is not None:
            self._surface.remove_progress()
        self._progress_shown = False

    def _handle_finished(self, snapshot: TimerSnapshot) -> None:
        self._remove_progress()
        if self._surface is not None:
            self._surface.show_finished(FinishedNotice())
        self._finished.set()
        self._stop_requested = True
        with self._lock:
            self._closed = True

    def _cleanup(self) -> None:
        if self._cleaned_up:
            return
        self._cleaned_up = True
        self._stream.detach(self._surface_subscription)
        self._machine.shutdown()
        self._remove_progress()
