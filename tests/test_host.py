"""Tests for the TimerHost execution host."""

from __future__ import annotations

import pytest
from conftest import FakeClock, FakeTicker, RecordingBackend, RecordingSurface, wait_until

from pomohost.core.errors import HostStoppedError, UnknownCommandError
from pomohost.core.host import TimerHost
from pomohost.core.snapshot import Pause, Reset, Start, TimerSnapshot, TogglePausePlay
from pomohost.core.ticker import Ticker
from pomohost.core.timer import TimerState
from pomohost.core.wakelock import WakeGuard


class HostRig:
    def __init__(self) -> None:
        self.clock = FakeClock()
        self.ticker = FakeTicker()
        self.backend = RecordingBackend()
        self.surface = RecordingSurface()
        self.host = TimerHost(
            surface=self.surface,
            guard=WakeGuard(self.backend),
            clock=self.clock,
            ticker=self.ticker,  # type: ignore[arg-type]
        )
        self.seen: list[TimerSnapshot] = []
        self.subscription = self.host.attach(self.seen.append)

    def send_and_wait(self, command: object, expected: TimerSnapshot) -> None:
        self.host.send(command)  # type: ignore[arg-type]
        assert wait_until(lambda: bool(self.seen) and self.seen[-1] == expected)

    def tick_and_wait(self, now: int, expected: TimerSnapshot) -> None:
        self.clock.now = now
        self.ticker.fire()
        assert wait_until(lambda: bool(self.seen) and self.seen[-1] == expected)


@pytest.fixture()
def host_rig():
    rig = HostRig()
    rig.host.start()
    yield rig
    rig.host.shutdown()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestHostCommands:
    """Commands from any caller reach the machine in order."""

    def test_runs_without_observers(self, host_rig: HostRig) -> None:
        host_rig.subscription.close()
        host_rig.host.send(Start(3000))
        assert wait_until(lambda: host_rig.host.snapshot == TimerSnapshot(3000, 3000, True))
        assert host_rig.host.is_alive

    def test_commands_apply_in_order(self, host_rig: HostRig) -> None:
        for command in (Start(3000), Pause(), TogglePausePlay(), Reset(5000)):
            host_rig.host.send(command)
        assert wait_until(lambda: host_rig.seen[-1] == TimerSnapshot(5000, 5000, False))
        assert [s.is_running for s in host_rig.seen[1:]] == [True, False, True, False]

    def test_dispatch_parses_action_names(self, host_rig: HostRig) -> None:
        host_rig.host.dispatch("start", 4000)
        assert wait_until(lambda: host_rig.host.snapshot == TimerSnapshot(4000, 4000, True))
        host_rig.host.dispatch("toggle")
        assert wait_until(lambda: not host_rig.host.snapshot.is_running)

    def test_dispatch_rejects_unknown_action(self, host_rig: HostRig) -> None:
        with pytest.raises(UnknownCommandError):
            host_rig.host.dispatch("snooze")

    def test_send_rejects_non_commands_without_stopping(self, host_rig: HostRig) -> None:
        with pytest.raises(TypeError):
            host_rig.host.send("start")  # type: ignore[arg-type]
        host_rig.send_and_wait(Start(3000), TimerSnapshot(3000, 3000, True))
        assert host_rig.host.is_alive

    def test_ticks_flow_to_observers(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(2000), TimerSnapshot(2000, 2000, True))
        host_rig.tick_and_wait(1000, TimerSnapshot(1000, 2000, True))
        assert host_rig.seen[-2:] == [
            TimerSnapshot(2000, 2000, True),
            TimerSnapshot(1000, 2000, True),
        ]

    def test_queued_tick_after_pause_is_dropped(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(3000), TimerSnapshot(3000, 3000, True))
        stale = host_rig.ticker.token
        host_rig.send_and_wait(Pause(), TimerSnapshot(3000, 3000, False))

        host_rig.clock.now = 1000
        host_rig.ticker.fire(stale)
        host_rig.send_and_wait(Reset(3000), TimerSnapshot(3000, 3000, False))
        assert TimerSnapshot(2000, 3000, True) not in host_rig.seen


# ---------------------------------------------------------------------------
# Status surface
# ---------------------------------------------------------------------------


class TestHostSurface:
    """The host renders every snapshot and alerts only once per session."""

    def test_first_render_alerts_then_silent(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(3000), TimerSnapshot(3000, 3000, True))
        host_rig.tick_and_wait(1000, TimerSnapshot(2000, 3000, True))
        host_rig.send_and_wait(Pause(), TimerSnapshot(2000, 3000, False))

        notices = host_rig.surface.progress()
        assert [n.alert for n in notices] == [True, False, False]
        assert [n.body for n in notices] == [
            "Time left: 00:03",
            "Time left: 00:02",
            "Time left: 00:02",
        ]

    def test_action_label_follows_running_state(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(3000), TimerSnapshot(3000, 3000, True))
        host_rig.send_and_wait(Pause(), TimerSnapshot(3000, 3000, False))
        labels = [n.action_label for n in host_rig.surface.progress()]
        assert labels == ["Pause", "Resume"]

    def test_reset_removes_surface_and_rearms_alert(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(3000), TimerSnapshot(3000, 3000, True))
        host_rig.send_and_wait(Reset(3000), TimerSnapshot(3000, 3000, False))
        host_rig.send_and_wait(Start(3000), TimerSnapshot(3000, 3000, True))

        assert host_rig.surface.kinds() == ["progress", "remove", "progress"]
        assert [n.alert for n in host_rig.surface.progress()] == [True, True]

    def test_idle_preset_shows_no_surface(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Reset(3000), TimerSnapshot(3000, 3000, False))
        assert host_rig.surface.calls == []


# ---------------------------------------------------------------------------
# Finishing
# ---------------------------------------------------------------------------


class TestHostFinish:
    """Reaching zero shows the finished notice once and stops the host."""

    def test_finish_replaces_progress_with_finished_notice(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(1000), TimerSnapshot(1000, 1000, True))
        host_rig.clock.now = 1000
        host_rig.ticker.fire()

        assert host_rig.host.join(2.0)
        assert host_rig.host.finished.is_set()
        assert host_rig.surface.kinds() == ["progress", "remove", "finished"]
        finished = host_rig.surface.calls[-1][1]
        assert finished.sound
        assert finished.vibration_pattern == (0, 500, 200, 500)

    def test_observers_see_final_snapshot(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(1000), TimerSnapshot(1000, 1000, True))
        host_rig.clock.now = 1000
        host_rig.ticker.fire()
        assert host_rig.host.join(2.0)
        assert host_rig.seen[-1] == TimerSnapshot(0, 1000, False)

    def test_send_after_finish_raises(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(1000), TimerSnapshot(1000, 1000, True))
        host_rig.clock.now = 1000
        host_rig.ticker.fire()
        assert host_rig.host.join(2.0)
        with pytest.raises(HostStoppedError):
            host_rig.host.send(Start(1000))

    def test_wake_lock_released_once(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(1000), TimerSnapshot(1000, 1000, True))
        host_rig.clock.now = 1000
        host_rig.ticker.fire()
        assert host_rig.host.join(2.0)
        assert host_rig.backend.acquired == [3000]
        assert host_rig.backend.releases == 1


# ---------------------------------------------------------------------------
# Forced shutdown
# ---------------------------------------------------------------------------


class TestHostShutdown:
    """shutdown() cleans up like a normal stop."""

    def test_shutdown_mid_run_cleans_up(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(3000), TimerSnapshot(3000, 3000, True))
        host_rig.host.shutdown()

        assert host_rig.host.join(2.0)
        assert not host_rig.host.is_alive
        assert host_rig.backend.releases == 1
        assert host_rig.ticker.cancels == 1
        assert host_rig.surface.kinds()[-1] == "remove"
        assert not host_rig.host.finished.is_set()

    def test_shutdown_is_idempotent(self, host_rig: HostRig) -> None:
        host_rig.host.shutdown()
        host_rig.host.shutdown()
        assert host_rig.host.join(2.0)

    def test_shutdown_before_start(self) -> None:
        rig = HostRig()
        rig.host.shutdown()
        assert rig.host.join(0)
        with pytest.raises(HostStoppedError):
            rig.host.start()

    def test_shutdown_leaves_paused_snapshot(self, host_rig: HostRig) -> None:
        host_rig.send_and_wait(Start(3000), TimerSnapshot(3000, 3000, True))
        host_rig.clock.now = 1500
        host_rig.host.shutdown()

        assert host_rig.host.join(2.0)
        assert host_rig.host.snapshot == TimerSnapshot(2000, 3000, False)
        assert host_rig.host.state == TimerState.PAUSED
        assert host_rig.seen[-1] == TimerSnapshot(2000, 3000, False)
        late: list[TimerSnapshot] = []
        host_rig.host.attach(late.append)
        assert late == [TimerSnapshot(2000, 3000, False)]


# ---------------------------------------------------------------------------
# Real ticker
# ---------------------------------------------------------------------------


class TestHostWithRealTicker:
    """Ticks from a real background ticker reach observers through the queue."""

    def test_countdown_runs_to_finish(self) -> None:
        surface = RecordingSurface()
        backend = RecordingBackend()
        host = TimerHost(surface=surface, guard=WakeGuard(backend), ticker=Ticker(interval_ms=20))
        seen: list[TimerSnapshot] = []
        host.attach(seen.append)
        host.start()
        try:
            host.send(Start(60))
            assert host.join(2.0)
        finally:
            host.shutdown()

        assert seen[1] == TimerSnapshot(60, 60, True)
        assert seen[-1] == TimerSnapshot(0, 60, False)
        left = [snapshot.time_left_ms for snapshot in seen[1:]]
        # a slow scheduler may merge boundaries, never repeat or reorder them
        assert left == sorted(set(left), reverse=True)
        assert all(value % 20 == 0 for value in left)
        assert surface.kinds()[-1] == "finished"
        assert host.finished.is_set()
        assert backend.releases == 1
