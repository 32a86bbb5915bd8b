"""CLI entry point for pomohost.

Uses Click to expose the ``pomohost`` command group: ``run`` hosts a
countdown in the foreground, ``config`` edits the per-mode durations and
``reminders`` shows or runs the daily reminders.
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from pathlib import Path
from typing import Callable, TypeVar

import click

import pomohost
from pomohost.core.errors import HostStoppedError, PomohostError
from pomohost.core.host import TimerHost
from pomohost.core.preferences import (
    ONE_MINUTE_MS,
    DurationPreferences,
    TimerMode,
    adjust_duration,
)
from pomohost.core.reminders import DailyReminder, ReminderScheduler
from pomohost.core.snapshot import Pause, Reset, Start, TimerSnapshot, TogglePausePlay
from pomohost.core.surface import ConsoleSurface
from pomohost.core.timer import TimerState
from pomohost.core.wakelock import WakeGuard, default_backend

T = TypeVar("T")

_MODE_CHOICE = click.Choice([mode.value for mode in TimerMode])


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting ``PomohostError`` to a CLI error.

    On ``PomohostError`` the message is printed to stderr and the process
    exits with code 1.
    """
    try:
        return action()
    except PomohostError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


class KeySession:
    """Interactive state of ``pomohost run``: the selected mode and its keys.

    :meth:`show` is attached to the host as an observer and prints the
    preset whenever the timer sits idle; running and paused countdowns are
    drawn by the host's status surface.
    """

    MODE_KEYS = {"f": TimerMode.FOCUS, "b": TimerMode.SHORT_BREAK, "l": TimerMode.LONG_BREAK}

    def __init__(
        self,
        host: TimerHost,
        preferences: DurationPreferences,
        mode: TimerMode,
        override_ms: int | None = None,
    ) -> None:
        self.host = host
        self.preferences = preferences
        self.mode = mode
        self._override_ms = override_ms

    @property
    def duration_ms(self) -> int:
        """Duration of the selected mode (``--minutes`` wins for the launch mode)."""
        if self._override_ms:
            return self._override_ms
        return self.preferences.duration_ms(self.mode)

    def select_mode(self, mode: TimerMode, force: bool = False) -> None:
        """Switch to *mode* and preset its duration.  Re-selecting needs *force*."""
        if mode == self.mode and not force:
            return
        if mode != self.mode:
            self._override_ms = None
            self.mode = mode
        self.host.send(Reset(self.duration_ms))

    def handle_key(self, key: str) -> bool:
        """Translate one key press into a command.  Returns ``False`` to quit."""
        if key in ("q", "Q", "\x03"):
            return False
        if key in ("t", " "):
            self.host.send(TogglePausePlay())
        elif key == "p":
            self.host.send(Pause())
        elif key == "s":
            self.host.send(Start(self.duration_ms))
        elif key == "r":
            self.select_mode(self.mode, force=True)
        elif key in self.MODE_KEYS:
            self.select_mode(self.MODE_KEYS[key])
        elif key in ("+", "-"):
            snapshot = self.host.snapshot
            if snapshot.is_running:
                return True
            current = snapshot.duration_ms if snapshot.duration_ms > 0 else self.duration_ms
            delta = ONE_MINUTE_MS if key == "+" else -ONE_MINUTE_MS
            self.host.send(Reset(adjust_duration(current, delta)))
        return True

    def show(self, snapshot: TimerSnapshot) -> None:
        if snapshot.is_running or snapshot.time_left_ms <= 0:
            return
        if self.host.state != TimerState.IDLE:
            return
        click.echo(f"{self.mode.label} {snapshot.formatted} (s to start)")


def _read_keys(session: KeySession, quit_event: threading.Event) -> None:
    while session.host.is_alive:
        key = click.getchar()
        try:
            keep_going = session.handle_key(key)
        except HostStoppedError:
            return
        if not keep_going:
            quit_event.set()
            return


@click.group()
@click.version_option(version=pomohost.__version__, prog_name="pomohost")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="POMOHOST_CONFIG_DIR",
    default=None,
    help="Directory holding preferences.json.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_dir: Path | None) -> None:
    """pomohost: a Pomodoro countdown timer that keeps running in the foreground."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config_dir": config_dir}


@cli.command()
@click.option("--mode", type=_MODE_CHOICE, default=TimerMode.FOCUS.value, show_default=True)
@click.option("--minutes", type=click.IntRange(min=1), default=None, help="Override the mode's duration.")
@click.option("--no-input", is_flag=True, help="Do not read interactive keys.")
@click.pass_obj
def run(obj: dict, mode: str, minutes: int | None, no_input: bool) -> None:
    """Run a countdown in the foreground until it finishes.

    Keys: t/space toggle, p pause, s start, r reset, f/b/l focus, short
    or long break, +/- adjust, q quit.
    """
    timer_mode = TimerMode(mode)
    preferences = DurationPreferences(obj["config_dir"])
    host = TimerHost(surface=ConsoleSurface(), guard=WakeGuard(default_backend()))
    session = KeySession(host, preferences, timer_mode, minutes * ONE_MINUTE_MS if minutes else None)
    duration_ms = session.duration_ms

    host.attach(session.show)
    host.start()
    click.echo(f"{timer_mode.label}: {duration_ms // ONE_MINUTE_MS} minutes")
    host.send(Start(duration_ms))

    quit_event = threading.Event()
    if not no_input:
        threading.Thread(
            target=_read_keys,
            args=(session, quit_event),
            name="key-reader",
            daemon=True,
        ).start()

    try:
        while not host.join(0.2):
            if quit_event.is_set():
                host.shutdown()
                click.echo("Timer stopped.")
                return
    except KeyboardInterrupt:
        host.shutdown()
        click.echo("Timer stopped.", err=True)
        sys.exit(130)


@cli.group()
def config() -> None:
    """Show or change the per-mode durations."""


@config.command("show")
@click.pass_obj
def config_show(obj: dict) -> None:
    """Print the configured minutes for every mode."""
    preferences = DurationPreferences(obj["config_dir"])
    for timer_mode in TimerMode:
        click.echo(f"{timer_mode.label}: {preferences.minutes(timer_mode)} minutes")


@config.command("set")
@click.argument("mode", type=_MODE_CHOICE)
@click.argument("minutes", type=int)
@click.pass_obj
def config_set(obj: dict, mode: str, minutes: int) -> None:
    """Set MODE's duration to MINUTES."""
    preferences = DurationPreferences(obj["config_dir"])
    timer_mode = TimerMode(mode)
    _run(lambda: preferences.set_minutes(timer_mode, minutes))
    click.echo(f"{timer_mode.label} set to {minutes} minutes")


@cli.command()
@click.option("--watch", is_flag=True, help="Stay running and print reminders as they fire.")
def reminders(watch: bool) -> None:
    """Show when the daily reminders fire next."""
    scheduler = ReminderScheduler(notify=_echo_reminder)
    for reminder, fire_at in scheduler.schedule().items():
        click.echo(f"{reminder.time_label}  next {fire_at:%Y-%m-%d %H:%M}  {reminder.message}")
    if not watch:
        return

    scheduler.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        scheduler.stop()


def _echo_reminder(reminder: DailyReminder) -> None:
    click.echo("\a", nl=False)
    click.secho(f"Reminder {reminder.time_label}: ", fg="magenta", bold=True, nl=False)
    click.echo(reminder.message)
