"""Status surface: the live progress notice and the one-shot finished alert."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import click

from pomohost.core.snapshot import TimerSnapshot

PROGRESS_TITLE = "Pomodoro timer"
FINISHED_TITLE = "Time's up!"
FINISHED_TEXT = "Good work! Time for a break."
FINISHED_VIBRATION = (0, 500, 200, 500)

ACTION_LABEL_PAUSE = "Pause"
ACTION_LABEL_RESUME = "Resume"


@dataclass(frozen=True)
class ProgressNotice:
    """One rendering of the ongoing-countdown status surface."""

    title: str
    body: str
    action_label: str
    progress_percent: int
    is_running: bool
    alert: bool = False


@dataclass(frozen=True)
class FinishedNotice:
    """Dismissible alert shown once when a countdown completes."""

    title: str = FINISHED_TITLE
    text: str = FINISHED_TEXT
    sound: bool = True
    vibration_pattern: tuple[int, ...] = FINISHED_VIBRATION


def render_progress(snapshot: TimerSnapshot, alert: bool = False) -> ProgressNotice:
    """Build the progress notice for *snapshot*."""
    return ProgressNotice(
        title=PROGRESS_TITLE,
        body=f"Time left: {snapshot.formatted}",
        action_label=ACTION_LABEL_PAUSE if snapshot.is_running else ACTION_LABEL_RESUME,
        progress_percent=snapshot.progress_percent,
        is_running=snapshot.is_running,
        alert=alert,
    )


class StatusSurface(Protocol):
    def show_progress(self, notice: ProgressNotice) -> None: ...

    def show_finished(self, notice: FinishedNotice) -> None: ...

    def remove_progress(self) -> None: ...


class ConsoleSurface:
    """Renders the status surface on a terminal line with :mod:`click`."""

    def __init__(self, bar_width: int = 20) -> None:
        self._bar_width = bar_width
        self._line_open = False

    def show_progress(self, notice: ProgressNotice) -> None:
        if notice.alert:
            click.echo("\a", nl=False)
        filled = round(self._bar_width * notice.progress_percent / 100)
        bar = "#" * filled + "-" * (self._bar_width - filled)
        colour = "green" if notice.is_running else "yellow"
        line = (
            f"\r{notice.title}  {click.style(notice.body, fg=colour, bold=True)}"
            f"  [{bar}] {notice.progress_percent:3d}%  ({notice.action_label.lower()}: t)"
        )
        click.echo(line, nl=False)
        self._line_open = True

    def show_finished(self, notice: FinishedNotice) -> None:
        self._close_line()
        click.secho(notice.title, fg="red", bold=True)
        click.echo(notice.text)
        if notice.sound:
            click.echo("\a", nl=False)

    def remove_progress(self) -> None:
        self._close_line()

    def _close_line(self) -> None:
        if self._line_open:
            click.echo()
            self._line_open = False
