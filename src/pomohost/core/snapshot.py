"""Timer snapshot value and the commands that drive the timer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from pomohost.core.errors import UnknownCommandError


def format_mm_ss(ms: int) -> str:
    """Format *ms* milliseconds as ``MM:SS`` (minutes are not wrapped at 60)."""
    total = max(ms, 0) // 1000
    return f"{total // 60:02d}:{total % 60:02d}"


@dataclass(frozen=True)
class TimerSnapshot:
    """Immutable timer state published on every change."""

    time_left_ms: int = 0
    duration_ms: int = 0
    is_running: bool = False

    @property
    def formatted(self) -> str:
        return format_mm_ss(self.time_left_ms)

    @property
    def progress_percent(self) -> int:
        """Remaining share of the duration, 0--100, rounded half up.

        100 when there is no duration.
        """
        if self.duration_ms <= 0:
            return 100
        return (self.time_left_ms * 200 + self.duration_ms) // (2 * self.duration_ms)


# -- commands ----------------------------------------------------------------


@dataclass(frozen=True)
class Start:
    duration_ms: int


@dataclass(frozen=True)
class Pause:
    pass


@dataclass(frozen=True)
class Reset:
    duration_ms: int


@dataclass(frozen=True)
class TogglePausePlay:
    pass


Command = Union[Start, Pause, Reset, TogglePausePlay]
COMMAND_TYPES = (Start, Pause, Reset, TogglePausePlay)

ACTION_START = "start"
ACTION_PAUSE = "pause"
ACTION_RESET = "reset"
ACTION_TOGGLE = "toggle"


def parse_command(action: str, duration_ms: int = 0) -> Command:
    """Build a :data:`Command` from an external *action* name.

    *duration_ms* is only read by ``start`` and ``reset``.
    """
    if action == ACTION_START:
        return Start(duration_ms)
    if action == ACTION_PAUSE:
        return Pause()
    if action == ACTION_RESET:
        return Reset(duration_ms)
    if action == ACTION_TOGGLE:
        return TogglePausePlay()
    raise UnknownCommandError(f"unknown timer action {action!r}")
