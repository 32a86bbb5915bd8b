"""Per-mode duration preferences persisted as JSON."""

from __future__ import annotations

import fcntl
import json
import logging
from enum import Enum
from pathlib import Path

from pomohost.core.errors import PreferenceError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "pomohost"
_PREFERENCES_FILE = "preferences.json"

ONE_MINUTE_MS = 60 * 1000
MIN_DURATION_MS = ONE_MINUTE_MS
MAX_DURATION_MS = 90 * ONE_MINUTE_MS


class TimerMode(Enum):
    """Pomodoro phases, each with its own configurable duration."""

    FOCUS = "focus"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def preference_key(self) -> str:
        return f"{self.value}_duration"

    @property
    def default_minutes(self) -> int:
        return _DEFAULT_MINUTES[self]


_LABELS = {
    TimerMode.FOCUS: "Focus",
    TimerMode.SHORT_BREAK: "Short break",
    TimerMode.LONG_BREAK: "Long break",
}

_DEFAULT_MINUTES = {
    TimerMode.FOCUS: 25,
    TimerMode.SHORT_BREAK: 5,
    TimerMode.LONG_BREAK: 15,
}


def adjust_duration(current_ms: int, delta_ms: int) -> int:
    """Return *current_ms* shifted by *delta_ms*, clamped to 1--90 minutes."""
    return max(MIN_DURATION_MS, min(current_ms + delta_ms, MAX_DURATION_MS))


class DurationPreferences:
    """Minutes per :class:`TimerMode`, stored in ``<config_dir>/preferences.json``.

    Missing or unreadable values fall back to the mode's default.
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        self._config_dir: Path = config_dir if config_dir is not None else DEFAULT_CONFIG_DIR
        self._minutes: dict[TimerMode, int] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._config_dir / _PREFERENCES_FILE

    def minutes(self, mode: TimerMode) -> int:
        return self._minutes.get(mode, mode.default_minutes)

    def duration_ms(self, mode: TimerMode) -> int:
        return self.minutes(mode) * ONE_MINUTE_MS

    def set_minutes(self, mode: TimerMode, minutes: int) -> None:
        """Store *minutes* for *mode*.  Raises :class:`PreferenceError` unless positive."""
        if isinstance(minutes, bool) or not isinstance(minutes, int):
            raise PreferenceError(
                f"minutes must be an integer, got {type(minutes).__name__}"
            )
        if minutes <= 0:
            raise PreferenceError(f"minutes must be positive, got {minutes}")
        self._minutes[mode] = minutes
        self._save()

    def as_dict(self) -> dict[str, int]:
        return {mode.preference_key: self.minutes(mode) for mode in TimerMode}

    # -- persistence ---------------------------------------------------------

    def _save(self) -> None:
        """Write all preferences to the JSON file with file locking."""
        self._config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            json.dump(self.as_dict(), f)

    def _load(self) -> None:
        """Load preferences from the JSON file if it exists."""
        if not self.path.exists():
            return

        try:
            with open(self.path) as f:
                fcntl.flock(f, fcntl.LOCK_SH)
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable preferences at %s: %s", self.path, exc)
            return

        for mode in TimerMode:
            value = data.get(mode.preference_key)
            if isinstance(value, int) and not isinstance(value, bool) and value > 0:
                self._minutes[mode] = value
