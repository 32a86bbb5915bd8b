"""Daily reminders that fire at a fixed wall-clock time."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyReminder:
    hour: int
    minute: int
    message: str

    def __post_init__(self) -> None:
        if not (0 <= self.hour <= 23 and 0 <= self.minute <= 59):
            raise ValueError(f"invalid reminder time {self.hour:02d}:{self.minute:02d}")

    @property
    def time_label(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


DEFAULT_REMINDERS = (
    DailyReminder(7, 0, "Good morning! Time to start your day with a fresh cup of coffee."),
    DailyReminder(21, 0, "Good night! You did great today."),
)


def next_fire(reminder: DailyReminder, now: datetime) -> datetime:
    """Return the next time *reminder* fires after *now*.

    Today at ``HH:MM:00`` if that is still ahead, otherwise tomorrow.
    """
    candidate = now.replace(hour=reminder.hour, minute=reminder.minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class ReminderScheduler:
    """Registers one daily cron job per reminder on an APScheduler scheduler.

    The cron trigger works from the wall clock, so each reminder fires at
    its ``HH:MM`` every day and a missed day never shifts the next one.
    """

    def __init__(
        self,
        reminders: tuple[DailyReminder, ...] | list[DailyReminder] = DEFAULT_REMINDERS,
        notify: Callable[[DailyReminder], None] | None = None,
        now: Callable[[], datetime] = datetime.now,
        scheduler: BaseScheduler | None = None,
        timezone: tzinfo | None = None,
    ) -> None:
        self._reminders = tuple(reminders)
        self._notify = notify if notify is not None else _log_reminder
        self._now = now
        self._scheduler = scheduler if scheduler is not None else BackgroundScheduler(daemon=True)
        self._timezone = timezone
        self._running = False

    @property
    def reminders(self) -> tuple[DailyReminder, ...]:
        return self._reminders

    def schedule(self) -> dict[DailyReminder, datetime]:
        """Return the next fire time of every reminder."""
        now = self._now()
        return {reminder: next_fire(reminder, now) for reminder in self._reminders}

    def build_trigger(self, reminder: DailyReminder) -> CronTrigger:
        """Return the daily cron trigger for *reminder*; local time unless a timezone was given."""
        return CronTrigger(hour=reminder.hour, minute=reminder.minute, timezone=self._timezone)

    def start(self) -> None:
        if self._running:
            return
        for index, reminder in enumerate(self._reminders):
            self._scheduler.add_job(
                self._fire,
                trigger=self.build_trigger(reminder),
                args=[reminder],
                id=f"reminder_{index}",
                name=f"reminder {reminder.time_label}",
                replace_existing=True,
            )
            logger.info("Reminder %s registered", reminder.time_label)
        self._scheduler.start()
        self._running = True

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._scheduler.shutdown(wait=False)

    def _fire(self, reminder: DailyReminder) -> None:
        try:
            self._notify(reminder)
        except Exception:
            logger.exception("Reminder %s failed to notify", reminder.time_label)


def _log_reminder(reminder: DailyReminder) -> None:
    logger.info("Reminder %s: %s", reminder.time_label, reminder.message)
