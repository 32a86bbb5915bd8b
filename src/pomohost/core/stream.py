"""Observable state stream with a current value, attachable at any time."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from pomohost.core.snapshot import TimerSnapshot

logger = logging.getLogger(__name__)

Observer = Callable[[TimerSnapshot], None]


class Subscription:
    """Handle returned by :meth:`StateStream.attach`."""

    def __init__(self, stream: StateStream, observer: Observer) -> None:
        self._stream = stream
        self.observer = observer

    @property
    def attached(self) -> bool:
        return self._stream.is_attached(self)

    def close(self) -> None:
        self._stream.detach(self)


class StateStream:
    """Holds the current :class:`TimerSnapshot` and fans changes out to observers.

    Attaching delivers the current value immediately, then every published
    value in order.  Delivery happens under the stream's lock, so an observer
    attaching concurrently with a publish sees either the old value followed
    by the new one, or just the new one, never a gap or a repeat.
    """

    def __init__(self, initial: TimerSnapshot | None = None) -> None:
        self._value = initial if initial is not None else TimerSnapshot()
        self._subscriptions: list[Subscription] = []
        self._lock = threading.RLock()

    @property
    def value(self) -> TimerSnapshot:
        return self._value

    @property
    def observer_count(self) -> int:
        return len(self._subscriptions)

    def attach(self, observer: Observer) -> Subscription:
        subscription = Subscription(self, observer)
        with self._lock:
            self._subscriptions.append(subscription)
            self._deliver(subscription, self._value)
        return subscription

    def detach(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def is_attached(self, subscription: Subscription) -> bool:
        with self._lock:
            return subscription in self._subscriptions

    def publish(self, snapshot: TimerSnapshot) -> None:
        with self._lock:
            self._value = snapshot
            for subscription in list(self._subscriptions):
                self._deliver(subscription, snapshot)

    def _deliver(self, subscription: Subscription, snapshot: TimerSnapshot) -> None:
        try:
            subscription.observer(snapshot)
        except Exception:
            logger.exception("Observer %r failed on %r", subscription.observer, snapshot)
