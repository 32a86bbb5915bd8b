"""Wake-lock guard: keeps the device awake for the length of a countdown."""

from __future__ import annotations

import logging
import math
import shutil
import subprocess
from typing import Protocol

from pomohost.core.errors import WakeLockError

logger = logging.getLogger(__name__)

WAKE_MARGIN_MS = 2000


class WakeLockBackend(Protocol):
    def acquire(self, timeout_ms: int) -> None: ...

    def release(self) -> None: ...


class NullWakeLock:
    """Backend for platforms without a sleep inhibitor."""

    def acquire(self, timeout_ms: int) -> None:
        logger.debug("No wake-lock backend; not inhibiting sleep for %d ms", timeout_ms)

    def release(self) -> None:
        pass


class InhibitWakeLock:
    """Holds a ``systemd-inhibit`` child process that blocks sleep.

    The child runs ``sleep`` for the timeout, so the inhibitor lapses on its
    own even if this process dies without releasing it.
    """

    def __init__(self, who: str = "pomohost", executable: str = "systemd-inhibit") -> None:
        self._who = who
        self._executable = executable
        self._process: subprocess.Popen[bytes] | None = None

    def acquire(self, timeout_ms: int) -> None:
        seconds = max(math.ceil(timeout_ms / 1000), 1)
        try:
            self._process = subprocess.Popen(
                [
                    self._executable,
                    "--what=sleep:idle",
                    f"--who={self._who}",
                    "--why=Countdown running",
                    "--mode=block",
                    "sleep",
                    str(seconds),
                ],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise WakeLockError(f"cannot start {self._executable}: {exc}") from exc

    def release(self) -> None:
        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=2)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()


def default_backend() -> WakeLockBackend:
    """Return :class:`InhibitWakeLock` when ``systemd-inhibit`` is on PATH."""
    if shutil.which("systemd-inhibit"):
        return InhibitWakeLock()
    return NullWakeLock()


class WakeGuard:
    """Scoped hold on a wake-lock backend.

    At most one hold is active at a time.  :meth:`release` is idempotent:
    releasing a guard that is not held does nothing.  Acquisition failures
    are logged and swallowed so the countdown keeps running without the lock.
    """

    def __init__(self, backend: WakeLockBackend | None = None) -> None:
        self._backend: WakeLockBackend = backend if backend is not None else NullWakeLock()
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self, time_left_ms: int) -> bool:
        """Hold the lock for *time_left_ms* plus the safety margin.

        Returns ``True`` when the backend accepted the hold.
        """
        if self._held:
            self.release()
        timeout_ms = time_left_ms + WAKE_MARGIN_MS
        try:
            self._backend.acquire(timeout_ms)
        except (WakeLockError, OSError) as exc:
            logger.warning("Wake lock unavailable, continuing without it: %s", exc)
            return False
        self._held = True
        logger.debug("Wake lock acquired for %d ms", timeout_ms)
        return True

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self._backend.release()
        except (WakeLockError, OSError) as exc:
            logger.warning("Wake lock release failed: %s", exc)
        else:
            logger.debug("Wake lock released")

    def __enter__(self) -> WakeGuard:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
