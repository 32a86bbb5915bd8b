"""Exceptions raised by pomohost."""


class PomohostError(Exception):
    """Base class for all pomohost errors."""


class UnknownCommandError(PomohostError):
    """Raised when an external action name does not map to a command."""


class HostStoppedError(PomohostError):
    """Raised when a command is sent to a host that is no longer running."""


class PreferenceError(PomohostError, ValueError):
    """Raised when a duration preference is invalid."""


class WakeLockError(PomohostError):
    """Raised by a wake-lock backend that cannot hold the device awake."""
