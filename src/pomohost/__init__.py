"""pomohost: a Pomodoro countdown timer with a foreground execution host."""

__version__ = "0.1.0"
