"""Logging infrastructure for Build Tree.

Provides the Logger interface that every component receives by injection.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import Any


class LogLevel(enum.Enum):
    """Log verbosity levels for build diagnostic messages.

    Lower numeric values represent higher severity / less verbosity.
    """
    FATAL = 0  # Only unrecoverable errors (bad target names, dependency cycles)
    ERROR = 1  # Fatal errors plus target failures
    WARN = 2   # Errors plus warnings (cleanup failures, skipped work)
    INFO = 3   # Warnings plus normal build progress (default)
    DEBUG = 4  # Info plus resolved settings, command lines, git details
    TRACE = 5  # Debug plus fine-grained scheduling tracing


class Logger(ABC):
    """Abstract leveled logger.

    Implementations decide where messages go; callers only pick a level.
    """

    @abstractmethod
    def log(self, level: LogLevel = LogLevel.INFO, *args: Any, **kwargs: Any) -> None:
        """Log a message if it meets the current level threshold."""
        ...

    @abstractmethod
    def push_level(self, level: LogLevel) -> None:
        """Push a new log level onto the stack."""
        ...

    @abstractmethod
    def pop_level(self) -> LogLevel:
        """Pop the current log level and return to the previous level."""
        ...

    def fatal(self, *args: Any, **kwargs: Any) -> None:
        self.log(LogLevel.FATAL, *args, **kwargs)

    def error(self, *args: Any, **kwargs: Any) -> None:
        self.log(LogLevel.ERROR, *args, **kwargs)

    def warn(self, *args: Any, **kwargs: Any) -> None:
        self.log(LogLevel.WARN, *args, **kwargs)

    def info(self, *args: Any, **kwargs: Any) -> None:
        self.log(LogLevel.INFO, *args, **kwargs)

    def debug(self, *args: Any, **kwargs: Any) -> None:
        self.log(LogLevel.DEBUG, *args, **kwargs)

    def trace(self, *args: Any, **kwargs: Any) -> None:
        self.log(LogLevel.TRACE, *args, **kwargs)

    def exception(self, exc: BaseException) -> None:
        """Report an unexpected exception, including its traceback where supported."""
        self.error(f"{type(exc).__name__}: {exc}")
