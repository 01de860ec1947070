from typing import Any

from rich.console import Console
from rich.traceback import Traceback

from buildtree.logging import Logger, LogLevel


class ConsoleLogger(Logger):
    """Console-based logger implementation using Rich for formatting.

    Filters log messages based on the current log level. Messages with severity
    lower than the current level are suppressed. Supports a stack-based level
    management system for temporary verbosity changes (e.g. --verbose).
    """

    def __init__(self, console: Console, level: LogLevel = LogLevel.INFO) -> None:
        """Initialize the console logger.

        Args:
            console: Rich Console instance to use for output
            level: Initial log level (default: INFO)
        """
        self._console = console
        self._levels = [level]

    @property
    def console(self) -> Console:
        return self._console

    def log(self, level: LogLevel = LogLevel.INFO, *args: Any, **kwargs: Any) -> None:
        """Log a message to the console if it meets the current level threshold.

        Messages are only printed if their level is at or above the current level
        (i.e., level.value <= current_level.value, since lower values = higher severity).

        Args:
            level: The severity level of this message (default: INFO)
            *args: Positional arguments passed to Rich Console.print()
            **kwargs: Keyword arguments passed to Rich Console.print()
        """
        if self._levels[-1].value >= level.value:
            self._console.print(*args, **kwargs)

    def push_level(self, level: LogLevel) -> None:
        """Push a new log level onto the stack.

        Args:
            level: The new log level to activate
        """
        self._levels.append(level)

    def pop_level(self) -> LogLevel:
        """Pop the current log level and return to the previous level.

        Returns:
            The log level that was popped

        Raises:
            RuntimeError: If attempting to pop the base (initial) log level
        """
        if len(self._levels) <= 1:
            raise RuntimeError("Cannot pop the base log level")
        return self._levels.pop()

    def exception(self, exc: BaseException) -> None:
        """Print an exception with a Rich-rendered traceback."""
        if self._levels[-1].value >= LogLevel.ERROR.value:
            self._console.print(
                Traceback.from_exception(type(exc), exc, exc.__traceback__)
            )
