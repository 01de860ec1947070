"""Process execution abstraction layer.

This module provides an interface for running external programs, allowing
build actions to be tested with a fake runner.
"""

import re
import shlex
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from subprocess import Popen
from threading import Thread
from typing import Any, Callable, Optional, Sequence, Union

from rich.markup import escape

from buildtree.errors import BuildError
from buildtree.logging import Logger, LogLevel

__all__ = [
    "ProcessRunner",
    "ProcessFailedError",
    "SubprocessRunner",
    "format_command",
    "stream_lines",
]

ExitCodePredicate = Callable[[int], bool]
OutputLineHandler = Callable[[str], None]
PathLike = Union[str, Path]

# Arguments whose following value must never be echoed
SECRET_ARGUMENTS = frozenset({"--api-key", "-k"})

# Password part of credentials embedded in a URL
URL_PASSWORD_PATTERN = re.compile(r"(://[^/:@\s]+:)[^@/\s]+@")


class ProcessFailedError(BuildError):
    """Raised when a process exits with a code its caller does not accept."""

    def __init__(self, command: Sequence[str], exit_code: int) -> None:
        self.command = list(command)
        self.exit_code = exit_code
        super().__init__(
            f"The command exited with code {exit_code}: {format_command(command)}"
        )


def format_command(command: Sequence[str]) -> str:
    """Format a command line for display, hiding secret argument values."""
    shown = []
    hide_next = False
    for arg in command:
        shown.append("***" if hide_next else URL_PASSWORD_PATTERN.sub(r"\1***@", arg))
        hide_next = arg in SECRET_ARGUMENTS
    return shlex.join(shown)


class ProcessRunner(ABC):
    """
    Abstract interface for running external programs.
    """

    @abstractmethod
    def run(
        self,
        path: PathLike,
        args: Sequence[Optional[str]] = (),
        working_directory: Optional[PathLike] = None,
        is_exit_code_success: Optional[ExitCodePredicate] = None,
        handle_output_line: Optional[OutputLineHandler] = None,
    ) -> int:
        """
        Run a program and wait for it to exit.

        Args:
            path: Program to run
            args: Arguments; None entries are dropped so optional arguments
                can be written inline
            working_directory: Directory to run in (default: current directory)
            is_exit_code_success: Predicate that accepts the exit code
                (default: exit code 0 only)
            handle_output_line: If given, receives each line of combined
                stdout/stderr instead of it going to the console

        Returns:
            The process exit code

        Raises:
            ProcessFailedError: If the predicate rejects the exit code
        """
        ...


def stream_lines(pipe: Any, handle_line: OutputLineHandler) -> None:
    """
    Feed each line read from a pipe to a handler.

    If the pipe is closed or an error occurs during reading, the function
    returns without raising an exception.

    Args:
        pipe: Input pipe to read from
        handle_line: Receives each line without its trailing newline
    """
    if pipe:
        try:
            for line in pipe:
                handle_line(line.rstrip("\r\n"))
        except (OSError, ValueError):
            # Pipe closed - expected when the process is killed
            pass


def _start_thread_and_wait_to_complete(process: Popen, stream: Any, thread: Thread, logger: Logger) -> int:
    join_timeout_secs = 10.0

    thread.start()

    try:
        process_return_code = process.wait()
    finally:
        thread.join(timeout=join_timeout_secs)
        if stream:
            stream.close()

    if thread.is_alive():
        logger.warn(f"Output thread did not complete within timeout of {join_timeout_secs} seconds")

    return process_return_code


class SubprocessRunner(ProcessRunner):
    """
    Process runner backed by the subprocess module.

    Output goes straight to the console unless an output line handler is
    supplied, in which case a thread streams it to the handler.
    """

    def __init__(self, logger: Logger, echo_level: LogLevel = LogLevel.INFO) -> None:
        """
        Args:
            logger: Logger used to echo command lines
            echo_level: Level at which command lines are echoed
        """
        self._logger = logger
        self._echo_level = echo_level

    def run(
        self,
        path: PathLike,
        args: Sequence[Optional[str]] = (),
        working_directory: Optional[PathLike] = None,
        is_exit_code_success: Optional[ExitCodePredicate] = None,
        handle_output_line: Optional[OutputLineHandler] = None,
    ) -> int:
        command = [str(path), *(str(arg) for arg in args if arg is not None)]
        self._logger.log(self._echo_level, f"[dim]> {escape(format_command(command))}[/dim]")

        try:
            if handle_output_line is None:
                exit_code = subprocess.run(command, cwd=working_directory, check=False).returncode
            else:
                process = subprocess.Popen(
                    command,
                    cwd=working_directory,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    bufsize=1,
                )
                thread = Thread(
                    target=stream_lines,
                    args=(process.stdout, handle_output_line),
                    name="output-streamer",
                )
                exit_code = _start_thread_and_wait_to_complete(process, process.stdout, thread, self._logger)
        except OSError as e:
            raise BuildError(f"Failed to start {format_command(command)}: {e}") from e

        accepts = is_exit_code_success or (lambda code: code == 0)
        if not accepts(exit_code):
            raise ProcessFailedError(command, exit_code)

        return exit_code
