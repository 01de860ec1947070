"""Wrapper around the dotnet command-line interface."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from rich.markup import escape

from buildtree.logging import Logger
from buildtree.process_runner import ProcessRunner

PathLike = Union[str, Path]


class DotNetRunner:
    """Runs dotnet commands through a process runner."""

    def __init__(self, runner: ProcessRunner, logger: Logger) -> None:
        self._runner = runner
        self._logger = logger

    def run_dotnet(self, *args: Optional[str], working_directory: Optional[PathLike] = None) -> int:
        """Run dotnet with the given arguments; None arguments are dropped."""
        return self._runner.run("dotnet", list(args), working_directory=working_directory)

    def push_package(self, path: PathLike, source: str, api_key: str) -> bool:
        """
        Push a package to a NuGet feed.

        Args:
            path: Package file to push
            source: Feed URL
            api_key: Feed API key (never echoed)

        Returns:
            False if the feed already had this package version and the push
            was skipped as a duplicate, True otherwise
        """
        skipped_duplicate = False

        def handle_line(line: str) -> None:
            nonlocal skipped_duplicate
            self._logger.info(escape(line))
            if line.lstrip().startswith("Conflict"):
                skipped_duplicate = True

        self._runner.run(
            "dotnet",
            ["nuget", "push", str(path), "--source", source, "--api-key", api_key, "--skip-duplicate"],
            handle_output_line=handle_line,
        )
        return not skipped_duplicate
