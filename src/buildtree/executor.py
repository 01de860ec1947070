"""Sequential execution of build targets."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass
from typing import Iterable, Mapping

from rich.markup import escape

from buildtree.errors import BuildError, BuildUsageError
from buildtree.graph import resolve_execution_order
from buildtree.logging import Logger
from buildtree.targets import Target


class ExitStatus(enum.IntEnum):
    """Outcome of a build run, usable directly as a process exit code."""

    SUCCESS = 0
    ACTION_FAILED = 1
    USAGE_ERROR = 2


@dataclass
class TargetResult:
    """What happened to one target during a run."""

    target_name: str
    outcome: str  # "succeeded", "failed", "dry_run"
    duration: float = 0.0


def _format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.2f} s"
    minutes, seconds = divmod(seconds, 60)
    return f"{int(minutes)} min {seconds:.0f} s"


class Executor:
    """Runs targets one at a time, each at most once per run.

    There is no parallelism, timeout or retry: an action blocks until it
    finishes, and the first failure ends the run. Work already done by
    completed targets is left in place.
    """

    def __init__(self, targets: Mapping[str, Target], logger: Logger):
        """Initialize executor.

        Args:
            targets: All declared targets keyed by name
            logger: Logger for progress and failure output
        """
        self.targets = targets
        self.logger = logger
        self.results: list[TargetResult] = []

    def run(
        self,
        requested: Iterable[str],
        skip_dependencies: bool = False,
        dry_run: bool = False,
        skip: Iterable[str] = (),
    ) -> ExitStatus:
        """Run the requested targets.

        Args:
            requested: Names of the targets to run
            skip_dependencies: If True, run only the requested targets
            dry_run: If True, report the execution order without running actions
            skip: Names to leave out of the dependency closure

        Returns:
            SUCCESS if every action completed, ACTION_FAILED if an action raised,
            USAGE_ERROR for unknown targets, dependency cycles or usage errors
            raised by an action
        """
        self.results = []

        try:
            order = resolve_execution_order(self.targets, requested, skip_dependencies, skip)
        except BuildUsageError as e:
            self.logger.error(f"[red]{escape(str(e))}[/red]")
            return ExitStatus.USAGE_ERROR

        self.logger.debug(f"Execution order: {', '.join(order) or '(none)'}")

        if dry_run:
            for name in order:
                self.results.append(TargetResult(name, "dry_run"))
                self.logger.info(f"[cyan]{escape(name)}[/cyan]: Succeeded (dry run)")
            self.logger.info(f"[green]Succeeded ({escape(' '.join(order))}) (dry run)[/green]")
            return ExitStatus.SUCCESS

        run_start = time.perf_counter()
        for name in order:
            status = self._run_target(self.targets[name])
            if status != ExitStatus.SUCCESS:
                self.logger.error(
                    f"[red]FAILED! ({escape(name)}) "
                    f"({_format_duration(time.perf_counter() - run_start)})[/red]"
                )
                return status

        self.logger.info(
            f"[green]Succeeded ({escape(' '.join(order))}) "
            f"({_format_duration(time.perf_counter() - run_start)})[/green]"
        )
        return ExitStatus.SUCCESS

    def _run_target(self, target: Target) -> ExitStatus:
        """Run a single target action and report how it went."""
        name = escape(target.name)
        self.logger.info(f"[cyan]{name}[/cyan]: Starting...")
        start = time.perf_counter()

        try:
            target.run()
        except BuildUsageError as e:
            self._record_failure(target, start)
            self.logger.error(f"[red]{name}: FAILED! {escape(str(e))}[/red]")
            return ExitStatus.USAGE_ERROR
        except BuildError as e:
            self._record_failure(target, start)
            self.logger.error(f"[red]{name}: FAILED! {escape(str(e))}[/red]")
            return ExitStatus.ACTION_FAILED
        except Exception as e:
            self._record_failure(target, start)
            self.logger.exception(e)
            self.logger.error(f"[red]{name}: FAILED![/red]")
            return ExitStatus.ACTION_FAILED

        duration = time.perf_counter() - start
        self.results.append(TargetResult(target.name, "succeeded", duration))
        self.logger.info(f"[cyan]{name}[/cyan]: [green]Succeeded[/green] [dim]({_format_duration(duration)})[/dim]")
        return ExitStatus.SUCCESS

    def _record_failure(self, target: Target, start: float) -> None:
        self.results.append(TargetResult(target.name, "failed", time.perf_counter() - start))
