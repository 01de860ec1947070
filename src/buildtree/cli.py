"""Command-line interface for build scripts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import click
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from buildtree.console_logger import ConsoleLogger
from buildtree.errors import BuildError, BuildUsageError
from buildtree.executor import Executor, ExitStatus
from buildtree.graph import build_dependency_tree
from buildtree.logging import Logger, LogLevel
from buildtree.targets import BuildApp, BuildFlag, BuildOption

DEFAULT_TARGET = "default"

app = typer.Typer(
    help="Runs build targets and their dependencies",
    add_completion=False,
    no_args_is_help=False,
    pretty_exceptions_enable=False,
)

# (option names, description) for the options every build supports
BUILTIN_OPTIONS = [
    ("-n|--dry-run", "Don't execute target actions"),
    ("-s|--skip-dependencies", "Don't run any target dependencies"),
    ("--skip <targets>", "Skip the comma-delimited target dependencies"),
    ("--show-tree", "Show the dependency tree of the targets"),
    ("--no-color", "Disable color output"),
    ("--verbose", "Show detailed output"),
    ("-h|-?|--help", "Show build help"),
]


@dataclass
class Invocation:
    """State shared between execute() and the click command via ctx.obj."""

    build: BuildApp
    logger: Logger
    console: Console


def _show_help(invocation: Invocation, prog_name: str) -> None:
    """Display usage, options and the available targets."""
    console = invocation.console
    build = invocation.build
    console.print(f"[bold]Usage:[/bold] {escape(prog_name)} \\[options] \\[targets]\n")

    options = Table(title="Options", title_justify="left", show_header=False, box=None, padding=(0, 2))
    options.add_column("Option", style="cyan", no_wrap=True)
    options.add_column("Description", style="white")
    for template, description in BUILTIN_OPTIONS:
        options.add_row(escape(template), escape(description))
    for flag in build.flags:
        options.add_row(escape(flag.template), escape(flag.description))
    for option in build.options:
        options.add_row(escape(option.template), escape(option.description))
    console.print(options)
    console.print()

    # An undescribed default target is only an alias
    shown = [t for name, t in build.targets.items() if name != DEFAULT_TARGET or t.description]
    if not shown:
        return

    targets = Table(title="Targets", title_justify="left", show_header=False, box=None, padding=(0, 2))
    targets.add_column("Target", style="cyan", no_wrap=True)
    targets.add_column("Description", style="white")
    for target in shown:
        targets.add_row(escape(target.name), escape(target.description))
    console.print(targets)


def _build_rich_tree(dep_tree: dict) -> Tree:
    """Build a Rich Tree from a dependency tree.

    Args:
        dep_tree: Dependency tree structure from build_dependency_tree()

    Returns:
        Rich Tree for display
    """
    name = escape(dep_tree["name"])
    if dep_tree.get("missing"):
        label = f"[red]{name} (missing)[/red]"
    elif dep_tree.get("cycle"):
        label = f"[red]{name} (cycle)[/red]"
    elif dep_tree.get("description"):
        label = f"[cyan]{name}[/cyan] [dim]{escape(dep_tree['description'])}[/dim]"
    else:
        label = f"[cyan]{name}[/cyan]"

    tree = Tree(label)
    for dep in dep_tree.get("deps", []):
        tree.add(_build_rich_tree(dep))

    return tree


def _flag_option(flag: BuildFlag) -> click.Option:
    def store(ctx: click.Context, param: click.Parameter, value: bool) -> None:
        flag.value = bool(value)

    return click.Option(
        flag.names,
        is_flag=True,
        default=False,
        help=flag.description,
        expose_value=False,
        callback=store,
    )


def _value_option(option: BuildOption) -> click.Option:
    def store(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> None:
        if value is not None:
            option.value = value

    return click.Option(
        option.names,
        metavar=f"<{option.placeholder}>",
        default=None,
        help=option.description,
        expose_value=False,
        callback=store,
    )


def _parse_skip(skip: Optional[str]) -> list[str]:
    if not skip:
        return []
    return [name.strip() for name in skip.split(",") if name.strip()]


@app.command(context_settings={"help_option_names": []})
def run(
    ctx: typer.Context,
    targets: Optional[List[str]] = typer.Argument(None, help="Targets to run", show_default=False),
    dry_run: bool = typer.Option(False, "-n", "--dry-run", help="Don't execute target actions"),
    skip_dependencies: bool = typer.Option(
        False, "-s", "--skip-dependencies", help="Don't run any target dependencies"
    ),
    skip: Optional[str] = typer.Option(
        None, "--skip", metavar="<targets>", help="Skip the comma-delimited target dependencies"
    ),
    show_tree: bool = typer.Option(False, "--show-tree", help="Show the dependency tree of the targets"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output"),
    verbose: bool = typer.Option(False, "--verbose", help="Show detailed output"),
    show_help: bool = typer.Option(False, "-h", "-?", "--help", help="Show build help"),
) -> None:
    """Run the requested build targets."""
    invocation: Invocation = ctx.obj
    build = invocation.build
    logger = invocation.logger

    if no_color:
        invocation.console.no_color = True
    if verbose:
        logger.push_level(LogLevel.DEBUG)

    requested = list(targets or [])
    if not requested and not show_help and build.get_target(DEFAULT_TARGET) is not None:
        requested = [DEFAULT_TARGET]

    if show_help or not requested:
        _show_help(invocation, ctx.info_name or "build")
        raise typer.Exit(ExitStatus.SUCCESS)

    if show_tree:
        try:
            for name in requested:
                invocation.console.print(_build_rich_tree(build_dependency_tree(build.targets, name)))
        except BuildUsageError as e:
            logger.error(f"[red]{escape(str(e))}[/red]")
            raise typer.Exit(ExitStatus.USAGE_ERROR)
        raise typer.Exit(ExitStatus.SUCCESS)

    executor = Executor(build.targets, logger)
    status = executor.run(
        requested,
        skip_dependencies=skip_dependencies,
        dry_run=dry_run,
        skip=_parse_skip(skip),
    )
    raise typer.Exit(int(status))


def create_command(build: BuildApp) -> click.Command:
    """Create the click command for a build, including its flags and options."""
    command = typer.main.get_command(app)
    for flag in build.flags:
        command.params.append(_flag_option(flag))
    for option in build.options:
        command.params.append(_value_option(option))
    return command


def execute(
    args: Sequence[str],
    initialize: Callable[[BuildApp], None],
    console: Optional[Console] = None,
    prog_name: Optional[str] = None,
) -> int:
    """
    Run a build script.

    Args:
        args: Command-line arguments (usually sys.argv[1:])
        initialize: Declares the targets, flags and options of the build
        console: Console to report to (default: a new Console)
        prog_name: Program name shown in the usage line

    Returns:
        The exit code: 0 on success, 1 if a target failed, 2 for usage errors

    Example:
        def initialize(build):
            build.target("hello").does(lambda: print("Hello"))

        sys.exit(execute(sys.argv[1:], initialize))
    """
    console = console if console is not None else Console()
    logger = ConsoleLogger(console)
    build = BuildApp(logger)

    try:
        initialize(build)
    except BuildError as e:
        logger.error(f"[red]{escape(str(e))}[/red]")
        return ExitStatus.USAGE_ERROR

    command = create_command(build)
    try:
        result = command.main(
            list(args),
            prog_name=prog_name,
            standalone_mode=False,
            obj=Invocation(build, logger, console),
        )
    except click.ClickException as e:
        logger.error(f"[red]{escape(e.format_message())}[/red]")
        logger.error("Use --help for usage.")
        return ExitStatus.USAGE_ERROR

    return int(result or 0)
