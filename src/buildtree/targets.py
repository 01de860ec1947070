"""Build targets and the registry a build script declares them on."""

from __future__ import annotations

from typing import Callable, Optional

from rich.console import Console

from buildtree.console_logger import ConsoleLogger
from buildtree.errors import BuildUsageError
from buildtree.logging import Logger

TargetAction = Callable[[], None]


class Target:
    """A named unit of build work.

    A target has an optional description, an ordered list of dependency names
    and at most one action. A target without an action only groups its
    dependencies.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.description = ""
        self._dependencies: list[str] = []
        self._action: Optional[TargetAction] = None

    @property
    def dependencies(self) -> list[str]:
        return list(self._dependencies)

    @property
    def action(self) -> Optional[TargetAction]:
        return self._action

    def describe(self, description: str) -> Target:
        """Set the description shown in the target list."""
        if description is None:
            raise ValueError("description must not be None")
        self.description = description
        return self

    def depends_on(self, *names: str) -> Target:
        """Append dependencies by name.

        Names are not validated here; unknown names are reported when the
        build runs.
        """
        self._dependencies.extend(names)
        return self

    def does(self, action: TargetAction) -> Target:
        """Set the target action, replacing any previous one."""
        if action is None:
            raise ValueError("action must not be None")
        self._action = action
        return self

    def run(self) -> None:
        """Run the target action, if any."""
        if self._action is not None:
            self._action()

    def __repr__(self) -> str:
        return f"Target({self.name!r}, dependencies={self._dependencies!r})"


def parse_template(template: str) -> tuple[list[str], Optional[str]]:
    """Split an option template into option names and a value placeholder.

    Args:
        template: Template such as "-q|--quiet" or "-c|--configuration <name>"

    Returns:
        Tuple of (option names, value placeholder or None)

    Raises:
        BuildUsageError: If the template has no option names

    Examples:
        "-q|--quiet" -> (["-q", "--quiet"], None)
        "--trigger <name>" -> (["--trigger"], "name")
    """
    names_part, _, value_part = template.strip().partition(" ")
    names = [name for name in names_part.split("|") if name]
    if not names or any(not name.startswith("-") for name in names):
        raise BuildUsageError(f"Invalid option template: {template!r}")

    value_part = value_part.strip()
    if value_part:
        placeholder = value_part.strip("<>")
        return names, placeholder or None
    return names, None


class BuildFlag:
    """A no-value command-line flag declared by a build script."""

    def __init__(self, template: str, description: str) -> None:
        self.template = template
        self.description = description
        self.names, _ = parse_template(template)
        self.value = False


class BuildOption:
    """A single-value command-line option declared by a build script."""

    def __init__(self, template: str, description: str, default: Optional[str] = None) -> None:
        self.template = template
        self.description = description
        self.default = default
        self.names, placeholder = parse_template(template)
        self.placeholder = placeholder or "value"
        self._value: Optional[str] = None

    @property
    def value(self) -> Optional[str]:
        """The option value, or the default if the option was not specified."""
        return self._value if self._value is not None else self.default

    @value.setter
    def value(self, value: Optional[str]) -> None:
        self._value = value

    @property
    def has_value(self) -> bool:
        return self.value is not None


class BuildApp:
    """Registry of the targets, flags and options of one build invocation.

    The logger is the one the build run reports through; targets added by
    helpers such as add_dotnet_targets() log through it as well.
    """

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.logger = logger if logger is not None else ConsoleLogger(Console())
        self._targets: dict[str, Target] = {}
        self._flags: list[BuildFlag] = []
        self._options: list[BuildOption] = []

    @property
    def targets(self) -> dict[str, Target]:
        """Targets keyed by name, in registration order."""
        return dict(self._targets)

    @property
    def flags(self) -> list[BuildFlag]:
        return list(self._flags)

    @property
    def options(self) -> list[BuildOption]:
        return list(self._options)

    def target(self, name: str) -> Target:
        """Get the target with the given name, creating it on first use."""
        if name is None:
            raise ValueError("name must not be None")
        target = self._targets.get(name)
        if target is None:
            target = Target(name)
            self._targets[name] = target
        return target

    def get_target(self, name: str) -> Optional[Target]:
        return self._targets.get(name)

    def target_names(self) -> list[str]:
        return list(self._targets)

    def add_flag(self, template: str, description: str) -> BuildFlag:
        """Add support for a no-value command-line flag.

        Args:
            template: The flag template, e.g. "-q|--quiet"
            description: The help description

        Returns:
            The flag; read its value from within a running target
        """
        flag = BuildFlag(template, description)
        self._check_names_unused(flag.names)
        self._flags.append(flag)
        return flag

    def add_option(self, template: str, description: str, default: Optional[str] = None) -> BuildOption:
        """Add support for a single-value command-line option.

        Args:
            template: The option template, e.g. "-n|--name <name>"
            description: The help description
            default: Value used when the option is not specified

        Returns:
            The option; read its value from within a running target
        """
        option = BuildOption(template, description, default)
        self._check_names_unused(option.names)
        self._options.append(option)
        return option

    def _check_names_unused(self, names: list[str]) -> None:
        used = {n for item in [*self._flags, *self._options] for n in item.names}
        clashes = [name for name in names if name in used]
        if clashes:
            raise BuildUsageError(f"Option already defined: {', '.join(clashes)}")
