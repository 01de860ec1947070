"""Dependency resolution for build targets."""

from __future__ import annotations

from typing import Iterable, Mapping

from buildtree.errors import BuildUsageError
from buildtree.targets import Target


class CycleError(BuildUsageError):
    """Raised when a dependency cycle is detected."""

    pass


class TargetNotFoundError(BuildUsageError):
    """Raised when a requested target or a dependency doesn't exist."""

    pass


def validate_targets(targets: Mapping[str, Target], requested: Iterable[str]) -> None:
    """Check that every requested name and every declared dependency exists.

    Args:
        targets: All declared targets keyed by name
        requested: Target names requested for this run

    Raises:
        TargetNotFoundError: If any name is undeclared
    """
    missing_dependencies = []
    for target in targets.values():
        for dep in target.dependencies:
            if dep not in targets:
                missing_dependencies.append(f"{dep} (required by {target.name})")
    if missing_dependencies:
        raise TargetNotFoundError(
            f"Missing {'dependency' if len(missing_dependencies) == 1 else 'dependencies'}: "
            + ", ".join(missing_dependencies)
        )

    not_found = [name for name in requested if name not in targets]
    if not_found:
        raise TargetNotFoundError(
            f"Target{'s' if len(not_found) > 1 else ''} not found: {', '.join(not_found)}"
        )


def resolve_execution_order(
    targets: Mapping[str, Target],
    requested: Iterable[str],
    skip_dependencies: bool = False,
    skip: Iterable[str] = (),
) -> list[str]:
    """Resolve execution order for the requested targets.

    Dependencies are walked depth-first in declared order and each target is
    scheduled right after its last dependency, so ties keep the order in
    which targets were requested and declared.

    Args:
        targets: All declared targets keyed by name
        requested: Names of the targets to run
        skip_dependencies: If True, run only the requested targets, in order
        skip: Names to leave out of the dependency closure

    Returns:
        List of target names in execution order (dependencies first), each
        name appearing once

    Raises:
        TargetNotFoundError: If a requested target or any dependency doesn't exist
        CycleError: If a dependency cycle is reachable from the requested targets
    """
    requested = list(requested)
    validate_targets(targets, requested)

    if skip_dependencies:
        return list(dict.fromkeys(requested))

    skipped = set(skip)
    order: list[str] = []
    done: set[str] = set()
    path: list[str] = []

    def visit(name: str) -> None:
        if name in done or name in skipped:
            return
        if name in path:
            cycle = path[path.index(name):] + [name]
            raise CycleError(f"Dependency cycle detected: {' -> '.join(cycle)}")

        path.append(name)
        for dep in targets[name].dependencies:
            visit(dep)
        path.pop()

        done.add(name)
        order.append(name)

    for name in requested:
        visit(name)

    return order


def build_dependency_tree(targets: Mapping[str, Target], target_name: str) -> dict:
    """Build a tree structure representing dependencies for visualization.

    Args:
        targets: All declared targets keyed by name
        target_name: Name of the target to build tree for

    Returns:
        Nested dictionary representing the dependency tree
    """
    if target_name not in targets:
        raise TargetNotFoundError(f"Target not found: {target_name}")

    visited = set()

    def build_tree(name: str) -> dict:
        target = targets.get(name)
        if target is None:
            return {"name": name, "deps": [], "missing": True}

        # Prevent infinite recursion on cycles
        if name in visited:
            return {"name": name, "deps": [], "cycle": True}

        visited.add(name)
        tree = {
            "name": name,
            "description": target.description,
            "deps": [build_tree(dep) for dep in target.dependencies],
        }
        visited.remove(name)

        return tree

    return build_tree(target_name)
