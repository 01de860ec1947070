"""Publication planning: deciding what a release trigger publishes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from buildtree.errors import BuildError, BuildUsageError
from buildtree.packages import PackageDescriptor
from buildtree.trigger import (
    InvalidTrigger,
    MatchedTrigger,
    UnstructuredTrigger,
    resolve_trigger,
)


class PublicationError(BuildError):
    """Raised when packages and trigger disagree, before anything is pushed."""

    pass


@dataclass(frozen=True)
class PublicationDecision:
    """What to publish for one trigger.

    packages holds the selected descriptors; they are pushed only if
    should_publish_packages is set, and they are the packages documented
    if should_publish_docs is set.
    """

    packages: tuple[PackageDescriptor, ...] = ()
    should_publish_packages: bool = False
    should_publish_docs: bool = False
    message: str = ""

    @property
    def packages_to_publish(self) -> tuple[PackageDescriptor, ...]:
        return self.packages if self.should_publish_packages else ()

    @property
    def is_noop(self) -> bool:
        return not self.should_publish_packages and not self.should_publish_docs


def _file_names(descriptors: Iterable[PackageDescriptor]) -> str:
    return ", ".join(d.file_name for d in descriptors)


def _matches_package_name(package_name: str, trigger_name: str) -> bool:
    package_name = package_name.lower()
    trigger_name = trigger_name.lower()
    return package_name == trigger_name or package_name.endswith("." + trigger_name)


def _select_for_version_trigger(
    descriptors: list[PackageDescriptor], trigger: MatchedTrigger
) -> list[PackageDescriptor]:
    """Select the packages a version trigger refers to, checking versions."""
    if not trigger.name:
        mismatches = [d for d in descriptors if d.version != trigger.full_version]
        if mismatches:
            raise PublicationError(
                f"Trigger '{trigger.raw}' doesn't match package version: {_file_names(mismatches)}"
            )
        return descriptors

    matches = [d for d in descriptors if _matches_package_name(d.name, trigger.name)]
    if len(matches) != 1:
        problem = "doesn't match any package" if not matches else "matches multiple packages"
        raise PublicationError(
            f"Trigger '{trigger.raw}' {problem}; packages found: "
            + ", ".join(d.name for d in descriptors)
        )

    package = matches[0]
    if package.version != trigger.full_version:
        raise PublicationError(
            f"Trigger '{trigger.raw}' doesn't match package version: {package.file_name}"
        )
    return matches


def plan_publication(
    descriptors: Iterable[PackageDescriptor],
    trigger: Optional[str],
    can_publish_docs: bool = True,
) -> PublicationDecision:
    """Decide which packages to publish and whether to publish documentation.

    Args:
        descriptors: Packages produced by the build
        trigger: Raw release trigger (e.g. a git tag)
        can_publish_docs: False when documentation must not be published
            regardless of the trigger (e.g. publishing a previous build's output)

    Returns:
        The publication decision; a decision that publishes nothing carries
        an informational message

    Raises:
        BuildUsageError: If the trigger is missing
        PublicationError: If no packages were found, or the trigger matches
            the wrong number of packages or the wrong version
    """
    descriptors = list(descriptors)
    if not descriptors:
        raise PublicationError("No NuGet packages found.")

    resolved = resolve_trigger(trigger)
    if isinstance(resolved, InvalidTrigger):
        raise BuildUsageError(resolved.reason)

    if any(d.version == "0.0.0" for d in descriptors):
        return PublicationDecision(
            message="Not publishing package with version 0.0.0. Change package version to publish."
        )

    match resolved:
        case MatchedTrigger():
            selected = _select_for_version_trigger(descriptors, resolved)
            should_publish_packages = True
            should_publish_docs = can_publish_docs and not resolved.is_prerelease
        case UnstructuredTrigger():
            selected = descriptors
            should_publish_packages, should_publish_docs = resolved.publish_intents
            should_publish_docs = can_publish_docs and should_publish_docs
        case _:
            raise TypeError(f"Unexpected trigger: {resolved!r}")

    if not should_publish_packages and not should_publish_docs:
        return PublicationDecision(
            packages=tuple(selected),
            message=f"To publish to NuGet, push this tag: v{descriptors[0].version}",
        )

    return PublicationDecision(
        packages=tuple(selected),
        should_publish_packages=should_publish_packages,
        should_publish_docs=should_publish_docs,
    )
