"""Release trigger parsing.

A trigger is the string that says what release event happened, usually a
git tag such as "v1.2.3", "mypkg-v1.2.3-beta" or "publish-all".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Union

TRIGGER_PATTERN = re.compile(
    r"^((?P<name>[^/]+)-)?v(?P<version>[0-9]+\.[0-9]+\.[0-9]+)(-(?P<suffix>.+))?$"
)

# Keyword -> (publish packages, publish docs)
PUBLISH_KEYWORDS: dict[str, tuple[bool, bool]] = {
    "publish-package": (True, False),
    "publish-packages": (True, False),
    "publish-docs": (False, True),
    "publish-all": (True, True),
    # Publishes the output of a previous build; docs are never published
    "publish-nuget-output": (True, False),
}

DETECT_TRIGGER = "detect"
PUBLISH_NUGET_OUTPUT = "publish-nuget-output"


@dataclass(frozen=True)
class MatchedTrigger:
    """A trigger that follows the (<name>-)v<version>(-<suffix>) grammar."""

    name: str
    version: str
    suffix: str
    raw: str = ""

    @property
    def full_version(self) -> str:
        """Version as it appears in package file names, suffix included."""
        return f"{self.version}-{self.suffix}" if self.suffix else self.version

    @property
    def is_prerelease(self) -> bool:
        return bool(self.suffix)


@dataclass(frozen=True)
class UnstructuredTrigger:
    """Any other non-empty trigger, compared against fixed keywords."""

    literal: str

    @property
    def publish_intents(self) -> tuple[bool, bool]:
        """(publish packages, publish docs) for this literal."""
        return PUBLISH_KEYWORDS.get(self.literal, (False, False))


@dataclass(frozen=True)
class InvalidTrigger:
    """A missing or empty trigger."""

    reason: str


ResolvedTrigger = Union[MatchedTrigger, UnstructuredTrigger, InvalidTrigger]


def resolve_trigger(trigger: Optional[str]) -> ResolvedTrigger:
    """Parse a trigger string.

    Args:
        trigger: Raw trigger, e.g. "v1.2.3", "tool-v2.0.0-beta" or "publish-docs"

    Returns:
        MatchedTrigger if the string follows the version grammar,
        UnstructuredTrigger for any other non-empty string, and
        InvalidTrigger if the trigger is missing

    Examples:
        "v1.2.3" -> MatchedTrigger(name="", version="1.2.3", suffix="")
        "tool-v2.0.0-beta" -> MatchedTrigger(name="tool", version="2.0.0", suffix="beta")
    """
    if not trigger:
        return InvalidTrigger("A trigger is required to publish (e.g. --trigger v1.2.3).")

    match = TRIGGER_PATTERN.match(trigger)
    if match is None:
        return UnstructuredTrigger(trigger)

    return MatchedTrigger(
        name=match.group("name") or "",
        version=match.group("version"),
        suffix=match.group("suffix") or "",
        raw=trigger,
    )


def get_suffix_from_trigger(trigger: Optional[str]) -> Optional[str]:
    """Prerelease suffix carried by a version trigger, if any."""
    resolved = resolve_trigger(trigger)
    if isinstance(resolved, MatchedTrigger) and resolved.suffix:
        return resolved.suffix
    return None


def detect_trigger(tags: Iterable[str]) -> Optional[str]:
    """Pick the best trigger from the tags that point at the current commit.

    The highest version tag wins. A release outranks a prerelease of the
    same version, and among prereleases the ordinally greatest suffix wins.
    Without version tags, the first "publish-" tag is used.

    Args:
        tags: Tag names at HEAD

    Returns:
        The chosen tag, or None if no tag is a trigger
    """
    tags = list(tags)
    versioned = []
    for tag in tags:
        resolved = resolve_trigger(tag)
        if isinstance(resolved, MatchedTrigger):
            versioned.append((tag, resolved))

    if versioned:
        def sort_key(item: tuple[str, MatchedTrigger]) -> tuple:
            major, minor, patch = (int(part) for part in item[1].version.split("."))
            return (major, minor, patch, not item[1].suffix, item[1].suffix)

        return max(versioned, key=sort_key)[0]

    return next((tag for tag in tags if tag.startswith("publish-")), None)
