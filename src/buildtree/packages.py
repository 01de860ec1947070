"""Package descriptor extraction from package artifact file names."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Union

from buildtree.errors import BuildError

PACKAGE_FILE_PATTERN = re.compile(
    r"^(?P<name>.+)\.(?P<version>[0-9]+\.[0-9]+\.[0-9]+(-(?P<suffix>.+))?)\.nupkg$"
)


class PackageNameError(BuildError):
    """Raised when a file name does not look like a package artifact."""

    pass


@dataclass(frozen=True)
class PackageDescriptor:
    """Name and version parsed from a package artifact file name.

    The version keeps its prerelease suffix (e.g. "1.2.3-beta"); suffix is
    the part after the hyphen, or "" for a release build.
    """

    name: str
    version: str
    suffix: str = ""
    path: str = ""

    @property
    def file_name(self) -> str:
        return Path(self.path).name if self.path else f"{self.name}.{self.version}.nupkg"

    @property
    def is_prerelease(self) -> bool:
        return bool(self.suffix)


def get_package_info(path: Union[str, Path]) -> PackageDescriptor:
    """Parse a package artifact path into a PackageDescriptor.

    Args:
        path: Path to a file named <name>.<version>[-<suffix>].nupkg

    Returns:
        The parsed descriptor

    Raises:
        PackageNameError: If the file name doesn't follow the pattern

    Examples:
        "release/Foo.Bar.1.2.3.nupkg" -> ("Foo.Bar", "1.2.3", "")
        "Foo.2.0.0-beta.1.nupkg" -> ("Foo", "2.0.0-beta.1", "beta.1")
    """
    file_name = Path(path).name
    match = PACKAGE_FILE_PATTERN.match(file_name)
    if match is None:
        raise PackageNameError(f"Not a package file name: {file_name}")

    return PackageDescriptor(
        name=match.group("name"),
        version=match.group("version"),
        suffix=match.group("suffix") or "",
        path=str(path),
    )


def get_package_infos(paths: Iterable[Union[str, Path]]) -> list[PackageDescriptor]:
    """Parse several package artifact paths, preserving order."""
    return [get_package_info(path) for path in paths]
