"""File system helpers for build actions."""

from __future__ import annotations

import os
import shutil
import stat
import time
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def _expand_globs(directory: PathLike, globs: tuple[str, ...], want_dirs: bool) -> list[Path]:
    base_path = Path(directory)
    found: list[Path] = []
    seen: set[Path] = set()

    for pattern in globs:
        for match in sorted(base_path.glob(pattern)):
            if match.is_dir() != want_dirs or match in seen:
                continue
            seen.add(match)
            found.append(match)

    return found


def find_files(*globs: str) -> list[Path]:
    """Find files under the current directory matching any of the globs."""
    return find_files_from(".", *globs)


def find_files_from(directory: PathLike, *globs: str) -> list[Path]:
    """Find files under a directory matching any of the globs.

    Args:
        directory: Directory to search from
        *globs: pathlib glob patterns, e.g. "*.nupkg" or "src/**/bin/*.dll"

    Returns:
        Matching file paths (prefixed with directory), without duplicates
    """
    return _expand_globs(directory, globs, want_dirs=False)


def find_directories(*globs: str) -> list[Path]:
    """Find directories under the current directory matching any of the globs."""
    return find_directories_from(".", *globs)


def find_directories_from(directory: PathLike, *globs: str) -> list[Path]:
    """Find directories under a directory matching any of the globs."""
    return _expand_globs(directory, globs, want_dirs=True)


def delete_directory(path: PathLike) -> None:
    """Delete a directory tree; a missing directory is not an error.

    Retries once after a short pause, since virus scanners and indexers can
    briefly hold files open.
    """
    for attempt in range(2):
        try:
            shutil.rmtree(path)
            return
        except FileNotFoundError:
            return
        except PermissionError:
            raise
        except OSError:
            if attempt == 1:
                raise
            time.sleep(0.05)


def force_delete_directory(path: PathLike) -> None:
    """Delete a directory tree, clearing read-only attributes if needed.

    Git checkouts mark object files read-only, which makes a plain delete
    fail on Windows.
    """
    try:
        delete_directory(path)
    except PermissionError:
        for root, dirs, files in os.walk(path, followlinks=False):
            for name in [*dirs, *files]:
                entry = os.path.join(root, name)
                if os.path.islink(entry):
                    continue
                mode = os.stat(entry).st_mode
                if not mode & stat.S_IWRITE:
                    os.chmod(entry, mode | stat.S_IWRITE)
        delete_directory(path)
