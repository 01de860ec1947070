"""
Build settings, configuration files, and resolution of both into one
immutable set of values.

Callers describe only what they care about in DotNetBuildSettings; every
field left as None is filled from configuration files and then from
built-in defaults by resolve_settings(). The caller's objects are never
modified.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional

import platformdirs
import yaml

from buildtree.errors import BuildError
from buildtree.git import GitAuthorInfo, GitLoginInfo

if TYPE_CHECKING:
    from buildtree.docs import (
        AssemblyFinder,
        CredentialsProvider,
        DocsFilter,
        DocumentationGenerator,
    )

__all__ = [
    "ConfigError",
    "DocsSettings",
    "DotNetBuildSettings",
    "ResolvedDocsSettings",
    "ResolvedDotNetBuildSettings",
    "find_project_config",
    "get_machine_config_path",
    "get_user_config_path",
    "load_config",
    "parse_config_file",
    "parse_verbosity",
    "resolve_settings",
]

APP_NAME = "buildtree"
PROJECT_CONFIG_NAME = ".buildtree-config.yml"

DEFAULT_NUGET_SOURCE = "https://api.nuget.org/v3/index.json"
DEFAULT_NUGET_OUTPUT = "release"
DEFAULT_CONFIGURATION = "Release"
DEFAULT_VERBOSITY = "minimal"
DEFAULT_TOOLS_DIRECTORY = "tools/bin"
DEFAULT_DOCS_DIRECTORY = "docs"

# CI variables that carry the build number, in order of preference
BUILD_NUMBER_VARIABLES = ("APPVEYOR_BUILD_NUMBER", "GITHUB_RUN_NUMBER", "BUILD_NUMBER")

VERBOSITY_ALIASES = {
    "q": "quiet",
    "quiet": "quiet",
    "m": "minimal",
    "minimal": "minimal",
    "n": "normal",
    "normal": "normal",
    "d": "detailed",
    "detailed": "detailed",
    "diag": "diagnostic",
    "diagnostic": "diagnostic",
}


class ConfigError(BuildError):
    """
    Raised when a configuration file is invalid.
    """

    pass


@dataclass
class DocsSettings:
    """Caller-provided documentation publishing settings."""

    git_login: Optional[GitLoginInfo] = None
    git_author: Optional[GitAuthorInfo] = None
    git_repository_url: Optional[str] = None
    git_branch_name: Optional[str] = None
    target_directory: Optional[str] = None
    source_code_url: Optional[str] = None
    project_has_docs: Optional[DocsFilter] = None
    assembly_finder: Optional[AssemblyFinder] = None
    generator: Optional[DocumentationGenerator] = None
    credentials_provider: Optional[CredentialsProvider] = None


@dataclass
class DotNetBuildSettings:
    """Caller-provided build settings; None means "use the default"."""

    solution_name: Optional[str] = None
    nuget_api_key: Optional[str] = None
    nuget_source: Optional[str] = None
    nuget_output: Optional[str] = None
    configuration: Optional[str] = None
    verbosity: Optional[str] = None
    build_number: Optional[str] = None
    tools_directory: Optional[str] = None
    package_projects: Optional[list[str]] = None
    test_paths: Optional[list[str]] = None
    clean_globs: Optional[list[str]] = None
    docs: Optional[DocsSettings] = None


@dataclass(frozen=True)
class ResolvedDocsSettings:
    """Documentation settings with every default filled in."""

    git_login: Optional[GitLoginInfo] = None
    git_author: Optional[GitAuthorInfo] = None
    git_repository_url: Optional[str] = None
    git_branch_name: Optional[str] = None
    target_directory: str = DEFAULT_DOCS_DIRECTORY
    source_code_url: str = ""
    project_has_docs: Optional[DocsFilter] = None
    assembly_finder: Optional[AssemblyFinder] = None
    generator: Optional[DocumentationGenerator] = None
    credentials_provider: Optional[CredentialsProvider] = None


@dataclass(frozen=True)
class ResolvedDotNetBuildSettings:
    """Build settings with every default filled in."""

    solution_name: Optional[str] = None
    nuget_api_key: Optional[str] = field(default=None, repr=False)
    nuget_source: str = DEFAULT_NUGET_SOURCE
    nuget_output: str = DEFAULT_NUGET_OUTPUT
    configuration: str = DEFAULT_CONFIGURATION
    verbosity: str = DEFAULT_VERBOSITY
    build_number: Optional[str] = None
    tools_directory: str = DEFAULT_TOOLS_DIRECTORY
    package_projects: tuple[str, ...] = ()
    test_paths: tuple[str, ...] = ()
    clean_globs: tuple[str, ...] = (
        "src/**/bin",
        "src/**/obj",
        "tests/**/bin",
        "tests/**/obj",
        "tools/**/bin",
        "tools/**/obj",
    )
    docs: Optional[ResolvedDocsSettings] = None


def parse_verbosity(value: str) -> str:
    """Normalize a verbosity name or abbreviation (q, m, n, d, diag)."""
    normalized = VERBOSITY_ALIASES.get(value.lower())
    if normalized is None:
        raise BuildError(f"Unexpected verbosity option: {value}")
    return normalized


def get_machine_config_path() -> Path:
    """
    Get the path to the machine-level (system-wide) configuration file.

    Returns:
        Path to the machine config file (may not exist)
    """
    config_dir = Path(platformdirs.site_config_dir(APP_NAME))
    return config_dir / "config.yml"


def get_user_config_path() -> Path:
    """
    Get the path to the user-level configuration file.

    Returns:
        Path to the user config file (may not exist)
    """
    config_dir = Path(platformdirs.user_config_dir(APP_NAME))
    return config_dir / "config.yml"


def find_project_config(start_dir: Path) -> Optional[Path]:
    """
    Walk up the directory tree from start_dir to find .buildtree-config.yml.

    Args:
        start_dir: Directory to start searching from

    Returns:
        Path to the project config if found, None otherwise
    """
    try:
        current = start_dir.resolve()
    except (OSError, RuntimeError):
        return None

    for directory in [current, *current.parents]:
        config_path = directory / PROJECT_CONFIG_NAME
        try:
            if config_path.exists():
                return config_path
        except OSError:
            # Unreadable directory; keep walking up
            continue

    return None


def _get_typed(data: Mapping[str, Any], key: str, expected: type, path: Path, prefix: str = "") -> Any:
    value = data.get(key)
    if value is not None and not isinstance(value, expected):
        raise ConfigError(
            f"Error in config file '{path}': Field '{prefix}{key}' must be a {expected.__name__}"
        )
    return value


def parse_config_file(path: Path) -> dict[str, Any]:
    """
    Parse a configuration file into a flat dictionary of settings values.

    Secrets (API keys, passwords) are deliberately not read from config files.

    Args:
        path: Path to the configuration file

    Returns:
        Dictionary of the values present in the file; empty if the file is
        missing or empty. Docs values are keyed as "docs.<field>".

    Raises:
        ConfigError: If the config file is invalid (malformed YAML, unknown
            keys, wrong value types)

    Config File Example:
        ```yaml
        nuget_source: https://nuget.example.com/v3/index.json
        configuration: Release
        docs:
          git_branch_name: gh-pages
          target_directory: docs
          source_code_url: https://github.com/example/project/tree/master/src
          git_author:
            name: Build Bot
            email: buildbot@example.com
        ```
    """
    if not path.exists():
        return {}

    try:
        content = path.read_text()
    except OSError as e:
        raise ConfigError(f"Error reading config file '{path}': {e}") from e

    if not content.strip():
        return {}

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML in config file '{path}': {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Error in config file '{path}': top level must be a dictionary")

    known = {"nuget_source", "nuget_output", "configuration", "verbosity", "tools_directory", "docs"}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Error in config file '{path}': Unknown keys: {', '.join(map(str, unknown))}")

    values: dict[str, Any] = {}
    for key in ("nuget_source", "nuget_output", "configuration", "verbosity", "tools_directory"):
        value = _get_typed(data, key, str, path)
        if value is not None:
            values[key] = value

    if "verbosity" in values:
        try:
            values["verbosity"] = parse_verbosity(values["verbosity"])
        except BuildError as e:
            raise ConfigError(f"Error in config file '{path}': {e}") from e

    docs = _get_typed(data, "docs", dict, path)
    if docs:
        docs_known = {"git_repository_url", "git_branch_name", "target_directory", "source_code_url", "git_author"}
        docs_unknown = sorted(set(docs) - docs_known)
        if docs_unknown:
            raise ConfigError(
                f"Error in config file '{path}': Unknown keys in 'docs': {', '.join(map(str, docs_unknown))}"
            )

        for key in ("git_repository_url", "git_branch_name", "target_directory", "source_code_url"):
            value = _get_typed(docs, key, str, path, prefix="docs.")
            if value is not None:
                values[f"docs.{key}"] = value

        author = _get_typed(docs, "git_author", dict, path, prefix="docs.")
        if author is not None:
            name = _get_typed(author, "name", str, path, prefix="docs.git_author.")
            email = _get_typed(author, "email", str, path, prefix="docs.git_author.")
            if not name or not email:
                raise ConfigError(
                    f"Error in config file '{path}': 'docs.git_author' requires 'name' and 'email'"
                )
            values["docs.git_author"] = GitAuthorInfo(name=name, email=email)

    return values


def load_config(start_dir: Optional[Path] = None) -> dict[str, Any]:
    """
    Load and layer the machine, user and project configuration files.

    Later layers win: project over user over machine.

    Args:
        start_dir: Directory to search for the project config from (default: cwd)

    Returns:
        Merged dictionary of configured values
    """
    merged: dict[str, Any] = {}
    paths = [get_machine_config_path(), get_user_config_path()]
    project_config = find_project_config(start_dir or Path.cwd())
    if project_config is not None:
        paths.append(project_config)

    for path in paths:
        merged.update(parse_config_file(path))

    return merged


def _first(*values: Any) -> Any:
    return next((value for value in values if value is not None), None)


def _resolve_docs(docs: DocsSettings, config: Mapping[str, Any]) -> ResolvedDocsSettings:
    return ResolvedDocsSettings(
        git_login=docs.git_login,
        git_author=_first(docs.git_author, config.get("docs.git_author")),
        git_repository_url=_first(docs.git_repository_url, config.get("docs.git_repository_url")),
        git_branch_name=_first(docs.git_branch_name, config.get("docs.git_branch_name")),
        target_directory=_first(
            docs.target_directory, config.get("docs.target_directory"), DEFAULT_DOCS_DIRECTORY
        ),
        source_code_url=_first(docs.source_code_url, config.get("docs.source_code_url"), "").rstrip("/"),
        project_has_docs=docs.project_has_docs,
        assembly_finder=docs.assembly_finder,
        generator=docs.generator,
        credentials_provider=docs.credentials_provider,
    )


def resolve_settings(
    settings: Optional[DotNetBuildSettings] = None,
    config: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ResolvedDotNetBuildSettings:
    """
    Produce fully-resolved settings without modifying the caller's objects.

    Precedence, highest first: fields set on settings, config values,
    environment variables (build number only), built-in defaults.

    Args:
        settings: Caller settings (default: all defaults)
        config: Values from load_config() (default: none)
        environ: Environment variables (default: os.environ)

    Returns:
        Immutable resolved settings
    """
    settings = settings or DotNetBuildSettings()
    config = config or {}
    environ = os.environ if environ is None else environ

    verbosity = _first(settings.verbosity, config.get("verbosity"), DEFAULT_VERBOSITY)
    build_number = _first(
        settings.build_number,
        *(environ.get(name) for name in BUILD_NUMBER_VARIABLES),
    )
    defaults = ResolvedDotNetBuildSettings()

    return ResolvedDotNetBuildSettings(
        solution_name=settings.solution_name,
        nuget_api_key=settings.nuget_api_key or None,
        nuget_source=_first(settings.nuget_source, config.get("nuget_source"), DEFAULT_NUGET_SOURCE),
        nuget_output=_first(settings.nuget_output, config.get("nuget_output"), DEFAULT_NUGET_OUTPUT),
        configuration=_first(settings.configuration, config.get("configuration"), DEFAULT_CONFIGURATION),
        verbosity=parse_verbosity(verbosity),
        build_number=build_number,
        tools_directory=_first(settings.tools_directory, config.get("tools_directory"), DEFAULT_TOOLS_DIRECTORY),
        package_projects=tuple(settings.package_projects or ()),
        test_paths=tuple(settings.test_paths or ()),
        clean_globs=tuple(settings.clean_globs) if settings.clean_globs is not None else defaults.clean_globs,
        docs=_resolve_docs(settings.docs, config) if settings.docs is not None else None,
    )
