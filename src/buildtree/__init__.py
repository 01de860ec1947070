"""Build Tree - dependency-ordered build targets with release publishing for build scripts."""

__version__ = "0.1.0"

from buildtree.cli import execute
from buildtree.dotnet_build import DotNetBuild, add_dotnet_targets
from buildtree.errors import BuildError, BuildUsageError
from buildtree.executor import Executor, ExitStatus
from buildtree.git import GitAuthorInfo, GitLoginInfo
from buildtree.graph import CycleError, TargetNotFoundError, build_dependency_tree, resolve_execution_order
from buildtree.packages import PackageDescriptor, get_package_info
from buildtree.publication import PublicationDecision, PublicationError, plan_publication
from buildtree.settings import DocsSettings, DotNetBuildSettings, resolve_settings
from buildtree.targets import BuildApp, BuildFlag, BuildOption, Target
from buildtree.trigger import resolve_trigger

__all__ = [
    "__version__",
    "execute",
    "DotNetBuild",
    "add_dotnet_targets",
    "BuildError",
    "BuildUsageError",
    "Executor",
    "ExitStatus",
    "GitAuthorInfo",
    "GitLoginInfo",
    "CycleError",
    "TargetNotFoundError",
    "build_dependency_tree",
    "resolve_execution_order",
    "PackageDescriptor",
    "get_package_info",
    "PublicationDecision",
    "PublicationError",
    "plan_publication",
    "DocsSettings",
    "DotNetBuildSettings",
    "resolve_settings",
    "BuildApp",
    "BuildFlag",
    "BuildOption",
    "Target",
    "resolve_trigger",
]
