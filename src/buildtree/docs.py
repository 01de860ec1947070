"""
Documentation generation and publishing.

Documentation lives in a git repository: either a temporary clone of a
configured remote, or the working copy the build runs in. Generated files
are committed and pushed only when they changed.
"""

from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Mapping, Optional, Union

from buildtree.git import GitClient, GitLoginInfo, GitRepository
from buildtree.logging import Logger
from buildtree.packages import PackageDescriptor
from buildtree.process_runner import ProcessRunner
from buildtree.publication import PublicationError
from buildtree.settings import ResolvedDocsSettings
from buildtree.utility import find_files_from, force_delete_directory

PathLike = Union[str, Path]

COMMIT_MESSAGE = "Documentation updated."
GITHUB_BRANCH_REF_PREFIX = "refs/heads/"


class AssemblyFinder(ABC):
    """Locates the compiled assembly to document for a package."""

    @abstractmethod
    def find_assembly(self, package_name: str) -> Optional[str]:
        """Return the assembly path, or None if there is none."""
        ...


class DocumentationGenerator(ABC):
    """Writes documentation for one assembly into a directory."""

    @abstractmethod
    def generate(self, assembly_path: str, output_dir: str, source_url: str) -> None:
        """
        Args:
            assembly_path: Assembly to document
            output_dir: Directory that receives the generated files
            source_url: Base URL of the package's source code, for links
        """
        ...


class DocsFilter(ABC):
    """Decides which packages get documentation."""

    @abstractmethod
    def project_has_docs(self, package_name: str) -> bool:
        ...


class CredentialsProvider(ABC):
    """Supplies git credentials for a remote URL."""

    @abstractmethod
    def get_credentials(self, url: str) -> Optional[GitLoginInfo]:
        ...


class AllProjectsHaveDocs(DocsFilter):
    def project_has_docs(self, package_name: str) -> bool:
        return True


class StaticCredentialsProvider(CredentialsProvider):
    """Always returns the same login."""

    def __init__(self, login: Optional[GitLoginInfo]) -> None:
        self._login = login

    def get_credentials(self, url: str) -> Optional[GitLoginInfo]:
        return self._login


class GlobAssemblyFinder(AssemblyFinder):
    """
    Finds assemblies in the conventional build output locations.

    A project under tools/XmlDocTarget takes precedence over the package's
    own output under src/<name>. When several builds exist (one per target
    framework, for example), the most recently written one wins.
    """

    def __init__(self, root: PathLike = ".", configuration: Optional[str] = None) -> None:
        self._root = Path(root)
        self._configuration = configuration

    def find_assembly(self, package_name: str) -> Optional[str]:
        for pattern in (
            f"tools/XmlDocTarget/bin/**/{package_name}.dll",
            f"src/{package_name}/bin/**/{package_name}.dll",
        ):
            found = find_files_from(self._root, pattern)
            if self._configuration:
                found = [path for path in found if self._configuration in path.parts] or found
            if found:
                return str(max(found, key=lambda path: path.stat().st_mtime))
        return None


class XmlDocMarkdownGenerator(DocumentationGenerator):
    """
    Generates Markdown with the xmldocmd tool.

    Uses tools_directory/xmldocmd when it exists, otherwise the local dotnet
    tool from the tool manifest.
    """

    def __init__(self, runner: ProcessRunner, tools_directory: PathLike = "tools/bin") -> None:
        self._runner = runner
        self._tools_directory = Path(tools_directory)

    def generate(self, assembly_path: str, output_dir: str, source_url: str) -> None:
        args = [assembly_path, output_dir, "--source", source_url, "--newline", "lf", "--clean"]
        tool_path = self._tools_directory / "xmldocmd"
        if tool_path.exists():
            self._runner.run(tool_path, args)
        else:
            self._runner.run("dotnet", ["tool", "run", "xmldocmd", *args])


class DocsWorkspace:
    """A checked-out documentation repository on the branch to publish."""

    def __init__(
        self,
        repository: GitRepository,
        branch: str,
        settings: ResolvedDocsSettings,
        generator: DocumentationGenerator,
        assembly_finder: AssemblyFinder,
        docs_filter: DocsFilter,
        credentials: CredentialsProvider,
        logger: Logger,
    ) -> None:
        self.repository = repository
        self.branch = branch
        self._settings = settings
        self._generator = generator
        self._assembly_finder = assembly_finder
        self._docs_filter = docs_filter
        self._credentials = credentials
        self._logger = logger

    @property
    def docs_path(self) -> Path:
        return self.repository.path / self._settings.target_directory

    def generate(self, packages: Iterable[PackageDescriptor]) -> list[str]:
        """
        Generate documentation for each package that should have it.

        Returns:
            Names of the packages that were documented
        """
        documented = []
        for package in packages:
            if not self._docs_filter.project_has_docs(package.name):
                self._logger.debug(f"Skipping documentation for {package.name}")
                continue

            assembly_path = self._assembly_finder.find_assembly(package.name)
            if assembly_path is None:
                self._logger.info(f"Documentation not generated for {package.name}; assembly not found.")
                continue

            self._generator.generate(
                assembly_path,
                str(self.docs_path),
                f"{self._settings.source_code_url}/{package.name}",
            )
            documented.append(package.name)

        return documented

    def is_dirty(self) -> bool:
        return self.repository.is_dirty()

    def commit_and_push(self) -> None:
        """Commit every change and push it to origin on the workspace branch."""
        if self._settings.git_author is None:
            raise PublicationError("GitLogin and GitAuthor must be set to publish documentation.")

        self._logger.info("Publishing documentation changes.")
        self.repository.stage_all()
        self.repository.commit(COMMIT_MESSAGE, self._settings.git_author)
        login = self._credentials.get_credentials(self.repository.remote_url("origin"))
        self.repository.push("origin", self.branch, login)


class DocumentationPublisher:
    """
    Publishes generated documentation to a git branch.

    Example:
        publisher = DocumentationPublisher(settings, GitClient(runner), generator, finder, logger)
        with publisher.open_workspace() as workspace:
            workspace.generate(packages)
            if workspace.is_dirty():
                workspace.commit_and_push()
    """

    def __init__(
        self,
        settings: ResolvedDocsSettings,
        git: GitClient,
        generator: DocumentationGenerator,
        assembly_finder: AssemblyFinder,
        logger: Logger,
        working_directory: PathLike = ".",
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._settings = settings
        self._git = git
        self._generator = generator
        self._assembly_finder = assembly_finder
        self._logger = logger
        self._working_directory = Path(working_directory)
        self._environ = os.environ if environ is None else environ
        self._docs_filter = settings.project_has_docs or AllProjectsHaveDocs()
        self._credentials = settings.credentials_provider or StaticCredentialsProvider(settings.git_login)

    def _branch_from_environment(self) -> Optional[str]:
        branch = self._environ.get("APPVEYOR_REPO_BRANCH")
        if branch:
            return branch
        ref = self._environ.get("GITHUB_REF", "")
        if ref.startswith(GITHUB_BRANCH_REF_PREFIX):
            return ref[len(GITHUB_BRANCH_REF_PREFIX):] or None
        return None

    def _resolve_local_branch(self, repository: GitRepository) -> Optional[str]:
        head = repository.head_branch()
        branch = self._settings.git_branch_name or head or self._branch_from_environment()
        if branch and branch != head:
            self._logger.info(f"Checking out branch {branch}.")
            repository.checkout_branch(branch)
        return branch

    def _remove_clone(self, directory: str) -> None:
        try:
            force_delete_directory(directory)
        except OSError as e:
            self._logger.warn(f"Failed to delete documentation clone {directory}: {e}")

    @contextmanager
    def open_workspace(self) -> Iterator[DocsWorkspace]:
        """
        Check out the documentation repository for the duration of the block.

        Raises:
            PublicationError: If no branch can be determined
            GitError: If the clone fails
        """
        url = self._settings.git_repository_url
        clone_directory: Optional[str] = None
        try:
            if url:
                clone_directory = tempfile.mkdtemp(prefix="buildtree-docs-")
                self._logger.info(f"Cloning documentation repository from {url} to {clone_directory}")
                repository = self._git.clone(
                    url,
                    clone_directory,
                    branch=self._settings.git_branch_name,
                    credentials=self._credentials.get_credentials(url),
                )
                branch = self._settings.git_branch_name or repository.head_branch()
            else:
                repository = self._git.open(self._working_directory)
                branch = self._resolve_local_branch(repository)

            if not branch:
                raise PublicationError("Could not determine repository branch for publishing docs.")

            self._logger.debug(f"Publishing documentation from {repository.path} on branch {branch}")
            yield DocsWorkspace(
                repository,
                branch,
                self._settings,
                self._generator,
                self._assembly_finder,
                self._docs_filter,
                self._credentials,
                self._logger,
            )
        finally:
            if clone_directory is not None:
                self._remove_clone(clone_directory)

    def publish(self, packages: Iterable[PackageDescriptor]) -> bool:
        """
        Generate documentation and push it if anything changed.

        Returns:
            True if a commit was pushed
        """
        with self.open_workspace() as workspace:
            workspace.generate(packages)
            if not workspace.is_dirty():
                self._logger.info("Documentation is up to date.")
                return False
            workspace.commit_and_push()
            return True
