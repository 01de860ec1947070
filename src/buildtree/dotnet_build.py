"""
Standard targets for building, testing, packaging and publishing a .NET
solution.

A build script calls add_dotnet_targets() from its initialize function:

    def initialize(build):
        add_dotnet_targets(build, DotNetBuildSettings(solution_name="Example.sln"))

This adds clean, restore, build, test, package and publish targets, plus
the command-line options they read.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from buildtree.docs import DocumentationPublisher, DocsWorkspace, GlobAssemblyFinder, XmlDocMarkdownGenerator
from buildtree.dotnet import DotNetRunner
from buildtree.errors import BuildError
from buildtree.git import GitClient
from buildtree.logging import Logger
from buildtree.packages import get_package_infos
from buildtree.process_runner import ProcessRunner, SubprocessRunner
from buildtree.publication import PublicationDecision, PublicationError, plan_publication
from buildtree.settings import (
    DotNetBuildSettings,
    ResolvedDotNetBuildSettings,
    load_config,
    parse_verbosity,
    resolve_settings,
)
from buildtree.targets import BuildApp, BuildFlag, BuildOption
from buildtree.trigger import DETECT_TRIGGER, PUBLISH_NUGET_OUTPUT, detect_trigger, get_suffix_from_trigger
from buildtree.utility import delete_directory, find_directories, find_files_from

DOTNET_TOOL_MANIFEST = Path(".config") / "dotnet-tools.json"


@dataclass
class DotNetBuildOptions:
    """Command-line options read by the standard targets."""

    configuration: BuildOption
    verbosity: BuildOption
    version_suffix: BuildOption
    nuget_output: BuildOption
    trigger: BuildOption
    build_number: BuildOption
    no_test: BuildFlag


def add_dotnet_options(build: BuildApp, settings: ResolvedDotNetBuildSettings) -> DotNetBuildOptions:
    """Register the options the standard targets read."""
    return DotNetBuildOptions(
        configuration=build.add_option(
            "-c|--configuration <name>",
            f"The configuration to build (default {settings.configuration})",
        ),
        verbosity=build.add_option(
            "-v|--verbosity <level>",
            "The build verbosity (q[uiet], m[inimal], n[ormal], d[etailed], diag[nostic])",
        ),
        version_suffix=build.add_option("--version-suffix <suffix>", "Generates a prerelease package"),
        nuget_output=build.add_option(
            "--nuget-output <path>",
            f"Directory for generated package (default {settings.nuget_output})",
        ),
        trigger=build.add_option(
            "--trigger <name>",
            "The git branch or tag that triggered the build ('detect' to use tags at HEAD)",
        ),
        build_number=build.add_option("--build-number <number>", "The automated build number"),
        no_test=build.add_flag("--no-test", "Skip the unit tests"),
    )


class DotNetBuild:
    """
    Actions behind the standard targets.

    Option values are read when an action runs, so they reflect the command
    line of the current invocation.
    """

    def __init__(
        self,
        settings: ResolvedDotNetBuildSettings,
        options: DotNetBuildOptions,
        runner: ProcessRunner,
        logger: Logger,
        git: Optional[GitClient] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.settings = settings
        self.options = options
        self.runner = runner
        self.logger = logger
        self.dotnet = DotNetRunner(runner, logger)
        self.git = git if git is not None else GitClient(runner)
        self.environ = os.environ if environ is None else environ
        self.package_paths: Optional[list[Path]] = None

    # Settings that command-line options can override

    @property
    def configuration(self) -> str:
        return self.options.configuration.value or self.settings.configuration

    @property
    def verbosity_arg(self) -> str:
        verbosity = self.options.verbosity.value
        return f"-v:{parse_verbosity(verbosity) if verbosity else self.settings.verbosity}"

    @property
    def build_number_arg(self) -> Optional[str]:
        build_number = self.options.build_number.value or self.settings.build_number
        return f"-p:BuildNumber={build_number}" if build_number else None

    @property
    def nuget_output_path(self) -> Path:
        return Path(self.options.nuget_output.value or self.settings.nuget_output).resolve()

    def get_trigger(self) -> Optional[str]:
        """The trigger option, with 'detect' replaced by the best tag at HEAD."""
        trigger = self.options.trigger.value
        if trigger == DETECT_TRIGGER:
            repository = self.git.open(".")
            detected = detect_trigger(repository.tags_at_head())
            if detected is not None:
                self.logger.info(f"Detected trigger: {detected}")
                return detected
        return trigger

    # Target actions

    def clean(self) -> None:
        tools_directory = Path(self.settings.tools_directory).resolve()
        for directory in find_directories(*self.settings.clean_globs):
            resolved = directory.resolve()
            if resolved == tools_directory or tools_directory in resolved.parents:
                continue
            if "node_modules" in resolved.parts:
                continue
            delete_directory(directory)

        self.dotnet.run_dotnet(
            "clean", self.settings.solution_name,
            "-c", self.configuration,
            self.build_number_arg,
            self.verbosity_arg,
        )

    def restore(self) -> None:
        self.dotnet.run_dotnet(
            "restore", self.settings.solution_name,
            self.build_number_arg,
            self.verbosity_arg,
        )
        if DOTNET_TOOL_MANIFEST.exists():
            self.dotnet.run_dotnet("tool", "restore")

    def build(self) -> None:
        self.dotnet.run_dotnet(
            "build", self.settings.solution_name,
            "-c", self.configuration,
            self.build_number_arg,
            "--no-restore",
            self.verbosity_arg,
        )

    def test(self) -> None:
        if self.options.no_test.value:
            self.logger.info("Skipping unit tests due to --no-test.")
            return

        for path in self.settings.test_paths or [self.settings.solution_name]:
            self.dotnet.run_dotnet(
                "test", path,
                "-c", self.configuration,
                self.build_number_arg,
                "--no-build",
                self.verbosity_arg,
                "--",
                "RunConfiguration.TreatNoTestsAsError=true",
            )

    def package(self) -> None:
        self.package_paths = self.build_packages()

    def build_packages(self) -> list[Path]:
        """
        Pack every package project into the NuGet output directory.

        Packages are written to a scratch directory first, so only the
        packages from this run are reported.

        Raises:
            BuildError: If no packages were created
        """
        version_suffix = self.options.version_suffix.value or get_suffix_from_trigger(self.get_trigger())
        output_path = self.nuget_output_path
        output_path.mkdir(parents=True, exist_ok=True)
        temp_output_path = Path(tempfile.mkdtemp(dir=output_path))

        created: list[Path] = []
        try:
            for project in self.settings.package_projects or [self.settings.solution_name]:
                self.dotnet.run_dotnet(
                    "pack", project,
                    "-c", self.configuration,
                    self.build_number_arg,
                    "--no-build",
                    "--output", str(temp_output_path),
                    "--version-suffix" if version_suffix else None, version_suffix,
                )

            for temp_package_path in find_files_from(temp_output_path, "*.nupkg"):
                package_path = output_path / temp_package_path.name
                temp_package_path.replace(package_path)
                created.append(package_path)
                self.logger.info(f"NuGet package: {package_path}")
        finally:
            delete_directory(temp_output_path)

        if not created:
            raise BuildError("No NuGet packages created.")

        return created

    def publish(self) -> None:
        if self.options.trigger.value == PUBLISH_NUGET_OUTPUT:
            # Used with --skip package to publish the output of a previous build
            package_paths = find_files_from(self.nuget_output_path, "*.nupkg")
            self.publish_packages(package_paths, can_publish_docs=False)
        else:
            if self.package_paths is None:
                self.package_paths = self.build_packages()
            self.publish_packages(self.package_paths, can_publish_docs=True)

    def publish_packages(self, package_paths: Sequence[Path], can_publish_docs: bool) -> None:
        """
        Publish packages and documentation as the trigger dictates.

        Every precondition is checked before anything is pushed. Documentation
        is generated before packages are pushed and committed after, and is
        not pushed if every package push was a duplicate.
        """
        decision = plan_publication(get_package_infos(package_paths), self.get_trigger(), can_publish_docs)
        if decision.is_noop:
            self.logger.info(decision.message)
            return

        docs_settings = self.settings.docs
        should_publish_docs = decision.should_publish_docs and docs_settings is not None

        if decision.should_publish_packages and not self.settings.nuget_api_key:
            raise PublicationError("NuGetApiKey required to publish.")
        if should_publish_docs and (
            (docs_settings.git_login is None and docs_settings.credentials_provider is None)
            or docs_settings.git_author is None
        ):
            raise PublicationError("GitLogin and GitAuthor must be set to publish documentation.")

        with ExitStack() as stack:
            workspace: Optional[DocsWorkspace] = None
            should_push_docs = False
            if should_publish_docs:
                workspace = stack.enter_context(self.create_docs_publisher().open_workspace())
                workspace.generate(decision.packages)
                should_push_docs = workspace.is_dirty()

            if decision.should_publish_packages and not self._push_packages(decision):
                should_push_docs = False

            if should_push_docs:
                workspace.commit_and_push()
            elif workspace is not None:
                self.logger.info("No documentation changes to publish.")

    def _push_packages(self, decision: PublicationDecision) -> bool:
        """Push the selected packages; True if at least one was not a duplicate."""
        pushed_any = False
        for package in decision.packages_to_publish:
            if self.dotnet.push_package(package.path, self.settings.nuget_source, self.settings.nuget_api_key):
                pushed_any = True
            else:
                self.logger.info(f"Package already pushed: {package.name} {package.version}")
        return pushed_any

    def create_docs_publisher(self) -> DocumentationPublisher:
        docs_settings = self.settings.docs
        generator = docs_settings.generator or XmlDocMarkdownGenerator(self.runner, self.settings.tools_directory)
        assembly_finder = docs_settings.assembly_finder or GlobAssemblyFinder(".", self.configuration)
        return DocumentationPublisher(
            docs_settings,
            self.git,
            generator,
            assembly_finder,
            self.logger,
            environ=self.environ,
        )


def add_dotnet_targets(
    build: BuildApp,
    settings: Optional[DotNetBuildSettings] = None,
    runner: Optional[ProcessRunner] = None,
    git: Optional[GitClient] = None,
    config: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DotNetBuild:
    """
    Add the standard .NET targets to a build.

    Args:
        build: The build to add targets and options to
        settings: Caller settings (default: all defaults)
        runner: Process runner (default: a SubprocessRunner using the build's logger)
        git: Git client (default: one using the runner)
        config: Configuration values (default: loaded from config files)
        environ: Environment variables (default: os.environ)

    Returns:
        The object whose methods implement the targets
    """
    config = load_config() if config is None else config
    resolved = resolve_settings(settings, config, environ)
    runner = runner if runner is not None else SubprocessRunner(build.logger)
    options = add_dotnet_options(build, resolved)
    dotnet_build = DotNetBuild(resolved, options, runner, build.logger, git=git, environ=environ)

    build.target("clean").describe("Deletes all build output").does(dotnet_build.clean)
    build.target("restore").describe("Restores NuGet packages").does(dotnet_build.restore)
    build.target("build").depends_on("restore").describe("Builds the solution").does(dotnet_build.build)
    build.target("test").depends_on("build").describe("Runs the unit tests").does(dotnet_build.test)
    build.target("package").depends_on("test").describe("Creates NuGet packages").does(dotnet_build.package)
    build.target("publish").depends_on("package").describe(
        "Publishes NuGet packages and documentation"
    ).does(dotnet_build.publish)

    return dotnet_build
