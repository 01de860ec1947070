"""Tests for docs module."""

import os
import time
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import patch

from buildtree.docs import (
    AllProjectsHaveDocs,
    DocsFilter,
    DocumentationPublisher,
    GlobAssemblyFinder,
    StaticCredentialsProvider,
    XmlDocMarkdownGenerator,
)
from buildtree.git import GitAuthorInfo, GitLoginInfo
from buildtree.packages import get_package_info
from buildtree.publication import PublicationError
from buildtree.settings import ResolvedDocsSettings
from helpers.git import DictAssemblyFinder, FakeGitClient, FakeGitRepository, RecordingGenerator
from helpers.logging import RecordingLogger
from helpers.process_runner import FakeProcessRunner

LOGIN = GitLoginInfo("bot", "token")
AUTHOR = GitAuthorInfo("Build Bot", "bot@example.com")


def docs_settings(**kwargs):
    values = {
        "git_login": LOGIN,
        "git_author": AUTHOR,
        "source_code_url": "https://github.com/example/acme/tree/master/src",
    }
    values.update(kwargs)
    return ResolvedDocsSettings(**values)


class OnlyCore(DocsFilter):
    def project_has_docs(self, package_name):
        return package_name.endswith(".Core")


class CountingCredentials(StaticCredentialsProvider):
    def __init__(self, login):
        super().__init__(login)
        self.urls = []

    def get_credentials(self, url):
        self.urls.append(url)
        return super().get_credentials(url)


class TestDocumentationPublisherClone(unittest.TestCase):
    def setUp(self):
        self.git = FakeGitClient()
        self.generator = RecordingGenerator()
        self.finder = DictAssemblyFinder({"Acme.Core": "src/Acme.Core/bin/Release/Acme.Core.dll"})
        self.logger = RecordingLogger()
        self.packages = [get_package_info("release/Acme.Core.1.0.0.nupkg")]

    def make_publisher(self, settings):
        return DocumentationPublisher(settings, self.git, self.generator, self.finder, self.logger, environ={})

    def test_publish_clones_generates_commits_and_pushes(self):
        """Test publish clones the docs repository, generates, commits and pushes."""
        settings = docs_settings(git_repository_url="https://github.com/example/acme.git", git_branch_name="gh-pages")

        pushed = self.make_publisher(settings).publish(self.packages)

        self.assertTrue(pushed)
        clone = self.git.clones[0]
        self.assertEqual(clone["url"], "https://github.com/example/acme.git")
        self.assertEqual(clone["branch"], "gh-pages")
        self.assertEqual(clone["credentials"], LOGIN)

        repository = self.git.cloned[0]
        self.assertEqual(
            self.generator.calls,
            [(
                "src/Acme.Core/bin/Release/Acme.Core.dll",
                str(repository.path / "docs"),
                "https://github.com/example/acme/tree/master/src/Acme.Core",
            )],
        )
        self.assertTrue(repository.staged)
        self.assertEqual(repository.commits, [("Documentation updated.", AUTHOR)])
        self.assertEqual(repository.pushes, [("origin", "gh-pages", LOGIN)])

    def test_clone_is_deleted_afterwards(self):
        """Test the temporary clone is deleted when the workspace closes."""
        settings = docs_settings(git_repository_url="https://github.com/example/acme.git")

        self.make_publisher(settings).publish(self.packages)

        self.assertFalse(Path(self.git.clones[0]["directory"]).exists())

    def test_clone_is_deleted_when_block_raises(self):
        """Test the temporary clone is deleted even when the block raises."""
        settings = docs_settings(git_repository_url="https://github.com/example/acme.git")

        with self.assertRaises(RuntimeError):
            with self.make_publisher(settings).open_workspace():
                raise RuntimeError("generation failed")

        self.assertFalse(Path(self.git.clones[0]["directory"]).exists())

    def test_cleanup_failure_does_not_mask_original_error(self):
        """Test a failed cleanup is logged without replacing the raised error."""
        settings = docs_settings(git_repository_url="https://github.com/example/acme.git")

        with patch("buildtree.docs.force_delete_directory", side_effect=OSError("locked")):
            with self.assertRaises(RuntimeError):
                with self.make_publisher(settings).open_workspace():
                    raise RuntimeError("generation failed")

        self.assertIn("locked", self.logger.text())
        os.rmdir(self.git.clones[0]["directory"])

    def test_branch_defaults_to_clone_head(self):
        """Test the branch falls back to the HEAD branch of the clone."""
        settings = docs_settings(git_repository_url="https://github.com/example/acme.git")

        with self.make_publisher(settings).open_workspace() as workspace:
            self.assertEqual(workspace.branch, "gh-pages")

    def test_clean_tree_is_not_pushed(self):
        """Test nothing is committed or pushed when generation changes nothing."""
        self.generator.writes_files = False
        settings = docs_settings(git_repository_url="https://github.com/example/acme.git")

        pushed = self.make_publisher(settings).publish(self.packages)

        self.assertFalse(pushed)
        self.assertEqual(self.git.cloned[0].commits, [])
        self.assertEqual(self.git.cloned[0].pushes, [])

    def test_credentials_fetched_for_every_operation(self):
        """Test credentials are requested again for the clone and the push."""
        credentials = CountingCredentials(LOGIN)
        settings = docs_settings(
            git_repository_url="https://github.com/example/acme.git",
            credentials_provider=credentials,
        )

        self.make_publisher(settings).publish(self.packages)

        self.assertEqual(len(credentials.urls), 2)

    def test_missing_assembly_is_skipped(self):
        """Test packages without an assembly are skipped with a message."""
        self.finder.assemblies.clear()
        settings = docs_settings(git_repository_url="https://github.com/example/acme.git")

        with self.make_publisher(settings).open_workspace() as workspace:
            self.assertEqual(workspace.generate(self.packages), [])

        self.assertEqual(self.generator.calls, [])
        self.assertIn("Documentation not generated for Acme.Core; assembly not found.", self.logger.text())

    def test_docs_filter(self):
        """Test packages rejected by the docs filter are not documented."""
        self.finder.assemblies["Acme.Tools"] = "Acme.Tools.dll"
        packages = self.packages + [get_package_info("Acme.Tools.1.0.0.nupkg")]
        settings = docs_settings(git_repository_url="https://github.com/example/acme.git", project_has_docs=OnlyCore())

        with self.make_publisher(settings).open_workspace() as workspace:
            self.assertEqual(workspace.generate(packages), ["Acme.Core"])

    def test_commit_requires_author(self):
        """Test committing without a git author is a publication error."""
        settings = docs_settings(git_repository_url="https://github.com/example/acme.git", git_author=None)

        with self.assertRaises(PublicationError):
            self.make_publisher(settings).publish(self.packages)


class TestDocumentationPublisherLocal(unittest.TestCase):
    def setUp(self):
        self._tmpdir = TemporaryDirectory()
        self.local = FakeGitRepository(self._tmpdir.name, head_branch="master")
        self.git = FakeGitClient(local=self.local)
        self.logger = RecordingLogger()

    def tearDown(self):
        self._tmpdir.cleanup()

    def make_publisher(self, settings, environ=None):
        return DocumentationPublisher(
            settings,
            self.git,
            RecordingGenerator(),
            DictAssemblyFinder({}),
            self.logger,
            working_directory=self._tmpdir.name,
            environ=environ or {},
        )

    def test_uses_head_branch(self):
        """Test the local working copy publishes on its HEAD branch."""
        with self.make_publisher(docs_settings()).open_workspace() as workspace:
            self.assertIs(workspace.repository, self.local)
            self.assertEqual(workspace.branch, "master")
        self.assertEqual(self.local.checkouts, [])
        self.assertTrue(Path(self._tmpdir.name).exists())

    def test_configured_branch_is_checked_out(self):
        """Test a configured branch other than HEAD is checked out."""
        with self.make_publisher(docs_settings(git_branch_name="docs")).open_workspace() as workspace:
            self.assertEqual(workspace.branch, "docs")
        self.assertEqual(self.local.checkouts, ["docs"])

    def test_detached_head_uses_appveyor_branch(self):
        """Test a detached HEAD falls back to APPVEYOR_REPO_BRANCH."""
        self.local.head = None
        publisher = self.make_publisher(docs_settings(), environ={"APPVEYOR_REPO_BRANCH": "main"})
        with publisher.open_workspace() as workspace:
            self.assertEqual(workspace.branch, "main")
        self.assertEqual(self.local.checkouts, ["main"])

    def test_detached_head_uses_github_ref(self):
        """Test a detached HEAD falls back to a GITHUB_REF branch ref."""
        self.local.head = None
        publisher = self.make_publisher(docs_settings(), environ={"GITHUB_REF": "refs/heads/release/2.x"})
        with publisher.open_workspace() as workspace:
            self.assertEqual(workspace.branch, "release/2.x")

    def test_github_tag_ref_is_not_a_branch(self):
        """Test a GITHUB_REF tag ref does not count as a branch."""
        self.local.head = None
        publisher = self.make_publisher(docs_settings(), environ={"GITHUB_REF": "refs/tags/v1.0.0"})
        with self.assertRaises(PublicationError) as cm:
            with publisher.open_workspace():
                pass
        self.assertEqual(str(cm.exception), "Could not determine repository branch for publishing docs.")


class TestGlobAssemblyFinder(unittest.TestCase):
    def test_prefers_xml_doc_target_then_newest(self):
        """Test the XmlDocTarget output wins, then the newest assembly."""
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            older = root / "src/Acme/bin/Release/net6.0/Acme.dll"
            newer = root / "src/Acme/bin/Release/net8.0/Acme.dll"
            for path in [older, newer]:
                path.parent.mkdir(parents=True)
                path.write_text("")
            past = time.time() - 100
            os.utime(older, (past, past))

            finder = GlobAssemblyFinder(root)
            self.assertEqual(finder.find_assembly("Acme"), str(newer))

            target = root / "tools/XmlDocTarget/bin/Release/net8.0/Acme.dll"
            target.parent.mkdir(parents=True)
            target.write_text("")
            os.utime(target, (past, past))
            self.assertEqual(finder.find_assembly("Acme"), str(target))

    def test_not_found(self):
        """Test None is returned when no assembly exists."""
        with TemporaryDirectory() as tmpdir:
            self.assertIsNone(GlobAssemblyFinder(tmpdir).find_assembly("Acme"))


class TestXmlDocMarkdownGenerator(unittest.TestCase):
    def test_uses_dotnet_local_tool(self):
        """Test xmldocmd runs as a local dotnet tool by default."""
        runner = FakeProcessRunner()
        with TemporaryDirectory() as tmpdir:
            XmlDocMarkdownGenerator(runner, Path(tmpdir) / "bin").generate("Acme.dll", "docs", "https://src/Acme")

        self.assertEqual(
            runner.commands,
            [["dotnet", "tool", "run", "xmldocmd", "Acme.dll", "docs", "--source", "https://src/Acme",
              "--newline", "lf", "--clean"]],
        )

    def test_uses_tools_directory_executable(self):
        """Test xmldocmd from the tools directory is preferred when present."""
        runner = FakeProcessRunner()
        with TemporaryDirectory() as tmpdir:
            tool = Path(tmpdir) / "xmldocmd"
            tool.write_text("")
            XmlDocMarkdownGenerator(runner, tmpdir).generate("Acme.dll", "docs", "https://src/Acme")

        self.assertEqual(runner.commands[0][0], str(tool))


class TestFilters(unittest.TestCase):
    def test_all_projects_have_docs(self):
        """Test the default filter documents every package."""
        self.assertTrue(AllProjectsHaveDocs().project_has_docs("Anything"))


if __name__ == "__main__":
    unittest.main()
