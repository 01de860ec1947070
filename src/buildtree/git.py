"""Git transport over the git command-line client."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote, urlsplit, urlunsplit

from buildtree.errors import BuildError
from buildtree.process_runner import ProcessFailedError, ProcessRunner

PathLike = Union[str, Path]


@dataclass(frozen=True)
class GitLoginInfo:
    """Credentials for git network operations."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class GitAuthorInfo:
    """Name and email recorded on commits."""

    name: str
    email: str


class GitError(BuildError):
    """Raised when a git operation fails."""

    pass


def describe_login_problems(login: Optional[GitLoginInfo]) -> str:
    """Suffix for error messages noting empty credential fields."""
    if login is None:
        return ""
    problems = []
    if not login.username:
        problems.append("no username")
    if not login.password:
        problems.append("no password")
    return f" ({', '.join(problems)})" if problems else ""


def with_credentials(url: str, login: Optional[GitLoginInfo]) -> str:
    """Embed credentials in an HTTP(S) remote URL; other URLs are returned as-is."""
    parts = urlsplit(url)
    if login is None or parts.scheme not in ("http", "https"):
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    userinfo = f"{quote(login.username, safe='')}:{quote(login.password, safe='')}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


class GitRepository:
    """A git working copy, driven through the git CLI."""

    def __init__(self, path: PathLike, runner: ProcessRunner) -> None:
        self.path = Path(path)
        self._runner = runner

    def _git(self, *args: Optional[str], accept_failure: bool = False) -> tuple[int, list[str]]:
        lines: list[str] = []
        exit_code = self._runner.run(
            "git",
            list(args),
            working_directory=self.path,
            is_exit_code_success=(lambda code: True) if accept_failure else None,
            handle_output_line=lines.append,
        )
        return exit_code, lines

    def _git_output(self, *args: str) -> str:
        _, lines = self._git(*args)
        return "\n".join(lines).strip()

    def is_dirty(self) -> bool:
        """True if the working tree has staged, unstaged or untracked changes."""
        _, lines = self._git("status", "--porcelain")
        return any(line.strip() for line in lines)

    def stage_all(self) -> None:
        self._git("add", "--all")

    def commit(self, message: str, author: GitAuthorInfo) -> None:
        """Commit staged changes as the given author (also used as committer)."""
        self._git(
            "-c", f"user.name={author.name}",
            "-c", f"user.email={author.email}",
            "commit",
            "--message", message,
            "--author", f"{author.name} <{author.email}>",
        )

    def push(self, remote: str, branch: str, credentials: Optional[GitLoginInfo]) -> None:
        """Push a local branch to the same branch on a remote."""
        url = with_credentials(self.remote_url(remote), credentials)
        try:
            self._git("push", url, f"refs/heads/{branch}:refs/heads/{branch}")
        except ProcessFailedError as e:
            raise GitError(
                f"Failed to push to branch {branch}{describe_login_problems(credentials)}: "
                f"git exited with code {e.exit_code}"
            ) from e

    def remote_url(self, name: str = "origin") -> str:
        return self._git_output("remote", "get-url", name)

    def head_branch(self) -> Optional[str]:
        """Name of the checked-out branch, or None if HEAD is detached."""
        exit_code, lines = self._git("symbolic-ref", "--quiet", "--short", "HEAD", accept_failure=True)
        if exit_code != 0 or not lines:
            return None
        return lines[0].strip() or None

    def head_sha(self) -> str:
        return self._git_output("rev-parse", "HEAD")

    def has_branch(self, name: str) -> bool:
        exit_code, _ = self._git("rev-parse", "--verify", "--quiet", f"refs/heads/{name}", accept_failure=True)
        return exit_code == 0

    def checkout_branch(self, name: str) -> None:
        """Check out a branch, creating it at HEAD if it doesn't exist."""
        if self.has_branch(name):
            self._git("checkout", name)
        else:
            self._git("checkout", "-b", name)

    def tags_at_head(self) -> list[str]:
        _, lines = self._git("tag", "--points-at", "HEAD")
        return [line.strip() for line in lines if line.strip()]


class GitClient:
    """Opens and clones repositories."""

    def __init__(self, runner: ProcessRunner) -> None:
        self._runner = runner

    def clone(
        self,
        url: str,
        directory: PathLike,
        branch: Optional[str] = None,
        credentials: Optional[GitLoginInfo] = None,
    ) -> GitRepository:
        """Clone a remote into a directory.

        The credentials are used for the clone only; origin is left pointing
        at the plain URL.
        """
        args = ["clone", "--quiet"]
        if branch:
            args += ["--branch", branch]
        args += [with_credentials(url, credentials), str(directory)]
        try:
            self._runner.run("git", args, handle_output_line=lambda line: None)
        except ProcessFailedError as e:
            raise GitError(
                f"Failed to clone {url}{f' branch {branch}' if branch else ''} to {directory}"
                f"{describe_login_problems(credentials)}: git exited with code {e.exit_code}"
            ) from e

        repository = GitRepository(directory, self._runner)
        if credentials is not None:
            repository._git("remote", "set-url", "origin", url)
        return repository

    def open(self, directory: PathLike) -> GitRepository:
        """Open the repository containing a directory, searching parent directories."""
        current = Path(directory).resolve()
        for candidate in [current, *current.parents]:
            if (candidate / ".git").exists():
                return GitRepository(candidate, self._runner)
        raise GitError(f"{directory} is not part of a valid git repository.")
