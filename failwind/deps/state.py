"""
Plugin State Inspection.

This module provides read-only queries against a plugin directory.

Key features:
- Current checked out revision
- Configured remote source
- Known remote branches and default branch
- Commit summaries between two revisions
"""

import subprocess
from pathlib import Path

from failwind.deps import git_ops
from failwind.deps.errors import DepsError


class StateError(DepsError):
    """Base exception for state inspection errors."""

    pass


class NotAModule(StateError):
    """Raised when a path is not a plugin git repository."""

    pass


class RevisionNotFound(StateError):
    """Raised when a revision or revision range does not resolve."""

    pass


class StateInspector:
    """
    Read-only view of on-disk plugin state.

    None of the methods modify the repository.
    """

    def __init__(self, timeout: int | None = None):
        """
        Initialize StateInspector.

        Args:
            timeout: Timeout in milliseconds for each git call (None for no limit)
        """
        self.timeout = timeout

    def _git(self, path: Path, cmd: list[str]) -> subprocess.CompletedProcess:
        if not path.is_dir():
            raise NotAModule(f"Plugin directory does not exist: {path}")
        try:
            return subprocess.run(
                cmd,
                cwd=path,
                capture_output=True,
                text=True,
                timeout=None if self.timeout is None else self.timeout / 1000,
                check=False,
            )
        except FileNotFoundError as e:
            raise StateError("git command not found. Please install git.") from e
        except subprocess.TimeoutExpired as e:
            raise StateError(f"git {cmd[1]} timed out in {path}") from e

    def ensure_module(self, path: Path) -> None:
        """
        Check that path is a plugin git repository.

        Raises:
            NotAModule: If path is not a git work tree root
        """
        result = self._git(path, git_ops.work_tree_cmd())
        if result.returncode != 0 or result.stdout.strip() != "true":
            raise NotAModule(f"Not a git repository: {path}")
        if not (path / ".git").exists():
            raise NotAModule(f"Not a plugin repository root: {path}")

    def resolve(self, path: Path, revision: str) -> str:
        """
        Resolve revision (branch, tag, commit, HEAD) into commit hash.

        Raises:
            NotAModule: If path is not a plugin repository
            RevisionNotFound: If revision does not resolve to a commit
        """
        self.ensure_module(path)
        result = self._git(path, git_ops.rev_parse_cmd(revision))
        commit = result.stdout.strip()
        if result.returncode != 0 or not commit:
            raise RevisionNotFound(f"Revision {revision!r} not found in {path.name}")
        return commit

    def current_revision(self, path: Path) -> str:
        return self.resolve(path, "HEAD")

    def source(self, path: Path) -> str | None:
        """Get URL of `origin` remote, None if it is not configured."""
        self.ensure_module(path)
        result = self._git(path, git_ops.get_source_cmd())
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def remote_branches(self, path: Path) -> list[str]:
        """List branch names of `origin` remote (without "origin/" prefix)."""
        self.ensure_module(path)
        result = self._git(path, git_ops.remote_branches_cmd())
        if result.returncode != 0:
            return []

        branches = []
        for line in result.stdout.splitlines():
            ref = line.strip()
            if not ref.startswith("origin/") or ref == "origin/HEAD":
                continue
            branches.append(ref[len("origin/"):])
        return branches

    def default_branch(self, path: Path) -> str | None:
        """Get default branch of `origin` remote, None if unknown."""
        self.ensure_module(path)
        result = self._git(path, git_ops.default_branch_cmd())
        ref = result.stdout.strip()
        if result.returncode != 0 or not ref.startswith("origin/"):
            return None
        return ref[len("origin/"):]

    def log(self, path: Path, from_rev: str, to_rev: str) -> list[str]:
        """
        List commit summaries in `from_rev..to_rev`, newest first.

        Raises:
            NotAModule: If path is not a plugin repository
            RevisionNotFound: If range does not resolve
        """
        self.ensure_module(path)
        result = self._git(path, git_ops.log_cmd(from_rev, to_rev))
        if result.returncode != 0:
            raise RevisionNotFound(
                f"Could not list commits {from_rev}..{to_rev} in {path.name}: "
                f"{result.stderr.strip()}"
            )
        return [line for line in result.stdout.splitlines() if line.strip()]
