"""
Git helpers for integration tests.

Integration tests use real git repositories in temporary directories and
are skipped when git is not installed.
"""

import shutil
import subprocess
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

_GIT_IDENTITY = [
    "-c", "user.name=Test Author",
    "-c", "user.email=test@example.com",
    "-c", "commit.gpgsign=false",
]


def git(path: Path, *args: str) -> str:
    """Run git in path and return stripped stdout."""
    result = subprocess.run(
        ["git", *_GIT_IDENTITY, *args],
        cwd=path,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def make_upstream(path: Path, files: dict[str, str] | None = None) -> str:
    """
    Create upstream repository on `main` with one commit.

    Returns:
        Hash of created commit
    """
    path.mkdir(parents=True)
    git(path, "init", "--quiet", "-b", "main")
    return commit(path, files or {"init.lua": "return {}\n"}, "Initial commit")


def commit(path: Path, files: dict[str, str], message: str) -> str:
    """Write files, commit them and return commit hash."""
    for name, content in files.items():
        (path / name).write_text(content)
    git(path, "add", ".")
    git(path, "commit", "--quiet", "-m", message)
    return git(path, "rev-parse", "HEAD")


