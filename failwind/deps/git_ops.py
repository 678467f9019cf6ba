"""
Git Operations for Plugin Management.

This module builds the git command lines used by plugin jobs.

Key features:
- Clone plugins from git repositories
- Fetch new data and sync remote source
- Checkout arbitrary revisions
- Commit summaries between revisions

Commands are returned as argv lists so they can be executed by the job
runner (in parallel) or by the state inspector (inline).
"""

from pathlib import Path

GIT = "git"

# Format of commit summaries shown in change sets and the log
LOG_FORMAT = "--format=%h %s"


def clone_cmd(source: str, target_dir: Path) -> list[str]:
    """Command to clone plugin source into target directory."""
    return [
        GIT, "clone", "--quiet", "--filter=blob:none",
        "--recurse-submodules", "--origin", "origin",
        source, str(target_dir),
    ]


def fetch_cmd() -> list[str]:
    """Command to download new data from plugin source."""
    return [
        GIT, "fetch", "--quiet", "--tags", "--force",
        "--recurse-submodules=yes", "origin",
    ]


def set_source_cmd(source: str) -> list[str]:
    """Command to point `origin` remote to a (possibly new) source."""
    return [GIT, "remote", "set-url", "origin", source]


def checkout_cmd(revision: str) -> list[str]:
    """Command to checkout plugin at revision."""
    return [GIT, "checkout", "--quiet", revision]


def rev_parse_cmd(revision: str) -> list[str]:
    return [GIT, "rev-parse", "--verify", "--quiet", f"{revision}^{{commit}}"]


def get_source_cmd() -> list[str]:
    return [GIT, "remote", "get-url", "origin"]


def remote_branches_cmd() -> list[str]:
    return [GIT, "branch", "--list", "--remotes", "--format=%(refname:short)"]


def default_branch_cmd() -> list[str]:
    return [GIT, "rev-parse", "--abbrev-ref", "origin/HEAD"]


def log_cmd(from_rev: str, to_rev: str) -> list[str]:
    """Command to list commit summaries reachable from `to_rev` but not `from_rev`."""
    return [GIT, "log", LOG_FORMAT, f"{from_rev}..{to_rev}"]


def work_tree_cmd() -> list[str]:
    return [GIT, "rev-parse", "--is-inside-work-tree"]
