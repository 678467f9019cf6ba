"""
pm session helpers.

Shared plumbing of pm commands: configuration, declared plugin list,
interactive confirmation and plan formatting.

Declared plugins live in a TOML file (`path.spec` option):

    [[plugin]]
    source = "echasnovski/mini.nvim"

    [[plugin]]
    source = "nvim-treesitter/nvim-treesitter"
    checkout = "master"
    monitor = "main"
    depends = ["nvim-lua/plenary.nvim"]
    hooks = { post_checkout = "make" }
"""

import logging
import sys
from pathlib import Path
from typing import Any

import tomlkit

from failwind.config import DepsConfig, load_config
from failwind.config.toml_handler import TOMLError, read_toml, write_text
from failwind.deps.manager import DepsManager
from failwind.deps.planner import Change, ChangeKind, ChangeSet
from failwind.deps.spec import normalize_spec

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    """Configure diagnostics (stderr; DEBUG when verbose)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def open_config(args: Any) -> DepsConfig:
    config_file = Path(args.config) if getattr(args, "config", None) else None
    return load_config(config_file)


def load_declared(path: Path) -> list[Any]:
    """
    Read declared plugin specifications.

    Args:
        path: Plugin declaration file

    Returns:
        Raw specs (strings or tables), empty if file does not exist

    Raises:
        TOMLError: If file can not be parsed or has invalid structure
    """
    if not path.exists():
        return []

    plugins = read_toml(path).get("plugin", [])
    if not isinstance(plugins, list):
        raise TOMLError(f"`plugin` in {path} should be an array of tables")
    return plugins


def declare(path: Path, raw: str) -> bool:
    """
    Append plugin to declaration file unless it is already declared.

    Args:
        path: Plugin declaration file
        raw: Plugin source or name

    Returns:
        Whether file was changed
    """
    name = normalize_spec(raw).name
    for declared in load_declared(path):
        if normalize_spec(declared).name == name:
            return False

    if path.exists():
        doc = tomlkit.parse(path.read_text(encoding="utf-8"))
    else:
        doc = tomlkit.document()
    if "plugin" not in doc:
        doc.add("plugin", tomlkit.aot())

    table = tomlkit.table()
    table.add("source" if "/" in raw else "name", raw)
    doc["plugin"].append(table)
    write_text(path, tomlkit.dumps(doc))
    return True


def open_session(config: DepsConfig) -> DepsManager:
    """
    Create manager with all declared plugins registered (nothing installed).
    """
    manager = DepsManager(config)
    for raw in load_declared(config.path.spec):
        manager.register(raw)
    logger.debug("Registered %d plugins from %s", len(manager.registry), config.path.spec)
    return manager


_MARKS = {
    ChangeKind.NEW: "+",
    ChangeKind.UPDATE: "~",
    ChangeKind.SAME: "=",
    ChangeKind.DELETE: "-",
    ChangeKind.ERROR: "!",
}


def _format_change(change: Change) -> list[str]:
    head = f"{_MARKS[change.kind]} {change.name}"
    if change.kind is ChangeKind.NEW:
        return [f"{head}  (install from {change.source})"]
    if change.kind is ChangeKind.DELETE:
        return [f"{head}  ({change.path})"]
    if change.kind is ChangeKind.ERROR:
        return [f"{head}  error: {change.error}"]

    lines = [f"{head}  {change.from_rev} -> {change.to_rev} ({change.target})"]
    lines.extend(f"    > {commit}" for commit in change.commits)
    lines.extend(f"    < {commit}" for commit in change.removed)
    if change.monitor_commits:
        lines.append(f"    Pending in `{change.monitor}`:")
        lines.extend(f"    > {commit}" for commit in change.monitor_commits)
    return lines


def format_plan(plan: ChangeSet, verbose: bool = False) -> str:
    """
    Format change set for review.

    Unchanged plugins are shown only if verbose or they have monitor commits.
    """
    lines = []
    for change in plan:
        if change.kind is ChangeKind.SAME and not (verbose or change.monitor_commits):
            continue
        lines.extend(_format_change(change))
    return "\n".join(lines)


def prompt_confirm(plan: ChangeSet) -> list[str] | None:
    """
    Ask user which changes to apply.

    Answers: empty or "y" applies everything, "n" cancels, otherwise a
    space separated list of plugin names.

    Returns:
        Selected plugin names, or None to cancel
    """
    print(format_plan(plan))
    pending = [change.name for change in plan.pending()]
    try:
        answer = input(f"\n:: Apply {len(pending)} changes? [Y/n/names] ").strip()
    except EOFError:
        return None

    if answer.lower() in ("", "y", "yes"):
        return pending
    if answer.lower() in ("n", "no"):
        return None

    selected = answer.replace(",", " ").split()
    unknown = [name for name in selected if name not in pending]
    if unknown:
        print(f"Ignoring unknown names: {', '.join(unknown)}", file=sys.stderr)
    return [name for name in selected if name in pending]
