"""
Change Planning.

This module compares declared plugin state against on-disk state and
produces a reviewable change set.

Key features:
- One change entry per plugin per planning pass
- Target revision resolution for branches, tags, commits and HEAD
- Commit summaries of the pending range
- Monitor branch log for awareness (never triggers an update)
- Delete entries for plugins no longer declared
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from failwind.deps.jobs import JobResult
from failwind.deps.spec import PluginSpec
from failwind.deps.state import StateError, StateInspector


class ChangeKind(Enum):
    """Kind of a planned change."""

    NEW = "new"
    UPDATE = "update"
    SAME = "same"
    DELETE = "delete"
    ERROR = "error"


@dataclass(frozen=True)
class Change:
    """
    One row of a change set.

    Attributes:
        name: Plugin name
        kind: Change kind
        path: Plugin directory
        source: Plugin source
        from_rev: Current revision (update/same/delete)
        to_rev: Resolved target revision (update/same)
        target: Checkout target which was resolved
        commits: Summaries of commits in `from_rev..to_rev`
        removed: Summaries of commits in `to_rev..from_rev`
        monitor: Monitor branch
        monitor_commits: Summaries of commits in monitor branch not in target
        error: Error message for error entries
    """

    name: str
    kind: ChangeKind
    path: Path
    source: str | None = None
    from_rev: str | None = None
    to_rev: str | None = None
    target: str | None = None
    commits: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    monitor: str | None = None
    monitor_commits: tuple[str, ...] = ()
    error: str | None = None

    @property
    def range(self) -> tuple[str, str] | None:
        if self.from_rev is None or self.to_rev is None:
            return None
        return (self.from_rev, self.to_rev)


class ChangeSet:
    """
    Ordered collection of changes, one per plugin.

    Instances are immutable once created.
    """

    ACTIONABLE = (ChangeKind.NEW, ChangeKind.UPDATE, ChangeKind.DELETE)

    def __init__(self, changes: Iterable[Change]):
        changes = tuple(changes)
        by_name: dict[str, Change] = {}
        for change in changes:
            if change.name in by_name:
                raise ValueError(f"Duplicate change entry for {change.name!r}")
            by_name[change.name] = change
        self._changes = changes
        self._by_name = by_name

    def __iter__(self) -> Iterator[Change]:
        return iter(self._changes)

    def __len__(self) -> int:
        return len(self._changes)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __repr__(self) -> str:
        return f"ChangeSet({[(c.name, c.kind.value) for c in self._changes]})"

    def get(self, name: str) -> Change | None:
        return self._by_name.get(name)

    def names(self) -> list[str]:
        return [change.name for change in self._changes]

    def by_kind(self, *kinds: ChangeKind) -> list[Change]:
        return [change for change in self._changes if change.kind in kinds]

    def pending(self) -> list[Change]:
        """Changes which would modify disk state when applied."""
        return self.by_kind(*self.ACTIONABLE)

    def has_errors(self) -> bool:
        return any(change.kind is ChangeKind.ERROR for change in self._changes)


def resolve_target(
    inspector: StateInspector, path: Path, checkout: str | None
) -> tuple[str, str]:
    """
    Resolve checkout target of a plugin.

    Args:
        inspector: State inspector
        path: Plugin directory
        checkout: Checkout target from spec (None for default branch)

    Returns:
        Tuple of (target description, commit hash)

    Raises:
        StateError: If target can not be resolved
    """
    if checkout is None:
        branch = inspector.default_branch(path)
        if branch is None:
            return "HEAD", inspector.current_revision(path)
        checkout = branch

    if checkout in inspector.remote_branches(path):
        # Branches are tracked by their remote tip, local branch may be stale
        return checkout, inspector.resolve(path, f"origin/{checkout}")
    return checkout, inspector.resolve(path, checkout)


def _monitor_log(
    inspector: StateInspector,
    path: Path,
    monitor: str | None,
    target: str,
    to_rev: str,
) -> tuple[str | None, tuple[str, ...]]:
    if monitor is None:
        monitor = inspector.default_branch(path)
    if monitor is None or monitor == target:
        return monitor, ()
    if monitor not in inspector.remote_branches(path):
        return monitor, ()
    return monitor, tuple(inspector.log(path, to_rev, f"origin/{monitor}"))


def plan_module(
    spec: PluginSpec,
    path: Path,
    inspector: StateInspector,
    fetch_result: JobResult | None = None,
) -> Change:
    """
    Plan change of a single plugin.

    Args:
        spec: Plugin specification
        path: Plugin directory
        inspector: State inspector
        fetch_result: Result of preceding fetch job, if one was run

    Returns:
        Change entry for plugin
    """
    if not path.exists():
        return Change(
            name=spec.name,
            kind=ChangeKind.NEW,
            path=path,
            source=spec.source,
            target=spec.checkout,
            monitor=spec.monitor,
        )

    if fetch_result is not None and not fetch_result.ok:
        return Change(
            name=spec.name,
            kind=ChangeKind.ERROR,
            path=path,
            source=spec.source,
            monitor=spec.monitor,
            error=str(fetch_result.error),
        )

    source = spec.source
    try:
        if source is None:
            source = inspector.source(path)
        from_rev = inspector.current_revision(path)
        target, to_rev = resolve_target(inspector, path, spec.checkout)
        monitor, monitor_commits = _monitor_log(
            inspector, path, spec.monitor, target, to_rev
        )

        if from_rev == to_rev:
            return Change(
                name=spec.name,
                kind=ChangeKind.SAME,
                path=path,
                source=source,
                from_rev=from_rev,
                to_rev=to_rev,
                target=target,
                monitor=monitor,
                monitor_commits=monitor_commits,
            )

        return Change(
            name=spec.name,
            kind=ChangeKind.UPDATE,
            path=path,
            source=source,
            from_rev=from_rev,
            to_rev=to_rev,
            target=target,
            commits=tuple(inspector.log(path, from_rev, to_rev)),
            removed=tuple(inspector.log(path, to_rev, from_rev)),
            monitor=monitor,
            monitor_commits=monitor_commits,
        )
    except StateError as e:
        return Change(
            name=spec.name,
            kind=ChangeKind.ERROR,
            path=path,
            source=source,
            monitor=spec.monitor,
            error=str(e),
        )


def plan_update(
    specs: Iterable[PluginSpec],
    paths: Mapping[str, Path],
    inspector: StateInspector,
    fetch_results: Mapping[str, JobResult] | None = None,
) -> ChangeSet:
    """
    Plan update of plugins.

    Args:
        specs: Plugin specifications in dependency order
        paths: Plugin name -> plugin directory
        inspector: State inspector
        fetch_results: Plugin name -> result of fetch job (online update)

    Returns:
        ChangeSet with one entry per spec, in the order of `specs`
    """
    fetch_results = fetch_results or {}
    return ChangeSet(
        plan_module(spec, paths[spec.name], inspector, fetch_results.get(spec.name))
        for spec in specs
    )


def plan_clean(
    registered: Iterable[str],
    opt_dir: Path,
    inspector: StateInspector | None = None,
) -> ChangeSet:
    """
    Plan deletion of plugins present on disk but not registered.

    Args:
        registered: Names of plugins in current session
        opt_dir: Directory containing plugin directories
        inspector: Optional state inspector to record current revision

    Returns:
        ChangeSet with one delete entry per unregistered plugin, sorted by name
    """
    if not opt_dir.is_dir():
        return ChangeSet([])

    registered = set(registered)
    changes = []
    for path in sorted(opt_dir.iterdir(), key=lambda p: p.name):
        if not path.is_dir() or path.name in registered:
            continue

        from_rev = source = None
        if inspector is not None:
            try:
                from_rev = inspector.current_revision(path)
                source = inspector.source(path)
            except StateError:
                # Not a git repository, still eligible for deletion
                pass

        changes.append(
            Change(
                name=path.name,
                kind=ChangeKind.DELETE,
                path=path,
                source=source,
                from_rev=from_rev,
            )
        )
    return ChangeSet(changes)
