"""
Plugin Dependency Manager.

This module provides the top-level coordinator of plugin synchronization.

Key features:
- Add plugins (with dependencies) and install absent ones in parallel
- Update plugins through a reviewable change set
- Clean plugins no longer registered in current session
- Save, load and apply snapshots
- Explicit state machine; confirmation is a separate `apply()` call

Example:
    manager = DepsManager(load_config())
    await manager.add({"source": "user/repo", "depends": ["user/dep"]})

    plan = await manager.plan_update()
    report = await manager.apply(plan, selections=["repo"])
"""

import asyncio
import logging
import shutil
import sys
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from failwind.config import DepsConfig, load_config
from failwind.deps import git_ops
from failwind.deps.actions import checkout_modules, install_modules
from failwind.deps.errors import DepsError
from failwind.deps.expand import expand_spec
from failwind.deps.jobs import Job, JobPhase, JobResult, JobRunner
from failwind.deps.logfile import LogEntry, UpdateLog
from failwind.deps.models import ModuleRecord, ModuleRegistry, Outcome
from failwind.deps.planner import Change, ChangeKind, ChangeSet, plan_clean, plan_update
from failwind.deps.snapshot import Snapshot, SnapshotEntry, apply_snapshot, load, save
from failwind.deps.spec import InvalidSpec
from failwind.deps.state import StateError, StateInspector

logger = logging.getLogger(__name__)


class SyncState(Enum):
    """Sync orchestrator state enumeration."""

    IDLE = "idle"
    EXPANDING = "expanding"
    INSTALLING = "installing"
    PLANNING = "planning"
    AWAITING_CONFIRM = "awaiting_confirm"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[SyncState, set[SyncState]] = {
    SyncState.IDLE: {SyncState.EXPANDING, SyncState.APPLYING},
    SyncState.EXPANDING: {SyncState.INSTALLING, SyncState.PLANNING},
    SyncState.INSTALLING: {SyncState.DONE, SyncState.FAILED},
    SyncState.PLANNING: {SyncState.AWAITING_CONFIRM, SyncState.APPLYING, SyncState.DONE},
    SyncState.AWAITING_CONFIRM: {SyncState.APPLYING, SyncState.IDLE},
    SyncState.APPLYING: {SyncState.DONE, SyncState.FAILED},
    SyncState.DONE: {SyncState.IDLE},
    SyncState.FAILED: {SyncState.IDLE},
}


@dataclass
class SyncReport:
    """
    Result of an update, clean or snapshot operation.

    Attributes:
        state: Orchestrator state after the operation
        plan: Planned change set (None for snapshot restore)
        outcomes: Per-plugin outcomes of applied changes
    """

    state: SyncState
    plan: ChangeSet | None = None
    outcomes: list[Outcome] = field(default_factory=list)

    @property
    def failed(self) -> list[Outcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def succeeded(self) -> list[Outcome]:
        return [outcome for outcome in self.outcomes if outcome.ok]


class PartiallyApplied(DepsError):
    """Raised after applying changes when some of them failed."""

    def __init__(self, report: SyncReport):
        self.report = report
        names = ", ".join(outcome.name for outcome in report.failed)
        super().__init__(
            f"{len(report.failed)} of {len(report.outcomes)} changes failed: {names}"
        )


# Gets change set, returns names to apply or None to cancel
Confirmer = Callable[[ChangeSet], Iterable[str] | None]


class DepsManager:
    """
    Sync orchestrator.

    Owns the registry of plugins added in current session. Only one
    operation runs at a time.
    """

    def __init__(
        self,
        config: DepsConfig | None = None,
        runner: JobRunner | None = None,
        inspector: StateInspector | None = None,
    ):
        """
        Initialize DepsManager.

        Args:
            config: Configuration (default: load_config())
            runner: Job runner (default: built from `config.job`)
            inspector: State inspector (default: built from `config.job`)
        """
        self.config = config or load_config()
        self.registry = ModuleRegistry(self.config.path.opt_dir)
        self.runner = runner or JobRunner(
            n_threads=self.config.job.n_threads or None,
            timeout=self.config.job.timeout,
        )
        self.inspector = inspector or StateInspector(timeout=self.config.job.timeout)
        self.log = UpdateLog(self.config.path.log)
        self.state = SyncState.IDLE

    # State machine ----------------------------------------------------------

    def _transition(self, new_state: SyncState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise DepsError(
                f"Invalid state transition: {self.state.value} -> {new_state.value}"
            )
        logger.debug("State %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    def _begin(self) -> None:
        if self.state is SyncState.AWAITING_CONFIRM:
            logger.debug("Discarding unconfirmed plan")
        elif self.state not in (SyncState.IDLE, SyncState.DONE, SyncState.FAILED):
            raise DepsError(f"Another operation is in progress ({self.state.value})")
        self.state = SyncState.IDLE

    def _abort(self) -> None:
        # Unexpected error while mutating disk state
        if self.state in (SyncState.INSTALLING, SyncState.APPLYING):
            self.state = SyncState.FAILED
        else:
            self.state = SyncState.IDLE

    def cancel(self) -> None:
        """
        Discard plan awaiting confirmation. Has no side effects.

        Raises:
            DepsError: If there is no plan awaiting confirmation
        """
        if self.state is not SyncState.AWAITING_CONFIRM:
            raise DepsError(f"Nothing to cancel in state {self.state.value}")
        self._transition(SyncState.IDLE)

    # Feedback ---------------------------------------------------------------

    def notify(self, message: str) -> None:
        """Show non-error feedback unless config is silent."""
        if not self.config.silent:
            print(f"(failwind.deps) {message}")

    def _report_error(self, message: str) -> None:
        print(f"(failwind.deps) {message}", file=sys.stderr)

    # Add --------------------------------------------------------------------

    def register(self, spec: Any) -> list[ModuleRecord]:
        """
        Register plugin (and its dependencies) without touching disk.

        Args:
            spec: Plugin specification (string, table or PluginSpec)

        Returns:
            Records of plugin and its dependencies, dependencies first

        Raises:
            InvalidSpec: If specification is invalid (nothing is registered)
        """
        specs = expand_spec(spec)
        for item in specs:
            known = self.registry.get(item.name)
            has_source = item.source is not None or (
                known is not None and known.spec.source is not None
            )
            if not has_source and not (self.registry.opt_dir / item.name).exists():
                raise InvalidSpec(f"Plugin {item.name!r} is not present and has no `source`")
        return [self.registry.register(item) for item in specs]

    async def add(self, spec: Any) -> list[ModuleRecord]:
        """
        Add plugin (and its dependencies) to current session.

        Absent plugins are installed in parallel. Present plugins are not
        touched: their checkout state is not checked (see update()).

        Args:
            spec: Plugin specification (string, table or PluginSpec)

        Returns:
            Records of plugin and its dependencies, dependencies first

        Raises:
            InvalidSpec: If specification is invalid (nothing is registered)
        """
        self._begin()
        self._transition(SyncState.EXPANDING)
        try:
            records = self.register(spec)
        except Exception:
            self._abort()
            raise

        self._transition(SyncState.INSTALLING)
        absent = [record for record in records if not record.path.exists()]
        if absent:
            self.notify(f"Installing {', '.join(r.name for r in absent)}")
        try:
            outcomes = await install_modules(records, self.runner, self.inspector)
        except Exception:
            self._abort()
            raise

        self.log.append("Install", [self._outcome_log_entry(o) for o in outcomes])
        for outcome in outcomes:
            if outcome.ok:
                self.notify(f"Installed `{outcome.name}`")
            else:
                self._report_error(f"Error during install of `{outcome.name}`: {outcome.error}")

        self._transition(SyncState.DONE)
        return records

    def _outcome_log_entry(self, outcome: Outcome) -> LogEntry:
        record = self.registry.get(outcome.name)
        return LogEntry(
            name=outcome.name,
            path=record.path,
            source=record.spec.source,
            state_after=record.revision if outcome.ok else None,
            target=record.spec.checkout,
            error=outcome.error,
        )

    # Planning ---------------------------------------------------------------

    def _select(self, names: Sequence[str] | None) -> list[ModuleRecord]:
        records = self.registry.list_records()
        if names is None:
            return records

        for name in names:
            if name not in self.registry:
                self._report_error(f"Plugin `{name}` is not registered in current session")
        wanted = set(names)
        return [record for record in records if record.name in wanted]

    def _stale_sources(self, records: Sequence[ModuleRecord]) -> list[ModuleRecord]:
        """Get records whose `origin` differs from declared source."""
        stale = []
        for record in records:
            if record.spec.source is None:
                continue
            try:
                current = self.inspector.source(record.path)
            except StateError:
                # Reported by planner
                continue
            if current != record.spec.source:
                stale.append(record)
        return stale

    def _revisions(self, records: Iterable[ModuleRecord]) -> dict[str, str | None]:
        revisions: dict[str, str | None] = {}
        for record in records:
            try:
                revisions[record.name] = self.inspector.current_revision(record.path)
            except StateError:
                revisions[record.name] = None
        return revisions

    async def _fetch(self, records: Sequence[ModuleRecord]) -> dict[str, JobResult]:
        """Sync `origin` with declared source and download new data."""
        results: dict[str, JobResult] = {}

        source_jobs = [
            Job(
                command=tuple(git_ops.set_source_cmd(record.spec.source)),
                cwd=record.path,
                name=record.name,
                phase=JobPhase.FETCH,
            )
            for record in await asyncio.to_thread(self._stale_sources, records)
        ]
        for result in await self.runner.run(source_jobs):
            if not result.ok:
                results[result.job.name] = result

        fetch_jobs = [
            Job(
                command=tuple(git_ops.fetch_cmd()),
                cwd=record.path,
                name=record.name,
                phase=JobPhase.FETCH,
            )
            for record in records
            if record.name not in results and (record.path / ".git").exists()
        ]
        if fetch_jobs:
            self.notify(f"Downloading {len(fetch_jobs)} updates")
        for result in await self.runner.run(fetch_jobs):
            results[result.job.name] = result
        return results

    async def _plan_update(
        self, names: Sequence[str] | None, offline: bool
    ) -> ChangeSet:
        self._begin()
        self._transition(SyncState.EXPANDING)
        records = self._select(names)
        for record in records:
            record.refresh_status()

        self._transition(SyncState.PLANNING)
        try:
            present = [record for record in records if record.path.exists()]
            fetch_results = {} if offline else await self._fetch(present)
            plan = await asyncio.to_thread(
                plan_update,
                [record.spec for record in records],
                {record.name: record.path for record in records},
                self.inspector,
                fetch_results,
            )
        except Exception:
            self._abort()
            raise

        for change in plan.by_kind(ChangeKind.ERROR):
            self._report_error(f"Error while planning `{change.name}`: {change.error}")
        return plan

    async def plan_update(
        self, names: Sequence[str] | None = None, offline: bool = False
    ) -> ChangeSet:
        """
        Compute update plan and wait for apply().

        Args:
            names: Plugins to update (default: all registered)
            offline: Whether to skip downloading new data from sources

        Returns:
            Change set with one entry per selected plugin
        """
        plan = await self._plan_update(names, offline)
        self._transition(SyncState.AWAITING_CONFIRM)
        return plan

    def _plan_clean(self) -> ChangeSet:
        self._begin()
        self._transition(SyncState.EXPANDING)
        registered = self.registry.names()
        self._transition(SyncState.PLANNING)
        return plan_clean(registered, self.registry.opt_dir, self.inspector)

    def plan_clean(self) -> ChangeSet:
        """
        Compute plan deleting plugins not registered in current session and
        wait for apply().
        """
        plan = self._plan_clean()
        self._transition(SyncState.AWAITING_CONFIRM)
        return plan

    # Apply ------------------------------------------------------------------

    async def apply(
        self, plan: ChangeSet, selections: Iterable[str] | None = None
    ) -> SyncReport:
        """
        Apply planned changes.

        Args:
            plan: Change set from plan_update() or plan_clean()
            selections: Names of plugins to apply (default: all pending)

        Returns:
            Report with per-plugin outcomes

        Raises:
            PartiallyApplied: If any selected change failed (after logging)
        """
        if self.state is not SyncState.AWAITING_CONFIRM:
            self._begin()
        return await self._apply(plan, selections)

    async def _apply(
        self, plan: ChangeSet, selections: Iterable[str] | None
    ) -> SyncReport:
        self._transition(SyncState.APPLYING)
        wanted = None if selections is None else set(selections)
        changes = [
            change
            for change in plan.pending()
            if wanted is None or change.name in wanted
        ]

        try:
            outcomes, entries = await self._apply_changes(changes)
        except Exception:
            self._abort()
            raise

        all_deletes = bool(changes) and all(c.kind is ChangeKind.DELETE for c in changes)
        self.log.append("Clean" if all_deletes else "Update", entries)
        self._transition(SyncState.DONE)

        report = SyncReport(state=self.state, plan=plan, outcomes=outcomes)
        if report.failed:
            for outcome in report.failed:
                self._report_error(f"Could not apply `{outcome.name}`: {outcome.error}")
            raise PartiallyApplied(report)

        if outcomes:
            self.notify(f"Applied {len(outcomes)} changes")
        return report

    async def _apply_changes(
        self, changes: Sequence[Change]
    ) -> tuple[list[Outcome], list[LogEntry]]:
        by_name: dict[str, Outcome] = {}

        registered = []
        for change in changes:
            if change.kind is ChangeKind.DELETE:
                continue
            record = self.registry.get(change.name)
            if record is None:
                by_name[change.name] = Outcome(
                    change.name, None, False, "Plugin is not registered in current session"
                )
            else:
                registered.append((change, record))

        to_install = [r for c, r in registered if c.kind is ChangeKind.NEW]
        for outcome in await install_modules(to_install, self.runner, self.inspector):
            by_name[outcome.name] = outcome

        targets = [(r, c.to_rev) for c, r in registered if c.kind is ChangeKind.UPDATE]
        for outcome in await checkout_modules(targets, self.runner, self.inspector):
            by_name[outcome.name] = outcome

        for change in changes:
            if change.kind is ChangeKind.DELETE:
                by_name[change.name] = self._delete(change)

        outcomes = []
        entries = []
        for change in changes:
            outcome = by_name.get(change.name)
            if outcome is None:
                # Installed meanwhile by someone else
                outcome = Outcome(change.name, JobPhase.CLONE, True)
            outcomes.append(outcome)

            record = self.registry.get(change.name)
            state_after = None
            if outcome.ok and change.kind is not ChangeKind.DELETE and record is not None:
                state_after = record.revision or change.to_rev
            entries.append(
                LogEntry(
                    name=change.name,
                    path=change.path,
                    source=change.source,
                    state_before=change.from_rev,
                    state_after=state_after,
                    target=change.target,
                    commits=change.commits if outcome.ok else (),
                    error=outcome.error,
                )
            )
        return outcomes, entries

    def _delete(self, change: Change) -> Outcome:
        try:
            shutil.rmtree(change.path)
        except OSError as e:
            return Outcome(change.name, None, False, f"Could not delete {change.path}: {e}")
        record = self.registry.get(change.name)
        if record is not None:
            record.refresh_status()
        return Outcome(change.name, None, True)

    async def _finish(
        self,
        plan: ChangeSet,
        confirm: bool,
        confirmer: Confirmer | None,
    ) -> SyncReport:
        if not plan.pending():
            self._transition(SyncState.DONE)
            self.notify("Nothing to do")
            return SyncReport(state=self.state, plan=plan)

        if not confirm:
            return await self._apply(plan, None)

        self._transition(SyncState.AWAITING_CONFIRM)
        if confirmer is None:
            return SyncReport(state=self.state, plan=plan)

        selections = confirmer(plan)
        if selections is None:
            self.cancel()
            return SyncReport(state=self.state, plan=plan)
        return await self._apply(plan, selections)

    async def update(
        self,
        names: Sequence[str] | None = None,
        confirm: bool = True,
        offline: bool = False,
        confirmer: Confirmer | None = None,
    ) -> SyncReport:
        """
        Update plugins.

        With `confirm=True` and no `confirmer` the returned report holds the
        plan in AWAITING_CONFIRM state; finish it with apply() or cancel().

        Args:
            names: Plugins to update (default: all registered)
            confirm: Whether to wait for confirmation before applying
            offline: Whether to skip downloading new data from sources
            confirmer: Callable selecting names to apply (None result cancels)

        Returns:
            Report of operation

        Raises:
            PartiallyApplied: If some of applied changes failed
        """
        plan = await self._plan_update(names, offline)
        return await self._finish(plan, confirm, confirmer)

    async def clean(
        self, confirm: bool = True, confirmer: Confirmer | None = None
    ) -> SyncReport:
        """
        Delete plugins which are on disk but not registered in current session.

        Args:
            confirm: Whether to wait for confirmation before deleting
            confirmer: Callable selecting names to delete (None result cancels)

        Returns:
            Report of operation

        Raises:
            PartiallyApplied: If some of the deletions failed
        """
        plan = await asyncio.to_thread(self._plan_clean)
        return await self._finish(plan, confirm, confirmer)

    # Snapshots --------------------------------------------------------------

    def snap_get(self) -> Snapshot:
        """Get snapshot of all registered plugins present on disk."""
        entries = {}
        for record in self.registry.list_records():
            if not record.path.exists():
                continue
            try:
                record.revision = self.inspector.current_revision(record.path)
                source = record.spec.source or self.inspector.source(record.path)
            except StateError as e:
                self._report_error(f"Could not get state of `{record.name}`: {e}")
                continue
            entries[record.name] = SnapshotEntry(
                revision=record.revision,
                source=source,
                monitor=record.spec.monitor,
            )
        return Snapshot(entries)

    def snap_save(self, path: Path | None = None) -> Path:
        """
        Save snapshot of current session to a file.

        Args:
            path: Snapshot file (default: `config.path.snapshot`)

        Returns:
            Path of written snapshot
        """
        path = path or self.config.path.snapshot
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(save(self.snap_get()), encoding="utf-8")
        self.notify(f"Created snapshot at {path}")
        return path

    async def snap_load(self, path: Path | None = None) -> SyncReport:
        """
        Load snapshot file and apply it.

        Args:
            path: Snapshot file (default: `config.path.snapshot`)

        Raises:
            DepsError: If file does not exist
            MalformedSnapshot: If file can not be parsed
            PartiallyApplied: If some plugins could not be checked out
        """
        path = path or self.config.path.snapshot
        if not path.exists():
            raise DepsError(f"Snapshot file not found: {path}")
        return await self.snap_set(load(path.read_text(encoding="utf-8")))

    async def snap_set(self, snapshot: Snapshot) -> SyncReport:
        """
        Checkout registered plugins at states from snapshot, without
        confirmation. Snapshot records of unknown plugins are skipped.
        """
        self._begin()
        self._transition(SyncState.APPLYING)

        records = self.registry.list_records()
        for name in snapshot:
            if name not in self.registry:
                logger.debug("Skipping snapshot record of unregistered plugin %s", name)

        try:
            before = await asyncio.to_thread(
                self._revisions,
                [r for r in records if r.name in snapshot and r.path.exists()],
            )
            outcomes = await apply_snapshot(snapshot, records, self.runner, self.inspector)
        except Exception:
            self._abort()
            raise

        entries = []
        for outcome in outcomes:
            record = self.registry.get(outcome.name)
            entries.append(
                LogEntry(
                    name=outcome.name,
                    path=record.path,
                    source=record.spec.source,
                    state_before=before.get(outcome.name),
                    state_after=record.revision if outcome.ok else None,
                    target=snapshot[outcome.name].revision,
                    error=outcome.error,
                )
            )
        self.log.append("Snapshot", entries)
        self._transition(SyncState.DONE)

        report = SyncReport(state=self.state, outcomes=outcomes)
        if report.failed:
            for outcome in report.failed:
                self._report_error(f"Could not restore `{outcome.name}`: {outcome.error}")
            raise PartiallyApplied(report)
        self.notify(f"Applied snapshot to {len(outcomes)} plugins")
        return report
