"""
Plugin Actions.

This module composes hooks and job batches into the mutating steps used by
add, update and snapshot restore.

Hooks run synchronously before and after each batch, outside of the job
runner's concurrency window. Outcomes are returned in the order of the
given records.
"""

import asyncio
import logging
import shutil
from collections.abc import Sequence

from failwind.deps import git_ops
from failwind.deps.hooks import HookContext, HookType, run_hook
from failwind.deps.jobs import Job, JobPhase, JobRunner
from failwind.deps.models import ModuleRecord, ModuleStatus, Outcome
from failwind.deps.state import StateError, StateInspector

logger = logging.getLogger(__name__)


def hook_context(record: ModuleRecord) -> HookContext:
    return HookContext(path=record.path, source=record.spec.source, name=record.name)


def _observe_revision(record: ModuleRecord, inspector: StateInspector | None) -> None:
    if inspector is None:
        return
    try:
        record.revision = inspector.current_revision(record.path)
    except StateError as e:
        logger.warning("Could not read revision of %s: %s", record.name, e)


async def install_modules(
    records: Sequence[ModuleRecord],
    runner: JobRunner,
    inspector: StateInspector | None = None,
) -> list[Outcome]:
    """
    Create absent plugins on disk.

    Plugins whose directory already exists are skipped. For the rest:
    `pre_install` hook, clone, checkout of `spec.checkout` (if set) and
    `post_install` hook.

    Args:
        records: Records to install, in dependency order
        runner: Job runner
        inspector: State inspector used to record installed revision

    Returns:
        One outcome per installed record
    """
    to_install = [r for r in records if not r.path.exists()]
    if not to_install:
        return []

    errors: dict[str, tuple[JobPhase, str]] = {}
    clonable = []
    for record in to_install:
        if record.spec.source is None:
            errors[record.name] = (JobPhase.CLONE, f"Plugin {record.name!r} has no source")
            continue
        record.path.parent.mkdir(parents=True, exist_ok=True)
        hook_error = run_hook(record.spec.hooks, HookType.PRE_INSTALL, hook_context(record))
        if hook_error:
            errors[record.name] = (JobPhase.HOOK, hook_error)
        clonable.append(record)

    clone_jobs = [
        Job(
            command=tuple(git_ops.clone_cmd(r.spec.source, r.path)),
            cwd=r.path.parent,
            name=r.name,
            phase=JobPhase.CLONE,
        )
        for r in clonable
    ]
    cloned = []
    for record, result in zip(clonable, await runner.run(clone_jobs), strict=True):
        if result.ok:
            cloned.append(record)
            continue
        errors[record.name] = (JobPhase.CLONE, str(result.error))
        # Leftovers of a failed clone would make plugin look present
        if record.path.exists():
            shutil.rmtree(record.path, ignore_errors=True)

    to_checkout = [r for r in cloned if r.spec.checkout is not None]
    checkout_jobs = [
        Job(
            command=tuple(git_ops.checkout_cmd(r.spec.checkout)),
            cwd=r.path,
            name=r.name,
            phase=JobPhase.CHECKOUT,
        )
        for r in to_checkout
    ]
    for record, result in zip(to_checkout, await runner.run(checkout_jobs), strict=True):
        if not result.ok:
            errors.setdefault(record.name, (JobPhase.CHECKOUT, str(result.error)))

    for record in cloned:
        hook_error = run_hook(record.spec.hooks, HookType.POST_INSTALL, hook_context(record))
        if hook_error:
            errors.setdefault(record.name, (JobPhase.HOOK, hook_error))

    outcomes = []
    for record in to_install:
        if record.name in errors:
            phase, message = errors[record.name]
            record.status = ModuleStatus.ERROR
            record.error = message
            outcomes.append(Outcome(record.name, phase, False, message))
        else:
            record.status = ModuleStatus.PRESENT
            record.error = None
            outcomes.append(Outcome(record.name, JobPhase.CLONE, True))
        if record.path.exists():
            await asyncio.to_thread(_observe_revision, record, inspector)
    return outcomes


async def checkout_modules(
    targets: Sequence[tuple[ModuleRecord, str]],
    runner: JobRunner,
    inspector: StateInspector | None = None,
) -> list[Outcome]:
    """
    Checkout existing plugins at given revisions.

    Each plugin gets `pre_checkout` hook, checkout and (on success)
    `post_checkout` hook.

    Args:
        targets: Pairs of (record, revision), in dependency order
        runner: Job runner
        inspector: State inspector used to record new revision

    Returns:
        One outcome per target
    """
    hook_errors: dict[str, str] = {}
    for record, _ in targets:
        hook_error = run_hook(record.spec.hooks, HookType.PRE_CHECKOUT, hook_context(record))
        if hook_error:
            hook_errors[record.name] = hook_error

    jobs = [
        Job(
            command=tuple(git_ops.checkout_cmd(revision)),
            cwd=record.path,
            name=record.name,
            phase=JobPhase.CHECKOUT,
        )
        for record, revision in targets
    ]
    results = await runner.run(jobs)

    outcomes = []
    for (record, _), result in zip(targets, results, strict=True):
        if not result.ok:
            record.error = str(result.error)
            outcomes.append(Outcome(record.name, JobPhase.CHECKOUT, False, record.error))
            continue

        hook_error = run_hook(record.spec.hooks, HookType.POST_CHECKOUT, hook_context(record))
        hook_error = hook_errors.get(record.name) or hook_error
        await asyncio.to_thread(_observe_revision, record, inspector)
        if hook_error:
            record.error = hook_error
            outcomes.append(Outcome(record.name, JobPhase.HOOK, False, hook_error))
        else:
            record.error = None
            outcomes.append(Outcome(record.name, JobPhase.CHECKOUT, True))
    return outcomes
