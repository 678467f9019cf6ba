"""
pm update command (-U).

Update declared plugins after reviewing the change set.
"""

import asyncio
from typing import Any

from failwind.deps.manager import PartiallyApplied, SyncState
from pm.session import format_plan, open_config, open_session, prompt_confirm


def update_command(args: Any) -> int:
    """
    Execute update command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    return asyncio.run(update_async(args))


async def update_async(args: Any) -> int:
    """Async update implementation."""
    manager = open_session(open_config(args))

    try:
        report = await manager.update(
            names=args.targets or None,
            confirm=not args.noconfirm,
            offline=args.offline,
            confirmer=prompt_confirm,
        )
    except PartiallyApplied:
        return 1

    if args.noconfirm and report.plan is not None and args.verbose:
        print(format_plan(report.plan, verbose=True))
    if report.state is SyncState.IDLE:
        print("Update cancelled")
    if report.plan is not None and report.plan.has_errors():
        return 1
    return 0
