"""
pm clean command (-C).

Delete plugin directories which are not declared.
"""

import asyncio
from typing import Any

from failwind.deps.manager import PartiallyApplied, SyncState
from pm.session import open_config, open_session, prompt_confirm


def clean_command(args: Any) -> int:
    """
    Execute clean command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    return asyncio.run(clean_async(args))


async def clean_async(args: Any) -> int:
    """Async clean implementation."""
    manager = open_session(open_config(args))

    try:
        report = await manager.clean(confirm=not args.noconfirm, confirmer=prompt_confirm)
    except PartiallyApplied:
        return 1

    if report.state is SyncState.IDLE:
        print("Clean cancelled")
    return 0
