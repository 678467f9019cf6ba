"""
pm snapshot commands (--snap-save, --snap-load).
"""

import asyncio
from pathlib import Path
from typing import Any

from failwind.deps.manager import PartiallyApplied
from pm.session import open_config, open_session


def _snapshot_path(value: str) -> Path | None:
    return Path(value).expanduser() if value else None


def snap_save_command(args: Any) -> int:
    """Save snapshot of declared plugins."""
    manager = open_session(open_config(args))
    manager.snap_save(_snapshot_path(args.snap_save))
    return 0


def snap_load_command(args: Any) -> int:
    """Checkout declared plugins at states from snapshot."""
    return asyncio.run(snap_load_async(args))


async def snap_load_async(args: Any) -> int:
    manager = open_session(open_config(args))
    try:
        await manager.snap_load(_snapshot_path(args.snap_load))
    except PartiallyApplied:
        return 1
    return 0
