"""
pm add command (-S).

Add plugins to the declaration file and install absent ones.
"""

import asyncio
from typing import Any

from pm.cli import PMError
from pm.session import declare, open_config, open_session


def add_command(args: Any) -> int:
    """
    Execute add command.

    Without targets, every declared plugin is installed if absent.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    return asyncio.run(add_async(args))


async def add_async(args: Any) -> int:
    """Async add implementation."""
    config = open_config(args)
    manager = open_session(config)

    targets = list(args.targets) or manager.registry.names()
    if not targets:
        raise PMError("No targets specified and no plugins declared (usage: pm -S <user/repo>...)")

    fail_count = 0
    for target in targets:
        records = await manager.add(target)
        failed = [record for record in records if record.error]
        fail_count += len(failed)
        if args.targets and not failed and declare(config.path.spec, target):
            manager.notify(f"Declared `{records[-1].name}` in {config.path.spec}")

    if args.verbose:
        print(f"\nPlugins: {len(manager.registry)}, Failed: {fail_count}")

    return 0 if fail_count == 0 else 1
