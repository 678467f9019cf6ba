"""
pm query commands (-Q, --show-log, --default-config).
"""

from typing import Any

from failwind.config.schema import DEPS_SCHEMA
from failwind.config.toml_handler import generate_toml_from_schema
from failwind.deps.models import ModuleStatus
from failwind.deps.state import StateError
from pm.session import open_config, open_session


def query_command(args: Any) -> int:
    """
    List declared plugins with their state.

    Args:
        args: Parsed command-line arguments (targets filter the list)

    Returns:
        Exit code (1 if any requested plugin is not declared)
    """
    manager = open_session(open_config(args))

    missing = [name for name in args.targets if name not in manager.registry]
    for name in missing:
        print(f"error: plugin '{name}' was not found")

    wanted = set(args.targets)
    for record in manager.registry.list_records():
        if wanted and record.name not in wanted:
            continue

        revision = "-"
        if record.status is ModuleStatus.PRESENT:
            try:
                revision = manager.inspector.current_revision(record.path)[:7]
            except StateError:
                revision = "?"
        print(f"{record.name} {revision} [{record.status.value}]")
        if args.verbose:
            print(f"    Source:  {record.spec.source or '<none>'}")
            print(f"    Path:    {record.path}")
            if record.spec.depends:
                depends = " ".join(dep.name for dep in record.spec.depends)
                print(f"    Depends: {depends}")

    return 1 if missing else 0


def show_log_command(args: Any) -> int:
    """Print log file."""
    manager = open_session(open_config(args))
    text = manager.log.read()
    if not text:
        print(f"Log file {manager.log.path} is empty")
        return 0
    print(text, end="")
    return 0


def default_config_command(args: Any) -> int:
    """Print commented default configuration."""
    print(generate_toml_from_schema(DEPS_SCHEMA), end="")
    return 0
