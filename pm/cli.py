"""
pm CLI - Failwind Plugin Manager.

Pacman-style interface for managing failwind plugins.

Usage:
    pm -S [user/repo...]         Add (and install) plugins
    pm -U [plugin...]            Update plugin(s)
    pm -C                        Delete plugins which are not declared
    pm -Q [plugin...]            List declared plugins
    pm --snap-save [path]        Save snapshot
    pm --snap-load [path]        Load snapshot
    pm --show-log                Show log
    pm --default-config          Print default configuration
"""

import argparse
import sys

from failwind.config import ConfigError
from failwind.config.toml_handler import TOMLError
from failwind.deps.errors import DepsError


class PMError(Exception):
    """Base exception for pm errors."""

    pass


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="pm",
        description="Failwind Plugin Manager - Pacman-style plugin manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Add plugin")
    ops.add_argument("-U", "--upgrade", action="store_true", help="Update plugin(s)")
    ops.add_argument("-C", "--clean", action="store_true", help="Clean plugins")
    ops.add_argument("-Q", "--query", action="store_true", help="Query declared")
    ops.add_argument(
        "--snap-save", nargs="?", const="", metavar="PATH", help="Save snapshot"
    )
    ops.add_argument(
        "--snap-load", nargs="?", const="", metavar="PATH", help="Load snapshot"
    )
    ops.add_argument("--show-log", action="store_true", help="Show log")
    ops.add_argument(
        "--default-config", action="store_true", help="Print default configuration"
    )
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    # Common options
    parser.add_argument(
        "--noconfirm", action="store_true", help="Skip confirmation prompts"
    )
    parser.add_argument(
        "--offline", action="store_true", help="Do not download updates on -U"
    )
    parser.add_argument("--config", metavar="PATH", help="Configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Plugin sources or names")

    return parser


def print_help():
    """Print help message."""
    help_text = """
pm - Failwind Plugin Manager

Usage:
    pm -S [user/repo...]         Add (and install) plugins
    pm -U [plugin...]            Update plugin(s)
    pm -C                        Delete plugins which are not declared
    pm -Q [plugin...]            List declared plugins
    pm --snap-save [path]        Save snapshot
    pm --snap-load [path]        Load snapshot
    pm --show-log                Show log
    pm --default-config          Print default configuration

Options:
    --noconfirm                  Skip confirmation prompts
    --offline                    Do not download updates on -U
    --config PATH                Configuration file
    -v, --verbose                Verbose output
    -h, --help                   Show this help
"""
    print(help_text.strip())


def main(argv: list[str] | None = None) -> int:
    """Main entry point for pm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    from pm.session import setup_logging

    setup_logging(args.verbose)

    try:
        # Route to appropriate command
        if args.sync:
            from pm.commands.add import add_command

            return add_command(args)

        elif args.upgrade:
            from pm.commands.update import update_command

            return update_command(args)

        elif args.clean:
            from pm.commands.clean import clean_command

            return clean_command(args)

        elif args.query:
            from pm.commands.query import query_command

            return query_command(args)

        elif args.snap_save is not None:
            from pm.commands.snapshot import snap_save_command

            return snap_save_command(args)

        elif args.snap_load is not None:
            from pm.commands.snapshot import snap_load_command

            return snap_load_command(args)

        elif args.show_log:
            from pm.commands.query import show_log_command

            return show_log_command(args)

        elif args.default_config:
            from pm.commands.query import default_config_command

            return default_config_command(args)

        # Show help
        print_help()
        return 0

    except (PMError, DepsError, ConfigError, TOMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
