"""
pm CLI - plugsync Package Manager.

Pacman-style interface for reconciling plugins with plugsync.toml.

Usage:
    pm -S [plugin...]            Install missing plugins
    pm -U [plugin...]            Update installed plugins
    pm -Y [plugin...]            Sync: fix placement, clean, install, update
    pm -C                        Remove undeclared and dirty directories
    pm -Q                        Show the state of every plugin
    pm --lock                    Write the lockfile
    pm --restore                 Check out the revisions in the lockfile
    pm --log                     Show recent log messages
    pm --init                    Write a starter plugsync.toml
"""

import argparse
import logging
import sys
from pathlib import Path

from plugsync.errors import PlugsyncError
from plugsync.log import setup_logging
from pm.errors import PMError


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="pm",
        description="plugsync Package Manager - Pacman-style plugin manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--install", action="store_true", help="Install missing plugins")
    ops.add_argument("-U", "--upgrade", action="store_true", help="Update installed plugins")
    ops.add_argument("-Y", "--sync", action="store_true", help="Full sync")
    ops.add_argument("-C", "--clean", action="store_true", help="Remove extra/dirty directories")
    ops.add_argument("-Q", "--query", action="store_true", help="Show plugin state")
    ops.add_argument("--lock", action="store_true", help="Write the lockfile")
    ops.add_argument("--restore", action="store_true", help="Restore the lockfile revisions")
    ops.add_argument("--log", action="store_true", help="Show recent log messages")
    ops.add_argument("--init", action="store_true", help="Write a starter config")
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    # Common options
    parser.add_argument(
        "--noconfirm", action="store_true", help="Skip confirmation prompts"
    )
    parser.add_argument("--jobs", type=int, default=None, help="Concurrent plugin tasks")
    parser.add_argument("--config", type=Path, default=None, help="Config file")
    parser.add_argument("--log-file", type=Path, default=None, help="Also log to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Plugin names")

    return parser


def print_help():
    """Print help message."""
    help_text = """
pm - plugsync Package Manager

Usage:
    pm -S [plugin...]            Install missing plugins
    pm -U [plugin...]            Update installed plugins
    pm -Y [plugin...]            Sync: fix placement, clean, install, update
    pm -C                        Remove undeclared and dirty directories
    pm -Q                        Show the state of every plugin
    pm --lock                    Write the lockfile
    pm --restore                 Check out the revisions in the lockfile
    pm --log                     Show recent log messages
    pm --init                    Write a starter plugsync.toml

Options:
    --noconfirm                  Skip confirmation prompts
    --jobs N                     Run at most N plugin tasks at once
    --config PATH                Config file (default: $PLUGSYNC_CONFIG or ./plugsync.toml)
    --log-file PATH              Also write debug logs to PATH
    -v, --verbose                Verbose output
    -h, --help                   Show this help
"""
    print(help_text.strip())


def main(argv: list[str] | None = None) -> int:
    """Main entry point for pm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, args.log_file)

    try:
        # Show help
        if args.help or not any(
            (
                args.install,
                args.upgrade,
                args.sync,
                args.clean,
                args.query,
                args.lock,
                args.restore,
                args.log,
                args.init,
            )
        ):
            print_help()
            return 0

        # Route to appropriate command
        if args.init:
            from pm.commands.init import init_command

            return init_command(args)

        elif args.install:
            # -S: Install
            from pm.commands.install import install_command

            return install_command(args)

        elif args.upgrade:
            # -U: Update
            from pm.commands.upgrade import upgrade_command

            return upgrade_command(args)

        elif args.sync:
            # -Y: Sync
            from pm.commands.sync import sync_command

            return sync_command(args)

        elif args.clean:
            # -C: Clean
            from pm.commands.clean import clean_command

            return clean_command(args)

        elif args.query or args.log:
            # -Q / --log
            from pm.commands.query import log_command, query_command

            return query_command(args) if args.query else log_command(args)

        elif args.lock or args.restore:
            from pm.commands.lockfile import lock_command, restore_command

            return lock_command(args) if args.lock else restore_command(args)

    except (PMError, PlugsyncError) as e:
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

    return 0


if __name__ == "__main__":
    sys.exit(main())
