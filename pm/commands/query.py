"""
pm query commands (-Q, --log).

Usage:
    pm -Q                 State of every declared plugin plus extra directories
    pm -Q <plugin...>     State of the named plugins
    pm --log              Recent log messages (or the --log-file contents)
"""

import sys
from typing import Any

from pm.commands.common import build_orchestrator


def query_command(args: Any) -> int:
    """
    Print ``name  state`` for each plugin.

    Returns:
        1 if a named plugin is not declared, else 0
    """
    orchestrator = build_orchestrator(args)
    status = orchestrator.status()

    unknown = []
    if args.targets:
        unknown = [name for name in args.targets if name not in status]
        for name in unknown:
            print(f"error: plugin '{name}' was not found", file=sys.stderr)
        status = {name: status[name] for name in args.targets if name in status}

    for name in sorted(status):
        print(f"{name} {status[name]}")
    return 1 if unknown else 0


def log_command(args: Any) -> int:
    """Print the --log-file contents if given, else this process's buffered messages."""
    if args.log_file is not None and args.log_file.is_file():
        print(args.log_file.read_text(encoding="utf-8"), end="")
        return 0

    orchestrator = build_orchestrator(args)
    for line in orchestrator.log():
        print(line)
    return 0
