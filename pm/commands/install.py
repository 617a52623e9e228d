"""
pm install command (-S).

Install declared plugins that are missing from disk.
"""

import asyncio
from typing import Any

from pm.commands.common import build_orchestrator, exit_code, print_report


def install_command(args: Any) -> int:
    """
    Execute install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    orchestrator = build_orchestrator(args)
    report = asyncio.run(orchestrator.install(args.targets or None))
    print_report(report, args.verbose)
    return exit_code(report)
