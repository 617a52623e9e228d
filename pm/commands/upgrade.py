"""
pm upgrade command (-U).

Update installed plugins; locked plugins are skipped.
"""

import asyncio
from typing import Any

from pm.commands.common import build_orchestrator, exit_code, print_report


def upgrade_command(args: Any) -> int:
    """Execute upgrade command and return the exit code."""
    orchestrator = build_orchestrator(args)
    report = asyncio.run(orchestrator.update(args.targets or None))
    print_report(report, args.verbose)
    return exit_code(report)
