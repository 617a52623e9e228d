"""
pm sync command (-Y).

Fix misplaced plugins, clean, install what is missing and update the rest.
"""

import asyncio
from typing import Any

from pm.commands.common import build_orchestrator, exit_code, print_report


def sync_command(args: Any) -> int:
    orchestrator = build_orchestrator(args)
    report = asyncio.run(orchestrator.sync(args.targets or None))
    print_report(report, args.verbose)
    return exit_code(report)
