"""
pm clean command (-C).
"""

import asyncio
import sys
from typing import Any

from pm.commands.common import build_orchestrator, exit_code, print_report


def clean_command(args: Any) -> int:
    if args.targets:
        print("Warning: -C ignores plugin names", file=sys.stderr)
    orchestrator = build_orchestrator(args)
    report = asyncio.run(orchestrator.clean())
    print_report(report, args.verbose)
    return exit_code(report)
