"""
pm lockfile commands (--lock, --restore).
"""

import asyncio
from typing import Any

from pm.commands.common import build_orchestrator, exit_code, print_report


def lock_command(args: Any) -> int:
    orchestrator = build_orchestrator(args)
    revs = asyncio.run(orchestrator.lock())
    for name in sorted(revs):
        print(f"{name} {revs[name]}")
    print(f"Wrote {orchestrator.settings.lockfile}")
    return 0


def restore_command(args: Any) -> int:
    orchestrator = build_orchestrator(args)
    report = asyncio.run(orchestrator.restore())
    print_report(report, args.verbose)
    return exit_code(report)
