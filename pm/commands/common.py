"""
Helpers shared by pm commands.
"""

import dataclasses
import sys
from typing import Any

from plugsync.actions import SyncOrchestrator
from plugsync.config import load_config
from plugsync.core.display import ConsoleDisplay
from plugsync.core.results import ResultMap
from pm.errors import PMError


def build_orchestrator(args: Any) -> SyncOrchestrator:
    """
    Load the config named by the arguments and build an orchestrator.

    --noconfirm turns on autoremove and --jobs overrides max_jobs.

    Raises:
        ConfigError: If the config cannot be loaded
        PMError: If --jobs is negative
    """
    settings, registry = load_config(args.config)

    overrides = {}
    if args.noconfirm:
        overrides["autoremove"] = True
    if args.jobs is not None:
        if args.jobs < 0:
            raise PMError(f"--jobs must not be negative, got {args.jobs}")
        overrides["max_jobs"] = args.jobs or None
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    return SyncOrchestrator(
        registry,
        settings,
        display_factory=lambda: ConsoleDisplay(verbose=args.verbose),
    )


def print_report(report: ResultMap, verbose: bool = False) -> None:
    """Print one line per entry of a batch report."""
    if not report:
        return
    print("\nSummary:")
    for name in sorted(report):
        result = report[name]
        marker = "✓" if result.ok else "✗"
        print(f"  {marker} {name}: {result.status}")
        if result.err and verbose:
            for line in result.err:
                print(f"      {line}", file=sys.stderr)


def exit_code(report: ResultMap) -> int:
    """0 when nothing failed, 1 otherwise."""
    return 0 if all(result.ok for result in report.values()) else 1
