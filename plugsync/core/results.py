"""
Per-plugin results and their aggregation.

Each stage of a batch writes into its own result map keyed by plugin name.
The maps are disjoint by construction; a key present in two maps means the
same plugin was processed twice, so merging treats it as an error instead of
picking a winner.
"""

from dataclasses import dataclass, field
from pathlib import Path

from plugsync.errors import PlugsyncError


class ResultCollisionError(PlugsyncError):
    """Raised when merged result maps share a key."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(f"Plugin processed more than once in one batch: {', '.join(names)}")


@dataclass
class Result:
    """
    Outcome for one plugin in one stage.

    Attributes:
        err: Error lines, or None on success
        status: Terminal status (installed, updated, up to date, locked,
            moved, removed, restored, failed)
        from_path: Source directory of a move
        to_path: Destination directory of a move
    """

    err: list[str] | None = None
    status: str = ""
    from_path: Path | None = None
    to_path: Path | None = None

    @property
    def ok(self) -> bool:
        return not self.err


ResultMap = dict[str, Result]

# plugin names never contain ":"
MOVE_PREFIX = "move:"


def merge_results(*maps: ResultMap) -> ResultMap:
    """
    Merge result maps, refusing duplicate keys.

    Raises:
        ResultCollisionError: If any name appears in more than one map
    """
    merged: ResultMap = {}
    duplicates: list[str] = []
    for result_map in maps:
        for name, result in result_map.items():
            if name in merged:
                duplicates.append(name)
                continue
            merged[name] = result
    if duplicates:
        raise ResultCollisionError(sorted(set(duplicates)))
    return merged


def record_failures(results: ResultMap, failures: dict[str, list[str]]) -> None:
    """Record scheduler-level task failures for plugins that wrote no result."""
    for name, err in failures.items():
        if name not in results:
            results[name] = Result(err=err, status="failed")


@dataclass
class SyncResults:
    """
    Result maps of one batch.

    Attributes:
        moves: Placement fixes
        removals: Directories deleted by cleaning
        installs: Install tasks
        updates: Update tasks
    """

    moves: ResultMap = field(default_factory=dict)
    removals: list[Path] = field(default_factory=list)
    installs: ResultMap = field(default_factory=dict)
    updates: ResultMap = field(default_factory=dict)

    def report(self) -> ResultMap:
        """
        Merge every stage into one report; removals are keyed by path.

        A later stage owns the plugin name: a moved plugin that was then
        updated reports the update. A failed move that a later stage
        superseded stays visible under ``move:<name>``.
        """
        removed = {str(path): Result(status="removed") for path in self.removals}
        report = merge_results(removed, self.installs, self.updates)
        for name, move in self.moves.items():
            if name not in report:
                report[name] = move
            elif move.err:
                report[f"{MOVE_PREFIX}{name}"] = move
        return report

    def succeeded(self) -> list[str]:
        """Names that installed or updated without error (locked plugins excluded)."""
        merged = merge_results(self.installs, self.updates)
        return sorted(
            name
            for name, result in merged.items()
            if result.ok and result.status != "locked"
        )
