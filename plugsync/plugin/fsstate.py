"""
Filesystem state of the install roots.

get_fs_state() reads the start and opt roots and partitions what it finds
against the registry:

- start / opt: declared, under the root matching the declaration, intact
- dirty: declared and correctly placed, but failing the integrity check
- extra: not declared, or declared with the other placement
- missing: declared plugins with nothing at their desired location

Every entry under either root lands in exactly one of start, opt, dirty or
extra. The function has no side effects and is recomputed whenever a stage
may have changed the layout.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from plugsync.plugin.unit import Registry, Unit

logger = logging.getLogger(__name__)

IntegrityCheck = Callable[[Unit, Path], bool]


@dataclass
class FSState:
    """
    Partition of the install roots.

    Attributes:
        start: path -> name, correctly placed always-loaded plugins
        opt: path -> name, correctly placed lazily-loaded plugins
        missing: name -> name, declared plugins absent at their desired location
        extra: path -> name, undeclared or misplaced directories
        dirty: path -> name, correctly placed directories failing the integrity check
    """

    start: dict[Path, str] = field(default_factory=dict)
    opt: dict[Path, str] = field(default_factory=dict)
    missing: dict[str, str] = field(default_factory=dict)
    extra: dict[Path, str] = field(default_factory=dict)
    dirty: dict[Path, str] = field(default_factory=dict)

    def on_disk(self) -> set[Path]:
        """All classified directories."""
        return set(self.start) | set(self.opt) | set(self.extra) | set(self.dirty)

    def record_move(self, from_path: Path, to_path: Path, name: str, start: bool) -> None:
        """Reflect a successful move without rescanning the roots."""
        for category in (self.start, self.opt, self.extra, self.dirty):
            category.pop(from_path, None)
        (self.start if start else self.opt)[to_path] = name
        self.missing.pop(name, None)


def _list_root(root: Path) -> dict[Path, str]:
    if not root.is_dir():
        return {}
    entries = {}
    for entry in sorted(root.iterdir()):
        # symlinks count even when dangling so they can be cleaned
        if entry.is_dir() or entry.is_symlink():
            entries[entry] = entry.name
    return entries


def _classify(
    entries: dict[Path, str],
    registry: Registry,
    start: bool,
    state: FSState,
    check: IntegrityCheck | None,
) -> None:
    placed = state.start if start else state.opt
    for path, name in entries.items():
        unit = registry.get(name)
        if unit is None or unit.start != start:
            state.extra[path] = name
        elif check is not None and not check(unit, path):
            state.dirty[path] = name
        else:
            placed[path] = name


def get_fs_state(registry: Registry, check: IntegrityCheck | None = None) -> FSState:
    """
    Compute the filesystem state for a registry.

    Args:
        registry: Declared plugins and the two roots
        check: Integrity check for correctly placed directories; returns
            False for a directory that should be treated as dirty

    Returns:
        FSState partition
    """
    state = FSState()

    _classify(_list_root(registry.start_dir), registry, True, state, check)
    _classify(_list_root(registry.opt_dir), registry, False, state, check)

    for unit in registry:
        if not (unit.install_path.exists() or unit.install_path.is_symlink()):
            state.missing[unit.name] = unit.name

    logger.debug(
        "fs state: %d start, %d opt, %d missing, %d extra, %d dirty",
        len(state.start),
        len(state.opt),
        len(state.missing),
        len(state.extra),
        len(state.dirty),
    )
    return state
