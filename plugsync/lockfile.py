"""
Lockfile: record and restore the revision of every installed plugin.

Format:

    [plugins.vim-fugitive]
    rev = "0123abcd..."
"""

import functools
import logging
from pathlib import Path

import tomlkit

from plugsync.config.toml_handler import TOMLError, read_toml, write_toml
from plugsync.core.results import Result, ResultMap, record_failures
from plugsync.core.scheduler import Task, run_tasks
from plugsync.errors import PlugsyncError
from plugsync.plugin.backends import Backend
from plugsync.plugin.unit import Registry, Unit

logger = logging.getLogger(__name__)


class LockfileError(PlugsyncError):
    """Raised when the lockfile cannot be read or is malformed."""

    pass


async def lock(registry: Registry, backends: dict[str, Backend], path: Path) -> dict[str, str]:
    """
    Write the current revision of every installed plugin.

    Returns:
        name -> revision as written
    """
    revs: dict[str, str] = {}
    for unit in registry:
        backend = backends.get(unit.type)
        if backend is None or not unit.install_path.exists():
            continue
        rev = await backend.get_rev(unit)
        if rev:
            revs[unit.name] = rev

    doc = tomlkit.document()
    plugins = tomlkit.table(is_super_table=True)
    for name, rev in revs.items():
        entry = tomlkit.table()
        entry.add("rev", rev)
        plugins.add(name, entry)
    doc.add("plugins", plugins)

    write_toml(path, doc)
    logger.info("Locked %d plugins to %s", len(revs), path)
    return revs


def read_lockfile(path: Path) -> dict[str, str]:
    """
    Read name -> revision from a lockfile.

    Raises:
        LockfileError: If the file is missing or malformed
    """
    try:
        data = read_toml(path)
    except TOMLError as e:
        raise LockfileError(str(e)) from e

    revs = {}
    for name, entry in data.get("plugins", {}).items():
        if not isinstance(entry, dict) or not isinstance(entry.get("rev"), str):
            raise LockfileError(f"Lockfile entry for '{name}' has no rev")
        revs[name] = entry["rev"]
    return revs


async def restore(
    registry: Registry,
    backends: dict[str, Backend],
    path: Path,
    limit: int | None = None,
) -> ResultMap:
    """
    Check out every locked revision.

    Plugins in the lockfile but not declared, or not installed, are skipped.

    Returns:
        Result map of the checkouts
    """
    results: ResultMap = {}
    tasks = []

    async def restore_one(unit: Unit, backend: Backend, rev: str) -> None:
        err = await backend.checkout(unit, rev)
        results[unit.name] = Result(err=err, status="failed" if err else "restored")

    for name, rev in read_lockfile(path).items():
        unit = registry.get(name)
        if unit is None:
            logger.warning("Locked plugin %s is not declared, skipping", name)
            continue
        backend = backends.get(unit.type)
        if backend is None or not unit.install_path.exists():
            logger.warning("Locked plugin %s is not installed, skipping", name)
            continue
        tasks.append(Task(name, functools.partial(restore_one, unit, backend, rev)))

    record_failures(results, await run_tasks(tasks, limit=limit))
    return results
