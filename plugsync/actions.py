"""
Sync Orchestrator.

This module runs the top-level plugin operations.

Key features:
- install: install missing plugins, then regenerate doc indexes
- update: update installed plugins, then regenerate doc indexes
- sync: placement fix -> clean -> install -> update -> doc indexes
- clean: remove undeclared, misplaced and dirty directories
- status / log / lock / restore helpers

Stages run strictly one after another; tasks inside a stage run
concurrently through the scheduler. Every per-plugin failure is recorded in
that plugin's Result and never stops the rest of the batch.

Only one batch may run against a given pair of install roots at a time;
concurrent external changes to those directories are not detected.
"""

import functools
import logging
import os
import shutil
import time
import warnings
from collections.abc import Callable
from pathlib import Path

from plugsync import lockfile
from plugsync.config import Settings
from plugsync.core.display import ConsoleDisplay, Display
from plugsync.core.results import Result, ResultMap, SyncResults, record_failures
from plugsync.core.scheduler import Task, run_tasks
from plugsync.errors import MoveError, PlugsyncError, RemovalWarning
from plugsync.host import Host
from plugsync.log import get_messages
from plugsync.plugin.backends import Backend, BackendError, DiffCallback, default_backends
from plugsync.plugin.fsstate import FSState, get_fs_state
from plugsync.plugin.helptags import update_helptags
from plugsync.plugin.hooks import run_post_update_hook
from plugsync.plugin.unit import Registry, Unit

logger = logging.getLogger(__name__)

ReportCallback = Callable[[ResultMap], None]


def _rename(from_path: Path, to_path: Path) -> None:
    if to_path.exists() or to_path.is_symlink():
        raise MoveError(f"Failed to move {from_path} to {to_path}: destination exists")
    try:
        to_path.parent.mkdir(parents=True, exist_ok=True)
        os.rename(from_path, to_path)
    except OSError as e:
        raise MoveError(f"Failed to move {from_path} to {to_path}: {e}") from e


def _remove_path(path: Path) -> None:
    if path.is_symlink() or not path.is_dir():
        path.unlink()
    else:
        shutil.rmtree(path)


def _count_commits(messages: list[str]) -> tuple[int, list[str]]:
    info: list[str] = []
    ncommits = 0
    if messages:
        info.append("Commits:")
        for message in messages:
            for line in message.splitlines():
                info.append(f"    {line}")
                ncommits += 1
        info.append("")
    return ncommits, info


class SyncOrchestrator:
    """
    Runs install / update / sync / clean batches over a registry.

    Args:
        registry: Declared plugins
        settings: Roots, job limit, autoremove, lockfile
        backends: Backends by plugin type (default: git and local)
        host: Host for hooks and loading (default: a fresh Host)
        display_factory: Creates the display for each batch (default: ConsoleDisplay)
    """

    def __init__(
        self,
        registry: Registry,
        settings: Settings,
        backends: dict[str, Backend] | None = None,
        host: Host | None = None,
        display_factory: Callable[[], Display] | None = None,
    ):
        self.registry = registry
        self.settings = settings
        self.backends = backends if backends is not None else default_backends(settings)
        self.host = host or Host()
        self._display_factory = display_factory or ConsoleDisplay

    # -- helpers -----------------------------------------------------------

    def _backend(self, unit: Unit) -> Backend:
        backend = self.backends.get(unit.type)
        if backend is None:
            raise BackendError(f"No backend for plugin type '{unit.type}' ({unit.name})")
        return backend

    def _is_intact(self, unit: Unit, path: Path) -> bool:
        backend = self.backends.get(unit.type)
        return backend.is_intact(unit, path) if backend is not None else True

    def fs_state(self) -> FSState:
        return get_fs_state(self.registry, check=self._is_intact)

    def _select(self, names: list[str] | None) -> list[str]:
        if names is None:
            return self.registry.names()
        selected = []
        for name in names:
            if name in self.registry:
                selected.append(name)
            else:
                logger.error("Unknown plugin: %s", name)
        return selected

    async def _run_tasks(
        self, tasks: list[Task], disp: Display, kind: str, results: ResultMap
    ) -> None:
        if not tasks:
            logger.info("Nothing to do!")
            return

        limit = self.settings.max_jobs or len(tasks)
        logger.debug("Running tasks: %s", kind)
        disp.update_headline(f"{kind} {len(tasks)} plugins")

        failures = await run_tasks(tasks, limit=limit, check=disp.check)
        for name, err in failures.items():
            if name not in results:
                disp.task_failed(name, f"failed while {kind}", err)
        record_failures(results, failures)

    def _finish(self, results: SyncResults, callback: ReportCallback | None) -> ResultMap:
        report = results.report()
        if callback is not None:
            callback(report)
        return report

    # -- tasks -------------------------------------------------------------

    async def _install_task(self, unit: Unit, disp: Display, installs: ResultMap) -> None:
        disp.task_start(unit.name, "installing...")

        try:
            err = await self._backend(unit).installer(unit, disp)
        except PlugsyncError as e:
            err = [str(e)]

        unit.installed = unit.install_path.is_dir()
        if not err and not unit.installed:
            err = [f"{unit.install_path} does not exist after install"]

        if not err:
            err = await run_post_update_hook(unit, disp, self.host)

        if not err:
            disp.task_succeeded(unit.name, "installed")
            logger.debug("Installed %s", unit.name)
        else:
            disp.task_failed(unit.name, "failed to install", err)
            logger.debug("Failed to install %s: %s", unit.name, err)

        unit.err = err
        installs[unit.name] = Result(err=err, status="failed" if err else "installed")

    async def _update_task(self, unit: Unit, disp: Display, updates: ResultMap) -> None:
        disp.task_start(unit.name, "updating...")

        if unit.lock:
            disp.task_succeeded(unit.name, "locked")
            updates[unit.name] = Result(status="locked")
            return

        try:
            info = await self._backend(unit).updater(unit, disp)
            unit.revs, unit.messages, unit.err = info.revs, info.messages, info.err
            actual_update = info.changed
        except PlugsyncError as e:
            unit.err, actual_update = [str(e)], False

        if actual_update:
            logger.debug("Updated %s", unit.name)
            unit.err = await run_post_update_hook(unit, disp, self.host)

        if unit.err:
            disp.task_failed(unit.name, "failed to update", unit.err)
            logger.debug("Failed to update %s: %s", unit.name, "\n".join(unit.err))
            status = "failed"
        elif actual_update:
            ncommits, info_lines = _count_commits(unit.messages)
            disp.task_succeeded(unit.name, f"updated: {ncommits} new commits", info_lines)
            status = "updated"
        else:
            disp.task_done(unit.name, "already up to date")
            status = "up to date"

        updates[unit.name] = Result(err=unit.err, status=status)

    def _install_tasks(self, names: list[str], disp: Display, installs: ResultMap) -> list[Task]:
        return [
            Task(name, functools.partial(self._install_task, self.registry.get(name), disp, installs))
            for name in names
        ]

    def _update_tasks(self, names: list[str], disp: Display, updates: ResultMap) -> list[Task]:
        return [
            Task(name, functools.partial(self._update_task, self.registry.get(name), disp, updates))
            for name in names
        ]

    # -- stages ------------------------------------------------------------

    def _move_plugin(self, unit: Unit, moves: ResultMap, fs_state: FSState) -> None:
        wrong_root = self.registry.opt_dir if unit.start else self.registry.start_dir
        from_path = wrong_root / unit.name
        to_path = unit.install_path

        try:
            _rename(from_path, to_path)
        except MoveError as e:
            logger.error("%s", e)
            moves[unit.name] = Result(
                err=[str(e)], status="failed", from_path=from_path, to_path=to_path
            )
            return

        fs_state.record_move(from_path, to_path, unit.name, unit.start)
        moves[unit.name] = Result(status="moved", from_path=from_path, to_path=to_path)
        logger.debug("Moved %s from %s to %s", unit.name, from_path, to_path)

    def _fix_plugin_types(self, fs_state: FSState, moves: ResultMap) -> None:
        """Move every declared plugin found under the wrong root."""
        logger.debug("Fixing plugin types")
        for path, name in sorted(fs_state.extra.items()):
            unit = self.registry.get(name)
            if unit is None:
                continue
            wrong_root = self.registry.opt_dir if unit.start else self.registry.start_dir
            if path != wrong_root / name:
                continue
            if unit.install_path.exists() or unit.install_path.is_symlink():
                # a copy already sits at the right place; the stray one is cleaned
                continue
            self._move_plugin(unit, moves, fs_state)
        logger.debug("Done fixing plugin types")

    async def _do_clean(
        self,
        disp: Display,
        fs_state: FSState | None = None,
        removals: list[Path] | None = None,
    ) -> None:
        """Remove extra and dirty directories, asking first unless autoremove is set."""
        fs_state = fs_state or self.fs_state()

        logger.debug("Starting clean")
        to_remove = {**fs_state.extra, **fs_state.dirty}
        logger.debug("extra plugins: %s", sorted(map(str, fs_state.extra)))
        logger.debug("dirty plugins: %s", sorted(map(str, fs_state.dirty)))

        if not to_remove:
            logger.info("Already clean!")
            return

        paths = sorted(to_remove)
        if not self.settings.autoremove:
            lines = [f"  - {path}" for path in paths]
            async with self.host.main():
                confirmed = await disp.ask_user(
                    "Removing the following directories. OK? (y/N)", lines
                )
            if not confirmed:
                logger.warning("Cleaning cancelled!")
                return

        removed = []
        for path in paths:
            try:
                _remove_path(path)
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
                warnings.warn(f"Could not remove {path}: {e}", RemovalWarning, stacklevel=2)
                continue
            removed.append(path)

        if removals is not None:
            removals.extend(removed)
        logger.debug("Removed %s", [str(path) for path in removed])

    def _update_helptags(self, results: SyncResults) -> None:
        update_helptags(results.succeeded(), self.registry)

    # -- operations --------------------------------------------------------

    async def install(
        self, names: list[str] | None = None, callback: ReportCallback | None = None
    ) -> ResultMap:
        """
        Install missing plugins (all of them, or those in names), then
        regenerate doc indexes.
        """
        results = SyncResults()
        selected = self._select(names)
        if names is not None and not selected:
            logger.error("None of the requested plugins are configured")
            return self._finish(results, callback)

        fs_state = self.fs_state()
        missing = [name for name in selected if name in fs_state.missing]
        if not missing:
            logger.info("All configured plugins are installed")
            return self._finish(results, callback)

        disp = self._display_factory()
        started = time.monotonic()

        logger.debug("Gathering install tasks")
        tasks = self._install_tasks(missing, disp, results.installs)
        await self._run_tasks(tasks, disp, "installing", results.installs)

        async with self.host.main():
            self._update_helptags(results)

        disp.finish(time.monotonic() - started)
        return self._finish(results, callback)

    async def update(
        self, names: list[str] | None = None, callback: ReportCallback | None = None
    ) -> ResultMap:
        """Update installed plugins (all, or those in names), then regenerate doc indexes."""
        results = SyncResults()
        selected = self._select(names)
        if names is not None and not selected:
            logger.error("None of the requested plugins are configured")
            return self._finish(results, callback)

        fs_state = self.fs_state()
        installed = [name for name in selected if name not in fs_state.missing]

        disp = self._display_factory()
        started = time.monotonic()

        logger.debug("Gathering update tasks")
        tasks = self._update_tasks(installed, disp, results.updates)
        await self._run_tasks(tasks, disp, "updating", results.updates)

        async with self.host.main():
            self._update_helptags(results)

        disp.finish(time.monotonic() - started)
        return self._finish(results, callback)

    async def sync(
        self, names: list[str] | None = None, callback: ReportCallback | None = None
    ) -> ResultMap:
        """
        Full pipeline: placement fix, clean, install, update, doc indexes.

        names restricts the install and update stages only; placement fix and
        clean always look at every declared plugin.
        """
        results = SyncResults()
        selected = self._select(names)
        if names is not None and not selected:
            logger.error("None of the requested plugins are configured")
            return self._finish(results, callback)

        fs_state = self.fs_state()
        self._fix_plugin_types(fs_state, results.moves)

        # moved plugins may still be dirty for another reason
        fs_state = self.fs_state()

        disp = self._display_factory()
        started = time.monotonic()

        await self._do_clean(disp, fs_state, results.removals)

        # cleaning turns dirty plugins into missing ones
        fs_state = self.fs_state()
        missing = [name for name in selected if name in fs_state.missing]
        installed = [name for name in selected if name not in fs_state.missing]

        logger.debug("Gathering install tasks")
        install_tasks = self._install_tasks(missing, disp, results.installs)
        await self._run_tasks(install_tasks, disp, "installing", results.installs)

        logger.debug("Gathering update tasks")
        update_tasks = self._update_tasks(installed, disp, results.updates)
        await self._run_tasks(update_tasks, disp, "updating", results.updates)

        async with self.host.main():
            self._update_helptags(results)

        disp.finish(time.monotonic() - started)
        return self._finish(results, callback)

    async def clean(self, callback: ReportCallback | None = None) -> ResultMap:
        """Remove undeclared, misplaced and dirty directories."""
        results = SyncResults()
        await self._do_clean(self._display_factory(), removals=results.removals)
        return self._finish(results, callback)

    def status(self) -> dict[str, str]:
        """
        Report every declared plugin as installed, missing, misplaced or
        dirty, plus undeclared directories (keyed by path) as extra.
        """
        fs_state = self.fs_state()
        misplaced = {name for name in fs_state.extra.values() if name in self.registry}
        dirty = set(fs_state.dirty.values())

        report = {}
        for unit in self.registry:
            if unit.name in fs_state.missing:
                report[unit.name] = "misplaced" if unit.name in misplaced else "missing"
            elif unit.name in dirty:
                report[unit.name] = "dirty"
            else:
                report[unit.name] = "installed"

        for path, name in fs_state.extra.items():
            if name not in self.registry:
                report[str(path)] = "extra"
        return report

    def log(self) -> list[str]:
        """Recent log messages."""
        return get_messages()

    async def lock(self) -> dict[str, str]:
        """Write the lockfile from the installed revisions."""
        return await lockfile.lock(self.registry, self.backends, self.settings.lockfile)

    async def restore(self, callback: ReportCallback | None = None) -> ResultMap:
        """Check out the revisions recorded in the lockfile."""
        results = await lockfile.restore(
            self.registry, self.backends, self.settings.lockfile, limit=self.settings.max_jobs
        )
        if callback is not None:
            callback(results)
        return results

    async def diff(self, name: str, ref: str, callback: DiffCallback) -> None:
        """Show the change a revision introduced in one plugin."""
        unit = self.registry.get(name)
        if unit is None:
            callback([], [f"Unknown plugin: {name}"])
            return
        await self._backend(unit).diff(unit, ref, callback)

    async def revert_last(self, name: str) -> list[str] | None:
        """Undo the last update of one plugin."""
        unit = self.registry.get(name)
        if unit is None:
            return [f"Unknown plugin: {name}"]
        return await self._backend(unit).revert_last(unit)
