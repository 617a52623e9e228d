"""
Backend for plugins living in a local directory.

The install directory is a symlink to the declared source, so edits in the
source are visible immediately and "updating" never changes anything.
"""

from pathlib import Path

from plugsync.core.display import Display
from plugsync.errors import InstallError, UpdateError
from plugsync.plugin.backends import Backend, DiffCallback, UpdateInfo
from plugsync.plugin.unit import Unit

LOCAL_REV = "local"


class LocalBackend(Backend):
    """Symlink-based backend for ``type = "local"`` plugins."""

    name = "local"

    async def installer(self, unit: Unit, disp: Display) -> list[str] | None:
        source = Path(unit.url).expanduser()
        if not source.is_dir():
            raise InstallError(f"Local plugin source not found: {source}")

        disp.task_update(unit.name, f"linking {source}...")
        try:
            unit.install_path.parent.mkdir(parents=True, exist_ok=True)
            unit.install_path.symlink_to(source, target_is_directory=True)
        except OSError as e:
            raise InstallError(f"Failed to link {unit.install_path} -> {source}: {e}") from e
        return None

    async def updater(self, unit: Unit, disp: Display) -> UpdateInfo:
        if not self.is_intact(unit, unit.install_path):
            raise UpdateError(f"{unit.install_path} no longer points at {unit.url}")
        return UpdateInfo(revs=(LOCAL_REV, LOCAL_REV))

    async def diff(self, unit: Unit, ref: str, callback: DiffCallback) -> None:
        callback([], ["Diff is not supported for local plugins"])

    async def revert_last(self, unit: Unit) -> list[str] | None:
        return ["Revert is not supported for local plugins"]

    async def checkout(self, unit: Unit, rev: str) -> list[str] | None:
        if rev != LOCAL_REV:
            return [f"Local plugins cannot check out {rev}"]
        return None

    async def get_rev(self, unit: Unit) -> str | None:
        return LOCAL_REV

    def is_intact(self, unit: Unit, path: Path) -> bool:
        source = Path(unit.url).expanduser()
        return path.is_symlink() and path.resolve() == source.resolve()
