"""
Backend contract.

A backend performs the actual install/update work for every plugin whose
``type`` matches. The orchestrator only ever talks to plugins through this
interface.

Key features:
- installer / updater used by the install and update stages
- diff / revert_last for reviewing and undoing an update
- get_rev / checkout used by the lockfile
- is_intact used by the filesystem state to detect dirty directories
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from plugsync.errors import PlugsyncError
from plugsync.plugin.unit import Unit

if TYPE_CHECKING:
    from plugsync.config import Settings
    from plugsync.core.display import Display


class BackendError(PlugsyncError):
    """Base exception for backend errors."""

    pass


@dataclass
class UpdateInfo:
    """
    What an updater did.

    Attributes:
        revs: Revision before and after the update
        messages: Change-log entries between the two revisions
        err: Error lines, or None on success
    """

    revs: tuple[str | None, str | None] = (None, None)
    messages: list[str] = field(default_factory=list)
    err: list[str] | None = None

    @property
    def changed(self) -> bool:
        return not self.err and self.revs[0] != self.revs[1]


DiffCallback = Callable[[list[str], list[str] | None], None]


class Backend:
    """
    Interface every backend implements.

    installer and updater may either return their errors or raise
    InstallError / UpdateError; both are recorded against the plugin.
    """

    name = ""

    async def installer(self, unit: Unit, disp: "Display") -> list[str] | None:
        raise NotImplementedError

    async def updater(self, unit: Unit, disp: "Display") -> UpdateInfo:
        raise NotImplementedError

    async def diff(self, unit: Unit, ref: str, callback: DiffCallback) -> None:
        raise NotImplementedError

    async def revert_last(self, unit: Unit) -> list[str] | None:
        raise NotImplementedError

    async def get_rev(self, unit: Unit) -> str | None:
        return None

    async def checkout(self, unit: Unit, rev: str) -> list[str] | None:
        raise NotImplementedError

    def is_intact(self, unit: Unit, path: Path) -> bool:
        return True


def default_backends(settings: "Settings") -> dict[str, Backend]:
    """Backends available out of the box, keyed by plugin type."""
    from plugsync.plugin.git_ops import GitBackend
    from plugsync.plugin.local import LocalBackend

    return {
        "git": GitBackend(git_cmd=settings.git_cmd, timeout=settings.clone_timeout),
        "local": LocalBackend(),
    }
