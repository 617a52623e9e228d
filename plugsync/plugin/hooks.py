"""
Post Install/Update Hooks.

This module runs a plugin's ``run`` hook after a successful install or an
actual update.

Key features:
- Hook variants: Python callable, host command (":" prefix), shell command
- Plugin loaded into the host before the hook body runs
- Shell hooks run with the install directory as working directory
- Failures returned as error lines, never raised
- Serialized through the host lock
"""

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from plugsync.core import jobs
from plugsync.errors import PlugsyncError

if TYPE_CHECKING:
    from plugsync.core.display import Display
    from plugsync.host import Host
    from plugsync.plugin.unit import Unit

logger = logging.getLogger(__name__)

COMMAND_SIGIL = ":"


class HookError(PlugsyncError):
    """Base exception for hook-related errors."""

    pass


class HookKind(Enum):
    """Hook variant."""

    CALLABLE = "callable"
    COMMAND = "command"
    SHELL = "shell"


@dataclass(frozen=True)
class Hook:
    """
    A post install/update hook.

    Attributes:
        kind: Which variant this is
        target: The callable (CALLABLE) or command text without sigil (COMMAND, SHELL)
    """

    kind: HookKind
    target: Any

    @classmethod
    def call(cls, func: Callable[[], Any]) -> "Hook":
        return cls(HookKind.CALLABLE, func)

    @classmethod
    def command(cls, text: str) -> "Hook":
        return cls(HookKind.COMMAND, text)

    @classmethod
    def shell(cls, text: str) -> "Hook":
        return cls(HookKind.SHELL, text)

    @classmethod
    def parse(cls, value: Any) -> "Hook | None":
        """
        Build a hook from a declaration value.

        Args:
            value: None/"" (no hook), a Hook, a callable, or a string. Strings
                starting with ":" are host commands, other strings are shell commands.

        Raises:
            HookError: If the value has an unsupported type
        """
        if value is None or value == "":
            return None
        if isinstance(value, Hook):
            return value
        if callable(value):
            return cls.call(value)
        if isinstance(value, str):
            if value.startswith(COMMAND_SIGIL):
                return cls.command(value[len(COMMAND_SIGIL):])
            return cls.shell(value)
        raise HookError(f"Unsupported hook type: {type(value).__name__}")

    def describe(self) -> str:
        if self.kind is HookKind.CALLABLE:
            return getattr(self.target, "__name__", repr(self.target))
        if self.kind is HookKind.COMMAND:
            return COMMAND_SIGIL + self.target
        return self.target


async def run_post_update_hook(unit: "Unit", disp: "Display", host: "Host") -> list[str] | None:
    """
    Load the plugin if needed and run its hook.

    Args:
        unit: Plugin that was just installed or updated
        disp: Display for progress messages
        host: Host owning the loader, commands and the serialization lock

    Returns:
        Error lines, or None on success (including when there is no hook)
    """
    async with host.main():
        if unit.start or unit.run is not None:
            try:
                host.load(unit)
            except Exception as e:
                logger.debug("Failed to load %s: %s", unit.name, e)
                return [f"Error loading plugin: {e}"]

        hook = unit.run
        if hook is None:
            return None

        if hook.kind is HookKind.CALLABLE:
            disp.task_update(unit.name, "running post update hook...")
            try:
                outcome = hook.target()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                return [f"Error running post update hook: {e!r}"]

        elif hook.kind is HookKind.COMMAND:
            disp.task_update(unit.name, f'running post update hook...("{hook.describe()}")')
            try:
                host.execute(hook.target)
            except Exception as e:
                return [f"Error running post update hook: {e}"]

        elif hook.kind is HookKind.SHELL:
            disp.task_update(unit.name, f'running post update hook...("{hook.target}")')
            try:
                result = await jobs.run(hook.target, cwd=unit.install_path)
            except jobs.JobError as e:
                return [f"Error running post update hook: {e}"]
            if not result.ok:
                stderr = "\n".join(result.stderr)
                return [f"Error running post update hook: {stderr}"]

    logger.debug("Ran post update hook for %s", unit.name)
    return None
