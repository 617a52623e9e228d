"""
Host process state shared by plugin hooks.

The host owns everything hooks may touch: the plugin loader, the table of
named host commands (invoked by ``:Name args`` hooks), and the lock that
serializes access so two tasks never run hook bodies or loads at once.
"""

import asyncio
import contextlib
import logging
import shlex
from collections.abc import AsyncIterator, Callable
from typing import Any

from plugsync.errors import PlugsyncError
from plugsync.plugin.loader import load_unit
from plugsync.plugin.unit import Unit

logger = logging.getLogger(__name__)


class HostCommandError(PlugsyncError):
    """Raised when a host command is unknown or malformed."""

    pass


class Host:
    """
    Host-side collaborator for hooks.

    Args:
        loader: Callable loading a plugin into the process (default: load_unit)
    """

    def __init__(self, loader: Callable[[Unit], Any] | None = None):
        self._loader = loader or load_unit
        self._commands: dict[str, Callable[..., Any]] = {}
        self._lock = asyncio.Lock()

    @contextlib.asynccontextmanager
    async def main(self) -> AsyncIterator["Host"]:
        """Hold exclusive access to host state for the duration of the block."""
        async with self._lock:
            yield self

    def load(self, unit: Unit) -> Any:
        logger.debug("Loading %s", unit.name)
        return self._loader(unit)

    def register_command(self, name: str, func: Callable[..., Any]) -> None:
        """
        Register a host command.

        Raises:
            HostCommandError: If a command with the same name exists
        """
        if name in self._commands:
            raise HostCommandError(f"Host command '{name}' already registered")
        self._commands[name] = func

    def execute(self, command_line: str) -> Any:
        """
        Run a host command line: the first word names the command, the rest
        are passed as string arguments.

        Raises:
            HostCommandError: If the line is empty or names no command
        """
        try:
            words = shlex.split(command_line)
        except ValueError as e:
            raise HostCommandError(f"Malformed host command '{command_line}': {e}") from e
        if not words:
            raise HostCommandError("Empty host command")

        name, *args = words
        func = self._commands.get(name)
        if func is None:
            raise HostCommandError(f"Not a host command: {name}")

        logger.debug("Executing host command %s %s", name, args)
        return func(*args)
