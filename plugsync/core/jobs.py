"""
Subprocess Jobs.

This module runs external commands without blocking the event loop.

Key features:
- argv lists via create_subprocess_exec, strings via the shell
- Captured stdout/stderr split into lines
- Optional timeout with kill on expiry
- Environment injection on top of os.environ
"""

import asyncio
import os
from dataclasses import dataclass, field
from pathlib import Path

from plugsync.errors import PlugsyncError


class JobError(PlugsyncError):
    """Raised when a command cannot be started or times out."""

    pass


@dataclass
class JobResult:
    """
    Outcome of a finished command.

    Attributes:
        code: Process exit status
        stdout: Captured standard output lines
        stderr: Captured standard error lines
    """

    code: int
    stdout: list[str] = field(default_factory=list)
    stderr: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.code == 0


def _split_lines(data: bytes | None) -> list[str]:
    if not data:
        return []
    return data.decode("utf-8", errors="replace").splitlines()


async def run(
    cmd: list[str] | str,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> JobResult:
    """
    Run a command and wait for it to exit.

    Args:
        cmd: Argument vector, or a string executed through the shell
        cwd: Working directory
        env: Extra environment variables
        timeout: Seconds to wait before killing the process (None = no limit)

    Returns:
        JobResult with exit status and captured output

    Raises:
        JobError: If the command is not found, cannot start, or times out
    """
    full_env = None
    if env:
        full_env = os.environ.copy()
        full_env.update(env)

    label = cmd if isinstance(cmd, str) else " ".join(cmd)

    try:
        if isinstance(cmd, str):
            process = await asyncio.create_subprocess_shell(
                cmd,
                cwd=cwd,
                env=full_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        else:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=cwd,
                env=full_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
    except FileNotFoundError as e:
        raise JobError(f"Command not found: {label}") from e
    except OSError as e:
        raise JobError(f"Failed to start {label}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        process.kill()
        await process.wait()
        raise JobError(f"{label} timed out after {timeout} seconds") from None

    return JobResult(
        code=process.returncode if process.returncode is not None else -1,
        stdout=_split_lines(stdout),
        stderr=_split_lines(stderr),
    )
