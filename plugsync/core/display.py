"""
Display sinks for batch progress.

Display is the contract the orchestrator reports through; its methods are
no-ops so tests and embedders override only what they need. ConsoleDisplay
prints to stdout and asks for confirmation on stdin.
"""

import asyncio
import sys


class Display:
    """Progress sink for one batch."""

    def task_start(self, name: str, message: str) -> None:
        pass

    def task_update(self, name: str, message: str) -> None:
        pass

    def task_succeeded(self, name: str, message: str, info: list[str] | None = None) -> None:
        pass

    def task_failed(self, name: str, message: str, err: list[str] | None = None) -> None:
        pass

    def task_done(self, name: str, message: str) -> None:
        pass

    def update_headline(self, message: str) -> None:
        pass

    async def ask_user(self, prompt: str, lines: list[str]) -> bool:
        """Ask the operator to confirm; the base sink never confirms."""
        return False

    def check(self) -> bool:
        """Return True to stop admitting new tasks."""
        return False

    def finish(self, duration: float) -> None:
        pass


class ConsoleDisplay(Display):
    """
    Display writing one line per event to stdout.

    Args:
        verbose: Also print task_update messages and commit info
        stream: Output stream (default: sys.stdout)
    """

    def __init__(self, verbose: bool = False, stream=None):
        self.verbose = verbose
        self.stream = stream or sys.stdout
        self.cancelled = False
        self.failed: list[str] = []

    def _write(self, text: str) -> None:
        print(text, file=self.stream, flush=True)

    def task_start(self, name: str, message: str) -> None:
        self._write(f"  {name}: {message}")

    def task_update(self, name: str, message: str) -> None:
        if self.verbose:
            self._write(f"  {name}: {message}")

    def task_succeeded(self, name: str, message: str, info: list[str] | None = None) -> None:
        self._write(f"✓ {name}: {message}")
        if info and self.verbose:
            for line in info:
                self._write(f"    {line}")

    def task_failed(self, name: str, message: str, err: list[str] | None = None) -> None:
        self.failed.append(name)
        self._write(f"✗ {name}: {message}")
        for line in err or []:
            self._write(f"    {line}")

    def task_done(self, name: str, message: str) -> None:
        self._write(f"- {name}: {message}")

    def update_headline(self, message: str) -> None:
        self._write(f":: {message}")

    async def ask_user(self, prompt: str, lines: list[str]) -> bool:
        for line in lines:
            self._write(line)
        try:
            answer = await asyncio.to_thread(input, f"{prompt} ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")

    def check(self) -> bool:
        return self.cancelled

    def cancel(self) -> None:
        """Stop admitting new tasks; running ones finish normally."""
        self.cancelled = True

    def finish(self, duration: float) -> None:
        summary = f"Finished in {duration:.2f}s"
        if self.failed:
            summary += f", {len(self.failed)} failed"
        self._write(summary)
