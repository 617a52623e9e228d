"""
Bounded-Concurrency Task Scheduler.

Runs a batch of independent plugin tasks on the event loop with at most
``limit`` of them in flight. Admission is gated by a semaphore; a finished
task releases its slot and the next queued task is started.

Key features:
- Admission limit (defaults to the batch size)
- Cooperative stop via a check callback polled before each admission
- Per-task failure isolation
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class Task:
    """
    A deferred unit of work for one plugin.

    Attributes:
        name: Name of the plugin the task targets
        body: Zero-argument coroutine factory doing the work
    """

    name: str
    body: Callable[[], Awaitable[object]]


async def _guarded(task: Task, failures: dict[str, list[str]]) -> None:
    try:
        await task.body()
    except Exception as e:
        logger.error("Task for %s raised: %s", task.name, e, exc_info=True)
        failures[task.name] = [f"Unexpected error: {e}"]


async def run_tasks(
    tasks: Sequence[Task],
    limit: int | None = None,
    check: Callable[[], bool] | None = None,
) -> dict[str, list[str]]:
    """
    Run tasks with bounded concurrency.

    Args:
        tasks: Ordered tasks; admitted in this order, completion order is unspecified
        limit: Maximum number of tasks in flight (default: len(tasks))
        check: Polled before each admission; a truthy return stops admitting
            new tasks. Tasks already started always run to completion.

    Returns:
        Mapping of task name -> error lines for tasks whose body raised

    Raises:
        ValueError: If limit is less than 1
    """
    failures: dict[str, list[str]] = {}

    if not tasks:
        logger.info("Nothing to do!")
        return failures

    if limit is None:
        limit = len(tasks)
    if limit < 1:
        raise ValueError(f"Concurrency limit must be positive, got {limit}")

    slots = asyncio.Semaphore(limit)
    running: set[asyncio.Task] = set()

    def _release(finished: asyncio.Task) -> None:
        running.discard(finished)
        slots.release()

    for task in tasks:
        await slots.acquire()
        if check is not None and check():
            slots.release()
            logger.info("Stopped admitting tasks, %d still running", len(running))
            break
        handle = asyncio.create_task(_guarded(task, failures), name=task.name)
        running.add(handle)
        handle.add_done_callback(_release)

    if running:
        await asyncio.gather(*running)

    return failures
