"""Shared worker pool for step executions.

Workers are asyncio tasks created on demand, one per execution, and
forgotten as soon as they finish. The pool is an explicit resource: it is
created at server startup and shut down at teardown.
"""

import asyncio
import itertools
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)

WORKER_NAME_PREFIX = "ssh-steps-worker"


class WorkerPool:
    """Unbounded pool of named worker tasks."""

    def __init__(self, name_prefix: str = WORKER_NAME_PREFIX) -> None:
        self.name_prefix = name_prefix
        self._tasks: set[asyncio.Task[Any]] = set()
        self._counter = itertools.count(1)
        self._shutdown = False

    def submit(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Schedule ``coro`` on a new worker task and return immediately.

        Raises:
            RuntimeError: If the pool has been shut down
        """
        if self._shutdown:
            coro.close()
            raise RuntimeError("WorkerPool is shut down")

        name = f"{self.name_prefix}-{next(self._counter)}"
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Submitted %s (active=%d)", name, len(self._tasks))
        return task

    @property
    def active_count(self) -> int:
        """Number of workers still running."""
        return len(self._tasks)

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    async def shutdown(self) -> None:
        """Cancel every running worker and wait for them to finish."""
        self._shutdown = True
        tasks = list(self._tasks)
        if not tasks:
            return

        logger.info("Shutting down worker pool (%d running)", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Worker pool shut down")
