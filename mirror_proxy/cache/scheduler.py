import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from mirror_proxy.utils.exception_logging import log_exception_with_details

DetachedWork = Callable[[], Awaitable[None]]


class TaskScheduler(ABC):
    @abstractmethod
    def spawn_detached(self, fn: DetachedWork) -> None:
        """Start ``fn`` without waiting for it; its outcome is not reported back."""


class AsyncioTaskScheduler(TaskScheduler):
    """
    Run detached work as asyncio tasks on the running loop.

    Tasks are referenced until they finish so they are not garbage collected
    mid-flight. Work still pending when the loop stops may be dropped.
    """

    def __init__(self, logger: logging.Logger = None):
        self._logger = logger or logging.getLogger("uvicorn.error")
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn_detached(self, fn: DetachedWork) -> None:
        task = asyncio.get_running_loop().create_task(self._run(fn))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, fn: DetachedWork) -> None:
        try:
            await fn()
        except Exception as e:
            log_exception_with_details(
                self._logger, "[Detached]", e, level=logging.WARNING
            )

    async def drain(self) -> None:
        """Wait for every task spawned so far."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
