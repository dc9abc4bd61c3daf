"""Deferred jobs on the event loop.

Injected wherever work must happen later (connection reaping), so tests can
swap in a scheduler driven by a virtual clock instead of waiting.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol

logger = logging.getLogger(__name__)

Job = Callable[..., Awaitable[Any]]


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Job, *args: Any) -> None: ...

    def cancel_all(self) -> None: ...


class AsyncioScheduler:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def call_later(self, delay: float, callback: Job, *args: Any) -> None:
        task = asyncio.create_task(self._fire(delay, callback, args))
        # Hold a reference until done, the loop only keeps weak ones
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fire(self, delay: float, callback: Job, args: tuple) -> None:
        await asyncio.sleep(delay)
        try:
            await callback(*args)
        except Exception:
            logger.exception("Scheduled job %s failed", getattr(callback, "__qualname__", callback))

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    @property
    def pending(self) -> int:
        return len(self._tasks)
