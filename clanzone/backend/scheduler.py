"""Deferred callbacks on the running asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol

_LOGGER = logging.getLogger(__name__)

DeferredCallback = Callable[..., Awaitable[Any]]


class ScheduledHandle(Protocol):
    def cancel(self) -> None:
        """Drop the callback if it has not fired yet."""


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: DeferredCallback, *args: Any) -> ScheduledHandle:
        """Run ``callback(*args)`` once after ``delay`` seconds."""


class AsyncioScheduler:
    """Schedules coroutine callbacks with ``loop.call_later``.

    Tasks spawned by fired callbacks are kept referenced until they finish so the loop
    does not garbage-collect them mid-flight.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    def call_later(self, delay: float, callback: DeferredCallback, *args: Any) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), self._spawn, callback, args)

    async def shutdown(self) -> None:
        """Stop firing callbacks and cancel the ones still running."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            _LOGGER.info("Cancelled %d deferred callbacks on shutdown", len(tasks))

    def _spawn(self, callback: DeferredCallback, args: tuple[Any, ...]) -> None:
        if self._closed:
            return
        task = asyncio.ensure_future(callback(*args))
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _LOGGER.error("Deferred callback failed", exc_info=exc)
