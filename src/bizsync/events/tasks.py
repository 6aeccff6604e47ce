"""Tracking for fire-and-forget work started by synchronous bus listeners."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
import inspect
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class BackgroundTasks:
    """Own the asyncio tasks spawned from listeners so none are lost."""

    def __init__(self) -> None:
        self._pending: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._pending)

    def spawn(self, awaitable: Awaitable[Any], label: str) -> asyncio.Task[Any] | None:
        """Schedule ``awaitable`` on the running loop.

        Returns ``None`` (and discards the awaitable) when no loop is running,
        which happens when a synchronous caller emits outside of asyncio.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            LOGGER.warning(
                "tasks.spawn.no_loop",
                extra={"event": "tasks.spawn.no_loop", "label": label},
            )
            return None

        task = loop.create_task(_as_coroutine(awaitable), name=label)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(self._log_failure)
        return task

    def _log_failure(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "tasks.background.exception",
                extra={
                    "event": "tasks.background.exception",
                    "label": task.get_name(),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    async def drain(self) -> None:
        """Await every pending task, including ones spawned while draining."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel every tracked task and await them all."""
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()


async def _as_coroutine(awaitable: Awaitable[Any]) -> Any:
    return await awaitable
