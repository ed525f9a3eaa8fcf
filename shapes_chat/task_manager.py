"""Lifecycle tracking for background send tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Track background asyncio tasks started by the UI.

    Sends are not cancellable while running; tasks are only cancelled when the
    whole application shuts down.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def add(self, task: asyncio.Task[Any]) -> None:
        """Track ``task`` until it finishes; failures are logged, not lost."""
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(self._log_exception)

    @staticmethod
    def _log_exception(task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "task.exception",
                extra={
                    "event": "task.exception",
                    "task": task.get_name(),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def await_all(self) -> None:
        """Wait for every tracked task without cancelling it."""
        for task in list(self._tasks):
            if not task.done():
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception:  # noqa: BLE001 - already logged by _log_exception.
                    pass

    async def cancel_all(self) -> None:
        """Cancel every tracked task and wait for them to finish."""
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:  # noqa: BLE001 - already logged by _log_exception.
                pass
        self._tasks.clear()
