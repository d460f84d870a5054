"""
Periodic Task - Background loop with an explicit lifecycle.

Owned by BarucBot: start() on app startup, stop() on shutdown, run_once()
from tests to trigger a cycle deterministically.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs ``action`` every ``interval_seconds`` until stopped."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        action: Callable[[], Any | Awaitable[Any]],
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self._action = action
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Any:
        result = self._action()
        if inspect.isawaitable(result):
            result = await result
        return result

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info(f"Started periodic task '{self.name}' every {self.interval_seconds}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Stopped periodic task '{self.name}'")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Periodic task '{self.name}' failed: {e}")
