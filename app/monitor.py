"""Periodic progress poller — at most one polling task at a time."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class ProgressMonitor:
    def __init__(self, tick: Callable[[], Awaitable[None]], interval: float = 0.8) -> None:
        self._tick = tick
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """(Re)start polling; any previous task is cancelled first."""
        self.stop()
        self._task = asyncio.create_task(self._poll_loop())

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _poll_loop(self) -> None:
        me = asyncio.current_task()
        while self._task is me:
            try:
                await asyncio.sleep(self.interval)
                await self._tick()
            except asyncio.CancelledError:
                logger.debug("Progress polling cancelled")
                raise
            except Exception:
                logger.exception("Progress poll error")
                # keep polling after a bad tick
