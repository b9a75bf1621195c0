"""Periodic refresh scheduler.

Runs a tick callback at a fixed interval on a background asyncio task. The
session manager starts it on entering the authenticated state and stops it
on leaving, so the task's lifetime is bound to that state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Calls ``tick`` every ``interval_seconds`` until stopped.

    Args:
        tick: Coroutine function run on each interval
        interval_seconds: Delay between ticks
    """

    def __init__(
        self,
        tick: Callable[[], Awaitable[object]],
        interval_seconds: float = 60.0,
    ):
        self._tick = tick
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """True while the background task is scheduled."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking. Safe to call when already running.

        Must be called from a running event loop.
        """
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="authsession-refresh")
        logger.debug(f"Refresh scheduler started ({self.interval_seconds}s)")

    def stop(self) -> None:
        """Stop ticking immediately.

        Synchronous so callers can stop the timer before touching state.
        When called from inside a tick, the loop exits once the tick
        returns instead of cancelling the tick itself.
        """
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is not asyncio.current_task():
            task.cancel()
        logger.debug("Refresh scheduler stopped")

    async def _run(self) -> None:
        current = asyncio.current_task()
        while self._task is current:
            await asyncio.sleep(self.interval_seconds)
            if self._task is not current:
                break
            try:
                await self._tick()
            except Exception:
                logger.exception("Refresh tick failed")
