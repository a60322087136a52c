"""Periodic refresh ticks for the current instance."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_MS = 1000


class RefreshScheduler:
    """Calls ``on_tick`` every ``interval_ms`` until stopped.

    The callback is expected to fire off its own work (``request_status`` returns
    a task); a slow fetch never delays or suppresses the next tick.
    """

    def __init__(self, on_tick: Callable[[], object], interval_ms: int = DEFAULT_REFRESH_MS) -> None:
        if interval_ms <= 0:
            raise ValueError(f"refresh interval must be positive: {interval_ms}")
        self.on_tick = on_tick
        self.interval_ms = interval_ms
        self.ticks = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.ensure_future(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def _run(self) -> None:
        interval = self.interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            self.ticks += 1
            logger.debug("Refresh tick %d", self.ticks)
            self.on_tick()
