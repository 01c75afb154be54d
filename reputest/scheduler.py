"""Fixed-interval scheduler for ingestion passes."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class IngestionScheduler:
    """Run *job* every *interval* seconds until stopped.

    Passes never overlap: the next one is scheduled only after the previous
    one returns. ``stop()`` sets the shared stop event, which the paginators
    check between pages, and wakes the loop if it is sleeping.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[object]],
        interval: float,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._job = job
        self.interval = interval
        self.stop_event = stop_event or asyncio.Event()
        self._task: asyncio.Task | None = None
        self.passes = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self.running:
            raise RuntimeError("Scheduler already running")
        self.stop_event.clear()
        self._task = asyncio.create_task(self.run_forever(), name="ingestion-scheduler")
        return self._task

    async def stop(self) -> None:
        """Request a graceful stop and wait for the running pass to finish."""
        self.stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def run_forever(self) -> None:
        logger.info(f"Scheduler started, interval {self.interval:.0f}s")
        while not self.stop_event.is_set():
            await self.run_pass()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self.stop_event.wait(), timeout=self.interval)
        logger.info(f"Scheduler stopped after {self.passes} pass(es)")

    async def run_pass(self) -> None:
        self.passes += 1
        try:
            await self._job()
        except Exception as e:
            logger.exception(f"Ingestion pass {self.passes} failed: {e}")
