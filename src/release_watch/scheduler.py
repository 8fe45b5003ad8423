"""
Fixed-interval scheduler for reconciliation cycles.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Run a cycle immediately, then again every ``interval_seconds``.

    Cycles run one after another on a single task and never overlap. A cycle
    that raises is logged and the loop carries on after the normal interval.
    ``stop()`` ends the loop at the next sleep; a running cycle is not
    interrupted.
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[Any]],
        interval_seconds: float,
    ):
        self.cycle = cycle
        self.interval_seconds = interval_seconds
        self.cycles_run = 0
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_forever(self) -> None:
        """Loop until ``stop()`` is called."""
        while not self._stop_event.is_set():
            try:
                await self.cycle()
            except Exception as e:
                logger.exception(f"Cycle failed: {e}")
            self.cycles_run += 1

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                continue

        logger.info(f"Scheduler stopped after {self.cycles_run} cycle(s)")

    def start(self) -> asyncio.Task:
        """Start the loop as a background task on the running event loop."""
        if self.running:
            return self._task
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run_forever(), name="release-watch-scheduler")
        return self._task

    def stop(self) -> None:
        """Ask the loop to finish after the current cycle."""
        self._stop_event.set()

    async def wait(self) -> None:
        """Wait for the background task to finish."""
        if self._task is not None:
            await self._task
