"""
Daily scheduler for the missed-checkout sweep.

A single asyncio task sleeps until the next HH:MM:00 in the configured
zone, runs the job, and repeats. Job failures are logged and the loop keeps
going.
"""

import asyncio
import logging
from datetime import datetime, timedelta, tzinfo
from typing import Any, Awaitable, Callable, Optional

from timeclock.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


def next_run_after(now: datetime, hour: int, minute: int) -> datetime:
    """First HH:MM:00 strictly after now, in now's zone."""
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class DailyScheduler:
    """
    Args:
        job: Coroutine factory to run once a day.
        hour / minute: Local time of day to run.
        tz: Zone the time of day is expressed in.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        hour: int,
        minute: int,
        tz: tzinfo,
        clock: Optional[Clock] = None,
        name: str = "daily-job",
    ) -> None:
        self._job = job
        self._hour = hour
        self._minute = minute
        self._tz = tz
        self._clock = clock or SystemClock()
        self._name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def seconds_until_next_run(self) -> float:
        now = self._clock.now(self._tz)
        return (next_run_after(now, self._hour, self._minute) - now).total_seconds()

    async def run_once(self) -> Any:
        try:
            return await self._job()
        except Exception as e:
            logger.error(f"Scheduled job '{self._name}' failed: {e}")
            return None

    async def _loop(self) -> None:
        while True:
            delay = self.seconds_until_next_run()
            logger.info(f"Next '{self._name}' run in {delay / 3600:.2f}h")
            await asyncio.sleep(delay)
            await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self._name)
        logger.info(f"Scheduler '{self._name}' started ({self._hour:02d}:{self._minute:02d} daily)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Scheduler '{self._name}' stopped")
