"""
Call Budget Limiter.

In-memory budget for outbound calls to the remote store. Every remote
fetch and write must pass it. Three ceilings apply:

    - calls in the trailing 60 seconds
    - calls in the trailing 3600 seconds
    - calls currently in flight (burst)

State lives in memory only and resets when the process restarts.
"""

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, Iterator, List, Optional, Tuple

from timeclock.clock import Clock, SystemClock
from timeclock.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

MINUTE = 60.0
HOUR = 3600.0


@dataclass
class RateLimitConfig:
    """Ceilings for the call budget."""

    max_calls_per_minute: int = 100
    max_calls_per_hour: int = 1000
    burst_limit: int = 75
    burst_reset_seconds: float = 5.0


@dataclass
class CallBudgetLimiter:
    """
    Sliding-window call budget with burst control.

    try_acquire()/release() must be paired; budget() does the pairing on
    every exit path. A periodic reset zeroes the burst counter so a lost
    release() can never lock the limiter permanently.
    """

    config: RateLimitConfig = field(default_factory=RateLimitConfig)
    clock: Clock = field(default_factory=SystemClock)
    _calls: List[Tuple[float, str]] = field(default_factory=list)
    _burst: int = 0
    _last_burst_reset: Optional[float] = None
    _lock: Lock = field(default_factory=Lock)
    _reset_task: Optional[asyncio.Task] = None

    @property
    def current_burst(self) -> int:
        return self._burst

    def _prune(self, now: float) -> None:
        cutoff = now - HOUR
        self._calls = [(ts, op) for ts, op in self._calls if ts > cutoff]

    def _calls_since(self, now: float, window: float) -> int:
        cutoff = now - window
        return sum(1 for ts, _ in self._calls if ts > cutoff)

    def _maybe_reset_burst(self, now: float) -> None:
        if self._last_burst_reset is None:
            self._last_burst_reset = now
            return
        if now - self._last_burst_reset >= self.config.burst_reset_seconds:
            self._reset_burst_locked(now)

    def _reset_burst_locked(self, now: float) -> None:
        if self._burst > 0:
            logger.info(f"Auto-resetting burst counter from {self._burst} to 0")
        self._burst = 0
        self._last_burst_reset = now

    def try_acquire(self, operation: str = "") -> bool:
        """
        Try to reserve budget for one remote call.

        Returns:
            True if the call may proceed (burst incremented, call logged).
        """
        with self._lock:
            now = self.clock.time()
            self._maybe_reset_burst(now)

            if self._burst >= self.config.burst_limit:
                logger.warning(
                    f"Burst limit exceeded: {self._burst}/{self.config.burst_limit} in flight"
                )
                return False

            calls_last_minute = self._calls_since(now, MINUTE)
            if calls_last_minute >= self.config.max_calls_per_minute:
                logger.warning(f"Rate limit exceeded: {calls_last_minute} calls in last minute")
                return False

            calls_last_hour = self._calls_since(now, HOUR)
            if calls_last_hour >= self.config.max_calls_per_hour:
                logger.warning(f"Rate limit exceeded: {calls_last_hour} calls in last hour")
                return False

            self._burst += 1
            self._calls.append((now, operation))
            self._prune(now)
            logger.debug(
                f"API call: {operation} (last hour: {len(self._calls)}, burst: {self._burst})"
            )
            return True

    def release(self) -> None:
        """Return one in-flight slot. Never drops below zero."""
        with self._lock:
            if self._burst > 0:
                self._burst -= 1

    def reset_burst(self) -> None:
        """Zero the burst counter unconditionally."""
        with self._lock:
            self._reset_burst_locked(self.clock.time())

    @contextmanager
    def budget(self, operation: str = "") -> Iterator[None]:
        """
        Scoped acquisition.

        Raises:
            RateLimitExceeded: If the budget denies the call.
        """
        if not self.try_acquire(operation):
            raise RateLimitExceeded(f"Call budget exhausted for {operation or 'remote call'}")
        try:
            yield
        finally:
            self.release()

    # =========================================================================
    # Background reset
    # =========================================================================

    async def _run_burst_reset(self) -> None:
        while True:
            await asyncio.sleep(self.config.burst_reset_seconds)
            self.reset_burst()

    def start(self) -> None:
        """Start the periodic burst reset on the running event loop."""
        if self._reset_task is None or self._reset_task.done():
            self._reset_task = asyncio.get_running_loop().create_task(
                self._run_burst_reset(), name="burst-reset"
            )
            logger.info(f"Burst reset timer started (every {self.config.burst_reset_seconds}s)")

    async def stop(self) -> None:
        """Cancel the periodic burst reset."""
        if self._reset_task is not None:
            self._reset_task.cancel()
            try:
                await self._reset_task
            except asyncio.CancelledError:
                pass
            self._reset_task = None

    def get_stats(self) -> Dict[str, Any]:
        """Usage figures for the quota dashboard."""
        with self._lock:
            now = self.clock.time()
            calls_last_minute = self._calls_since(now, MINUTE)
            calls_last_hour = self._calls_since(now, HOUR)
            burst = self._burst

        return {
            "callsInLastMinute": calls_last_minute,
            "callsInLastHour": calls_last_hour,
            "maxCallsPerMinute": self.config.max_calls_per_minute,
            "maxCallsPerHour": self.config.max_calls_per_hour,
            "currentBurst": burst,
            "burstLimit": self.config.burst_limit,
            "percentageUsedPerMinute": calls_last_minute / self.config.max_calls_per_minute * 100,
            "percentageUsedPerHour": calls_last_hour / self.config.max_calls_per_hour * 100,
        }
