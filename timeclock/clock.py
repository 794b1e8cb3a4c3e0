"""
Clock abstraction.

Services take a clock instead of calling time.time()/datetime.now() so tests
can control TTL expiry and rate windows deterministically.
"""

import time
from datetime import datetime, tzinfo
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of wall-clock time."""

    def time(self) -> float: ...

    def now(self, tz: tzinfo) -> datetime: ...


class SystemClock:
    """Clock backed by the host's real time."""

    def time(self) -> float:
        return time.time()

    def now(self, tz: tzinfo) -> datetime:
        return datetime.now(tz)
