"""
Dataset Cache.

Per-dataset cache entries with independent TTLs. The cache never decides
whether stale data is acceptable; it answers "is it valid" and "what do you
have" separately and leaves the decision to the fetch façade.
"""

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Mapping, Optional

from timeclock.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300.0


@dataclass
class CacheEntry:
    """Cached payload for one dataset."""

    base_ttl: float
    ttl: float
    payload: Any = None
    fetched_at: Optional[float] = None

    def age(self, now: float) -> Optional[float]:
        if self.fetched_at is None:
            return None
        return now - self.fetched_at

    def has_payload(self) -> bool:
        return self.payload is not None and self.fetched_at is not None


class DatasetCache:
    """
    In-memory cache keyed by dataset identifier.

    Args:
        ttls: Base TTL in seconds per key. Unknown keys get DEFAULT_TTL.
        clock: Time source (injectable for tests).
    """

    def __init__(self, ttls: Mapping[str, float], clock: Optional[Clock] = None) -> None:
        self._clock = clock or SystemClock()
        self._lock = Lock()
        self._entries: Dict[str, CacheEntry] = {
            str(key): CacheEntry(base_ttl=ttl, ttl=ttl) for key, ttl in ttls.items()
        }

    def _entry(self, key: str) -> CacheEntry:
        key = str(key)
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(base_ttl=DEFAULT_TTL, ttl=DEFAULT_TTL)
            self._entries[key] = entry
        return entry

    def is_valid(self, key: str) -> bool:
        """True iff a payload is present and younger than the key's TTL."""
        with self._lock:
            entry = self._entry(key)
            if not entry.has_payload():
                return False
            return entry.age(self._clock.time()) < entry.ttl

    def get(self, key: str) -> Any:
        """Return the payload regardless of age, or None."""
        with self._lock:
            entry = self._entry(key)
            return entry.payload if entry.has_payload() else None

    def set(self, key: str, payload: Any) -> None:
        """Store a payload stamped with the current time; the TTL is kept."""
        with self._lock:
            entry = self._entry(key)
            entry.payload = payload
            entry.fetched_at = self._clock.time()

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key's payload, or every payload when key is None."""
        with self._lock:
            entries = self._entries.values() if key is None else [self._entry(key)]
            for entry in entries:
                entry.payload = None
                entry.fetched_at = None
        logger.debug(f"Cache invalidated: {key or 'all'}")

    def ttl(self, key: str) -> float:
        with self._lock:
            return self._entry(key).ttl

    def apply_ttl_override(self, ttl: float) -> None:
        """Set every entry's TTL to the same value (emergency mode)."""
        with self._lock:
            for entry in self._entries.values():
                entry.ttl = ttl

    def restore_base_ttls(self) -> None:
        """Give every entry back its configured TTL."""
        with self._lock:
            for entry in self._entries.values():
                entry.ttl = entry.base_ttl

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Per-key age, TTL, validity and size for introspection."""
        with self._lock:
            now = self._clock.time()
            result: Dict[str, Dict[str, Any]] = {}
            for key, entry in self._entries.items():
                age = entry.age(now)
                payload = entry.payload if entry.has_payload() else None
                result[key] = {
                    "hasData": payload is not None,
                    "valid": payload is not None and age is not None and age < entry.ttl,
                    "ageSeconds": round(age, 1) if age is not None else None,
                    "ttlSeconds": entry.ttl,
                    "size": len(payload) if isinstance(payload, (list, dict)) else None,
                }
            return result
