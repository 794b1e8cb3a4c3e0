"""
Resilient Fetch Façade.

Orchestrates the call budget and the dataset cache in front of the remote
store:

    1. fresh cache            -> return it (no budget used)
    2. budget denied          -> stale cache, else RateLimitExceeded
    3. remote fetch succeeds  -> cache and return
       quota-class failure    -> stale cache, else re-raise
       any other failure      -> re-raise

safe_fetch() wraps fetch() for display paths that must never raise: any
failure switches on emergency mode and falls back to stale data or [].
Emergency mode is switched on automatically but only switched off
explicitly (operator action or a health check).
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping

from timeclock.exceptions import Degraded, RateLimitExceeded, is_quota_error
from timeclock.services.cache import DatasetCache
from timeclock.services.rate_limiter import CallBudgetLimiter
from timeclock.sheets.enums import REMOTE_DATASETS, Dataset

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[List[Any]]]


class ResilientFetcher:
    """
    Cache-first, budget-gated access to the remote datasets.

    Args:
        cache: Shared dataset cache.
        limiter: Shared call budget.
        loaders: Coroutine factory per remote dataset performing the fetch.
        emergency_ttl: TTL applied to every dataset while emergency mode is on.
    """

    def __init__(
        self,
        cache: DatasetCache,
        limiter: CallBudgetLimiter,
        loaders: Mapping[Dataset, Loader],
        emergency_ttl: float = 3600.0,
    ) -> None:
        self._cache = cache
        self._limiter = limiter
        local = [str(d) for d in loaders if d not in REMOTE_DATASETS]
        if local:
            raise ValueError(f"Datasets computed locally cannot have loaders: {', '.join(local)}")
        self._loaders: Dict[Dataset, Loader] = dict(loaders)
        self._emergency_ttl = emergency_ttl
        self._emergency_mode = False

    @property
    def cache(self) -> DatasetCache:
        return self._cache

    @property
    def limiter(self) -> CallBudgetLimiter:
        return self._limiter

    @property
    def emergency_mode(self) -> bool:
        return self._emergency_mode

    def set_emergency_mode(self, enabled: bool) -> None:
        """
        Switch emergency mode.

        On: every dataset TTL becomes the emergency TTL.
        Off: every dataset gets its configured TTL back.
        """
        self._emergency_mode = enabled
        if enabled:
            logger.warning("Emergency mode ENABLED - serving cached data for up to "
                           f"{self._emergency_ttl:.0f}s")
            self._cache.apply_ttl_override(self._emergency_ttl)
        else:
            logger.info("Emergency mode DISABLED - normal cache TTLs restored")
            self._cache.restore_base_ttls()

    def _stale_or_raise(self, dataset: Dataset, error: Exception, allow_stale: bool) -> List[Any]:
        stale = self._cache.get(dataset)
        if stale is None:
            raise error
        if not allow_stale:
            raise Degraded(f"Only stale data available for {dataset}", payload=stale) from error
        logger.warning(f"Using stale cache for {dataset} ({len(stale)} items)")
        return stale

    async def fetch(self, dataset: Dataset, allow_stale: bool = True) -> List[Any]:
        """
        Return records for a dataset.

        Args:
            dataset: Dataset to read.
            allow_stale: When False, raise Degraded instead of returning stale data.

        Raises:
            RateLimitExceeded: Budget denied and nothing cached.
            RemoteUnavailable: Remote failure that stale data could not cover.
            Degraded: Only stale data was available and allow_stale is False.
        """
        dataset = Dataset(dataset)

        if self._cache.is_valid(dataset):
            logger.debug(f"Using cached data for {dataset}")
            return self._cache.get(dataset)

        loader = self._loaders.get(dataset)
        if loader is None:
            raise KeyError(f"No loader registered for dataset '{dataset}'")

        if not self._limiter.try_acquire(f"fetch:{dataset}"):
            logger.warning(f"Call budget exhausted, trying stale cache for {dataset}")
            return self._stale_or_raise(
                dataset,
                RateLimitExceeded(f"Rate limit exceeded and no cached data for {dataset}"),
                allow_stale,
            )

        try:
            logger.debug(f"Fetching fresh data for {dataset}")
            records = await loader()
        except Exception as e:
            logger.error(f"Remote fetch failed for {dataset}: {e}")
            if is_quota_error(e):
                return self._stale_or_raise(dataset, e, allow_stale)
            raise
        finally:
            self._limiter.release()

        self._cache.set(dataset, records)
        return records

    async def safe_fetch(self, dataset: Dataset) -> List[Any]:
        """
        Return records for a dataset without ever raising.

        Any failure enables emergency mode; the result is the stale payload
        if one exists, otherwise an empty list.
        """
        dataset = Dataset(dataset)
        try:
            return await self.fetch(dataset)
        except Exception as e:
            logger.error(f"Failed to get data for {dataset}: {e}")
            if not self._emergency_mode:
                self.set_emergency_mode(True)

            stale = self._cache.get(dataset)
            if stale is not None:
                logger.info(f"Using emergency cache for {dataset}")
                return stale

            logger.warning(f"No cache available for {dataset}, returning empty data")
            return []
