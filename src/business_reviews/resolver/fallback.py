"""
Top-level review resolution: cache, budgeted live fetch, degrade.
"""

import asyncio
import logging
from functools import partial
from typing import Dict, List, Optional

from ..cache.review_cache import LIVE_REVIEWS_KEY, ReviewCache
from ..models.review import Review
from ..quota.tracker import QuotaTracker
from ..strategies.executor import StrategyChainExecutor
from .static_dataset import StaticDataset

logger = logging.getLogger(__name__)


class FallbackResolver:
    """
    Always produces some list of reviews.

    Resolution order for one call:

    1. a valid cache entry, unless ``force_refresh``
    2. a live fetch, if the quota allows it; a success is counted, cached
       and returned
    3. the most recent cached or persisted batch, whatever its age
    4. the static dataset

    Concurrent callers that reach step 2 while a live fetch is running wait
    for that fetch instead of starting their own, so the budget is never
    spent twice for the same moment.
    """

    def __init__(
        self,
        cache: ReviewCache,
        quota: QuotaTracker,
        executor: StrategyChainExecutor,
        static_dataset: StaticDataset,
        cache_key: str = LIVE_REVIEWS_KEY,
    ):
        self.cache = cache
        self.quota = quota
        self.executor = executor
        self.static_dataset = static_dataset
        self.cache_key = cache_key
        self.last_resolution: Optional[str] = None
        self._in_flight: Dict[str, asyncio.Task] = {}

    @property
    def fetch_in_flight(self) -> bool:
        return self.cache_key in self._in_flight

    async def resolve(self, force_refresh: bool = False) -> List[Review]:
        """
        Resolve the current review list.

        Args:
            force_refresh: Skip the fresh-cache shortcut and attempt a live fetch

        Returns:
            List of reviews; never raises
        """
        try:
            if not force_refresh:
                entry = self.cache.get(self.cache_key)
                if entry is not None and entry.data and self.cache.is_valid(entry):
                    logger.info("Returning cached reviews")
                    self.last_resolution = "cache"
                    return list(entry.data)

            reviews = await self._fetch_single_flight()
            if reviews:
                self.last_resolution = "live"
                return list(reviews)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error resolving reviews, degrading: {e}")

        return self._degrade()

    async def _fetch_single_flight(self) -> List[Review]:
        task = self._in_flight.get(self.cache_key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store())
            self._in_flight[self.cache_key] = task
            task.add_done_callback(partial(self._forget, self.cache_key))
        else:
            logger.info("Joining live fetch already in flight")

        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task):
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _fetch_and_store(self) -> List[Review]:
        if not self.quota.can_fetch():
            logger.info("Fetch budget exhausted, skipping live fetch")
            return []

        logger.info("Fetching live reviews...")
        reviews = await self.executor.fetch_live()
        if not reviews:
            return []

        self.quota.record_fetch()
        self.cache.set(self.cache_key, reviews)
        logger.info(f"Live fetch successful: {len(reviews)} reviews")
        return reviews

    def _degrade(self) -> List[Review]:
        try:
            entry = self.cache.get(self.cache_key)
            if entry is not None and entry.data:
                logger.info("Returning stale cached reviews as fallback")
                self.last_resolution = "stale"
                return list(entry.data)

            entry = self.cache.load_persisted(self.cache_key)
            if entry is not None and entry.data:
                logger.info("Returning persisted reviews as fallback")
                self.last_resolution = "persisted"
                return list(entry.data)
        except Exception as e:
            logger.error(f"Error reading fallback reviews: {e}")

        logger.warning(f"No cached reviews available, serving static dataset {self.static_dataset.version}")
        self.last_resolution = "static"
        return list(self.static_dataset.reviews)
