"""
Time-boxed review cache with an on-disk mirror.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ..models.review import CacheEntry, Review
from ..storage.state_store import StateStore
from ..utils.helpers import utc_now

logger = logging.getLogger(__name__)

LIVE_REVIEWS_KEY = "live_reviews"
CACHE_TIMEOUT_SECONDS = 24 * 60 * 60


class ReviewCache:
    """
    In-memory cache of review batches, mirrored to the state store.

    Only one logical resource is cached, so there is no eviction: ``set``
    simply overwrites. Freshness is advisory; expired entries stay readable
    for degraded callers.
    """

    def __init__(
        self,
        timeout_seconds: int = CACHE_TIMEOUT_SECONDS,
        store: Optional[StateStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the cache.

        Args:
            timeout_seconds: Age after which an entry stops being valid
            store: Optional state store used as persistent mirror
            clock: Callable returning the current time
        """
        self.timeout_seconds = timeout_seconds
        self.store = store
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

        if self.store is not None:
            self._warm_from_store()

    def _warm_from_store(self):
        entry = self.load_persisted(LIVE_REVIEWS_KEY)
        if entry is None:
            return

        self._entries[LIVE_REVIEWS_KEY] = entry
        state = "valid" if self.is_valid(entry) else "expired"
        logger.info(f"Loaded {len(entry.data)} reviews from {self.store.path} ({state})")

    def get(self, key: str = LIVE_REVIEWS_KEY) -> Optional[CacheEntry]:
        """
        Get the entry for ``key`` whatever its age.

        Args:
            key: Cache key

        Returns:
            CacheEntry or None if nothing was cached
        """
        return self._entries.get(key)

    def set(self, key: str, data: List[Review]) -> CacheEntry:
        """
        Store ``data`` under ``key`` with the current timestamp.

        Args:
            key: Cache key
            data: Review batch to cache

        Returns:
            The new entry
        """
        entry = CacheEntry(data=list(data), timestamp=self.clock())
        self._entries[key] = entry

        if self.store is not None and key == LIVE_REVIEWS_KEY:
            source = data[0].source if data else ""
            try:
                self.store.save_snapshot(entry.data, entry.timestamp, source=source)
            except Exception as e:
                logger.error(f"Error mirroring cache to disk, keeping in memory only: {e}")

        return entry

    def is_valid(self, entry: Optional[CacheEntry]) -> bool:
        """Check whether ``entry`` is younger than the timeout."""
        if entry is None:
            return False
        return entry.age_seconds(self.clock()) < self.timeout_seconds

    def age(self, key: str = LIVE_REVIEWS_KEY) -> Optional[float]:
        """Age of the entry in seconds, or None."""
        entry = self.get(key)
        if entry is None:
            return None
        return entry.age_seconds(self.clock())

    def load_persisted(self, key: str = LIVE_REVIEWS_KEY) -> Optional[CacheEntry]:
        """
        Read the persisted snapshot regardless of age.

        Args:
            key: Cache key; only the live reviews key is persisted

        Returns:
            CacheEntry rebuilt from disk or None
        """
        if self.store is None or key != LIVE_REVIEWS_KEY:
            return None

        try:
            snapshot = self.store.load_snapshot()
        except Exception as e:
            logger.error(f"Error reading persisted reviews: {e}")
            return None

        if snapshot is None:
            return None

        reviews, timestamp = snapshot
        if timestamp is None:
            # Unknown age: usable for degrading, never fresh.
            timestamp = datetime.fromtimestamp(0, tz=timezone.utc)
        elif timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        return CacheEntry(data=reviews, timestamp=timestamp)

    def clear(self):
        """Drop in-memory entries; the persisted snapshot is left in place."""
        self._entries.clear()
        logger.info("Review cache cleared")
