"""
Daily and monthly live-fetch budget.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..models.review import FetchCounters, QuotaCounter
from ..storage.state_store import StateStore
from ..utils.helpers import date_key, month_key, utc_now

logger = logging.getLogger(__name__)

DAILY_LIMIT = 10
MONTHLY_LIMIT = 300


def _read_counter(data: Dict[str, Any], field: str, period_field: str) -> Optional[QuotaCounter]:
    raw = data.get(field)
    if not isinstance(raw, dict):
        return None
    try:
        return QuotaCounter(period=str(raw[period_field]), count=int(raw["count"]))
    except (KeyError, TypeError, ValueError):
        return None


def _current_count(
    persisted: Optional[QuotaCounter], remembered: Optional[QuotaCounter], period: str
) -> QuotaCounter:
    counts = [c.count for c in (persisted, remembered) if c is not None and c.period == period]
    return QuotaCounter(period=period, count=max(counts, default=0))


class QuotaTracker:
    """
    Persists and checks the live-fetch counters against fixed limits.

    The last counters computed by ``record_fetch`` are also kept in memory,
    so the budget holds while the state file cannot be written. The limits
    are a budget hint, not a hard rate limiter: nothing stops two processes
    sharing the state file from racing each other.
    """

    def __init__(
        self,
        store: StateStore,
        daily_limit: int = DAILY_LIMIT,
        monthly_limit: int = MONTHLY_LIMIT,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the tracker.

        Args:
            store: State store holding the counters
            daily_limit: Live fetches allowed per UTC day
            monthly_limit: Live fetches allowed per UTC month
            clock: Callable returning the current time
        """
        self.store = store
        self.daily_limit = daily_limit
        self.monthly_limit = monthly_limit
        self.clock = clock
        self._recorded: Optional[FetchCounters] = None
        self._lock = threading.Lock()

    def _current_counters(self, data: Dict[str, Any], now: datetime) -> FetchCounters:
        """Counters for the current periods, the larger of persisted and in-memory."""
        recorded = self._recorded
        daily = _current_count(
            _read_counter(data, "dailyCount", "date"),
            recorded.daily if recorded else None,
            date_key(now),
        )
        monthly = _current_count(
            _read_counter(data, "monthlyCount", "month"),
            recorded.monthly if recorded else None,
            month_key(now),
        )
        return FetchCounters(daily=daily, monthly=monthly)

    def _load(self) -> Dict[str, Any]:
        try:
            return self.store.load()
        except Exception as e:
            logger.warning(f"Could not read quota counters: {e}")
            return {}

    def can_fetch(self) -> bool:
        """
        Check whether another live fetch fits in the budget.

        Returns:
            False if either counter reached its limit for the current period,
            True otherwise (including when no counter data exists yet)
        """
        counters = self._current_counters(self._load(), self.clock())

        if counters.daily.count >= self.daily_limit:
            logger.warning(f"Daily fetch limit reached: {counters.daily.count}/{self.daily_limit}")
            return False

        if counters.monthly.count >= self.monthly_limit:
            logger.warning(f"Monthly fetch limit reached: {counters.monthly.count}/{self.monthly_limit}")
            return False

        return True

    def record_fetch(self) -> FetchCounters:
        """
        Count one successful live fetch against both periods.

        Returns:
            The updated counters. A failed write is logged and the counters
            are still kept in memory for later ``can_fetch`` calls.
        """
        now = self.clock()
        updated = {}

        def _apply(data: Dict[str, Any]):
            current = self._current_counters(data, now)
            counters = FetchCounters(
                daily=current.daily.advanced(date_key(now)),
                monthly=current.monthly.advanced(month_key(now)),
            )
            data["dailyCount"] = {"date": counters.daily.period, "count": counters.daily.count}
            data["monthlyCount"] = {"month": counters.monthly.period, "count": counters.monthly.count}
            updated["counters"] = counters

        with self._lock:
            try:
                if not self.store.update(_apply):
                    logger.error("Quota counters could not be persisted, keeping them in memory")
            except Exception as e:
                logger.error(f"Error updating quota counters, keeping them in memory: {e}")

            if "counters" not in updated:
                _apply({})
            counters = updated["counters"]
            self._recorded = counters

        logger.info(
            f"Fetch counters - Daily: {counters.daily.count}/{self.daily_limit}, "
            f"Monthly: {counters.monthly.count}/{self.monthly_limit}"
        )
        return counters

    def get_counters(self) -> FetchCounters:
        """
        Current counters, zeroed when a period has rolled over or nothing is stored.
        """
        return self._current_counters(self._load(), self.clock())

    def get_limits(self) -> Dict[str, int]:
        return {"daily": self.daily_limit, "monthly": self.monthly_limit}
