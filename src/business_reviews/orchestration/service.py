"""
Service context for the business review system.
"""

import copy
import logging
import os
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..cache.review_cache import LIVE_REVIEWS_KEY, ReviewCache
from ..models.review import Review
from ..quota.tracker import QuotaTracker
from ..resolver.fallback import FallbackResolver
from ..resolver.static_dataset import load_static_dataset
from ..storage.state_store import StateStore
from ..strategies.apify_dataset import ApifyDatasetStrategy
from ..strategies.base import BaseReviewStrategy
from ..strategies.executor import StrategyChainExecutor, StrategyDescriptor
from ..strategies.html_page import AlternateUrlsStrategy, HtmlPageStrategy
from ..strategies.places_api import GooglePlacesApiStrategy
from ..utils.helpers import RateLimiter, utc_now

logger = logging.getLogger(__name__)

BUSINESS_URL = (
    "https://www.google.com/maps/place/"
    "%D9%85%D9%83%D8%AA%D8%A8+%D8%A8%D8%B5%D9%85%D8%A9+%D8%A7%D9%84%D8%A7%D8%B1%D8%B6"
    "+%D9%84%D9%84%D8%A7%D8%B3%D8%AA%D8%B4%D8%A7%D8%B1%D8%A7%D8%AA"
    "+%D8%A7%D9%84%D8%A8%D9%8A%D8%A6%D9%8A%D8%A9/@26.3436164,43.974527,17z"
)
PLACE_ID = "ChIJN1t_tDeuEmsRUsoyG83frY4"


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ReviewService:
    """
    Context object wiring the review retrieval components together.

    Built once per process and handed to the HTTP layer, the CLI and the
    scheduled refresh job. Holds the state store, quota tracker, cache,
    strategy chain and resolver; nothing is kept in module globals.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        strategies: Optional[List[StrategyDescriptor]] = None,
        clock: Callable[[], datetime] = utc_now,
        env: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the service.

        Args:
            config: Configuration dictionary, merged over the defaults
            strategies: Optional strategy chain replacing the configured one
            clock: Callable returning the current time
            env: Environment mapping for credentials (defaults to os.environ)
        """
        self.config = _merge(self._get_default_config(), config or {})
        self.clock = clock
        self.env = os.environ if env is None else env

        self.store = StateStore(self.config["storage"]["path"])
        self.quota = QuotaTracker(
            self.store,
            daily_limit=self.config["quota"]["daily_limit"],
            monthly_limit=self.config["quota"]["monthly_limit"],
            clock=clock,
        )
        self.cache = ReviewCache(
            timeout_seconds=self.config["cache"]["timeout_seconds"], store=self.store, clock=clock
        )

        self.rate_limiter = RateLimiter(
            max_requests=self.config["rate_limit"]["max_requests"],
            time_window=self.config["rate_limit"]["time_window"],
        )
        self.strategy_objects: List[BaseReviewStrategy] = []
        if strategies is None:
            strategies = self._build_strategy_chain()

        self.executor = StrategyChainExecutor(
            strategies, min_review_length=self.config["strategies"]["min_review_length"]
        )
        self.static_dataset = load_static_dataset(self.config["static_dataset"]["path"])
        self.resolver = FallbackResolver(self.cache, self.quota, self.executor, self.static_dataset)

        logger.info(
            f"Review service initialized with strategies: "
            f"{', '.join(s.name for s in self.executor.strategies) or 'none'}"
        )

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration settings."""
        return {
            "business": {
                "place_id": PLACE_ID,
                "url": BUSINESS_URL,
                "alternate_urls": [
                    "https://maps.google.com/maps?cid=117083714203564495959",
                    f"https://www.google.com/maps/place/?q=place_id:{PLACE_ID}",
                    "https://www.google.com/maps/search/"
                    "%D9%85%D9%83%D8%AA%D8%A8+%D8%A8%D8%B5%D9%85%D8%A9+%D8%A7%D9%84%D8%A7%D8%B1%D8%B6",
                ],
                "language": "ar",
            },
            "cache": {"timeout_seconds": 24 * 60 * 60},
            "storage": {"path": "data/reviews.json"},
            "quota": {"daily_limit": 10, "monthly_limit": 300},
            "strategies": {
                "order": ["google_places_api", "apify_dataset", "html_direct", "html_alternate_urls"],
                "api_timeout": 10,
                "apify_timeout": 120,
                "html_timeout": 15,
                "alternate_timeout": 20,
                "min_review_length": 1,
                "selectors": {},
            },
            "apify": {"actor_id": "Xb8osYTtOjlsgI6k9", "max_reviews": 15},
            "rate_limit": {"max_requests": 10, "time_window": 60},
            "static_dataset": {"path": None},
            "flask": {"DEBUG": False},
        }

    def _build_strategy_chain(self) -> List[StrategyDescriptor]:
        """Instantiate the configured strategies in priority order."""
        business = self.config["business"]
        settings = self.config["strategies"]
        language = business["language"]
        selectors = settings.get("selectors") or {}

        available = {
            "google_places_api": (
                GooglePlacesApiStrategy(
                    self.env.get("GOOGLE_MAPS_API_KEY"),
                    business["place_id"],
                    self.rate_limiter,
                    language,
                ),
                settings["api_timeout"],
            ),
            "apify_dataset": (
                ApifyDatasetStrategy(
                    self.env.get("APIFY_TOKEN") or self.env.get("APIFY"),
                    business["url"],
                    actor_id=self.config["apify"]["actor_id"],
                    max_reviews=self.config["apify"]["max_reviews"],
                    rate_limiter=self.rate_limiter,
                    language=language,
                ),
                settings["apify_timeout"],
            ),
            "html_direct": (
                HtmlPageStrategy(business["url"], self.rate_limiter, language, selectors),
                settings["html_timeout"],
            ),
            "html_alternate_urls": (
                AlternateUrlsStrategy(business["alternate_urls"], self.rate_limiter, language, selectors),
                settings["alternate_timeout"],
            ),
        }

        chain = []
        for name in settings["order"]:
            if name not in available:
                logger.warning(f"Unknown strategy in configuration: {name}")
                continue
            strategy, timeout = available[name]
            self.strategy_objects.append(strategy)
            chain.append(strategy.descriptor(timeout))
        return chain

    async def get_reviews(self, force_refresh: bool = False) -> List[Review]:
        """
        Resolve the current review list.

        Args:
            force_refresh: Bypass a fresh cache and attempt a live fetch

        Returns:
            List of Review objects; never raises
        """
        return await self.resolver.resolve(force_refresh=force_refresh)

    def clear_cache(self):
        """Drop the in-memory cache so the next call re-reads or re-fetches."""
        self.cache.clear()

    def get_status(self) -> Dict[str, Any]:
        """Cache, quota and last-fetch status for monitoring."""
        entry = self.cache.get(LIVE_REVIEWS_KEY)
        counters = self.quota.get_counters()

        return {
            "has_cache": entry is not None,
            "is_valid": self.cache.is_valid(entry),
            "last_fetch": entry.timestamp.isoformat() if entry else None,
            "cache_age": self.cache.age(LIVE_REVIEWS_KEY),
            "cached_count": len(entry.data) if entry else 0,
            "can_fetch": self.quota.can_fetch(),
            "counters": counters.to_dict(),
            "limits": self.quota.get_limits(),
            "last_resolution": self.resolver.last_resolution,
            "fetch_in_flight": self.resolver.fetch_in_flight,
            "last_attempts": [attempt.to_dict() for attempt in self.executor.last_attempts],
            "static_dataset_version": self.static_dataset.version,
        }

    def export_reviews(self, reviews: List[Review], output_file: str = "exports/reviews_export.json") -> int:
        """
        Export a review batch to a JSON file.

        Args:
            reviews: Reviews to export
            output_file: Path to output file

        Returns:
            Number of reviews exported
        """
        return self.store.export_to_json(reviews, output_file)

    async def health_check(self) -> Dict[str, bool]:
        """
        Perform health check on all components.

        Returns:
            Dictionary with health status of each component
        """
        health_status = {}

        try:
            self.store.load()
            health_status["state_store"] = True
        except Exception as e:
            logger.error(f"State store health check failed: {e}")
            health_status["state_store"] = False

        health_status["static_dataset"] = bool(self.static_dataset.reviews)

        for strategy in self.strategy_objects:
            health_status[f"strategy_{strategy.name}"] = strategy.is_configured()

        return health_status
