"""Cache package for the business review service."""

from .review_cache import CACHE_TIMEOUT_SECONDS, LIVE_REVIEWS_KEY, ReviewCache

__all__ = ["ReviewCache", "LIVE_REVIEWS_KEY", "CACHE_TIMEOUT_SECONDS"]
