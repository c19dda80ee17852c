"""Models package for the business review service."""

from .review import CacheEntry, FetchCounters, QuotaCounter, Review, StrategyAttempt

__all__ = ["Review", "CacheEntry", "QuotaCounter", "FetchCounters", "StrategyAttempt"]
