"""Strategies package for the business review service."""

from .executor import StrategyChainExecutor, StrategyDescriptor, is_well_formed
from .base import BaseReviewStrategy, StrategyError, StrategyUnavailable, UpstreamBlockedError
from .places_api import GooglePlacesApiStrategy
from .apify_dataset import ApifyDatasetStrategy
from .html_page import AlternateUrlsStrategy, HtmlPageStrategy

__all__ = [
    "StrategyChainExecutor",
    "StrategyDescriptor",
    "is_well_formed",
    "BaseReviewStrategy",
    "StrategyError",
    "StrategyUnavailable",
    "UpstreamBlockedError",
    "GooglePlacesApiStrategy",
    "ApifyDatasetStrategy",
    "HtmlPageStrategy",
    "AlternateUrlsStrategy",
]
