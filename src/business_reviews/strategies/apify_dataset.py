"""
Apify review-scraper actor strategy.
"""

import logging
from typing import List, Optional

from ..models.review import Review
from ..utils.helpers import RateLimiter
from .base import BaseReviewStrategy, StrategyError, StrategyUnavailable

logger = logging.getLogger(__name__)

APIFY_RUN_SYNC_URL = "https://api.apify.com/v2/acts/{actor_id}/run-sync-get-dataset-items"
DEFAULT_ACTOR_ID = "Xb8osYTtOjlsgI6k9"


class ApifyDatasetStrategy(BaseReviewStrategy):
    """
    Runs a hosted Google Maps review actor and reads its dataset.

    The actor is billed per run, so it sits after the official API in the
    chain. The run is synchronous: one request starts the actor and returns
    the dataset items when it finishes.
    """

    name = "apify_dataset"

    def __init__(
        self,
        token: Optional[str],
        start_url: str,
        actor_id: str = DEFAULT_ACTOR_ID,
        max_reviews: int = 15,
        rate_limiter: Optional[RateLimiter] = None,
        language: str = "en",
    ):
        super().__init__(rate_limiter, language)
        self.token = token
        self.start_url = start_url
        self.actor_id = actor_id
        self.max_reviews = max_reviews

    def is_configured(self) -> bool:
        return bool(self.token and self.actor_id and self.start_url)

    def build_input(self) -> dict:
        return {
            "startUrls": [{"url": self.start_url}],
            "maxReviews": self.max_reviews,
            "reviewsSort": "newest",
            "language": self.language,
            "reviewsOrigin": "all",
            "personalData": True,
        }

    async def fetch_reviews(self) -> List[Review]:
        if not self.is_configured():
            raise StrategyUnavailable("No Apify token available")

        logger.info(f"Running Apify actor {self.actor_id}...")
        items = await self.fetch_json(
            APIFY_RUN_SYNC_URL.format(actor_id=self.actor_id),
            method="POST",
            params={"token": self.token},
            payload=self.build_input(),
        )

        if not isinstance(items, list):
            raise StrategyError("Unexpected Apify response: dataset items missing")

        reviews = [
            self.build_review(
                index,
                name=item.get("name"),
                rating=item.get("stars"),
                text=item.get("text"),
                date=item.get("publishAt") or item.get("publishedAtDate"),
                profile_image=item.get("reviewerPhotoUrl"),
                review_url=item.get("reviewUrl"),
                title=item.get("title"),
                default_name="Google user",
            )
            for index, item in enumerate(items)
            if isinstance(item, dict)
        ]

        logger.info(f"Apify actor returned {len(reviews)} reviews")
        return reviews
