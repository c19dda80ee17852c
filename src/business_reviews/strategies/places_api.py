"""
Official Google Places Details API strategy.
"""

import logging
from typing import List, Optional

from ..models.review import Review
from ..utils.helpers import RateLimiter, format_relative_date
from .base import BaseReviewStrategy, StrategyError, StrategyUnavailable

logger = logging.getLogger(__name__)

PLACE_DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"


class GooglePlacesApiStrategy(BaseReviewStrategy):
    """
    Reads reviews from the Places Details endpoint.

    Preferred whenever an API key is configured: it is structured, cheap and
    not subject to anti-automation blocks.
    """

    name = "google_places_api"

    def __init__(
        self,
        api_key: Optional[str],
        place_id: str,
        rate_limiter: Optional[RateLimiter] = None,
        language: str = "en",
    ):
        super().__init__(rate_limiter, language)
        self.api_key = api_key
        self.place_id = place_id

    def is_configured(self) -> bool:
        return bool(self.api_key and self.place_id)

    async def fetch_reviews(self) -> List[Review]:
        if not self.is_configured():
            raise StrategyUnavailable("No Google Maps API key available")

        logger.info("Trying Google Places Details API...")
        params = {
            "place_id": self.place_id,
            "fields": "reviews",
            "language": self.language,
            "key": self.api_key,
        }
        data = await self.fetch_json(PLACE_DETAILS_URL, params=params)

        status = data.get("status", "OK") if isinstance(data, dict) else "INVALID_RESPONSE"
        if status not in ("OK", "ZERO_RESULTS"):
            message = data.get("error_message", "") if isinstance(data, dict) else ""
            raise StrategyError(f"Places API status {status}: {message}".strip())

        raw_reviews = (data.get("result") or {}).get("reviews") or []
        reviews = []
        for index, item in enumerate(raw_reviews):
            timestamp = item.get("time")
            date = (
                format_relative_date(timestamp, language=self.language)
                if isinstance(timestamp, (int, float))
                else item.get("relative_time_description")
            )
            reviews.append(
                self.build_review(
                    index,
                    name=item.get("author_name"),
                    rating=item.get("rating"),
                    text=item.get("text"),
                    date=date,
                    profile_image=item.get("profile_photo_url"),
                    review_url=item.get("author_url"),
                )
            )

        logger.info(f"Places API returned {len(reviews)} reviews")
        return reviews
