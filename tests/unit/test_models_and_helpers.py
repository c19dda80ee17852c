"""
Unit tests for review models and utility helpers.
"""

import time
from datetime import datetime, timezone

import pytest

from business_reviews.models.review import QuotaCounter, Review
from business_reviews.utils.helpers import (
    RateLimiter,
    format_relative_date,
    generate_review_id,
    normalize_rating,
    sanitize_text,
)


class TestReview:
    """Test cases for the Review model."""

    def test_review_creation(self):
        review = Review(
            id="api_0",
            name="Sara",
            rating=4,
            review="Very helpful consultants.",
            source="google_places_api",
        )

        assert review.rating == 4
        assert review.is_live is True
        assert review.scraped_at

    def test_review_invalid_rating(self):
        with pytest.raises(ValueError, match="Rating must be between 1 and 5"):
            Review(id="x", name="Sara", rating=6, review="Text")

    def test_review_empty_id(self):
        with pytest.raises(ValueError, match="Review ID cannot be empty"):
            Review(id="", name="Sara", rating=5, review="Text")

    def test_to_dict_uses_payload_keys(self, review_factory):
        review = review_factory(profile_image="https://example.com/a.png")

        result = review.to_dict()

        assert result["profileImage"] == "https://example.com/a.png"
        assert result["scrapedAt"] == "2025-03-14T12:00:00"
        assert result["isLive"] is True
        assert Review.from_dict(result) == review

    def test_from_dict_defaults_missing_rating(self):
        review = Review.from_dict({"id": "a", "name": "N", "review": "Good"})
        assert review.rating == 5


class TestQuotaCounter:
    def test_same_period_increments(self):
        counter = QuotaCounter(period="2025-03-14", count=3)
        assert counter.advanced("2025-03-14") == QuotaCounter("2025-03-14", 4)

    def test_new_period_resets_to_one(self):
        counter = QuotaCounter(period="2025-03-13", count=9)
        assert counter.advanced("2025-03-14") == QuotaCounter("2025-03-14", 1)


class TestUtilityFunctions:
    """Test cases for utility functions."""

    def test_generate_review_id(self):
        review_id = generate_review_id("google_places_api", 2, "Sara", "Great work")

        assert review_id.startswith("google_places_api_2_")
        assert review_id == generate_review_id("google_places_api", 2, "Sara", "Great work")
        assert review_id != generate_review_id("google_places_api", 2, "Omar", "Great work")

    def test_sanitize_text(self):
        test_cases = [
            ("  Multiple   spaces  ", "Multiple spaces"),
            ("Text with\x00null bytes", "Text withnull bytes"),
            ("", ""),
            (None, ""),
        ]

        for input_text, expected in test_cases:
            assert sanitize_text(input_text) == expected

    def test_normalize_rating(self):
        test_cases = [
            (4, 4),
            (4.6, 5),
            ("Rated 3 out of 5 stars", 3),
            ("3,0 stars", 3),
            (None, 5),
            (0, 5),
            (7, 5),
            ("no digits", 5),
            (True, 5),
        ]

        for raw, expected in test_cases:
            assert normalize_rating(raw) == expected

    def test_format_relative_date(self):
        now = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)
        day = 86400
        base = now.timestamp()

        assert format_relative_date(base, now) == "Today"
        assert format_relative_date(base - day, now) == "Yesterday"
        assert format_relative_date(base - 3 * day, now) == "3 days ago"
        assert format_relative_date(base - 10 * day, now) == "2 weeks ago"
        assert format_relative_date(base - 45 * day, now) == "2 months ago"
        assert format_relative_date(base - 400 * day, now) == "2 years ago"
        assert format_relative_date(base - day, now, language="ar") == "أمس"


class TestRateLimiter:
    """Test cases for the outbound request limiter."""

    @pytest.mark.asyncio
    async def test_rate_limiter_basic(self):
        limiter = RateLimiter(max_requests=2, time_window=1)

        start_time = time.monotonic()
        await limiter.wait_if_needed()
        await limiter.wait_if_needed()
        assert time.monotonic() - start_time < 0.1

        start_time = time.monotonic()
        await limiter.wait_if_needed()
        assert time.monotonic() - start_time >= 0.9
