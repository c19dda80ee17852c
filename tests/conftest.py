"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from business_reviews.models.review import Review
from business_reviews.storage.state_store import StateStore


class FakeClock:
    """Controllable clock returning timezone-aware datetimes."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock frozen at 2025-03-14 12:00 UTC."""
    return FakeClock(datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def state_path(tmp_path):
    """Path of a state file that does not exist yet."""
    return tmp_path / "data" / "reviews.json"


@pytest.fixture
def store(state_path):
    return StateStore(str(state_path))


@pytest.fixture
def review_factory():
    """Build well-formed reviews with sensible defaults."""

    def _make(index: int = 0, text: str = "Excellent service and a very thorough report.", **kwargs):
        fields = {
            "id": f"test_{index}",
            "name": f"Reviewer {index}",
            "rating": 5,
            "review": text,
            "date": "2 weeks ago",
            "source": "test",
            "scraped_at": "2025-03-14T12:00:00",
        }
        fields.update(kwargs)
        return Review(**fields)

    return _make


@pytest.fixture
def sample_config(state_path):
    """Service configuration pointing at a temporary state file."""
    return {
        "storage": {"path": str(state_path)},
        "quota": {"daily_limit": 10, "monthly_limit": 300},
        "cache": {"timeout_seconds": 3600},
        "rate_limit": {"max_requests": 100, "time_window": 60},
        "flask": {"TESTING": True},
    }
