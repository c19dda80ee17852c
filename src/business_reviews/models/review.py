"""
Data models for the business review retrieval service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

DEFAULT_RATING = 5


@dataclass
class Review:
    """
    A single third-party testimonial.

    Field names follow Python conventions; ``to_dict``/``from_dict`` use the
    camelCase keys the public JSON payload and the persisted state file use.
    """

    id: str
    name: str
    rating: int
    review: str
    date: Optional[str] = None
    profile_image: Optional[str] = None
    source: str = ""
    scraped_at: str = ""
    is_live: bool = True
    review_url: Optional[str] = None
    title: Optional[str] = None

    def __post_init__(self):
        """Validate data after initialization."""
        if not 1 <= self.rating <= 5:
            raise ValueError(f"Rating must be between 1 and 5, got {self.rating}")

        if not self.id:
            raise ValueError("Review ID cannot be empty")

        if not self.scraped_at:
            self.scraped_at = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert the review to its JSON representation."""
        return {
            "id": self.id,
            "name": self.name,
            "rating": self.rating,
            "review": self.review,
            "date": self.date,
            "profileImage": self.profile_image,
            "source": self.source,
            "scrapedAt": self.scraped_at,
            "isLive": self.is_live,
            "reviewUrl": self.review_url,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Review":
        """Build a review from its JSON representation."""
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            rating=int(data.get("rating") or DEFAULT_RATING),
            review=data.get("review") or "",
            date=data.get("date"),
            profile_image=data.get("profileImage"),
            source=data.get("source") or "",
            scraped_at=data.get("scrapedAt") or "",
            is_live=bool(data.get("isLive", True)),
            review_url=data.get("reviewUrl"),
            title=data.get("title"),
        )


@dataclass
class CacheEntry:
    """A cached batch of reviews and the moment it was stored."""

    data: List[Review]
    timestamp: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.timestamp).total_seconds()


@dataclass
class QuotaCounter:
    """
    Call counter for one period.

    ``period`` is a ``YYYY-MM-DD`` string for the daily counter and a
    ``YYYY-MM`` string for the monthly one.
    """

    period: str
    count: int = 0

    def advanced(self, current_period: str) -> "QuotaCounter":
        """Return the counter after one more call in ``current_period``."""
        if self.period != current_period:
            return QuotaCounter(period=current_period, count=1)
        return QuotaCounter(period=self.period, count=self.count + 1)


@dataclass
class FetchCounters:
    """Daily and monthly counters as a pair."""

    daily: QuotaCounter
    monthly: QuotaCounter

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {
            "daily": {"date": self.daily.period, "count": self.daily.count},
            "monthly": {"month": self.monthly.period, "count": self.monthly.count},
        }


@dataclass
class StrategyAttempt:
    """
    Outcome of one strategy invocation inside a live fetch.
    """

    strategy: str
    outcome: str
    review_count: int = 0
    error: Optional[str] = None
    elapsed: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "outcome": self.outcome,
            "review_count": self.review_count,
            "error": self.error,
            "elapsed": round(self.elapsed, 3),
            "timestamp": self.timestamp,
        }
