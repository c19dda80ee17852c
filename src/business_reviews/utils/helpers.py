"""
Utility functions and classes for the business review service.
"""

import asyncio
import hashlib
import logging
import math
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fake_useragent import UserAgent

from ..models.review import DEFAULT_RATING

logger = logging.getLogger(__name__)

# Relative date labels, indexed by language code.
_RELATIVE_DATE_LABELS = {
    "en": {
        "today": "Today",
        "yesterday": "Yesterday",
        "days": "{n} days ago",
        "weeks": "{n} weeks ago",
        "months": "{n} months ago",
        "years": "{n} years ago",
    },
    "ar": {
        "today": "اليوم",
        "yesterday": "أمس",
        "days": "قبل {n} أيام",
        "weeks": "قبل {n} أسابيع",
        "months": "قبل {n} أشهر",
        "years": "قبل {n} سنوات",
    },
}


class RateLimiter:
    """
    Sliding window limiter for outbound page requests.

    Shared by all strategies so a single live fetch that walks several
    URLs cannot hammer the upstream.
    """

    def __init__(self, max_requests: int = 10, time_window: int = 60):
        """
        Initialize rate limiter.

        Args:
            max_requests: Maximum requests allowed in time window
            time_window: Time window in seconds
        """
        self.max_requests = max_requests
        self.time_window = time_window
        self.requests = []
        self._lock = asyncio.Lock()

    async def wait_if_needed(self):
        """Wait if the next request would exceed the window."""
        async with self._lock:
            now = time.monotonic()
            self.requests = [t for t in self.requests if now - t < self.time_window]

            if len(self.requests) >= self.max_requests:
                sleep_time = self.time_window - (now - self.requests[0])
                if sleep_time > 0:
                    logger.info(f"Request window full. Sleeping for {sleep_time:.2f} seconds")
                    await asyncio.sleep(sleep_time)

            self.requests.append(time.monotonic())


class UserAgentRotator:
    """
    Hands out realistic browser user agents for page requests.
    """

    def __init__(self):
        self.ua = UserAgent()
        self._current_agents = []
        self._index = 0

    def get_random_agent(self) -> str:
        """Get a random user agent string."""
        return self.ua.random

    def get_rotating_agent(self) -> str:
        """Get user agent using rotation strategy."""
        if not self._current_agents:
            self._current_agents = [self.ua.chrome, self.ua.firefox, self.ua.safari, self.ua.edge]

        agent = self._current_agents[self._index]
        self._index = (self._index + 1) % len(self._current_agents)
        return agent


def browser_headers(user_agent: str, language: str = "en", referer: Optional[str] = None) -> Dict[str, str]:
    """
    Build the header set of a regular browser navigation.

    Args:
        user_agent: User agent string to send
        language: Preferred content language code
        referer: Optional Referer header value

    Returns:
        Header dictionary
    """
    headers = {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": f"{language},en-US;q=0.7,en;q=0.3",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }
    if referer:
        headers["Referer"] = referer
        headers["Sec-Fetch-Site"] = "cross-site"
    return headers


def generate_review_id(source: str, index: int, reviewer_name: str, review_text: str) -> str:
    """
    Generate an identifier that is unique within one batch.

    Args:
        source: Provenance tag of the producing strategy
        index: Position of the review in the batch
        reviewer_name: Name of the reviewer
        review_text: Review content

    Returns:
        Identifier such as ``google_places_api_3_1a2b3c4d``
    """
    content = f"{reviewer_name}_{review_text}"
    digest = hashlib.md5(content.encode("utf-8")).hexdigest()[:8]
    return f"{source}_{index}_{digest}"


def sanitize_text(text: str) -> str:
    """
    Clean and sanitize text content.

    Args:
        text: Raw text to clean

    Returns:
        Cleaned text
    """
    if not text:
        return ""

    text = " ".join(str(text).split())
    text = text.replace("\x00", "")

    return text.strip()


def normalize_rating(value: Any) -> int:
    """
    Coerce a raw rating into the 1-5 range.

    Unknown, unparseable or out-of-range values fall back to 5.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_RATING

    if isinstance(value, str):
        match = re.search(r"(\d+(?:\.\d+)?)", value)
        if not match:
            return DEFAULT_RATING
        value = match.group(1)

    try:
        rating = int(round(float(value)))
    except (TypeError, ValueError):
        return DEFAULT_RATING

    if not 1 <= rating <= 5:
        return DEFAULT_RATING
    return rating


def format_relative_date(timestamp: float, now: Optional[datetime] = None, language: str = "en") -> str:
    """
    Turn a unix timestamp into a human relative label.

    Args:
        timestamp: Seconds since the epoch
        now: Reference time, defaults to the current UTC time
        language: Label language (``en`` or ``ar``)

    Returns:
        Label such as ``3 weeks ago``
    """
    labels = _RELATIVE_DATE_LABELS.get(language, _RELATIVE_DATE_LABELS["en"])
    now = now or datetime.now(timezone.utc)
    then = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    diff_days = math.ceil(abs((now - then).total_seconds()) / 86400)

    if diff_days == 0:
        return labels["today"]
    if diff_days == 1:
        return labels["yesterday"]
    if diff_days < 7:
        return labels["days"].format(n=diff_days)
    if diff_days < 30:
        return labels["weeks"].format(n=math.ceil(diff_days / 7))
    if diff_days < 365:
        return labels["months"].format(n=math.ceil(diff_days / 30))
    return labels["years"].format(n=math.ceil(diff_days / 365))


def utc_now() -> datetime:
    """Default clock used across the service."""
    return datetime.now(timezone.utc)


def date_key(moment: datetime) -> str:
    """Daily quota period key (``YYYY-MM-DD``)."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d")


def month_key(moment: datetime) -> str:
    """Monthly quota period key (``YYYY-MM``)."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m")
