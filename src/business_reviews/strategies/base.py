"""
Base strategy class and common functionality for all review sources.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from functools import partial
from typing import Any, Dict, List, Optional

import aiohttp

from ..models.review import Review
from ..utils.helpers import (
    RateLimiter,
    UserAgentRotator,
    browser_headers,
    generate_review_id,
    normalize_rating,
    sanitize_text,
)
from .executor import StrategyDescriptor

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TIMEOUT = 30


class StrategyError(Exception):
    """A review source failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StrategyUnavailable(StrategyError):
    """The source is not configured (missing credential or URL)."""
    pass


class UpstreamBlockedError(StrategyError):
    """The upstream refused the request (rate limited or anti-bot block)."""
    pass


class BaseReviewStrategy(ABC):
    """
    Abstract base class for review sources.

    Subclasses implement ``fetch_reviews``; ``run`` wraps it in a fresh HTTP
    session so each invocation is self-contained.
    """

    name = "unknown"

    def __init__(self, rate_limiter: Optional[RateLimiter] = None, language: str = "en"):
        """
        Initialize base strategy.

        Args:
            rate_limiter: Shared limiter pacing outbound page requests
            language: Preferred content language code
        """
        self.rate_limiter = rate_limiter
        self.language = language
        self.user_agent_rotator = UserAgentRotator()
        self.session: Optional[aiohttp.ClientSession] = None
        self.session_timeout: float = DEFAULT_SESSION_TIMEOUT

    async def __aenter__(self):
        """Async context manager entry."""
        connector = aiohttp.TCPConnector(limit=10, limit_per_host=5, ttl_dns_cache=300)
        timeout = aiohttp.ClientTimeout(total=self.session_timeout, connect=10)

        self.session = aiohttp.ClientSession(connector=connector, timeout=timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.session:
            await self.session.close()
            self.session = None

    @abstractmethod
    async def fetch_reviews(self) -> List[Review]:
        """
        Retrieve reviews from this source.

        Returns:
            List of Review objects (may be empty)

        Raises:
            StrategyError: When the source cannot be used or fails
        """
        pass

    def is_configured(self) -> bool:
        """Whether the strategy has what it needs to attempt a fetch."""
        return True

    async def run(self, timeout: Optional[float] = None) -> List[Review]:
        """
        Open a session, fetch, close the session.

        Args:
            timeout: Total HTTP timeout for the session, in seconds
        """
        self.session_timeout = timeout or DEFAULT_SESSION_TIMEOUT
        async with self:
            return await self.fetch_reviews()

    def descriptor(self, timeout: float) -> StrategyDescriptor:
        """Describe this strategy for the chain executor."""
        return StrategyDescriptor(name=self.name, timeout=timeout, invoke=partial(self.run, timeout))

    async def fetch_page(self, url: str, referer: Optional[str] = None) -> str:
        """
        Fetch a web page the way a browser would.

        Args:
            url: URL to fetch
            referer: Optional Referer header

        Returns:
            HTML content

        Raises:
            UpstreamBlockedError: On 403/429 responses
            StrategyError: On any other HTTP or network failure
        """
        if self.rate_limiter:
            await self.rate_limiter.wait_if_needed()

        headers = browser_headers(
            self.user_agent_rotator.get_rotating_agent(), language=self.language, referer=referer
        )

        try:
            async with self.session.get(url, headers=headers, max_redirects=5) as response:
                if response.status in (403, 429):
                    raise UpstreamBlockedError(
                        f"Blocked by {url}: HTTP {response.status}", response.status
                    )
                if response.status != 200:
                    raise StrategyError(f"Failed to fetch {url}: HTTP {response.status}", response.status)
                return await response.text(errors="replace")

        except asyncio.TimeoutError:
            raise StrategyError(f"Timeout fetching {url}")
        except aiohttp.ClientError as e:
            raise StrategyError(f"Request error fetching {url}: {e}")

    async def fetch_json(
        self,
        url: str,
        method: str = "GET",
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Call a JSON API.

        Args:
            url: Endpoint URL
            method: HTTP method
            params: Query parameters
            payload: JSON request body

        Returns:
            Parsed JSON response

        Raises:
            UpstreamBlockedError: On 403/429 responses
            StrategyError: On any other HTTP, network or decoding failure
        """
        try:
            async with self.session.request(method, url, params=params, json=payload) as response:
                if response.status in (403, 429):
                    raise UpstreamBlockedError(f"API refused request: HTTP {response.status}", response.status)
                if response.status >= 400:
                    text = await response.text()
                    raise StrategyError(f"{response.status}: {text[:200] or 'HTTP error'}", response.status)
                return await response.json(content_type=None)

        except asyncio.TimeoutError:
            raise StrategyError(f"Timeout calling {url}")
        except aiohttp.ClientError as e:
            raise StrategyError(f"Request error: {e}")
        except ValueError as e:
            raise StrategyError(f"Invalid JSON from {url}: {e}")

    def build_review(
        self,
        index: int,
        name: Any,
        rating: Any,
        text: Any,
        date: Optional[str] = None,
        profile_image: Optional[str] = None,
        review_url: Optional[str] = None,
        title: Optional[str] = None,
        default_name: str = "Anonymous",
    ) -> Review:
        """Normalize raw fields into a Review tagged with this strategy."""
        reviewer_name = sanitize_text(name) or default_name
        review_text = sanitize_text(text)

        return Review(
            id=generate_review_id(self.name, index, reviewer_name, review_text),
            name=reviewer_name,
            rating=normalize_rating(rating),
            review=review_text,
            date=date,
            profile_image=profile_image or None,
            source=self.name,
            scraped_at=datetime.now().isoformat(),
            is_live=True,
            review_url=review_url or None,
            title=sanitize_text(title) or None,
        )
