"""
HTML scraping strategies for the public business listing.
"""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

from bs4 import BeautifulSoup

from ..models.review import Review
from ..utils.helpers import RateLimiter, sanitize_text
from .base import BaseReviewStrategy, StrategyError, StrategyUnavailable

logger = logging.getLogger(__name__)

# Scraped fragments of this length or shorter are navigation noise, not reviews.
MIN_SCRAPED_TEXT_LENGTH = 10

DEFAULT_SELECTORS = {
    "container": ['[itemprop="review"]', "[data-review-id]", ".review"],
    "author": ['[itemprop="author"]', ".review-author", ".author-name"],
    "body": ['[itemprop="reviewBody"]', ".review-text", ".review-body"],
    "date": ['[itemprop="datePublished"]', ".review-date", "time"],
    "rating": ['[itemprop="ratingValue"]', '[aria-label*="star"]', ".rating"],
}


class HtmlPageStrategy(BaseReviewStrategy):
    """
    Scrapes reviews from the business listing page.

    Two generic sources are tried on the fetched markup: schema.org JSON-LD
    ``Review`` objects, then containers matched by configurable CSS selectors.
    Partial or garbled markup yields fewer reviews, never an exception.
    """

    name = "html_direct"

    def __init__(
        self,
        url: Optional[str],
        rate_limiter: Optional[RateLimiter] = None,
        language: str = "en",
        selectors: Optional[Dict[str, List[str]]] = None,
    ):
        super().__init__(rate_limiter, language)
        self.url = url
        self.selectors = {**DEFAULT_SELECTORS, **(selectors or {})}

    def is_configured(self) -> bool:
        return bool(self.url)

    async def fetch_reviews(self) -> List[Review]:
        if not self.is_configured():
            raise StrategyUnavailable("No business page URL configured")

        logger.info(f"Trying direct scraping of {self.url}")
        html = await self.fetch_page(self.url)
        return self.parse_reviews(html)

    def parse_reviews(self, html: str) -> List[Review]:
        """
        Extract reviews from page markup.

        Args:
            html: Raw HTML

        Returns:
            List of Review objects, possibly empty
        """
        soup = BeautifulSoup(html or "", "html.parser")

        reviews = self._extract_reviews_from_json_ld(soup)
        if reviews:
            logger.info(f"Parsed {len(reviews)} reviews from JSON-LD")
            return reviews

        reviews = self._extract_reviews_from_html(soup)
        if reviews:
            logger.info(f"Parsed {len(reviews)} reviews from HTML")
        return reviews

    def _extract_reviews_from_json_ld(self, soup: BeautifulSoup) -> List[Review]:
        reviews = []

        for script in soup.find_all("script", type="application/ld+json"):
            try:
                data = json.loads(script.string or "")
            except (json.JSONDecodeError, TypeError) as e:
                logger.debug(f"Failed to parse JSON-LD: {e}")
                continue

            for item in _iter_json_ld_reviews(data):
                author = item.get("author")
                if isinstance(author, dict):
                    author = author.get("name")
                rating = item.get("reviewRating")
                if isinstance(rating, dict):
                    rating = rating.get("ratingValue")

                text = sanitize_text(item.get("reviewBody") or item.get("description"))
                if len(text) <= MIN_SCRAPED_TEXT_LENGTH:
                    continue

                reviews.append(
                    self.build_review(
                        len(reviews),
                        name=author,
                        rating=rating,
                        text=text,
                        date=item.get("datePublished"),
                        title=item.get("name"),
                    )
                )

        return reviews

    def _extract_reviews_from_html(self, soup: BeautifulSoup) -> List[Review]:
        reviews = []

        for selector in self.selectors["container"]:
            containers = soup.select(selector)
            logger.debug(f"Found {len(containers)} elements with selector: {selector}")

            for container in containers:
                text = self._first_text(container, self.selectors["body"])
                if len(text) <= MIN_SCRAPED_TEXT_LENGTH:
                    continue

                image = container.find("img")
                reviews.append(
                    self.build_review(
                        len(reviews),
                        name=self._first_text(container, self.selectors["author"]),
                        rating=self._extract_rating(container),
                        text=text,
                        date=self._first_text(container, self.selectors["date"]) or None,
                        profile_image=(image.get("data-src") or image.get("src")) if image else None,
                        default_name=f"Reviewer {len(reviews) + 1}",
                    )
                )

            if reviews:
                break

        return reviews

    def _first_text(self, container, selectors: Sequence[str]) -> str:
        for selector in selectors:
            element = container.select_one(selector)
            if element is None:
                continue
            text = sanitize_text(element.get("content") or element.get_text())
            if text:
                return text
        return ""

    def _extract_rating(self, container) -> Optional[str]:
        for selector in self.selectors["rating"]:
            element = container.select_one(selector)
            if element is None:
                continue
            value = element.get("content") or element.get("aria-label") or element.get_text()
            if value:
                return value
        return None


class AlternateUrlsStrategy(HtmlPageStrategy):
    """
    Walks a list of alternative listing URLs until one parses to reviews.
    """

    name = "html_alternate_urls"

    def __init__(
        self,
        urls: Sequence[str],
        rate_limiter: Optional[RateLimiter] = None,
        language: str = "en",
        selectors: Optional[Dict[str, List[str]]] = None,
        referer: str = "https://www.google.com/",
    ):
        super().__init__(None, rate_limiter, language, selectors)
        self.urls = list(urls)
        self.referer = referer

    def is_configured(self) -> bool:
        return bool(self.urls)

    async def fetch_reviews(self) -> List[Review]:
        if not self.is_configured():
            raise StrategyUnavailable("No alternative URLs configured")

        for url in self.urls:
            logger.info(f"Trying alternative URL: {url}")
            try:
                html = await self.fetch_page(url, referer=self.referer)
            except StrategyError as e:
                logger.info(f"URL {url} failed: {e}")
                continue

            reviews = self.parse_reviews(html)
            if reviews:
                return reviews

        raise StrategyError("All alternative URLs failed")


def _iter_json_ld_reviews(data: Any) -> Iterator[Dict[str, Any]]:
    """Yield every schema.org Review object nested anywhere in ``data``."""
    if isinstance(data, list):
        for item in data:
            yield from _iter_json_ld_reviews(item)
        return

    if not isinstance(data, dict):
        return

    item_type = data.get("@type")
    if item_type == "Review" or (isinstance(item_type, list) and "Review" in item_type):
        yield data
        return

    for key in ("@graph", "review", "reviews"):
        if key in data:
            yield from _iter_json_ld_reviews(data[key])
