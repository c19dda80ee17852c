"""Utils package for the business review service."""

from .helpers import (
    RateLimiter,
    UserAgentRotator,
    browser_headers,
    date_key,
    format_relative_date,
    generate_review_id,
    month_key,
    normalize_rating,
    sanitize_text,
    utc_now,
)

__all__ = [
    "RateLimiter",
    "UserAgentRotator",
    "browser_headers",
    "generate_review_id",
    "sanitize_text",
    "normalize_rating",
    "format_relative_date",
    "utc_now",
    "date_key",
    "month_key",
]
