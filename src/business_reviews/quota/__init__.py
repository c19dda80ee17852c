"""Quota package for the business review service."""

from .tracker import DAILY_LIMIT, MONTHLY_LIMIT, QuotaTracker

__all__ = ["QuotaTracker", "DAILY_LIMIT", "MONTHLY_LIMIT"]
