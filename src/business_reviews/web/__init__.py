"""Web package for the business review service."""

from .app import ReviewsApp, create_app

__all__ = ["ReviewsApp", "create_app"]
