"""Orchestration package for the business review service."""

from .service import ReviewService

__all__ = ["ReviewService"]
