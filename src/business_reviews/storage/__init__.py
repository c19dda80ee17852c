"""Storage package for the business review service."""

from .state_store import StateStore

__all__ = ["StateStore"]
