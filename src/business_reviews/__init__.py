"""
Business Reviews

Quota-aware, cached retrieval of third-party business reviews with an ordered
chain of fallback strategies.
"""

__version__ = "1.0.0"

from .models.review import Review
from .orchestration.service import ReviewService
from .storage.state_store import StateStore

__all__ = ["Review", "ReviewService", "StateStore"]
