"""
Ordered waterfall over review strategies.
"""

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Sequence

from ..models.review import Review, StrategyAttempt

logger = logging.getLogger(__name__)

MIN_REVIEW_LENGTH = 1


@dataclass(frozen=True)
class StrategyDescriptor:
    """
    One entry of the strategy chain.

    ``name`` doubles as the provenance tag stamped on accepted reviews.
    """

    name: str
    timeout: float
    invoke: Callable[[], Awaitable[List[Review]]]


def is_well_formed(review: object, min_length: int = MIN_REVIEW_LENGTH) -> bool:
    """A candidate is kept only if it is a Review with a non-blank body."""
    if not isinstance(review, Review):
        return False
    body = (review.review or "").strip()
    return bool(body) and len(body) >= min_length


class StrategyChainExecutor:
    """
    Runs strategies in priority order and returns the first non-empty batch.

    Strategies are tried one at a time; there is no racing and no merging
    across strategies. A strategy that raises, times out or yields nothing
    well-formed is logged and skipped.
    """

    def __init__(self, strategies: Sequence[StrategyDescriptor], min_review_length: int = MIN_REVIEW_LENGTH):
        """
        Initialize the executor.

        Args:
            strategies: Ordered strategy descriptors, highest priority first
            min_review_length: Shortest review body accepted
        """
        self.strategies = list(strategies)
        self.min_review_length = min_review_length
        self.last_attempts: List[StrategyAttempt] = []

    async def fetch_live(self) -> List[Review]:
        """
        Try each strategy until one yields reviews.

        Returns:
            Reviews of the first successful strategy, or an empty list
        """
        attempts = []
        self.last_attempts = attempts

        for descriptor in self.strategies:
            start_time = time.monotonic()
            try:
                candidates = await asyncio.wait_for(descriptor.invoke(), timeout=descriptor.timeout)
            except asyncio.TimeoutError:
                elapsed = time.monotonic() - start_time
                logger.warning(f"Strategy {descriptor.name} timed out after {descriptor.timeout}s")
                attempts.append(
                    StrategyAttempt(descriptor.name, "timeout", error="timed out", elapsed=elapsed)
                )
                continue
            except asyncio.CancelledError:
                raise
            except Exception as e:
                elapsed = time.monotonic() - start_time
                logger.warning(f"Strategy {descriptor.name} failed: {e}")
                attempts.append(StrategyAttempt(descriptor.name, "error", error=str(e), elapsed=elapsed))
                continue

            elapsed = time.monotonic() - start_time
            reviews = [
                dataclasses.replace(review, source=descriptor.name)
                for review in (candidates or [])
                if is_well_formed(review, self.min_review_length)
            ]

            if not reviews:
                logger.warning(f"Strategy {descriptor.name} returned no usable reviews")
                attempts.append(StrategyAttempt(descriptor.name, "empty", elapsed=elapsed))
                continue

            discarded = len(candidates) - len(reviews)
            if discarded:
                logger.debug(f"Discarded {discarded} malformed reviews from {descriptor.name}")

            logger.info(f"Strategy {descriptor.name} returned {len(reviews)} reviews in {elapsed:.2f}s")
            attempts.append(
                StrategyAttempt(descriptor.name, "success", review_count=len(reviews), elapsed=elapsed)
            )
            return reviews

        logger.warning("All review strategies exhausted without data")
        return []
