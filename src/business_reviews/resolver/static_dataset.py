"""
Bundled last-resort review dataset.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..models.review import Review

logger = logging.getLogger(__name__)

DEFAULT_DATASET_PATH = Path(__file__).resolve().parent.parent / "resources" / "static_reviews.json"


@dataclass
class StaticDataset:
    """A versioned set of hand-curated reviews."""

    version: str
    reviews: List[Review] = field(default_factory=list)


def load_static_dataset(path: Optional[str] = None) -> StaticDataset:
    """
    Load the static dataset asset.

    Args:
        path: Optional override of the bundled asset path

    Returns:
        StaticDataset; empty (version ``unavailable``) if the asset cannot be read
    """
    dataset_path = Path(path) if path else DEFAULT_DATASET_PATH

    try:
        with open(dataset_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load static dataset from {dataset_path}: {e}")
        return StaticDataset(version="unavailable")

    reviews = []
    for item in data.get("reviews", []):
        try:
            review = Review.from_dict(item)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed static review: {e}")
            continue
        review.is_live = False
        reviews.append(review)

    version = str(data.get("version", "unknown"))
    logger.debug(f"Loaded static dataset {version} with {len(reviews)} reviews")
    return StaticDataset(version=version, reviews=reviews)
