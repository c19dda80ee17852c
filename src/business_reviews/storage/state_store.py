"""
Persisted state for the business review service.
"""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..models.review import Review

logger = logging.getLogger(__name__)


class StateStore:
    """
    Handles the single JSON document shared by the cache and the quota tracker.

    Document layout::

        {
          "timestamp": "2025-01-01T10:00:00+00:00",
          "reviews": [...],
          "count": 12,
          "source": "google_places_api",
          "dailyCount": {"date": "2025-01-01", "count": 3},
          "monthlyCount": {"month": "2025-01", "count": 41}
        }

    Features:
    - Read-modify-write updates so cache and counters never clobber each other
    - Atomic replacement of the file so a crash mid-write leaves the old copy
    - A missing, unreadable or corrupt file reads as an empty document
    """

    def __init__(self, path: str = "data/reviews.json"):
        """
        Initialize the state store.

        Args:
            path: Path to the JSON state file
        """
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> Dict[str, Any]:
        """
        Read the whole document.

        Returns:
            Parsed document, or an empty dict when absent or corrupt
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"State file {self.path} unreadable, treating as absent: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"State file {self.path} has unexpected layout, treating as absent")
            return {}
        return data

    def update(self, mutate: Callable[[Dict[str, Any]], None]) -> bool:
        """
        Apply ``mutate`` to the current document and write it back.

        Args:
            mutate: Callable that edits the document in place

        Returns:
            True if the document was written, False on I/O failure
        """
        with self._lock:
            data = self.load()
            mutate(data)
            return self._write(data)

    def _write(self, data: Dict[str, Any]) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
            return True
        except OSError as e:
            logger.error(f"Error writing state file {self.path}: {e}")
            return False

    def save_snapshot(self, reviews: List[Review], timestamp: datetime, source: str = "") -> bool:
        """
        Persist a review batch, replacing the previous one.

        Args:
            reviews: Reviews to persist
            timestamp: Moment the batch was fetched
            source: Provenance tag of the batch

        Returns:
            True if the snapshot was written
        """

        def _apply(data: Dict[str, Any]):
            data["timestamp"] = timestamp.isoformat()
            data["reviews"] = [review.to_dict() for review in reviews]
            data["count"] = len(reviews)
            data["source"] = source

        saved = self.update(_apply)
        if saved:
            logger.info(f"Saved {len(reviews)} reviews to {self.path}")
        return saved

    def load_snapshot(self) -> Optional[Tuple[List[Review], Optional[datetime]]]:
        """
        Read the last persisted review batch.

        Returns:
            ``(reviews, timestamp)`` or None when no batch was ever persisted.
            Individual malformed review records are skipped.
        """
        data = self.load()
        raw_reviews = data.get("reviews")
        if not isinstance(raw_reviews, list) or not raw_reviews:
            return None

        reviews = []
        for item in raw_reviews:
            try:
                reviews.append(Review.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed persisted review: {e}")
                continue

        if not reviews:
            return None

        timestamp = None
        raw_timestamp = data.get("timestamp")
        if raw_timestamp:
            try:
                timestamp = datetime.fromisoformat(str(raw_timestamp).replace("Z", "+00:00"))
            except ValueError:
                logger.debug(f"Unparseable snapshot timestamp: {raw_timestamp}")

        return reviews, timestamp

    def export_to_json(self, reviews: List[Review], output_file: str) -> int:
        """
        Export a review batch to a standalone JSON file.

        Args:
            reviews: Reviews to export
            output_file: Path to output JSON file

        Returns:
            Number of reviews exported
        """
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump([review.to_dict() for review in reviews], f, indent=2, ensure_ascii=False)

        logger.info(f"Exported {len(reviews)} reviews to {output_file}")
        return len(reviews)
