"""
Review Sources
==============

Read-only access to review collections. The engine only needs
``fetch_reviews(business_name, start, end)``; where the reviews come from
(database, export file, API) is the data-access layer's concern.

Date ranges are half-open: ``start <= published_at < end``.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..core.errors import InputError
from .review_models import Review, parse_timestamp

logger = logging.getLogger(__name__)


def filter_reviews_by_range(
    reviews: Iterable[Review],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[Review]:
    """
    Keep reviews published in [start, end).

    With no bounds every review is returned, dated or not. As soon as a
    bound is given, undated reviews are dropped because they cannot be
    placed in the window.
    """
    if start is None and end is None:
        return list(reviews)
    start = parse_timestamp(start)
    end = parse_timestamp(end)

    selected = []
    for review in reviews:
        if review.published_at is None:
            continue
        if start is not None and review.published_at < start:
            continue
        if end is not None and review.published_at >= end:
            continue
        selected.append(review)
    return selected


class ReviewSource(ABC):
    """Read-only review provider."""

    @abstractmethod
    def fetch_reviews(
        self,
        business_name: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Review]:
        """Return the reviews of a business, optionally restricted to [start, end)."""

    def list_businesses(self) -> List[str]:
        return []


class InMemoryReviewSource(ReviewSource):
    """Review source backed by a dict of business name -> reviews."""

    def __init__(self, reviews_by_business: Optional[Dict[str, List[Review]]] = None):
        self._reviews: Dict[str, List[Review]] = {
            name: list(reviews) for name, reviews in (reviews_by_business or {}).items()
        }

    def add_reviews(self, business_name: str, reviews: Iterable[Review]) -> None:
        self._reviews.setdefault(business_name, []).extend(reviews)

    def fetch_reviews(self, business_name, start=None, end=None):
        return filter_reviews_by_range(self._reviews.get(business_name, []), start, end)

    def list_businesses(self) -> List[str]:
        return sorted(self._reviews)


class JsonFileReviewSource(InMemoryReviewSource):
    """
    Review source loaded from a JSON export.

    Accepted layouts:
        {"Business A": [ {...review...}, ... ], "Business B": [...]}
        [ {...review..., "business": "Business A"}, ... ]

    Records that fail to parse are skipped and logged, so one bad row does
    not make the whole export unusable.
    """

    DEFAULT_BUSINESS = "default"

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._load()

    def _load(self) -> None:
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if isinstance(data, dict):
            grouped = data.items()
        elif isinstance(data, list):
            buckets: Dict[str, List[dict]] = {}
            for record in data:
                name = record.get("business") or record.get("businessName") or self.DEFAULT_BUSINESS
                buckets.setdefault(name, []).append(record)
            grouped = buckets.items()
        else:
            raise InputError(f"Unsupported review export layout in {self.path}")

        skipped = 0
        for business_name, records in grouped:
            parsed = []
            for record in records:
                try:
                    parsed.append(Review.from_dict(record))
                except InputError as e:
                    skipped += 1
                    logger.warning(f"Skipping review record: {e}")
            self.add_reviews(business_name, parsed)

        if skipped:
            logger.warning(f"Skipped {skipped} malformed review records from {self.path}")
        logger.info(f"Loaded reviews for {len(self._reviews)} businesses from {self.path}")
