"""
Review Data Models
==================

Immutable review records consumed by the analytics engine.

Reviews are created by an external data-access layer and are read-only to
the engine. Timestamps are normalised to naive UTC datetimes; a record
whose timestamp is missing or unparseable keeps ``published_at=None`` and
is left out of every time-bucketed metric.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.errors import InputError
from .tokenizer import tokenize_staff, tokenize_themes


class Sentiment(str, Enum):
    """Pre-computed sentiment label attached to a review."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    MIXED = "mixed"

    @classmethod
    def parse(cls, label: Optional[str]) -> Optional["Sentiment"]:
        """
        Map a free-form label onto a Sentiment.

        Matching is substring based ("Very Positive" -> POSITIVE).
        Returns None for an absent label.
        """
        if label is None:
            return None
        if isinstance(label, Sentiment):
            return label
        text = str(label).strip().lower()
        if not text:
            return None
        if "mixed" in text:
            return cls.MIXED
        if "positive" in text:
            return cls.POSITIVE
        if "negative" in text:
            return cls.NEGATIVE
        return cls.NEUTRAL


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or datetime into naive UTC; None if invalid."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        try:
            dt = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


@dataclass(frozen=True)
class Review:
    """A single customer review."""
    review_id: str
    rating: int                                 # 1..5 stars
    text: str = ""
    published_at: Optional[datetime] = None     # naive UTC
    sentiment: Optional[Sentiment] = None
    owner_response: Optional[str] = None
    staff_mentioned: Optional[str] = None       # delimiter-separated names
    themes: Optional[str] = None                # delimiter-separated themes
    reviewer: Optional[str] = None              # reviewer identity, when known

    def __post_init__(self):
        if isinstance(self.rating, bool) or not isinstance(self.rating, int):
            raise InputError(f"Review {self.review_id}: rating {self.rating!r} is not a whole star count")
        if not 1 <= self.rating <= 5:
            raise InputError(f"Review {self.review_id}: rating {self.rating} outside 1..5")
        if self.published_at is not None:
            object.__setattr__(self, "published_at", parse_timestamp(self.published_at))
        if self.sentiment is not None and not isinstance(self.sentiment, Sentiment):
            object.__setattr__(self, "sentiment", Sentiment.parse(self.sentiment))

    @property
    def sentiment_label(self) -> Sentiment:
        """Sentiment with absent labels defaulting to NEUTRAL."""
        return self.sentiment or Sentiment.NEUTRAL

    @property
    def has_owner_response(self) -> bool:
        return bool(self.owner_response and self.owner_response.strip())

    @property
    def is_dated(self) -> bool:
        return self.published_at is not None

    @property
    def theme_list(self) -> List[str]:
        return tokenize_themes(self.themes)

    @property
    def staff_list(self) -> List[str]:
        return tokenize_staff(self.staff_mentioned)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Review":
        """
        Build a Review from a raw record.

        Accepts both snake_case keys and the camelCase keys used by the
        review export (``stars``, ``publishedAtDate``,
        ``responseFromOwnerText``, ``staffMentioned``, ``mainThemes``,
        ``name``).

        Raises:
            InputError: missing id or rating not convertible to 1..5
        """
        review_id = data.get("review_id", data.get("id"))
        if review_id is None or str(review_id).strip() == "":
            raise InputError("Review record without id")

        raw_rating = data.get("rating", data.get("stars", data.get("star")))
        try:
            rating = int(round(float(raw_rating)))
        except (TypeError, ValueError, OverflowError):
            raise InputError(f"Review {review_id}: invalid rating {raw_rating!r}")

        return cls(
            review_id=str(review_id),
            rating=rating,
            text=data.get("text") or "",
            published_at=parse_timestamp(
                data.get("published_at", data.get("publishedAtDate"))
            ),
            sentiment=Sentiment.parse(data.get("sentiment")),
            owner_response=data.get("owner_response", data.get("responseFromOwnerText")),
            staff_mentioned=data.get("staff_mentioned", data.get("staffMentioned")),
            themes=data.get("themes", data.get("mainThemes")),
            reviewer=data.get("reviewer", data.get("name")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "review_id": self.review_id,
            "rating": self.rating,
            "text": self.text,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "sentiment": self.sentiment.value if self.sentiment else None,
            "owner_response": self.owner_response,
            "staff_mentioned": self.staff_mentioned,
            "themes": self.themes,
            "reviewer": self.reviewer,
        }
