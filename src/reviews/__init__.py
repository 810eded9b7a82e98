"""
Review Records
==============

Input side of the analytics engine.

Modules:
    review_models  - Review and Sentiment (immutable input records)
    tokenizer      - Delimited staff/theme field tokenizer
    review_source  - Read-only review providers (in-memory, JSON export)
"""

from .review_models import Review, Sentiment, parse_timestamp
from .review_source import (
    ReviewSource,
    InMemoryReviewSource,
    JsonFileReviewSource,
    filter_reviews_by_range,
)
from .tokenizer import tokenize, tokenize_themes, tokenize_staff
