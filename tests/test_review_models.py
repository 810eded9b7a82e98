"""
Tests for review records, the delimited-field tokenizer and review sources.

Usage:
    pytest tests/test_review_models.py -v
"""

import json
from datetime import datetime, timezone

import pytest

from src.core.errors import InputError
from src.reviews.review_models import Review, Sentiment, parse_timestamp
from src.reviews.review_source import (
    InMemoryReviewSource,
    JsonFileReviewSource,
    filter_reviews_by_range,
)
from src.reviews.tokenizer import tokenize, tokenize_staff, tokenize_themes


def make_review(review_id="r1", rating=5, published_at=None, **kwargs) -> Review:
    return Review(review_id=review_id, rating=rating, published_at=published_at, **kwargs)


# ============================================================================
# TOKENIZER
# ============================================================================

class TestTokenizer:

    def test_splits_on_every_delimiter(self):
        assert tokenize("a, b;c|d", ",;|") == ["a", "b", "c", "d"]

    def test_drops_empty_tokens_and_collapses_whitespace(self):
        assert tokenize(" wifi ,, ;  free   parking ", ",;") == ["wifi", "free parking"]

    def test_none_and_blank(self):
        assert tokenize(None, ",") == []
        assert tokenize("   ", ",") == []

    def test_themes_lower_cased_and_deduplicated(self):
        assert tokenize_themes("WiFi, wifi; Service") == ["wifi", "service"]

    def test_staff_names_capitalised(self):
        assert tokenize_staff("ANNA & bob, anna") == ["Anna", "Bob"]


# ============================================================================
# REVIEW RECORD
# ============================================================================

class TestReview:

    def test_rating_out_of_range_rejected(self):
        with pytest.raises(InputError):
            make_review(rating=6)
        with pytest.raises(InputError):
            make_review(rating=0)

    def test_input_error_is_value_error(self):
        with pytest.raises(ValueError):
            make_review(rating=9)

    def test_sentiment_parsing(self):
        assert Sentiment.parse("Very Positive") == Sentiment.POSITIVE
        assert Sentiment.parse("negative") == Sentiment.NEGATIVE
        assert Sentiment.parse("mixed feelings") == Sentiment.MIXED
        assert Sentiment.parse("meh") == Sentiment.NEUTRAL
        assert Sentiment.parse(None) is None
        assert Sentiment.parse("  ") is None

    def test_missing_sentiment_defaults_to_neutral(self):
        assert make_review().sentiment_label == Sentiment.NEUTRAL

    def test_blank_owner_response_is_not_a_response(self):
        assert not make_review(owner_response="   ").has_owner_response
        assert make_review(owner_response="Thanks!").has_owner_response

    def test_timestamp_normalised_to_naive_utc(self):
        review = make_review(published_at="2024-03-01T12:00:00+02:00")
        assert review.published_at == datetime(2024, 3, 1, 10, 0)

    def test_unparseable_timestamp_is_undated(self):
        assert parse_timestamp("not a date") is None
        assert not make_review(published_at="yesterday").is_dated

    def test_from_dict_camel_case_export(self):
        review = Review.from_dict({
            "id": "abc",
            "stars": 4,
            "text": "Nice",
            "publishedAtDate": "2024-05-02T08:30:00Z",
            "sentiment": "Positive",
            "responseFromOwnerText": "Thank you",
            "staffMentioned": "Maria",
            "mainThemes": "food, service",
            "name": "Jo",
        })
        assert review.review_id == "abc"
        assert review.rating == 4
        assert review.published_at == datetime(2024, 5, 2, 8, 30)
        assert review.sentiment == Sentiment.POSITIVE
        assert review.has_owner_response
        assert review.staff_list == ["Maria"]
        assert review.theme_list == ["food", "service"]
        assert review.reviewer == "Jo"

    def test_from_dict_without_id(self):
        with pytest.raises(InputError):
            Review.from_dict({"rating": 3})

    def test_from_dict_invalid_rating(self):
        with pytest.raises(InputError):
            Review.from_dict({"id": "x", "rating": "five"})

    def test_fractional_rating_rejected(self):
        with pytest.raises(InputError):
            make_review(rating=4.5)

    def test_boolean_rating_rejected(self):
        with pytest.raises(InputError):
            make_review(rating=True)

    def test_from_dict_infinite_rating(self):
        with pytest.raises(InputError):
            Review.from_dict({"id": "x", "stars": float("inf")})

    def test_to_dict_roundtrip(self):
        review = make_review(published_at=datetime(2024, 1, 1), sentiment=Sentiment.NEGATIVE, themes="wifi")
        assert Review.from_dict(review.to_dict()) == review


# ============================================================================
# REVIEW SOURCES
# ============================================================================

class TestReviewSources:

    def setup_method(self):
        self.reviews = [
            make_review("a", published_at=datetime(2024, 1, 1)),
            make_review("b", published_at=datetime(2024, 2, 1)),
            make_review("c"),
        ]

    def test_range_is_half_open(self):
        selected = filter_reviews_by_range(self.reviews, datetime(2024, 1, 1), datetime(2024, 2, 1))
        assert [r.review_id for r in selected] == ["a"]

    def test_unbounded_keeps_undated(self):
        assert len(filter_reviews_by_range(self.reviews)) == 3

    def test_bounded_drops_undated(self):
        selected = filter_reviews_by_range(self.reviews, start=datetime(2023, 1, 1))
        assert [r.review_id for r in selected] == ["a", "b"]

    def test_aware_bounds_are_compared_in_utc(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        end = datetime(2024, 2, 1, tzinfo=timezone.utc)
        selected = filter_reviews_by_range(self.reviews, start, end)
        assert [r.review_id for r in selected] == ["a"]

    def test_in_memory_source(self):
        source = InMemoryReviewSource()
        source.add_reviews("Cafe", self.reviews)
        assert source.list_businesses() == ["Cafe"]
        assert len(source.fetch_reviews("Cafe", end=datetime(2024, 1, 15))) == 1
        assert source.fetch_reviews("Unknown") == []

    def test_json_file_source_grouped_layout(self, tmp_path):
        path = tmp_path / "reviews.json"
        path.write_text(json.dumps({
            "Cafe": [
                {"id": "1", "stars": 5, "publishedAtDate": "2024-01-01T00:00:00Z"},
                {"id": "2", "stars": 11},
            ],
        }))
        source = JsonFileReviewSource(path)
        reviews = source.fetch_reviews("Cafe")
        assert [r.review_id for r in reviews] == ["1"]

    def test_json_file_source_flat_layout(self, tmp_path):
        path = tmp_path / "reviews.json"
        path.write_text(json.dumps([
            {"id": "1", "rating": 4, "business": "A"},
            {"id": "2", "rating": 2, "business": "B"},
            {"id": "3", "rating": 3},
        ]))
        source = JsonFileReviewSource(path)
        assert source.list_businesses() == ["A", "B", "default"]

    def test_json_file_source_rejects_scalar(self, tmp_path):
        path = tmp_path / "reviews.json"
        path.write_text("42")
        with pytest.raises(InputError):
            JsonFileReviewSource(path)

    def test_json_file_source_skips_overflowing_rating(self, tmp_path):
        path = tmp_path / "reviews.json"
        path.write_text('{"Cafe": [{"id": "1", "stars": 1e999}, {"id": "2", "stars": 4}]}')
        source = JsonFileReviewSource(path)
        assert [r.review_id for r in source.fetch_reviews("Cafe")] == ["2"]
