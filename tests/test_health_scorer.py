"""
Tests for the HealthScorer.

Usage:
    pytest tests/test_health_scorer.py -v
"""

import pytest

from src.alerts.alert_engine import AlertEngine
from src.alerts.alert_models import AlertSeverity
from src.analytics.analysis_models import HealthLabel
from src.analytics.analytics_config import HealthWeights
from src.analytics.health_scorer import HealthScorer
from src.analytics.metrics_aggregator import MetricsAggregator
from src.core.errors import ConfigError
from src.reviews.review_models import Review, Sentiment


def make_review(review_id, rating, sentiment=None, response=None) -> Review:
    return Review(review_id=review_id, rating=rating, sentiment=sentiment, owner_response=response)


class TestHealthScorer:

    def setup_method(self):
        self.aggregator = MetricsAggregator()
        self.scorer = HealthScorer()

    def score(self, reviews):
        return self.scorer.score(self.aggregator.compute(reviews))

    def test_component_scores(self):
        assert self.scorer.rating_score(5.0) == 100.0
        assert self.scorer.rating_score(1.0) == 0.0
        assert self.scorer.rating_score(3.0) == 50.0
        assert self.scorer.rating_score(0.0) == 0.0
        assert self.scorer.sentiment_score(60.0, 20.0) == 50.0
        assert self.scorer.sentiment_score(0.0, 100.0) == 0.0
        assert self.scorer.response_score(120.0) == 100.0

    @pytest.mark.parametrize("overall, label", [
        (100, HealthLabel.EXCELLENT),
        (80, HealthLabel.EXCELLENT),
        (79, HealthLabel.GOOD),
        (60, HealthLabel.GOOD),
        (40, HealthLabel.NEEDS_ATTENTION),
        (39, HealthLabel.CRITICAL),
        (0, HealthLabel.CRITICAL),
    ])
    def test_labels(self, overall, label):
        assert self.scorer.label_for(overall) == label

    def test_empty_summary_scores_zero(self):
        health = self.score([])
        assert health.overall == 0
        assert health.label == HealthLabel.CRITICAL

    def test_all_bad(self):
        reviews = [make_review(str(i), 1, Sentiment.NEGATIVE) for i in range(5)]
        health = self.score(reviews)
        assert health.overall == 0
        assert health.breakdown.rating == 0

    @pytest.mark.parametrize("ratings", [[1], [5], [1, 5, 3], [2, 2, 4, 5, 5]])
    def test_overall_is_bounded(self, ratings):
        reviews = [
            make_review(str(i), r, Sentiment.POSITIVE if r >= 4 else Sentiment.NEGATIVE,
                        response="Thanks" if i % 2 else None)
            for i, r in enumerate(ratings)
        ]
        health = self.score(reviews)
        assert 0 <= health.overall <= 100
        for part in (health.breakdown.rating, health.breakdown.sentiment, health.breakdown.response):
            assert 0 <= part <= 100

    def test_excellent_business_scenario(self):
        # 10 reviews averaging 4.6 stars, no negative sentiment, 8 answered
        ratings = [5, 5, 5, 5, 5, 5, 4, 4, 4, 4]
        reviews = [
            make_review(str(i), r, Sentiment.POSITIVE, response="Thank you!" if i < 8 else None)
            for i, r in enumerate(ratings)
        ]
        summary = self.aggregator.compute(reviews)
        assert summary.rating_analysis.average_rating == 4.6
        assert summary.sentiment_analysis.negative_percentage == 0.0

        health = self.scorer.score(summary)
        assert health.overall >= 80
        assert health.label == HealthLabel.EXCELLENT

        alerts = AlertEngine().evaluate("Cafe", summary)
        assert not [a for a in alerts if a.severity == AlertSeverity.CRITICAL]

    def test_custom_weights(self):
        scorer = HealthScorer(HealthWeights(rating=1.0, sentiment=0.0, response=0.0))
        summary = self.aggregator.compute([make_review("a", 5)])
        assert scorer.score(summary).overall == 100

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ConfigError):
            HealthWeights(rating=0.5, sentiment=0.5, response=0.5)

    def test_negative_weight_rejected(self):
        with pytest.raises(ConfigError):
            HealthWeights(rating=1.2, sentiment=-0.2, response=0.0)
