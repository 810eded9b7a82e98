"""
Business Health Scorer
======================

Combines aggregator output into one 0-100 health score.

    ratingScore    = (averageRating - 1) / 4 * 100
    sentimentScore = positive% - negative_penalty * negative%
    responseScore  = responseRate

    overall = clamp(round(w_r * rating + w_s * sentiment + w_p * response), 0, 100)

Labels: >= 80 Excellent, >= 60 Good, >= 40 Needs Attention, else Critical.

Usage:
    scorer = HealthScorer()
    score = scorer.score(summary)
"""

from typing import Optional

from .analysis_models import (
    AnalysisSummaryData,
    BusinessHealthScore,
    HealthBreakdown,
    HealthLabel,
)
from .analytics_config import DEFAULT_HEALTH_WEIGHTS, HealthWeights


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class HealthScorer:
    """Deterministic, side-effect free health scoring."""

    def __init__(self, weights: Optional[HealthWeights] = None):
        self.weights = weights or DEFAULT_HEALTH_WEIGHTS

    def rating_score(self, average_rating: float) -> float:
        if average_rating <= 0:
            return 0.0
        return clamp((average_rating - 1) / 4 * 100)

    def sentiment_score(self, positive_pct: float, negative_pct: float) -> float:
        return clamp(positive_pct - self.weights.negative_penalty * negative_pct)

    def response_score(self, response_rate: float) -> float:
        return clamp(response_rate)

    def label_for(self, overall: int) -> HealthLabel:
        w = self.weights
        if overall >= w.excellent_min:
            return HealthLabel.EXCELLENT
        if overall >= w.good_min:
            return HealthLabel.GOOD
        if overall >= w.needs_attention_min:
            return HealthLabel.NEEDS_ATTENTION
        return HealthLabel.CRITICAL

    def score(self, summary: AnalysisSummaryData) -> BusinessHealthScore:
        w = self.weights
        ratings = summary.rating_analysis
        sentiment = summary.sentiment_analysis
        responses = summary.response_analytics

        rating = self.rating_score(ratings.average_rating)
        sentiment_value = self.sentiment_score(sentiment.positive_percentage, sentiment.negative_percentage)
        response = self.response_score(responses.response_rate)

        weighted = w.rating * rating + w.sentiment * sentiment_value + w.response * response
        overall = int(clamp(round(weighted)))

        return BusinessHealthScore(
            overall=overall,
            label=self.label_for(overall),
            breakdown=HealthBreakdown(
                rating=round(rating),
                sentiment=round(sentiment_value),
                response=round(response),
            ),
            rating_trend=ratings.trend.change,
            response_rate=responses.response_rate,
            volume_trend=summary.performance_metrics.growth_rate,
        )
