"""
Trend Analyzer
==============

Temporal patterns, historical series and seasonal profile of a raw review
collection. Runs independently of the metrics aggregator.

Pattern strength of a bucket distribution with k buckets:

    strength = (max_share - 1/k) / (1 - 1/k)

0 means a perfectly even spread, 1 means every review in one bucket.
Classified weak (< 0.4), moderate (< 0.7) or strong.

Forecasts are one step ahead: least-squares line when there are at least
3 points, moving average of the last k points when there are 2. The
confidence shrinks as the residual spread grows relative to the metric
range and is clamped to [0, 1].

Timestamps are naive UTC, so hour buckets are UTC hours.

Usage:
    analyzer = TrendAnalyzer()
    report = analyzer.analyze(reviews)
    report.historical["rating"].forecast
"""

import calendar
import logging
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum
from statistics import mean
from typing import Dict, Iterable, List, Optional, Tuple

from ..reviews.review_models import Review, Sentiment
from .analysis_models import TrendDirection
from .analytics_config import DEFAULT_TREND_SETTINGS, TrendSettings
from .metrics_aggregator import month_key, round2

logger = logging.getLogger(__name__)

# Value ranges used to normalise slopes and residuals
METRIC_RANGES: Dict[str, Tuple[float, float]] = {
    "rating": (1.0, 5.0),
    "sentiment": (-100.0, 100.0),      # net sentiment, positive% - negative%
}

HOUR_BUCKETS = (
    ("night", range(0, 6)),
    ("morning", range(6, 12)),
    ("afternoon", range(12, 18)),
    ("evening", range(18, 24)),
)


class PatternStrength(str, Enum):
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


class ForecastMethod(str, Enum):
    LINEAR_REGRESSION = "linear_regression"
    MOVING_AVERAGE = "moving_average"


@dataclass(frozen=True)
class BucketPattern:
    dimension: str                          # day_of_week | time_of_day | month
    counts: Dict[str, int]
    peak: Optional[str]
    strength: float
    classification: PatternStrength


@dataclass(frozen=True)
class TemporalPatterns:
    day_of_week: BucketPattern
    time_of_day: BucketPattern
    month: BucketPattern


@dataclass(frozen=True)
class SeriesPoint:
    period: str                             # YYYY-MM
    value: float
    count: int


@dataclass(frozen=True)
class Forecast:
    value: float
    method: ForecastMethod
    confidence: float


@dataclass(frozen=True)
class HistoricalTrend:
    metric: str
    points: List[SeriesPoint] = field(default_factory=list)
    direction: TrendDirection = TrendDirection.STABLE
    forecast: Optional[Forecast] = None


@dataclass(frozen=True)
class SeasonalMonth:
    month: str
    average_volume: float
    average_rating: float
    seasonality_factor: float               # average_volume / mean over months


@dataclass(frozen=True)
class TrendReport:
    temporal: TemporalPatterns
    historical: Dict[str, HistoricalTrend]
    seasonal: List[SeasonalMonth]


def net_sentiment(reviews: List[Review]) -> float:
    if not reviews:
        return 0.0
    positive = sum(1 for r in reviews if r.sentiment_label == Sentiment.POSITIVE)
    negative = sum(1 for r in reviews if r.sentiment_label == Sentiment.NEGATIVE)
    return (positive - negative) / len(reviews) * 100


def linear_fit(values: List[float]) -> Tuple[float, float]:
    """Least-squares (slope, intercept) over x = 0..n-1."""
    n = len(values)
    xs = range(n)
    x_mean = (n - 1) / 2
    y_mean = mean(values)
    denominator = sum((x - x_mean) ** 2 for x in xs)
    if denominator == 0:
        return 0.0, y_mean
    slope = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, values)) / denominator
    return slope, y_mean - slope * x_mean


class TrendAnalyzer:
    """Pure trend computations over raw reviews."""

    def __init__(self, settings: Optional[TrendSettings] = None):
        self.settings = settings or DEFAULT_TREND_SETTINGS

    def analyze(self, reviews: Iterable[Review]) -> TrendReport:
        dated = sorted(
            (r for r in reviews if isinstance(r, Review) and r.published_at is not None),
            key=lambda r: r.published_at,
        )
        logger.debug(f"Analyzing trends over {len(dated)} dated reviews")
        return TrendReport(
            temporal=self.temporal_patterns(dated),
            historical={
                "rating": self.historical_trend(dated, "rating"),
                "sentiment": self.historical_trend(dated, "sentiment"),
            },
            seasonal=self.seasonal_profile(dated),
        )

    # -------------------------------------------------------------------------
    # TEMPORAL PATTERNS
    # -------------------------------------------------------------------------

    def classify_strength(self, strength: float) -> PatternStrength:
        if strength < self.settings.weak_below:
            return PatternStrength.WEAK
        if strength < self.settings.moderate_below:
            return PatternStrength.MODERATE
        return PatternStrength.STRONG

    def bucket_pattern(self, dimension: str, buckets: List[str], values: List[str]) -> BucketPattern:
        counts = Counter(values)
        ordered = {bucket: counts.get(bucket, 0) for bucket in buckets}
        total = len(values)
        k = len(buckets)

        if total == 0:
            return BucketPattern(dimension, ordered, None, 0.0, PatternStrength.WEAK)

        # First bucket in calendar order wins ties
        peak = max(buckets, key=lambda b: (ordered[b], -buckets.index(b)))
        max_share = ordered[peak] / total
        strength = round2(max(0.0, (max_share - 1 / k) / (1 - 1 / k)))
        return BucketPattern(dimension, ordered, peak, strength, self.classify_strength(strength))

    @staticmethod
    def hour_bucket(hour: int) -> str:
        for name, hours in HOUR_BUCKETS:
            if hour in hours:
                return name
        raise ValueError(f"Hour out of range: {hour}")

    def temporal_patterns(self, dated: List[Review]) -> TemporalPatterns:
        moments = [r.published_at for r in dated]
        return TemporalPatterns(
            day_of_week=self.bucket_pattern(
                "day_of_week", list(calendar.day_name), [calendar.day_name[m.weekday()] for m in moments]
            ),
            time_of_day=self.bucket_pattern(
                "time_of_day", [name for name, _ in HOUR_BUCKETS], [self.hour_bucket(m.hour) for m in moments]
            ),
            month=self.bucket_pattern(
                "month", list(calendar.month_name)[1:], [calendar.month_name[m.month] for m in moments]
            ),
        )

    # -------------------------------------------------------------------------
    # HISTORICAL SERIES & FORECAST
    # -------------------------------------------------------------------------

    def historical_trend(self, dated: List[Review], metric: str) -> HistoricalTrend:
        """Monthly series of ``metric`` (rating or sentiment) with a one-step forecast."""
        if metric not in METRIC_RANGES:
            raise ValueError(f"Unknown trend metric: {metric}")

        by_month: Dict[str, List[Review]] = defaultdict(list)
        for review in dated:
            by_month[month_key(review.published_at)].append(review)

        points = []
        for period in sorted(by_month):
            group = by_month[period]
            if metric == "rating":
                value = mean(r.rating for r in group)
            else:
                value = net_sentiment(group)
            points.append(SeriesPoint(period=period, value=round2(value), count=len(group)))

        values = [p.value for p in points]
        return HistoricalTrend(
            metric=metric,
            points=points,
            direction=self.series_direction(values, metric),
            forecast=self.forecast(values, metric),
        )

    def series_direction(self, values: List[float], metric: str) -> TrendDirection:
        if len(values) < 2:
            return TrendDirection.STABLE
        low, high = METRIC_RANGES[metric]
        slope, _ = linear_fit(values)
        if abs(slope) / (high - low) < self.settings.slope_stable_band:
            return TrendDirection.STABLE
        return TrendDirection.UP if slope > 0 else TrendDirection.DOWN

    def forecast(self, values: List[float], metric: str) -> Optional[Forecast]:
        """
        One-step-ahead forecast, or None with fewer than 2 points.

        Residuals are measured against the fitted line (regression) or the
        window mean (moving average).
        """
        s = self.settings
        if len(values) < 2:
            return None

        low, high = METRIC_RANGES[metric]
        if len(values) >= s.min_points_regression:
            slope, intercept = linear_fit(values)
            predicted = intercept + slope * len(values)
            residuals = [y - (intercept + slope * x) for x, y in enumerate(values)]
            method = ForecastMethod.LINEAR_REGRESSION
        else:
            window = values[-s.forecast_window:]
            predicted = mean(window)
            residuals = [y - predicted for y in window]
            method = ForecastMethod.MOVING_AVERAGE

        residual_std = math.sqrt(mean(r * r for r in residuals))
        confidence = 1 / (1 + s.confidence_scale * residual_std / (high - low))

        return Forecast(
            value=round2(max(low, min(high, predicted))),
            method=method,
            confidence=round2(max(0.0, min(1.0, confidence))),
        )

    # -------------------------------------------------------------------------
    # SEASONAL PROFILE
    # -------------------------------------------------------------------------

    def seasonal_profile(self, dated: List[Review]) -> List[SeasonalMonth]:
        """
        Per calendar month: average volume over the years that month was
        seen, average rating, and volume relative to the monthly mean.
        """
        by_month: Dict[int, List[Review]] = defaultdict(list)
        for review in dated:
            by_month[review.published_at.month].append(review)

        if not by_month:
            return []

        volumes = {}
        for month, group in by_month.items():
            years = {r.published_at.year for r in group}
            volumes[month] = len(group) / len(years)
        overall = mean(volumes.values())

        return [
            SeasonalMonth(
                month=calendar.month_name[month],
                average_volume=round2(volumes[month]),
                average_rating=round2(mean(r.rating for r in by_month[month])),
                seasonality_factor=round2(volumes[month] / overall) if overall else 0.0,
            )
            for month in sorted(by_month)
        ]
