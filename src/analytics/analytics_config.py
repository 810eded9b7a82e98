"""
Analytics Tuning Parameters
===========================

Every threshold and weight used by the analytics algorithms lives here,
so the computation modules carry no magic numbers.

The defaults are representative values. Deployments override them through
the environment (see src.orchestrator.config) or by passing their own
instances to the aggregator, scorer, comparator and trend analyzer.
"""

from dataclasses import dataclass

from ..core.errors import ConfigError

# Tolerance used when checking that weights sum to 1
WEIGHT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class HealthWeights:
    """
    Weights of the business health score.

    overall = rating * w_rating + sentiment * w_sentiment + response * w_response

    sentimentScore = positive% - negative_penalty * negative%
    """
    rating: float = 0.4
    sentiment: float = 0.3
    response: float = 0.3
    negative_penalty: float = 0.5

    # Label cut points on the overall score
    excellent_min: int = 80
    good_min: int = 60
    needs_attention_min: int = 40

    def __post_init__(self):
        for name in ("rating", "sentiment", "response", "negative_penalty"):
            if getattr(self, name) < 0:
                raise ConfigError(f"Health weight '{name}' cannot be negative")
        total = self.rating + self.sentiment + self.response
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ConfigError(f"Health weights must sum to 1, got {total:.4f}")
        if not self.excellent_min > self.good_min > self.needs_attention_min:
            raise ConfigError("Health label cut points must be strictly decreasing")


@dataclass(frozen=True)
class AggregatorSettings:
    """Parameters of the metrics aggregator."""

    # Growth rate: recent N months vs the N months before
    growth_window_months: int = 3
    growing_epsilon: float = 2.0          # growth % above which isGrowing

    # Seasonality classification of the monthly series
    min_months_for_pattern: int = 3
    directional_share: float = 0.67       # share of same-sign month deltas
    seasonal_cv: float = 0.5              # coefficient of variation for "seasonal"

    # Rating trend dead-band (stars)
    rating_stable_band: float = 0.1

    # Thematic analysis
    max_top_categories: int = 10
    max_trending_topics: int = 6
    recent_share: float = 0.3             # most recent 30% of dated reviews
    trending_ratio: float = 1.2           # recent share > prior share * ratio
    trending_min_delta: float = 0.05      # and at least 5 points of share
    attention_negative_ratio: float = 0.3
    attention_high_ratio: float = 0.6
    attention_high_count: int = 10
    attention_medium_ratio: float = 0.45
    attention_medium_count: int = 5

    # Staff insights
    max_staff_examples: int = 3
    example_length: int = 200
    staff_trend_delta: float = 0.1

    # Operational insights
    max_peak_entries: int = 3

    # Sentiment trend: number of quarters kept
    sentiment_quarters: int = 8

    # Action-item monitoring targets
    target_average_rating: float = 4.5
    target_response_rate: float = 80.0
    target_negative_share: float = 10.0

    def __post_init__(self):
        if self.growth_window_months < 1:
            raise ConfigError("growth_window_months must be >= 1")
        if not 0 < self.recent_share < 1:
            raise ConfigError("recent_share must be in (0, 1)")
        if not 0 < self.attention_negative_ratio <= 1:
            raise ConfigError("attention_negative_ratio must be in (0, 1]")


@dataclass(frozen=True)
class ComparisonSettings:
    """Parameters of the period comparator."""
    stable_percent_band: float = 2.0      # |changePercent| below = stable
    stable_points_band: float = 2.0       # |change| below = stable (percentage-point metrics)
    zero_epsilon: float = 1e-9            # |previous| below = treated as zero
    theme_rating_epsilon: float = 0.1     # stars
    theme_share_epsilon: float = 0.02     # fraction of reviews


@dataclass(frozen=True)
class TrendSettings:
    """Parameters of the trend analyzer."""
    weak_below: float = 0.4
    moderate_below: float = 0.7
    forecast_window: int = 3              # k points for the moving average
    min_points_regression: int = 3
    confidence_scale: float = 10.0        # confidence = 1 / (1 + scale * std / span)
    slope_stable_band: float = 0.05       # per-step slope, relative to span

    def __post_init__(self):
        if not 0 < self.weak_below < self.moderate_below <= 1:
            raise ConfigError("Pattern strength cut points must satisfy 0 < weak < moderate <= 1")
        if self.forecast_window < 1:
            raise ConfigError("forecast_window must be >= 1")


DEFAULT_HEALTH_WEIGHTS = HealthWeights()
DEFAULT_AGGREGATOR_SETTINGS = AggregatorSettings()
DEFAULT_COMPARISON_SETTINGS = ComparisonSettings()
DEFAULT_TREND_SETTINGS = TrendSettings()
