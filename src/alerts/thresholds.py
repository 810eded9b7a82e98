"""
Performance Thresholds
======================

Closed set of alerting metric categories and their critical/warning
bounds.

Each category carries a fixed comparison direction:
    - lower is worse:  rating, responseRate, reviewVolume
    - higher is worse: sentimentNegative, volumeDrop

Comparisons are inclusive: a rating exactly at the critical bound is
critical. Bounds are validated when thresholds are built, so an inverted
pair (warning worse than critical) is rejected up front.

Usage:
    thresholds = (
        PerformanceThresholds.builder()
        .rating(critical=3.0, warning=3.5)
        .response_rate(critical=30, warning=50)
        .build()
    )
    severity = thresholds.classify(MetricCategory.RATING, 2.8)   # CRITICAL
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from ..analytics.analysis_models import AnalysisSummaryData
from ..core.errors import ConfigError
from .alert_models import AlertSeverity

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    LOWER_IS_WORSE = "lower_is_worse"
    HIGHER_IS_WORSE = "higher_is_worse"


class MetricCategory(Enum):
    """Alerting category: (key, direction, warning severity, title, unit)."""

    RATING = ("rating", Direction.LOWER_IS_WORSE, AlertSeverity.HIGH, "Rating", "")
    SENTIMENT_NEGATIVE = (
        "sentimentNegative", Direction.HIGHER_IS_WORSE, AlertSeverity.MEDIUM, "Negative Sentiment", "%"
    )
    RESPONSE_RATE = ("responseRate", Direction.LOWER_IS_WORSE, AlertSeverity.MEDIUM, "Response Rate", "%")
    VOLUME_DROP = ("volumeDrop", Direction.HIGHER_IS_WORSE, AlertSeverity.MEDIUM, "Review Volume Drop", "%")
    REVIEW_VOLUME = ("reviewVolume", Direction.LOWER_IS_WORSE, AlertSeverity.MEDIUM, "Review Volume", "/month")

    def __init__(self, key: str, direction: Direction, warning_severity: AlertSeverity, title: str, unit: str):
        self.key = key
        self.direction = direction
        self.warning_severity = warning_severity
        self.title = title
        self.unit = unit

    @classmethod
    def from_key(cls, key: str) -> "MetricCategory":
        for category in cls:
            if category.key == key:
                return category
        allowed = ", ".join(c.key for c in cls)
        raise ConfigError(f"Unknown threshold category '{key}' (allowed: {allowed})")

    def is_breached(self, value: float, bound: float) -> bool:
        if self.direction == Direction.LOWER_IS_WORSE:
            return value <= bound
        return value >= bound


@dataclass(frozen=True)
class ThresholdBand:
    critical: float
    warning: float


def metric_value(category: MetricCategory, summary: AnalysisSummaryData) -> float:
    """Current value of ``category`` in a summary."""
    if category == MetricCategory.RATING:
        return summary.rating_analysis.average_rating
    if category == MetricCategory.SENTIMENT_NEGATIVE:
        return summary.sentiment_analysis.negative_percentage
    if category == MetricCategory.RESPONSE_RATE:
        return summary.response_analytics.response_rate
    if category == MetricCategory.VOLUME_DROP:
        return max(0.0, -summary.performance_metrics.growth_rate)
    if category == MetricCategory.REVIEW_VOLUME:
        return summary.performance_metrics.reviews_per_month
    raise ConfigError(f"No metric mapping for category {category.key}")


@dataclass(frozen=True)
class PerformanceThresholds:
    """Category -> band mapping. Validated on construction."""
    bands: Dict[MetricCategory, ThresholdBand] = field(default_factory=dict)

    def __post_init__(self):
        for category, band in self.bands.items():
            if not isinstance(category, MetricCategory):
                raise ConfigError(f"Threshold key must be a MetricCategory, got {category!r}")
            _validate_band(category, band)

    def __iter__(self) -> Iterator[Tuple[MetricCategory, ThresholdBand]]:
        return iter(self.bands.items())

    def __len__(self) -> int:
        return len(self.bands)

    def get(self, category: MetricCategory) -> Optional[ThresholdBand]:
        return self.bands.get(category)

    def classify(self, category: MetricCategory, value: float) -> Optional[AlertSeverity]:
        """Severity of ``value`` for ``category``: critical, the warning severity, or None."""
        band = self.bands.get(category)
        if band is None:
            return None
        if category.is_breached(value, band.critical):
            return AlertSeverity.CRITICAL
        if category.is_breached(value, band.warning):
            return category.warning_severity
        return None

    @staticmethod
    def builder(base: Optional["PerformanceThresholds"] = None) -> "ThresholdsBuilder":
        return ThresholdsBuilder(base)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceThresholds":
        """
        Build from ``{"rating": {"critical": 3.0, "warning": 3.5}, ...}``.

        Raises:
            ConfigError: unknown category, missing or non-numeric bound,
                inverted bounds
        """
        if not isinstance(data, dict):
            raise ConfigError("Thresholds must be a mapping of category -> {critical, warning}")

        bands = {}
        for key, raw in data.items():
            category = MetricCategory.from_key(key)
            if not isinstance(raw, dict) or "critical" not in raw or "warning" not in raw:
                raise ConfigError(f"Threshold '{key}' needs both 'critical' and 'warning'")
            try:
                bands[category] = ThresholdBand(critical=float(raw["critical"]), warning=float(raw["warning"]))
            except (TypeError, ValueError):
                raise ConfigError(f"Threshold '{key}' bounds must be numbers")
        return cls(bands=bands)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            category.key: {"critical": band.critical, "warning": band.warning}
            for category, band in self.bands.items()
        }


def _validate_band(category: MetricCategory, band: ThresholdBand) -> None:
    if category.direction == Direction.LOWER_IS_WORSE and band.critical > band.warning:
        raise ConfigError(
            f"Threshold '{category.key}': critical ({band.critical}) must not be above "
            f"warning ({band.warning}) for a lower-is-worse metric"
        )
    if category.direction == Direction.HIGHER_IS_WORSE and band.critical < band.warning:
        raise ConfigError(
            f"Threshold '{category.key}': critical ({band.critical}) must not be below "
            f"warning ({band.warning}) for a higher-is-worse metric"
        )


class ThresholdsBuilder:
    """One typed setter per category."""

    def __init__(self, base: Optional[PerformanceThresholds] = None):
        self._bands: Dict[MetricCategory, ThresholdBand] = dict(base.bands) if base else {}

    def set(self, category: MetricCategory, critical: float, warning: float) -> "ThresholdsBuilder":
        self._bands[category] = ThresholdBand(critical=critical, warning=warning)
        return self

    def rating(self, critical: float, warning: float) -> "ThresholdsBuilder":
        return self.set(MetricCategory.RATING, critical, warning)

    def sentiment_negative(self, critical: float, warning: float) -> "ThresholdsBuilder":
        return self.set(MetricCategory.SENTIMENT_NEGATIVE, critical, warning)

    def response_rate(self, critical: float, warning: float) -> "ThresholdsBuilder":
        return self.set(MetricCategory.RESPONSE_RATE, critical, warning)

    def volume_drop(self, critical: float, warning: float) -> "ThresholdsBuilder":
        return self.set(MetricCategory.VOLUME_DROP, critical, warning)

    def review_volume(self, critical: float, warning: float) -> "ThresholdsBuilder":
        return self.set(MetricCategory.REVIEW_VOLUME, critical, warning)

    def build(self) -> PerformanceThresholds:
        return PerformanceThresholds(bands=dict(self._bands))


DEFAULT_THRESHOLDS = (
    PerformanceThresholds.builder()
    .rating(critical=3.0, warning=3.5)
    .sentiment_negative(critical=40, warning=25)
    .response_rate(critical=30, warning=50)
    .volume_drop(critical=50, warning=25)
    .build()
)


def load_thresholds(path: Optional[Path]) -> PerformanceThresholds:
    """Thresholds from a JSON file, or the defaults when no path is given."""
    if path is None:
        return DEFAULT_THRESHOLDS
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read thresholds file {path}: {e}")
    thresholds = PerformanceThresholds.from_dict(data)
    logger.info(f"Loaded {len(thresholds)} threshold categories from {path}")
    return thresholds
