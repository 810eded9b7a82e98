"""
Tests for threshold categories, validation and classification.

Usage:
    pytest tests/test_thresholds.py -v
"""

import json

import pytest

from src.alerts.alert_models import AlertSeverity
from src.alerts.thresholds import (
    DEFAULT_THRESHOLDS,
    Direction,
    MetricCategory,
    PerformanceThresholds,
    ThresholdBand,
    load_thresholds,
)
from src.core.errors import ConfigError


class TestMetricCategory:

    def test_directions_are_fixed(self):
        assert MetricCategory.RATING.direction == Direction.LOWER_IS_WORSE
        assert MetricCategory.RESPONSE_RATE.direction == Direction.LOWER_IS_WORSE
        assert MetricCategory.REVIEW_VOLUME.direction == Direction.LOWER_IS_WORSE
        assert MetricCategory.SENTIMENT_NEGATIVE.direction == Direction.HIGHER_IS_WORSE
        assert MetricCategory.VOLUME_DROP.direction == Direction.HIGHER_IS_WORSE

    def test_from_key(self):
        assert MetricCategory.from_key("sentimentNegative") == MetricCategory.SENTIMENT_NEGATIVE

    def test_unknown_key(self):
        with pytest.raises(ConfigError):
            MetricCategory.from_key("foo")


class TestClassification:

    def setup_method(self):
        self.thresholds = (
            PerformanceThresholds.builder()
            .rating(critical=3.0, warning=3.5)
            .sentiment_negative(critical=40, warning=25)
            .build()
        )

    @pytest.mark.parametrize("value, severity", [
        (2.8, AlertSeverity.CRITICAL),
        (3.0, AlertSeverity.CRITICAL),
        (3.2, AlertSeverity.HIGH),
        (3.5, AlertSeverity.HIGH),
        (3.6, None),
    ])
    def test_lower_is_worse(self, value, severity):
        assert self.thresholds.classify(MetricCategory.RATING, value) == severity

    @pytest.mark.parametrize("value, severity", [
        (45, AlertSeverity.CRITICAL),
        (30, AlertSeverity.MEDIUM),
        (10, None),
    ])
    def test_higher_is_worse(self, value, severity):
        assert self.thresholds.classify(MetricCategory.SENTIMENT_NEGATIVE, value) == severity

    def test_unconfigured_category(self):
        assert self.thresholds.classify(MetricCategory.RESPONSE_RATE, 0) is None


class TestValidation:

    def test_inverted_lower_is_worse_rejected(self):
        with pytest.raises(ConfigError):
            PerformanceThresholds.builder().rating(critical=4.0, warning=3.5).build()

    def test_inverted_higher_is_worse_rejected(self):
        with pytest.raises(ConfigError):
            PerformanceThresholds.builder().sentiment_negative(critical=20, warning=30).build()

    def test_raw_key_rejected(self):
        with pytest.raises(ConfigError):
            PerformanceThresholds(bands={"rating": ThresholdBand(critical=3.0, warning=3.5)})

    def test_from_dict(self):
        thresholds = PerformanceThresholds.from_dict({"rating": {"critical": 3, "warning": 3.5}})
        assert thresholds.get(MetricCategory.RATING) == ThresholdBand(critical=3.0, warning=3.5)
        assert thresholds.to_dict() == {"rating": {"critical": 3.0, "warning": 3.5}}

    @pytest.mark.parametrize("data", [
        {"stars": {"critical": 3, "warning": 4}},
        {"rating": {"critical": 3}},
        {"rating": {"critical": "low", "warning": 4}},
        {"rating": {"critical": 4.5, "warning": 3.5}},
        ["rating"],
    ])
    def test_from_dict_rejects(self, data):
        with pytest.raises(ConfigError):
            PerformanceThresholds.from_dict(data)

    def test_builder_from_base(self):
        thresholds = PerformanceThresholds.builder(DEFAULT_THRESHOLDS).rating(critical=2.0, warning=2.5).build()
        assert thresholds.get(MetricCategory.RATING).critical == 2.0
        assert thresholds.get(MetricCategory.RESPONSE_RATE) == DEFAULT_THRESHOLDS.get(MetricCategory.RESPONSE_RATE)


class TestLoadThresholds:

    def test_defaults_without_path(self):
        assert load_thresholds(None) is DEFAULT_THRESHOLDS

    def test_load_file(self, tmp_path):
        path = tmp_path / "thresholds.json"
        path.write_text(json.dumps({"responseRate": {"critical": 20, "warning": 40}}))
        thresholds = load_thresholds(path)
        assert len(thresholds) == 1
        assert thresholds.classify(MetricCategory.RESPONSE_RATE, 35) == AlertSeverity.MEDIUM

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "thresholds.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            load_thresholds(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_thresholds(tmp_path / "missing.json")
