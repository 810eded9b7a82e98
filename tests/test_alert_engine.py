"""
Tests for the AlertEngine: threshold, trend and comparison alerts,
deduplication, acknowledgement and notification side effects.

Usage:
    pytest tests/test_alert_engine.py -v
"""

import threading
from unittest.mock import MagicMock

import pytest

from src.alerts.alert_engine import AlertEngine
from src.alerts.alert_models import (
    ActionType,
    AlertSeverity,
    NotificationAction,
    NotificationRule,
    RuleKind,
)
from src.alerts.alert_store import InMemoryAlertStore
from src.alerts.thresholds import PerformanceThresholds
from src.analytics.analysis_models import TrendDirection
from src.analytics.metrics_aggregator import MetricsAggregator
from src.analytics.period_comparator import (
    ComparisonMetrics,
    MetricComparison,
    SentimentComparison,
    StaffComparison,
    ThemeComparison,
)
from src.notifications.notifier import DashboardChannel, NotificationChannel, NotificationDispatcher
from src.reviews.review_models import Review

BUSINESS = "Cafe Nord"


def make_review(review_id, rating, response=None) -> Review:
    return Review(review_id=review_id, rating=rating, owner_response=response)


def make_metric(current, previous, trend) -> MetricComparison:
    change = round(current - previous, 2)
    change_percent = round(change / previous * 100, 2) if previous else 0.0
    return MetricComparison(
        current=current, previous=previous, change=change, change_percent=change_percent, trend=trend
    )


def make_comparison(rating=None, negative=None, volume=None, response=None) -> ComparisonMetrics:
    stable = make_metric(1.0, 1.0, TrendDirection.STABLE)
    return ComparisonMetrics(
        current_label="Last 30 Days",
        previous_label="Previous 30 Days",
        review_count=volume or stable,
        average_rating=rating or stable,
        response_rate=response or stable,
        negative_sentiment=negative or stable,
        sentiment=SentimentComparison(),
        themes=ThemeComparison(),
        staff_mentions=StaffComparison(),
    )


class FailingEmailChannel(NotificationChannel):
    action_type = ActionType.EMAIL

    def send(self, action, alert):
        raise ConnectionError("smtp down")


class RecordingEmailChannel(NotificationChannel):
    action_type = ActionType.EMAIL

    def __init__(self):
        self.sent = []

    def send(self, action, alert):
        self.sent.append(alert.id)
        return True


class TestThresholdAlerts:

    def setup_method(self):
        self.engine = AlertEngine(store=InMemoryAlertStore())
        self.thresholds = PerformanceThresholds.builder().rating(critical=3.0, warning=3.5).build()
        # average 2.8
        reviews = [make_review(str(i), r) for i, r in enumerate([3, 3, 3, 3, 2])]
        self.summary = MetricsAggregator().compute(reviews)

    def test_critical_rating_alert(self):
        alerts = self.engine.evaluate(BUSINESS, self.summary, self.thresholds)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.type == "rating"
        assert alert.kind == RuleKind.THRESHOLD
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.title == "Critical Rating Alert"
        assert alert.payload["value"] == 2.8
        assert alert.payload["threshold"] == 3.0
        assert not alert.acknowledged

    def test_warning_severity(self):
        thresholds = PerformanceThresholds.builder().rating(critical=2.5, warning=3.0).build()
        alerts = self.engine.evaluate(BUSINESS, self.summary, thresholds)
        assert [a.severity for a in alerts] == [AlertSeverity.HIGH]
        assert alerts[0].title == "Rating Warning"

    def test_no_breach(self):
        thresholds = PerformanceThresholds.builder().rating(critical=2.0, warning=2.5).build()
        assert self.engine.evaluate(BUSINESS, self.summary, thresholds) == []

    def test_engine_default_thresholds(self):
        alerts = self.engine.evaluate(BUSINESS, self.summary)
        types = {a.type for a in alerts}
        # no responses at all
        assert "rating" in types
        assert "responseRate" in types

    def test_empty_threshold_set_raises_nothing(self):
        assert self.engine.evaluate(BUSINESS, self.summary, PerformanceThresholds()) == []
        engine = AlertEngine(store=InMemoryAlertStore(), thresholds=PerformanceThresholds())
        assert engine.evaluate(BUSINESS, self.summary) == []

    def test_empty_summary_raises_nothing(self):
        empty = MetricsAggregator().compute([])
        assert self.engine.evaluate(BUSINESS, empty, self.thresholds) == []

    def test_duplicate_suppressed(self):
        first = self.engine.evaluate(BUSINESS, self.summary, self.thresholds)
        second = self.engine.evaluate(BUSINESS, self.summary, self.thresholds)

        assert len(first) == 1
        assert second == []
        assert len(self.engine.get_history(BUSINESS)) == 1

    def test_realert_after_acknowledge(self):
        first = self.engine.evaluate(BUSINESS, self.summary, self.thresholds)
        assert self.engine.acknowledge(BUSINESS, first[0].id)

        second = self.engine.evaluate(BUSINESS, self.summary, self.thresholds)
        assert len(second) == 1
        assert second[0].id != first[0].id
        assert len(self.engine.get_history(BUSINESS)) == 2

    def test_businesses_are_independent(self):
        self.engine.evaluate(BUSINESS, self.summary, self.thresholds)
        other = self.engine.evaluate("Bistro Sud", self.summary, self.thresholds)
        assert len(other) == 1

    def test_concurrent_evaluations_create_one_alert(self):
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(self.engine.evaluate(BUSINESS, self.summary, self.thresholds))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(len(r) for r in results) == 1
        assert len(self.engine.get_history(BUSINESS)) == 1


class TestAcknowledge:

    def setup_method(self):
        self.engine = AlertEngine()
        thresholds = PerformanceThresholds.builder().rating(critical=3.0, warning=3.5).build()
        summary = MetricsAggregator().compute([make_review("a", 1)])
        self.alert = self.engine.evaluate(BUSINESS, summary, thresholds)[0]

    def test_acknowledge(self):
        assert self.engine.acknowledge(BUSINESS, self.alert.id) is True
        assert self.engine.get_history(BUSINESS)[0].acknowledged is True

    def test_idempotent(self):
        assert self.engine.acknowledge(BUSINESS, self.alert.id) is True
        assert self.engine.acknowledge(BUSINESS, self.alert.id) is True
        history = self.engine.get_history(BUSINESS)
        assert len(history) == 1
        assert history[0].acknowledged is True

    def test_unknown_id(self):
        assert self.engine.acknowledge(BUSINESS, "alert-missing") is False
        assert self.engine.get_history(BUSINESS)[0].acknowledged is False

    def test_wrong_business(self):
        assert self.engine.acknowledge("Bistro Sud", self.alert.id) is False

    def test_history_is_a_copy(self):
        self.engine.get_history(BUSINESS)[0].acknowledged = True
        assert self.engine.get_history(BUSINESS)[0].acknowledged is False


class TestTrendAlerts:

    def setup_method(self):
        self.engine = AlertEngine()
        self.summary = MetricsAggregator().compute([])

    def evaluate(self, comparison):
        return self.engine.evaluate(BUSINESS, self.summary, comparison=comparison)

    def test_rating_decline(self):
        comparison = make_comparison(rating=make_metric(3.6, 4.2, TrendDirection.DOWN))
        alerts = self.evaluate(comparison)

        assert [a.type for a in alerts] == ["rating_decline"]
        assert alerts[0].kind == RuleKind.TREND
        assert alerts[0].severity == AlertSeverity.HIGH
        assert alerts[0].payload["period"] == "Last 30 Days"

    def test_severe_rating_decline(self):
        comparison = make_comparison(rating=make_metric(3.0, 4.5, TrendDirection.DOWN))
        assert self.evaluate(comparison)[0].severity == AlertSeverity.CRITICAL

    def test_small_decline_ignored(self):
        comparison = make_comparison(rating=make_metric(4.0, 4.2, TrendDirection.DOWN))
        assert self.evaluate(comparison) == []

    def test_negative_sentiment_increase(self):
        comparison = make_comparison(negative=make_metric(35.0, 20.0, TrendDirection.UP))
        alerts = self.evaluate(comparison)
        assert [(a.type, a.severity) for a in alerts] == [("sentiment_shift", AlertSeverity.HIGH)]

    def test_volume_drop(self):
        comparison = make_comparison(volume=make_metric(6, 10, TrendDirection.DOWN))
        alerts = self.evaluate(comparison)
        assert [(a.type, a.severity) for a in alerts] == [("volume_change", AlertSeverity.MEDIUM)]

    def test_response_drop(self):
        comparison = make_comparison(response=make_metric(40.0, 60.0, TrendDirection.DOWN))
        alerts = self.evaluate(comparison)
        assert [(a.type, a.severity) for a in alerts] == [("response_drop", AlertSeverity.MEDIUM)]

    def test_multiple_declines(self):
        comparison = make_comparison(
            rating=make_metric(3.0, 4.5, TrendDirection.DOWN),
            negative=make_metric(45.0, 20.0, TrendDirection.UP),
            volume=make_metric(4, 10, TrendDirection.DOWN),
            response=make_metric(20.0, 60.0, TrendDirection.DOWN),
        )
        alerts = self.evaluate(comparison)
        by_type = {a.type: a for a in alerts}

        assert set(by_type) == {
            "rating_decline", "sentiment_shift", "volume_change", "response_drop", "multiple_declines",
        }
        combined = by_type["multiple_declines"]
        assert combined.kind == RuleKind.COMPARISON
        assert combined.severity == AlertSeverity.CRITICAL
        assert len(combined.payload["declining"]) == 4

    def test_two_declines_is_high(self):
        comparison = make_comparison(
            rating=make_metric(4.0, 4.2, TrendDirection.DOWN),
            volume=make_metric(9, 10, TrendDirection.DOWN),
        )
        alerts = self.evaluate(comparison)
        assert [(a.type, a.severity) for a in alerts] == [("multiple_declines", AlertSeverity.HIGH)]


class TestNotifications:

    def setup_method(self):
        self.thresholds = PerformanceThresholds.builder().rating(critical=3.0, warning=3.5).build()
        self.summary = MetricsAggregator().compute([make_review("a", 2)])

    def test_failed_email_keeps_alert(self):
        dispatcher = NotificationDispatcher([DashboardChannel(), FailingEmailChannel()])
        engine = AlertEngine(dispatcher=dispatcher)

        alerts = engine.evaluate(BUSINESS, self.summary, self.thresholds)

        assert len(alerts) == 1
        history = engine.get_history(BUSINESS)
        assert len(history) == 1
        assert history[0].email_sent is False

    def test_delivered_email_is_recorded(self):
        email = RecordingEmailChannel()
        engine = AlertEngine(dispatcher=NotificationDispatcher([DashboardChannel(), email]))

        alerts = engine.evaluate(BUSINESS, self.summary, self.thresholds)

        assert email.sent == [alerts[0].id]
        assert alerts[0].email_sent is True
        assert engine.get_history(BUSINESS)[0].email_sent is True

    def test_no_email_below_rule_severity(self):
        email = RecordingEmailChannel()
        engine = AlertEngine(dispatcher=NotificationDispatcher([email]))
        # response-rate warning is medium; the default threshold rule wants high+
        thresholds = PerformanceThresholds.builder().response_rate(critical=-1, warning=50).build()

        alerts = engine.evaluate(BUSINESS, self.summary, thresholds)

        assert [a.severity for a in alerts] == [AlertSeverity.MEDIUM]
        assert email.sent == []

    def test_disabled_rule(self):
        channel = MagicMock(spec=NotificationChannel)
        channel.action_type = ActionType.WEBHOOK
        engine = AlertEngine(dispatcher=NotificationDispatcher([channel]))
        engine.set_rules(BUSINESS, [NotificationRule(
            id="hook",
            kind=RuleKind.THRESHOLD,
            enabled=False,
            actions=[NotificationAction(type=ActionType.WEBHOOK, webhook_url="https://hooks.example.com/x")],
        )])

        engine.evaluate(BUSINESS, self.summary, self.thresholds)

        channel.send.assert_not_called()

    def test_custom_rule_runs_action(self):
        channel = MagicMock(spec=NotificationChannel)
        channel.action_type = ActionType.WEBHOOK
        channel.send.return_value = True
        engine = AlertEngine(dispatcher=NotificationDispatcher([channel]))
        action = NotificationAction(type=ActionType.WEBHOOK, webhook_url="https://hooks.example.com/x")
        engine.set_rules(BUSINESS, [NotificationRule(id="hook", kind=RuleKind.THRESHOLD, actions=[action])])

        alerts = engine.evaluate(BUSINESS, self.summary, self.thresholds)

        channel.send.assert_called_once()
        sent_action, sent_alert = channel.send.call_args[0]
        assert sent_action.webhook_url == "https://hooks.example.com/x"
        assert sent_alert.id == alerts[0].id
        assert engine.get_history(BUSINESS)[0].email_sent is False


class TestRules:

    def setup_method(self):
        self.engine = AlertEngine()

    def test_default_rules(self):
        rules = self.engine.get_rules(BUSINESS)
        assert [r.kind for r in rules] == [RuleKind.THRESHOLD, RuleKind.TREND]

        threshold_rule = rules[0]
        assert [a.type for a in threshold_rule.actions] == [ActionType.EMAIL, ActionType.DASHBOARD_ALERT]
        assert threshold_rule.severities == [AlertSeverity.HIGH, AlertSeverity.CRITICAL]
        assert [a.type for a in rules[1].actions] == [ActionType.DASHBOARD_ALERT]

    def test_set_rules_replaces_defaults(self):
        rule = NotificationRule(id="only-trend", kind=RuleKind.TREND)
        self.engine.set_rules(BUSINESS, [rule])
        assert [r.id for r in self.engine.get_rules(BUSINESS)] == ["only-trend"]
        assert len(self.engine.get_rules("Bistro Sud")) == 2

    @pytest.mark.parametrize("severity, applies", [
        (AlertSeverity.CRITICAL, True),
        (AlertSeverity.HIGH, True),
        (AlertSeverity.MEDIUM, False),
    ])
    def test_rule_severity_filter(self, severity, applies):
        rule = self.engine.get_rules(BUSINESS)[0]
        alert = MagicMock(kind=RuleKind.THRESHOLD, severity=severity)
        assert rule.applies_to(alert) is applies
