"""
Alert Engine
============

Evaluates analysis results against thresholds, creates and deduplicates
alerts, keeps the per-business alert history and runs notification rules.

Alert conditions:
    threshold  - a summary metric crosses its critical or warning bound
    trend      - a period comparison shows a large decline in one metric
    comparison - a period comparison shows declines in several metrics

An alert is suppressed while an unacknowledged alert with the same
(business, type, severity) exists. Notification actions run after the
alert is persisted; a failed action leaves ``email_sent`` false and never
rolls the alert back.

Concurrency: one lock per business serialises the
read-history / check / append sequence.

Usage:
    engine = AlertEngine(store=JsonFileAlertStore(path))
    new_alerts = engine.evaluate("Cafe Nord", summary, thresholds)
    engine.acknowledge("Cafe Nord", new_alerts[0].id)
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from ..analytics.analysis_models import AnalysisSummaryData, TrendDirection
from ..analytics.period_comparator import ComparisonMetrics
from ..notifications.notifier import NotificationDispatcher
from .alert_models import (
    ActionType,
    AlertSeverity,
    AnalysisAlert,
    NotificationRule,
    RuleKind,
    default_rules,
)
from .alert_store import AlertStore, InMemoryAlertStore
from .thresholds import (
    DEFAULT_THRESHOLDS,
    Direction,
    MetricCategory,
    PerformanceThresholds,
    metric_value,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrendAlertLimits:
    """Bounds of the trend and comparison conditions."""
    rating_decline_pct: float = 10.0        # % drop of the average rating
    rating_decline_critical_pct: float = 20.0
    negative_increase_pts: float = 10.0     # percentage points of negative sentiment
    negative_increase_critical_pts: float = 20.0
    volume_drop_pct: float = 25.0
    volume_drop_critical_pct: float = 50.0
    response_drop_pts: float = 15.0
    response_drop_high_pts: float = 30.0
    # "Multiple performance declines"
    comparison_negative_pts: float = 5.0
    min_declines: int = 2
    critical_declines: int = 3


DEFAULT_TREND_LIMITS = TrendAlertLimits()


class AlertEngine:
    """Stateful alert evaluation over an injected store."""

    def __init__(
        self,
        store: Optional[AlertStore] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        thresholds: Optional[PerformanceThresholds] = None,
        trend_limits: Optional[TrendAlertLimits] = None,
    ):
        self.store = store or InMemoryAlertStore()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.thresholds = thresholds if thresholds is not None else DEFAULT_THRESHOLDS
        self.trend_limits = trend_limits or DEFAULT_TREND_LIMITS
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, business_name: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(business_name)
            if lock is None:
                lock = self._locks[business_name] = threading.Lock()
            return lock

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def evaluate(
        self,
        business_name: str,
        summary: AnalysisSummaryData,
        thresholds: Optional[PerformanceThresholds] = None,
        comparison: Optional[ComparisonMetrics] = None,
    ) -> List[AnalysisAlert]:
        """
        Evaluate a summary (and optionally a period comparison).

        Returns only the alerts created by this call, in creation order.
        A summary without reviews raises no threshold alert.
        """
        thresholds = thresholds if thresholds is not None else self.thresholds
        now = datetime.utcnow()

        candidates: List[AnalysisAlert] = []
        if summary.is_empty:
            logger.debug(f"No reviews for {business_name}, threshold checks skipped",
                         extra={"business": business_name})
        else:
            candidates.extend(self.threshold_alerts(business_name, summary, thresholds, now))
        if comparison is not None:
            candidates.extend(self.trend_alerts(business_name, comparison, now))
            candidates.extend(self.comparison_alerts(business_name, comparison, now))

        created = []
        with self._lock_for(business_name):
            open_keys = {a.dedupe_key for a in self.store.load_history(business_name) if not a.acknowledged}
            for alert in candidates:
                if alert.dedupe_key in open_keys:
                    logger.debug(
                        f"Suppressed duplicate {alert.severity.value} alert '{alert.type}'",
                        extra={"business": business_name, "category": alert.type,
                               "severity": alert.severity.value},
                    )
                    continue
                self.store.append_alert(business_name, alert)
                open_keys.add(alert.dedupe_key)
                created.append(alert)
                logger.info(
                    f"Alert created: {alert.title}",
                    extra={"business": business_name, "alert_id": alert.id,
                           "category": alert.type, "severity": alert.severity.value},
                )

        if created:
            rules = self.get_rules(business_name)
            for alert in created:
                self._run_actions(business_name, alert, rules)
        return created

    def threshold_alerts(
        self,
        business_name: str,
        summary: AnalysisSummaryData,
        thresholds: PerformanceThresholds,
        now: datetime,
    ) -> List[AnalysisAlert]:
        alerts = []
        for category, band in thresholds:
            value = metric_value(category, summary)
            severity = thresholds.classify(category, value)
            if severity is None:
                continue
            bound = band.critical if severity == AlertSeverity.CRITICAL else band.warning
            alerts.append(self._threshold_alert(business_name, category, severity, value, bound, now))
        return alerts

    def _threshold_alert(
        self,
        business_name: str,
        category: MetricCategory,
        severity: AlertSeverity,
        value: float,
        bound: float,
        now: datetime,
    ) -> AnalysisAlert:
        critical = severity == AlertSeverity.CRITICAL
        below = category.direction == Direction.LOWER_IS_WORSE
        title = f"Critical {category.title} Alert" if critical else f"{category.title} Warning"
        message = (
            f"{category.title} is {value:.1f}{category.unit}, "
            f"{'at or below' if below else 'at or above'} the "
            f"{'critical' if critical else 'warning'} threshold of {bound:g}{category.unit}"
        )
        return AnalysisAlert(
            id=AnalysisAlert.new_id(),
            business_name=business_name,
            type=category.key,
            kind=RuleKind.THRESHOLD,
            severity=severity,
            title=title,
            message=message,
            triggered_at=now,
            payload={
                "category": category.key,
                "value": value,
                "threshold": bound,
                "comparison": "below" if below else "above",
            },
        )

    def trend_alerts(self, business_name: str, comparison: ComparisonMetrics, now: datetime) -> List[AnalysisAlert]:
        """Single-metric declines between the compared periods."""
        lim = self.trend_limits
        period = comparison.current_label
        alerts = []

        def make(alert_type: str, severity: AlertSeverity, title: str, message: str, metric) -> AnalysisAlert:
            return AnalysisAlert(
                id=AnalysisAlert.new_id(),
                business_name=business_name,
                type=alert_type,
                kind=RuleKind.TREND,
                severity=severity,
                title=title,
                message=message,
                triggered_at=now,
                payload={
                    "current": metric.current,
                    "previous": metric.previous,
                    "change": metric.change,
                    "change_percent": metric.change_percent,
                    "period": period,
                },
            )

        rating = comparison.average_rating
        if rating.trend == TrendDirection.DOWN and abs(rating.change_percent) > lim.rating_decline_pct:
            severity = (AlertSeverity.CRITICAL if abs(rating.change_percent) > lim.rating_decline_critical_pct
                        else AlertSeverity.HIGH)
            alerts.append(make(
                "rating_decline", severity, "Rating Decline Detected",
                f"Average rating has decreased by {abs(rating.change_percent):.1f}% ({period})",
                rating,
            ))

        negative = comparison.negative_sentiment
        if negative.change > lim.negative_increase_pts:
            severity = (AlertSeverity.CRITICAL if negative.change > lim.negative_increase_critical_pts
                        else AlertSeverity.HIGH)
            alerts.append(make(
                "sentiment_shift", severity, "Negative Sentiment Increase",
                f"Negative sentiment has increased by {negative.change:.1f} points ({period})",
                negative,
            ))

        volume = comparison.review_count
        if volume.trend == TrendDirection.DOWN and abs(volume.change_percent) > lim.volume_drop_pct:
            severity = (AlertSeverity.CRITICAL if abs(volume.change_percent) > lim.volume_drop_critical_pct
                        else AlertSeverity.MEDIUM)
            alerts.append(make(
                "volume_change", severity, "Review Volume Drop",
                f"Review volume has decreased by {abs(volume.change_percent):.1f}% ({period})",
                volume,
            ))

        response = comparison.response_rate
        if response.trend == TrendDirection.DOWN and abs(response.change) > lim.response_drop_pts:
            severity = AlertSeverity.HIGH if abs(response.change) > lim.response_drop_high_pts else AlertSeverity.MEDIUM
            alerts.append(make(
                "response_drop", severity, "Response Rate Drop",
                f"Response rate has decreased by {abs(response.change):.1f} points ({period})",
                response,
            ))

        return alerts

    def comparison_alerts(
        self,
        business_name: str,
        comparison: ComparisonMetrics,
        now: datetime,
    ) -> List[AnalysisAlert]:
        """One alert when several key metrics decline together."""
        lim = self.trend_limits
        declines = {
            "average_rating": comparison.average_rating.trend == TrendDirection.DOWN,
            "negative_sentiment": comparison.negative_sentiment.change > lim.comparison_negative_pts,
            "response_rate": comparison.response_rate.trend == TrendDirection.DOWN,
            "review_count": comparison.review_count.trend == TrendDirection.DOWN,
        }
        declining = [name for name, down in declines.items() if down]
        if len(declining) < lim.min_declines:
            return []

        severity = AlertSeverity.CRITICAL if len(declining) >= lim.critical_declines else AlertSeverity.HIGH
        return [AnalysisAlert(
            id=AnalysisAlert.new_id(),
            business_name=business_name,
            type="multiple_declines",
            kind=RuleKind.COMPARISON,
            severity=severity,
            title="Multiple Performance Declines",
            message=f"{len(declining)} key metrics are declining compared to {comparison.previous_label}",
            triggered_at=now,
            payload={"declining": declining, "period": comparison.current_label},
        )]

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def _run_actions(self, business_name: str, alert: AnalysisAlert, rules: List[NotificationRule]) -> None:
        email_sent = False
        for rule in rules:
            if not rule.applies_to(alert):
                continue
            for action in rule.actions:
                delivered = self.dispatcher.send(action, alert)
                if delivered and action.type == ActionType.EMAIL:
                    email_sent = True

        if email_sent:
            alert.email_sent = True
            with self._lock_for(business_name):
                # Reload so a concurrent acknowledgement is not overwritten
                for stored in self.store.load_history(business_name):
                    if stored.id == alert.id:
                        stored.email_sent = True
                        self.store.update_alert(business_name, stored)
                        break

    # =========================================================================
    # HISTORY & RULES
    # =========================================================================

    def acknowledge(self, business_name: str, alert_id: str) -> bool:
        """
        Mark an alert acknowledged.

        Idempotent: an already acknowledged alert still returns True.
        Unknown id returns False and changes nothing.
        """
        with self._lock_for(business_name):
            for alert in self.store.load_history(business_name):
                if alert.id != alert_id:
                    continue
                if not alert.acknowledged:
                    alert.acknowledge()
                    self.store.update_alert(business_name, alert)
                    logger.info(
                        f"Alert acknowledged: {alert.title}",
                        extra={"business": business_name, "alert_id": alert_id},
                    )
                return True

        logger.warning(f"Acknowledge failed, unknown alert id {alert_id}",
                       extra={"business": business_name, "alert_id": alert_id})
        return False

    def get_history(self, business_name: str) -> List[AnalysisAlert]:
        return self.store.load_history(business_name)

    def get_rules(self, business_name: str) -> List[NotificationRule]:
        rules = self.store.load_rules(business_name)
        if rules is None:
            return default_rules(business_name)
        return rules

    def set_rules(self, business_name: str, rules: List[NotificationRule]) -> None:
        with self._lock_for(business_name):
            self.store.save_rules(business_name, rules)
        logger.info(f"Saved {len(rules)} notification rules", extra={"business": business_name})
