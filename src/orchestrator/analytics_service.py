"""
ReviewPulse Analytics Service
=============================

Facade exposing the analytics and alerting operations to dashboards,
report exporters and UI alert panels:

    compute_summary      - reviews + config -> AnalysisSummaryData (with health score)
    score_health         - summary -> BusinessHealthScore
    compare_periods      - two disjoint periods -> ComparisonMetrics
    analyze_trends       - reviews -> TrendReport (temporal / historical / seasonal)
    evaluate_alerts      - summary (+ optional comparison) -> new alerts only
    get_alert_history    - all alerts of a business
    acknowledge_alert    - idempotent acknowledgement
    get_notification_rules

Error boundary:
    ConfigError and PeriodOverlapError reach the caller unchanged. Any other
    unexpected exception raised by the computation is logged and surfaced
    as AnalysisUnavailableError, never as a partial summary.

Summaries are memoized in the summary cache (Redis or in-memory) keyed on
the review-set fingerprint, the analysis config and the business name.

Usage:
    from src.orchestrator.analytics_service import ReviewAnalyticsService

    with ReviewAnalyticsService.from_config() as service:
        summary = service.compute_summary(reviews, config, business_name="Cafe Nord")
        alerts = service.evaluate_alerts("Cafe Nord", summary)
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, TypeVar

from pydantic import ValidationError

from ..alerts.alert_engine import AlertEngine
from ..alerts.alert_models import AnalysisAlert, NotificationRule
from ..alerts.alert_store import InMemoryAlertStore, JsonFileAlertStore
from ..alerts.thresholds import PerformanceThresholds, load_thresholds
from ..analytics.analysis_config import DEFAULT_ANALYSIS_CONFIG, AnalysisConfig
from ..analytics.analysis_models import AnalysisSummaryData, BusinessHealthScore
from ..analytics.health_scorer import HealthScorer
from ..analytics.metrics_aggregator import MetricsAggregator
from ..analytics.period_comparator import ComparisonMetrics, PeriodComparator, PeriodData
from ..analytics.serialization import from_jsonable, to_jsonable
from ..analytics.trend_analyzer import TrendAnalyzer, TrendReport
from ..cache.redis_cache import RedisCache, review_fingerprint
from ..core.errors import AnalysisUnavailableError, ReviewAnalyticsError
from ..notifications.email_notifier import EmailNotifier
from ..notifications.notifier import DashboardChannel, NotificationDispatcher
from ..notifications.slack_notifier import SlackNotifier
from ..notifications.webhook_notifier import WebhookNotifier
from ..reviews.review_models import Review
from .config import AppConfig, load_config

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReviewAnalyticsService:
    """Wires the pure analytics components to the alert engine and cache."""

    def __init__(
        self,
        aggregator: Optional[MetricsAggregator] = None,
        scorer: Optional[HealthScorer] = None,
        comparator: Optional[PeriodComparator] = None,
        trend_analyzer: Optional[TrendAnalyzer] = None,
        alert_engine: Optional[AlertEngine] = None,
        cache: Optional[RedisCache] = None,
    ):
        self.aggregator = aggregator or MetricsAggregator()
        self.scorer = scorer or HealthScorer()
        self.comparator = comparator or PeriodComparator(aggregator=self.aggregator)
        self.trend_analyzer = trend_analyzer or TrendAnalyzer()
        self.alert_engine = alert_engine or AlertEngine()
        self.cache = cache

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None) -> "ReviewAnalyticsService":
        """
        Build a service from environment configuration.

        Raises:
            ConfigError: invalid health weights or thresholds file
        """
        config = config or load_config()

        store = (
            JsonFileAlertStore(Path(config.alerts.store_path))
            if config.alerts.store_path
            else InMemoryAlertStore()
        )
        thresholds_path = Path(config.alerts.thresholds_file) if config.alerts.thresholds_file else None
        thresholds = load_thresholds(thresholds_path)

        notif = config.notifications
        dispatcher = NotificationDispatcher([
            DashboardChannel(),
            EmailNotifier(
                smtp_host=notif.smtp_host,
                smtp_port=notif.smtp_port,
                username=notif.smtp_user,
                password=notif.smtp_password,
                sender=notif.smtp_sender,
                default_recipients=notif.email_recipients,
            ),
            WebhookNotifier(),
            SlackNotifier(webhook_url=notif.slack_webhook_url, enabled=notif.slack_enabled),
        ])

        cache = None
        if config.cache.enabled:
            cache = RedisCache(
                redis_url=config.cache.url,
                prefix=config.cache.prefix,
                default_ttl_seconds=config.cache.ttl_seconds,
            )

        return cls(
            scorer=HealthScorer(config.health.weights()),
            alert_engine=AlertEngine(store=store, dispatcher=dispatcher, thresholds=thresholds),
            cache=cache,
        )

    # =========================================================================
    # ERROR BOUNDARY
    # =========================================================================

    def _guarded(self, operation: str, fn: Callable[[], T], business_name: str = "") -> T:
        start = time.monotonic()
        try:
            result = fn()
        except ReviewAnalyticsError:
            raise
        except Exception as e:
            logger.exception(
                f"{operation} failed unexpectedly",
                extra={"business": business_name or None},
            )
            raise AnalysisUnavailableError(f"Analysis unavailable: {operation} failed") from e
        logger.debug(
            f"{operation} completed",
            extra={"business": business_name or None, "duration": round(time.monotonic() - start, 4)},
        )
        return result

    # =========================================================================
    # ANALYTICS
    # =========================================================================

    def compute_summary(
        self,
        reviews: Iterable[Review],
        config: AnalysisConfig = DEFAULT_ANALYSIS_CONFIG,
        business_name: str = "",
        now: Optional[datetime] = None,
    ) -> AnalysisSummaryData:
        """Summary of the configured period with its health score attached."""
        reviews = list(reviews)

        def run() -> AnalysisSummaryData:
            key = None
            if self.cache is not None:
                anchor = now.isoformat() if now is not None else None
                key = self.cache.summary_key(
                    business_name, review_fingerprint(reviews), {"config": config.to_dict(), "now": anchor}
                )
                cached = self._cached_summary(key)
                if cached is not None:
                    return cached

            summary = self.aggregator.compute(reviews, config, now=now, business_name=business_name)
            summary = summary.with_health_score(self.scorer.score(summary))

            if key is not None:
                self.cache.set(key, to_jsonable(summary, AnalysisSummaryData))
            return summary

        return self._guarded("compute_summary", run, business_name)

    def _cached_summary(self, key: str) -> Optional[AnalysisSummaryData]:
        payload = self.cache.get(key)
        if payload is None:
            return None
        try:
            summary = from_jsonable(AnalysisSummaryData, payload)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cached summary {key}: {e.error_count()} errors")
            self.cache.delete(key)
            return None
        logger.debug(f"Summary cache hit {key}")
        return summary

    def score_health(self, summary: AnalysisSummaryData) -> BusinessHealthScore:
        return self._guarded("score_health", lambda: self.scorer.score(summary))

    def compare_periods(self, current: PeriodData, previous: PeriodData) -> ComparisonMetrics:
        """Raises PeriodOverlapError when the periods overlap."""
        return self._guarded("compare_periods", lambda: self.comparator.compare(current, previous))

    def analyze_trends(self, reviews: Iterable[Review]) -> TrendReport:
        return self._guarded("analyze_trends", lambda: self.trend_analyzer.analyze(reviews))

    # =========================================================================
    # ALERTS
    # =========================================================================

    def evaluate_alerts(
        self,
        business_name: str,
        summary: AnalysisSummaryData,
        thresholds: Optional[PerformanceThresholds] = None,
        comparison: Optional[ComparisonMetrics] = None,
    ) -> List[AnalysisAlert]:
        """New alerts created by this evaluation (duplicates suppressed)."""
        return self._guarded(
            "evaluate_alerts",
            lambda: self.alert_engine.evaluate(business_name, summary, thresholds, comparison),
            business_name,
        )

    def get_alert_history(self, business_name: str) -> List[AnalysisAlert]:
        return self.alert_engine.get_history(business_name)

    def acknowledge_alert(self, business_name: str, alert_id: str) -> bool:
        return self.alert_engine.acknowledge(business_name, alert_id)

    def get_notification_rules(self, business_name: str) -> List[NotificationRule]:
        return self.alert_engine.get_rules(business_name)

    def set_notification_rules(self, business_name: str, rules: List[NotificationRule]) -> None:
        self.alert_engine.set_rules(business_name, rules)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self):
        if self.cache is not None:
            self.cache.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
