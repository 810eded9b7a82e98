"""
Review Alerts
=============

Threshold, trend and comparison alerts with per-business history.

Modules:
    alert_models - AnalysisAlert, NotificationRule and enums
    thresholds   - Metric categories and critical/warning bounds
    alert_store  - History and rule persistence (memory, JSON file)
    alert_engine - Evaluation, deduplication, acknowledgement
"""

from .alert_models import (
    ActionType,
    AlertSeverity,
    AnalysisAlert,
    NotificationAction,
    NotificationRule,
    RuleKind,
    default_rules,
)
from .thresholds import (
    DEFAULT_THRESHOLDS,
    Direction,
    MetricCategory,
    PerformanceThresholds,
    ThresholdBand,
    load_thresholds,
)
from .alert_store import AlertStore, InMemoryAlertStore, JsonFileAlertStore
from .alert_engine import AlertEngine, TrendAlertLimits
