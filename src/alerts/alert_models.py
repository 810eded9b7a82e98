"""
Alert Data Models
=================

Alerts raised by the alert engine and the notification rules that decide
which side effects fire for them.

An AnalysisAlert is never deleted; its only mutations are
``acknowledged`` (false -> true, once) and ``email_sent``.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    AlertSeverity.LOW: 0,
    AlertSeverity.MEDIUM: 1,
    AlertSeverity.HIGH: 2,
    AlertSeverity.CRITICAL: 3,
}


class RuleKind(str, Enum):
    """Condition family that produced an alert, and that a rule listens to."""
    THRESHOLD = "threshold"
    TREND = "trend"
    COMPARISON = "comparison"


class ActionType(str, Enum):
    EMAIL = "email"
    DASHBOARD_ALERT = "dashboard_alert"
    WEBHOOK = "webhook"
    SLACK = "slack"


@dataclass
class NotificationAction:
    type: ActionType
    recipients: List[str] = field(default_factory=list)
    webhook_url: Optional[str] = None
    template: Optional[str] = None


@dataclass
class NotificationRule:
    """
    Configuration data: which actions to run for alerts of one kind.

    ``severities`` restricts the rule to those severities; None means all.
    """
    id: str
    kind: RuleKind
    enabled: bool = True
    actions: List[NotificationAction] = field(default_factory=list)
    severities: Optional[List[AlertSeverity]] = None
    business_name: str = ""
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def applies_to(self, alert: "AnalysisAlert") -> bool:
        if not self.enabled or self.kind != alert.kind:
            return False
        return self.severities is None or alert.severity in self.severities


@dataclass
class AnalysisAlert:
    """A triggered notice that a metric crossed a threshold."""
    id: str
    business_name: str
    type: str                               # category key, e.g. "rating", "rating_decline"
    kind: RuleKind
    severity: AlertSeverity
    title: str
    message: str
    triggered_at: datetime = field(default_factory=datetime.utcnow)
    acknowledged: bool = False
    email_sent: bool = False
    payload: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def new_id() -> str:
        return f"alert-{uuid.uuid4().hex}"

    @property
    def dedupe_key(self) -> Tuple[str, str, AlertSeverity]:
        return self.business_name, self.type, self.severity

    def acknowledge(self) -> None:
        self.acknowledged = True


def default_rules(business_name: str = "") -> List[NotificationRule]:
    """
    Rules used when a business has none configured:
    threshold alerts (high, critical) go to email and the dashboard, trend
    alerts (medium and up) to the dashboard only.
    """
    return [
        NotificationRule(
            id=f"default-threshold-{business_name}" if business_name else "default-threshold",
            kind=RuleKind.THRESHOLD,
            actions=[
                NotificationAction(type=ActionType.EMAIL),
                NotificationAction(type=ActionType.DASHBOARD_ALERT),
            ],
            severities=[AlertSeverity.HIGH, AlertSeverity.CRITICAL],
            business_name=business_name,
        ),
        NotificationRule(
            id=f"default-trend-{business_name}" if business_name else "default-trend",
            kind=RuleKind.TREND,
            actions=[NotificationAction(type=ActionType.DASHBOARD_ALERT)],
            severities=[AlertSeverity.MEDIUM, AlertSeverity.HIGH, AlertSeverity.CRITICAL],
            business_name=business_name,
        ),
    ]
