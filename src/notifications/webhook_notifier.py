"""
Webhook Notifier
================

POSTs a JSON document describing the alert to the URL carried by the
action:

    {"business": "...",
     "alert": {"id", "type", "severity", "title", "message", "timestamp"}}
"""

import logging
from typing import Any, Dict

import requests

from ..alerts.alert_models import ActionType, AnalysisAlert, NotificationAction
from .notifier import NotificationChannel

logger = logging.getLogger(__name__)


def build_webhook_payload(alert: AnalysisAlert) -> Dict[str, Any]:
    return {
        "business": alert.business_name,
        "alert": {
            "id": alert.id,
            "type": alert.type,
            "severity": alert.severity.value,
            "title": alert.title,
            "message": alert.message,
            "timestamp": alert.triggered_at.isoformat(),
        },
    }


class WebhookNotifier(NotificationChannel):
    action_type = ActionType.WEBHOOK

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    def send(self, action: NotificationAction, alert: AnalysisAlert) -> bool:
        if not action.webhook_url:
            logger.warning(f"Webhook action without URL for alert {alert.id}")
            return False

        try:
            response = requests.post(
                action.webhook_url,
                json=build_webhook_payload(alert),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.info(
                f"Webhook notification sent to {action.webhook_url}",
                extra={"business": alert.business_name, "alert_id": alert.id},
            )
            return True
        except requests.RequestException as e:
            logger.error(f"Failed to send webhook notification: {e}")
            return False
