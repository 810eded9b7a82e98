"""
Slack Notifier
==============

Posts alerts to a Slack incoming webhook.

Configuration:
    SLACK_WEBHOOK_URL: Slack incoming webhook URL (from .env)
    ENABLE_NOTIFICATIONS: "true" to enable notifications (from .env)

An action may carry its own ``webhook_url``, which overrides the
configured one.
"""

import os
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import requests

from ..alerts.alert_models import ActionType, AlertSeverity, AnalysisAlert, NotificationAction
from .notifier import NotificationChannel

logger = logging.getLogger(__name__)

SEVERITY_EMOJI = {
    AlertSeverity.CRITICAL: ":red_circle:",
    AlertSeverity.HIGH: ":orange_circle:",
    AlertSeverity.MEDIUM: ":yellow_circle:",
    AlertSeverity.LOW: ":white_circle:",
}


class SlackNotifier(NotificationChannel):
    """
    Sends Slack notifications for review alerts.

    Uses Slack Incoming Webhooks for simple, stateless notifications.
    """

    action_type = ActionType.SLACK

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        enabled: Optional[bool] = None,
        timeout: float = 10,
    ):
        """
        Args:
            webhook_url: Slack webhook URL (default: from SLACK_WEBHOOK_URL env var)
            enabled: Enable notifications (default: from ENABLE_NOTIFICATIONS env var)
        """
        self.webhook_url = webhook_url or os.getenv("SLACK_WEBHOOK_URL", "")
        enabled_env = os.getenv("ENABLE_NOTIFICATIONS", "false").lower()
        self.enabled = enabled if enabled is not None else (enabled_env == "true")
        self.timeout = timeout

        if self.enabled and not self.webhook_url:
            logger.warning("Slack notifications enabled but SLACK_WEBHOOK_URL not set")
            self.enabled = False

    def is_configured(self) -> bool:
        return bool(self.enabled and self.webhook_url)

    def send(self, action: NotificationAction, alert: AnalysisAlert) -> bool:
        url = action.webhook_url or self.webhook_url
        if not self.enabled or not url:
            logger.debug("Slack notifications disabled or not configured")
            return False

        try:
            response = requests.post(url, json=self._build_message(alert), timeout=self.timeout)
            response.raise_for_status()
            logger.info(
                f"Slack notification sent: {alert.title}",
                extra={"business": alert.business_name, "alert_id": alert.id},
            )
            return True
        except requests.RequestException as e:
            logger.error(f"Failed to send Slack notification: {e}")
            return False

    def _build_message(self, alert: AnalysisAlert) -> Dict[str, Any]:
        """Build Slack message payload."""
        emoji = SEVERITY_EMOJI.get(alert.severity, ":large_blue_circle:")
        return {
            "blocks": [
                {
                    "type": "header",
                    "text": {
                        "type": "plain_text",
                        "text": f"{alert.business_name} - {alert.title}",
                        "emoji": True,
                    }
                },
                {
                    "type": "section",
                    "text": {
                        "type": "mrkdwn",
                        "text": f"{emoji} *{alert.severity.value.upper()}* | `{alert.type}`\n{alert.message}",
                    }
                },
                {
                    "type": "context",
                    "elements": [
                        {
                            "type": "mrkdwn",
                            "text": f"Alert `{alert.id[:14]}` | "
                                    f"{alert.triggered_at.strftime('%Y-%m-%d %H:%M')} UTC | "
                                    f"sent {datetime.utcnow().strftime('%H:%M')} UTC",
                        }
                    ]
                },
            ]
        }
