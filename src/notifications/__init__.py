"""
Notifications
=============

Delivery channels for review alerts (dashboard, email, webhook, Slack).
"""

from .email_notifier import EmailNotifier
from .notifier import DashboardChannel, NotificationChannel, NotificationDispatcher
from .slack_notifier import SlackNotifier
from .webhook_notifier import WebhookNotifier, build_webhook_payload

__all__ = [
    "DashboardChannel",
    "EmailNotifier",
    "NotificationChannel",
    "NotificationDispatcher",
    "SlackNotifier",
    "WebhookNotifier",
    "build_webhook_payload",
]
