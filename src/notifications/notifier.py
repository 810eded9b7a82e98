"""
Notification Dispatch
=====================

Side channels invoked by the alert engine once an alert is persisted.

A channel handles one ActionType. The dispatcher routes an action to its
channel and converts every failure (unknown type, channel error,
delivery refused) into ``False``; nothing raises back into alert
evaluation.

Usage:
    dispatcher = NotificationDispatcher([DashboardChannel(), SlackNotifier()])
    ok = dispatcher.send(action, alert)
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from ..alerts.alert_models import ActionType, AnalysisAlert, NotificationAction

logger = logging.getLogger(__name__)


class NotificationChannel(ABC):
    """Delivery for one action type."""

    action_type: ActionType

    @abstractmethod
    def send(self, action: NotificationAction, alert: AnalysisAlert) -> bool:
        """Deliver ``alert``. Returns True when delivered."""

    def is_configured(self) -> bool:
        return True


class DashboardChannel(NotificationChannel):
    """The persisted, unacknowledged alert is the dashboard flag; nothing to send."""

    action_type = ActionType.DASHBOARD_ALERT

    def send(self, action, alert):
        return True


class NotificationDispatcher:
    """Routes actions to channels; never raises."""

    def __init__(self, channels: Optional[Iterable[NotificationChannel]] = None):
        self._channels: Dict[ActionType, NotificationChannel] = {}
        for channel in channels if channels is not None else [DashboardChannel()]:
            self.register(channel)

    def register(self, channel: NotificationChannel) -> None:
        self._channels[channel.action_type] = channel

    def channel_for(self, action_type: ActionType) -> Optional[NotificationChannel]:
        return self._channels.get(action_type)

    def send(self, action: NotificationAction, alert: AnalysisAlert) -> bool:
        channel = self._channels.get(action.type)
        if channel is None:
            logger.warning(
                f"No channel registered for action '{action.type.value}'",
                extra={"business": alert.business_name, "alert_id": alert.id},
            )
            return False

        try:
            delivered = bool(channel.send(action, alert))
        except Exception as e:
            logger.error(
                f"Notification action '{action.type.value}' failed: {e}",
                exc_info=True,
                extra={"business": alert.business_name, "alert_id": alert.id},
            )
            return False

        if not delivered:
            logger.warning(
                f"Notification action '{action.type.value}' was not delivered",
                extra={"business": alert.business_name, "alert_id": alert.id},
            )
        return delivered
