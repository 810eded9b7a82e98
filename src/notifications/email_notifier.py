"""
Email Notifier
==============

Sends alert emails over SMTP (STARTTLS).

Recipients come from the action; when the action lists none, the
configured ALERT_EMAIL_RECIPIENTS are used. Without an SMTP host the
channel is unconfigured and every send reports False.
"""

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

from ..alerts.alert_models import ActionType, AnalysisAlert, NotificationAction
from .notifier import NotificationChannel

logger = logging.getLogger(__name__)


class EmailNotifier(NotificationChannel):
    """Email notification backend using SMTP"""

    action_type = ActionType.EMAIL

    def __init__(
        self,
        smtp_host: str = "",
        smtp_port: int = 587,
        username: str = "",
        password: str = "",
        sender: str = "alerts@reviewpulse.local",
        default_recipients: Optional[List[str]] = None,
        timeout: float = 10,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.sender = sender
        self.default_recipients = list(default_recipients or [])
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.smtp_host)

    def build_message(self, alert: AnalysisAlert, recipients: List[str]) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = f"[{alert.severity.value.upper()}] {alert.business_name}: {alert.title}"
        message["From"] = self.sender
        message["To"] = ", ".join(recipients)

        text = (
            f"{alert.title}\n\n"
            f"{alert.message}\n\n"
            f"Business: {alert.business_name}\n"
            f"Severity: {alert.severity.value}\n"
            f"Triggered: {alert.triggered_at.strftime('%Y-%m-%d %H:%M')} UTC\n"
            f"Alert id: {alert.id}\n"
        )
        body = (
            f"<h2>{html.escape(alert.title)}</h2>"
            f"<p>{html.escape(alert.message)}</p>"
            f"<p><b>Business:</b> {html.escape(alert.business_name)}<br>"
            f"<b>Severity:</b> {alert.severity.value}<br>"
            f"<b>Triggered:</b> {alert.triggered_at.strftime('%Y-%m-%d %H:%M')} UTC</p>"
        )
        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(body, "html"))
        return message

    def send(self, action: NotificationAction, alert: AnalysisAlert) -> bool:
        recipients = action.recipients or self.default_recipients
        if not self.is_configured() or not recipients:
            logger.debug("Email notifications not configured or no recipients")
            return False

        message = self.build_message(alert, recipients)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send alert email to {', '.join(recipients)}: {e}")
            return False

        logger.info(
            f"Alert email sent to {len(recipients)} recipients",
            extra={"business": alert.business_name, "alert_id": alert.id},
        )
        return True
