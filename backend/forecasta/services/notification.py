"""Alert notifications over email, SMS and in-app channels.

No delivery provider is wired in: the email and SMS senders log the rendered
payload. Delivery failures are returned as receipts, never raised, so the
caller can store them on the alert.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

import structlog

from forecasta.core.config import settings
from forecasta.metrics.prometheus import notifications_sent_total

logger = structlog.get_logger(__name__)

SEVERITY_EMOJI = {"critical": "🚨", "high": "⚠️", "medium": "⚡", "low": "ℹ️"}
SEVERITY_COLOR = {"critical": "#dc2626", "high": "#ea580c", "medium": "#ca8a04", "low": "#2563eb"}
DEFAULT_COLOR = "#6b7280"
FOOTER = "Forecasta AI | Contractor Copilot"


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


def _get(alert: Any, key: str, default: Any = None) -> Any:
    if isinstance(alert, dict):
        return alert.get(key, default)
    return getattr(alert, key, default)


def severity_emoji(severity: str) -> str:
    return SEVERITY_EMOJI.get(severity, "ℹ️")


def severity_color(severity: str) -> str:
    return SEVERITY_COLOR.get(severity, DEFAULT_COLOR)


def _log_email(message: EmailMessage) -> None:
    logger.info("notification_email", to=message.to, subject=message.subject, body=message.text)


def _log_sms(to: str, body: str) -> None:
    logger.info("notification_sms", to=to, body=body)


class NotificationService:
    def __init__(
        self,
        email_sender: Optional[Callable[[EmailMessage], None]] = None,
        sms_sender: Optional[Callable[[str, str], None]] = None,
        base_url: Optional[str] = None,
    ):
        self.email_sender = email_sender or _log_email
        self.sms_sender = sms_sender or _log_sms
        self.base_url = (base_url or settings.app_base_url).rstrip("/")

    def alert_url(self, alert: Any) -> str:
        return f"{self.base_url}/contractor/alerts/{_get(alert, 'id')}"

    # ------------------------------------------------------------ rendering

    def build_email(self, alert: Any, to: str) -> EmailMessage:
        severity = _get(alert, "severity", "low")
        emoji = severity_emoji(severity)
        color = severity_color(severity)
        title = _get(alert, "title", "")
        message = _get(alert, "message", "")
        actions = list(_get(alert, "recommended_actions") or [])[:3]
        url = self.alert_url(alert)

        subject = f"{emoji} {title}"

        lines = [title, "", message, "", "Top Actions:"]
        for i, a in enumerate(actions, start=1):
            lines.append(f"{i}. {a.get('action')} ({a.get('estimated_time') or 'Quick'})")
        lines += ["", "View full alert and take action:", url, "", "---", FOOTER]
        text = "\n".join(lines).strip()

        action_html = "".join(
            f'<div class="action-item"><strong>{i}. {html.escape(str(a.get("action")))}</strong><br>'
            f'<small>⏱️ {html.escape(str(a.get("estimated_time") or "Quick"))} | '
            f'📁 {html.escape(str(a.get("category") or ""))}</small></div>'
            for i, a in enumerate(actions, start=1)
        )
        body_html = f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
    .header {{ background: {color}; color: white; padding: 20px; border-radius: 8px 8px 0 0; }}
    .content {{ padding: 20px; background: #f9f9f9; }}
    .actions {{ background: white; padding: 15px; border-left: 4px solid {color}; margin: 15px 0; }}
    .action-item {{ margin: 10px 0; }}
    .btn {{ display: inline-block; padding: 12px 24px; background: #2563eb; color: white; text-decoration: none; border-radius: 6px; }}
    .footer {{ padding: 15px; font-size: 12px; color: #666; text-align: center; }}
  </style>
</head>
<body>
  <div class="header"><h1>{emoji} {html.escape(title)}</h1></div>
  <div class="content">
    <p><strong>{html.escape(message)}</strong></p>
    <div class="actions"><h3>Recommended Actions:</h3>{action_html}</div>
    <a href="{url}" class="btn">View Full Alert &amp; Take Action</a>
  </div>
  <div class="footer">{FOOTER}<br><a href="{self.base_url}/contractor/alerts/settings">Manage Alert Settings</a></div>
</body>
</html>"""

        return EmailMessage(to=to, subject=subject, html=body_html, text=text)

    def build_sms(self, alert: Any) -> str:
        emoji = severity_emoji(_get(alert, "severity", "low"))
        actions = list(_get(alert, "recommended_actions") or [])
        parts = [f"{emoji} {_get(alert, 'title', '')}", "", _get(alert, "message", "")]
        if actions:
            parts += ["", f"Top action: {actions[0].get('action')}"]
        parts += ["", f"View: {self.alert_url(alert)}"]
        return "\n".join(parts)

    # ------------------------------------------------------------- delivery

    def send_alert_notification(
        self,
        alert: Any,
        channels: Iterable[str],
        recipients: dict[str, Optional[str]],
    ) -> list[dict[str, Any]]:
        receipts: list[dict[str, Any]] = []

        for channel in dict.fromkeys(channels or []):
            if channel == "email" and not recipients.get("email"):
                logger.info("notification_skipped", channel=channel, alert_id=str(_get(alert, "id")), reason="no email on file")
                continue
            if channel == "sms" and not recipients.get("phone"):
                logger.info("notification_skipped", channel=channel, alert_id=str(_get(alert, "id")), reason="no phone on file")
                continue
            if channel not in ("email", "sms", "in_app"):
                logger.warning("notification_unknown_channel", channel=channel)
                continue

            receipt: dict[str, Any] = {"channel": channel, "success": True}
            try:
                if channel == "email":
                    self.email_sender(self.build_email(alert, recipients["email"]))
                elif channel == "sms":
                    self.sms_sender(recipients["phone"], self.build_sms(alert))
                # in_app: the stored alert is the notification
            except Exception as e:
                receipt["success"] = False
                receipt["error"] = str(e)
                logger.warning("notification_failed", channel=channel, alert_id=str(_get(alert, "id")), error=str(e))

            receipt["sent_at"] = datetime.now(timezone.utc).isoformat()
            notifications_sent_total.labels(channel=channel, success=str(receipt["success"]).lower()).inc()
            receipts.append(receipt)

        return receipts

    def send_alert_digest(self, alerts: list[Any], email: str, period: str) -> EmailMessage:
        label = "Daily" if period == "daily" else "Weekly"
        icon = "📅" if period == "daily" else "📊"
        subject = f"{icon} {label} Alert Digest: {len(alerts)} alerts"

        lines = [f"{label} Alert Digest", ""]
        for severity in ("critical", "high", "medium", "low"):
            group = [a for a in alerts if _get(a, "severity") == severity]
            if not group:
                continue
            lines.append(f"{severity_emoji(severity)} {severity.upper()} ({len(group)}):")
            lines.extend(f"- {_get(a, 'title')}" for a in group)
            lines.append("")
        lines += ["View all alerts:", f"{self.base_url}/contractor/alerts", "", "---", FOOTER]
        text = "\n".join(lines).strip()

        body_html = "<html><body><pre>" + html.escape(text) + "</pre></body></html>"
        message = EmailMessage(to=email, subject=subject, html=body_html, text=text)
        self.email_sender(message)
        return message
