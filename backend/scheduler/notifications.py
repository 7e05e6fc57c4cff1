"""
Scheduler notifications - Chatwork messaging and message rendering
"""
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

import requests

from alerts import catalog
from alerts.models import Alert, Severity
from scheduler.config import (
    CHATWORK_API_BASE,
    CHATWORK_TIMEOUT_SECONDS,
    DASHBOARD_URL,
    DIGEST_MAX_ALERTS,
    IMPROVEMENT_STRATEGIES_URL,
    IMPROVEMENT_TASKS_URL,
)
from sources.base import ChannelCredentials
from utils.logging_setup import get_logger

logger = get_logger(service="chatwork")

SEVERITY_ICONS = {
    Severity.CRITICAL: "🔴",
    Severity.WARNING: "⚠️",
}

# (label, metric id) in report order
DAILY_REPORT_LINES = [
    ("Spend (total)", "spend"),
    ("Budget rate (avg)", "budget_rate"),
    ("CTR (avg)", "ctr"),
    ("CPM (avg)", "cpm"),
    ("CPA (avg)", "cpa"),
    ("Frequency (avg)", "frequency"),
    ("Conversions", "conversions"),
]


def _date_label(value: date) -> str:
    return f"{value.year}/{value.month}/{value.day}"


def format_daily_report(values: Mapping[str, Any], report_date: date, dashboard_url: str = DASHBOARD_URL) -> str:
    """Summary of one day, every value formatted like the catalog formats it."""
    lines = [f"[info][title]Meta Ads daily report ({_date_label(report_date)})[/title]"]
    for label, metric_id in DAILY_REPORT_LINES:
        value = catalog.metric_value(values, metric_id)
        lines.append(f"{label}: {catalog.format_value(value, metric_id)}")
    lines.append("")
    lines.append("Check the details here:")
    lines.append(f"{dashboard_url}[/info]")
    return "\n".join(lines)


def format_update_notification(dashboard_url: str = DASHBOARD_URL) -> str:
    return (
        "[info][title]Meta Ads update[/title]"
        "The numbers have been refreshed.\n"
        "Please take a look!\n\n"
        "Check the details here:\n"
        f"{dashboard_url}[/info]"
    )


def order_for_digest(alerts: List[Alert]) -> List[Alert]:
    """Critical first; otherwise the incoming order is kept."""
    return sorted(alerts, key=lambda a: 0 if a.is_critical else 1)


def format_alert_digest(
    alerts: List[Alert],
    today: date,
    links: Optional[Dict[str, str]] = None,
    max_alerts: int = DIGEST_MAX_ALERTS,
) -> str:
    """
    One message listing a user's active alerts.

    Args:
        alerts: Active alerts, in storage order
        today: Date shown in the header
        links: dashboard / tasks / strategies URLs (config defaults otherwise)
        max_alerts: Alerts listed before the "+N more" line

    Returns:
        Chatwork-formatted message
    """
    links = {
        "dashboard": DASHBOARD_URL,
        "tasks": IMPROVEMENT_TASKS_URL,
        "strategies": IMPROVEMENT_STRATEGIES_URL,
        **(links or {}),
    }
    ordered = order_for_digest(alerts)

    message = f"[info][title]Meta Ads alerts ({_date_label(today)})[/title]"
    message += "These metrics are off target:\n\n"

    for alert in ordered[:max_alerts]:
        metric_id = alert.metric_id or catalog.metric_id_for(alert.metric)
        icon = SEVERITY_ICONS.get(alert.severity, SEVERITY_ICONS[Severity.WARNING])
        message += (
            f"{icon} {alert.metric}: "
            f"target {catalog.format_value(alert.target_value, metric_id)} → "
            f"actual {catalog.format_value(alert.current_value, metric_id)}\n"
        )

    if len(ordered) > max_alerts:
        message += f"\n+{len(ordered) - max_alerts} more\n"

    message += "\n📊 Details on the dashboard:\n"
    message += f"{links['dashboard']}\n\n"
    message += f"✅ Check items: {links['tasks']}\n"
    message += f"💡 Improvements: {links['strategies']}[/info]"
    return message


class ChatworkSink:
    """Posts messages to a Chatwork room"""

    def __init__(self, base_url: str = CHATWORK_API_BASE, timeout: int = CHATWORK_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def send(self, credentials: ChannelCredentials, message: str) -> bool:
        """
        Send message to the user's Chatwork room.

        Returns:
            True if Chatwork accepted the message
        """
        if credentials is None or not credentials.is_complete():
            logger.warning("Chatwork credentials missing, message not sent")
            return False

        url = f"{self.base_url}/rooms/{credentials.room_id}/messages"
        try:
            response = requests.post(
                url,
                headers={"X-ChatWorkToken": credentials.token},
                data={"body": message},
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error(f"Chatwork exception for room {credentials.room_id}: {e}")
            return False

        if response.status_code != 200:
            logger.error(
                f"Chatwork error for room {credentials.room_id}: "
                f"{response.status_code} {response.text[:200] if response.text else ''}"
            )
            return False

        logger.info(f"Chatwork message sent to room {credentials.room_id}")
        return True
