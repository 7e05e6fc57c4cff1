"""
Ads Alerts Scheduler Package

Hourly daily-report, update and alert-digest notifications.
"""
from scheduler.scheduler_main import AlertsScheduler, main
from scheduler.config import (
    ScheduleSettings,
    QuietHoursSettings,
    get_default_settings,
)
from scheduler.event_logger import log_scheduler_event, EventType
from scheduler.dispatcher import DispatchSummary, NotificationDispatcher, NotificationKind
from scheduler.send_gate import SendGate, InMemorySendGateStore, RedisSendGateStore
from scheduler.notifications import (
    ChatworkSink,
    format_alert_digest,
    format_daily_report,
    format_update_notification,
)

__all__ = [
    # Main class and entry point
    "AlertsScheduler",
    "main",
    # Settings
    "ScheduleSettings",
    "QuietHoursSettings",
    "get_default_settings",
    # Event logging
    "log_scheduler_event",
    "EventType",
    # Dispatch
    "DispatchSummary",
    "NotificationDispatcher",
    "NotificationKind",
    # Send gate
    "SendGate",
    "InMemorySendGateStore",
    "RedisSendGateStore",
    # Notifications
    "ChatworkSink",
    "format_alert_digest",
    "format_daily_report",
    "format_update_notification",
]
