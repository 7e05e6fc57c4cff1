"""
Notification dispatcher - one pass over all active users for one notification kind
"""
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from alerts.evaluator import evaluate
from alerts.models import AlertStatus, DataSource
from alerts.store import AlertStore
from scheduler import notifications
from scheduler.config import DASHBOARD_URL, PACING_SECONDS
from scheduler.send_gate import SendGate
from sources.base import MetricsSource, SettingsProvider
from utils.logging_setup import clear_context, get_logger, set_context
from utils.time_utils import get_jst_time_aware


class NotificationKind(str, Enum):
    DAILY = "daily"
    UPDATE = "update"
    ALERT = "alert"


SENT = "sent"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass
class DispatchSummary:
    kind: str
    total: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class NotificationDispatcher:
    """
    Fetch -> gate -> render -> send, user by user.

    Users are handled one after another with a pause between them. A failure
    of one user is logged and counted; the rest of the batch still runs.
    """

    def __init__(
        self,
        settings_provider: SettingsProvider,
        metrics_source: MetricsSource,
        alert_store: AlertStore,
        sink,
        send_gate: Optional[SendGate] = None,
        pacing_seconds: float = PACING_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = get_jst_time_aware,
        dashboard_url: str = DASHBOARD_URL,
    ):
        self.settings_provider = settings_provider
        self.metrics_source = metrics_source
        self.alert_store = alert_store
        self.sink = sink
        self.send_gate = send_gate or SendGate(clock=clock)
        self.pacing_seconds = pacing_seconds
        self.sleep = sleep
        self.clock = clock
        self.dashboard_url = dashboard_url

    def run_dispatch_cycle(self, kind) -> DispatchSummary:
        """
        Send one notification kind to every active user.

        Never raises: errors are logged and counted in the summary.
        """
        kind = NotificationKind(kind)
        summary = DispatchSummary(kind=kind.value)
        logger = get_logger(service="scheduler", function=kind.value)

        try:
            users = self.settings_provider.active_users()
        except Exception as e:
            logger.error(f"Could not list active users: {e}")
            return summary

        summary.total = len(users)
        logger.info(f"Dispatch {kind.value}: {len(users)} user(s)")

        for i, user_id in enumerate(users):
            if i > 0 and self.pacing_seconds > 0:
                self.sleep(self.pacing_seconds)

            user_logger = logger.bind(user_id=user_id)
            set_context(user_id=user_id, function=kind.value)
            try:
                outcome = self._dispatch_user(kind, user_id, user_logger)
            except Exception as e:
                user_logger.exception(f"{kind.value} notification failed: {e}")
                outcome = FAILED
            finally:
                clear_context()

            if outcome == SENT:
                summary.sent += 1
            elif outcome == SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1

        logger.info(
            f"Dispatch {kind.value} done: {summary.sent} sent, "
            f"{summary.skipped} skipped, {summary.failed} failed"
        )
        return summary

    def _dispatch_user(self, kind: NotificationKind, user_id: str, logger) -> str:
        if not self.settings_provider.notification_settings(user_id).is_enabled(kind.value):
            logger.info(f"{kind.value} notifications disabled")
            return SKIPPED

        now = self.clock()

        # Fetching
        if kind == NotificationKind.DAILY:
            snapshot = self.metrics_source.fetch_snapshot(user_id, date_preset="yesterday")
            if snapshot is None:
                logger.info("No data for the daily report")
                return SKIPPED
        elif kind == NotificationKind.ALERT:
            active = self._refresh_alerts(user_id, now, logger)
            if not active:
                logger.info("No active alerts")
                return SKIPPED

        credentials = self.settings_provider.channel_credentials(user_id)
        if credentials is None:
            logger.warning("Chat credentials missing")
            return SKIPPED

        # Gating
        if not self.send_gate.try_acquire(user_id, kind.value, now):
            return SKIPPED

        # Rendering
        if kind == NotificationKind.DAILY:
            message = notifications.format_daily_report(snapshot.values, snapshot.date, self.dashboard_url)
        elif kind == NotificationKind.UPDATE:
            message = notifications.format_update_notification(self.dashboard_url)
        else:
            message = notifications.format_alert_digest(active, now.date(), {"dashboard": self.dashboard_url})

        # Sending
        if not self.sink.send(credentials, message):
            logger.error(f"{kind.value} notification was not delivered")
            return FAILED

        logger.info(f"{kind.value} notification sent")
        return SENT

    def _refresh_alerts(self, user_id: str, now: datetime, logger):
        """Evaluate the current snapshot, store the result, return the active alerts."""
        snapshot = self.metrics_source.fetch_snapshot(user_id)
        if snapshot is not None:
            alerts = evaluate(
                snapshot,
                self.settings_provider.targets(user_id),
                user_id,
                data_source=DataSource.REALTIME,
                now=now,
            )
            if alerts and not self.alert_store.merge(alerts):
                logger.warning(f"{len(alerts)} alert(s) could not be stored")
        else:
            logger.info("No current metrics, using stored alerts")

        return self.alert_store.query(user_id, AlertStatus.ACTIVE)
