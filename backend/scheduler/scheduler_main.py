#!/usr/bin/env python3
"""
Ads Alerts Scheduler - hourly notification runs

Every poll the scheduler checks which notification kinds are due in the
current JST hour and runs each of them once per hour:
1. Daily report (prior day's numbers)
2. Update notification
3. Alert digest (current numbers evaluated against the users' targets)
"""
import signal
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

# Add the parent directory to the import path
sys.path.insert(0, str(Path(__file__).parent.parent))

from alerts.repository import create_alert_repository
from alerts.store import AlertStore
from database import SessionLocal, init_db
from scheduler.config import ScheduleSettings, load_schedule_settings
from scheduler.dispatcher import DispatchSummary, NotificationDispatcher, NotificationKind
from scheduler.event_logger import EventType, log_scheduler_event
from scheduler.notifications import ChatworkSink
from scheduler.send_gate import create_send_gate
from sources.metrics_source import MetaMetricsSource
from sources.settings_provider import DbSettingsProvider
from utils.logging_setup import get_logger, setup_logging
from utils.time_utils import get_jst_time_aware, to_jst

# Order in which kinds due in the same hour are run
KIND_ORDER = [NotificationKind.DAILY, NotificationKind.UPDATE, NotificationKind.ALERT]


def is_quiet_time(settings: ScheduleSettings, now: datetime) -> bool:
    """Quiet hours check; start > end means the range wraps midnight"""
    quiet_hours = settings.quiet_hours
    if not quiet_hours.enabled:
        return False

    start = datetime.strptime(quiet_hours.start, "%H:%M").time()
    end = datetime.strptime(quiet_hours.end, "%H:%M").time()
    current_time = to_jst(now).time()

    if start > end:
        return current_time >= start or current_time < end
    return start <= current_time < end


class AlertsScheduler:
    """Runs the dispatcher for every notification kind due in the current hour"""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        settings: Optional[ScheduleSettings] = None,
        clock: Callable[[], datetime] = get_jst_time_aware,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.dispatcher = dispatcher
        self.settings = settings or ScheduleSettings()
        self.clock = clock
        self.sleep = sleep
        self.logger = get_logger(service="scheduler")

        self.should_stop = False
        self.is_running = False
        self.cycle_count = 0
        self._last_runs: Dict[str, Tuple] = {}
        self._quiet_skip_logged: Optional[Tuple] = None

    def handle_signal(self, signum, frame):
        """Stop after the current cycle"""
        signal_names = {
            signal.SIGTERM: "SIGTERM",
            signal.SIGINT: "SIGINT",
        }
        signal_name = signal_names.get(signum, f"SIGNAL_{signum}")

        self.logger.warning(f"Received {signal_name} ({signum}), shutting down...")
        log_scheduler_event(EventType.SIGNAL_RECEIVED, f"Received {signal_name} ({signum})", logger=self.logger)
        self.should_stop = True

    def due_kinds(self, now: datetime) -> List[NotificationKind]:
        """Kinds scheduled for this hour that have not run in it yet"""
        now = to_jst(now)
        if is_quiet_time(self.settings, now):
            return []

        bucket = (now.date(), now.hour)
        return [
            kind for kind in KIND_ORDER
            if now.hour in self.settings.hours_for(kind.value)
            and self._last_runs.get(kind.value) != bucket
        ]

    def run_once(self, now: Optional[datetime] = None) -> List[DispatchSummary]:
        """Run every due kind once; returns the cycle summaries"""
        now = to_jst(now or self.clock())
        summaries = []

        if is_quiet_time(self.settings, now):
            self._log_quiet_skip(now)
            return summaries

        for kind in self.due_kinds(now):
            self._last_runs[kind.value] = (now.date(), now.hour)
            self.cycle_count += 1
            log_scheduler_event(EventType.CYCLE_STARTED, f"{kind.value} cycle started", kind=kind.value, logger=self.logger)

            try:
                summary = self.dispatcher.run_dispatch_cycle(kind)
            except Exception as e:
                self.logger.exception(f"{kind.value} cycle crashed: {e}")
                log_scheduler_event(EventType.CYCLE_ERROR, str(e), kind=kind.value, logger=self.logger)
                continue

            log_scheduler_event(
                EventType.CYCLE_COMPLETED,
                f"{kind.value} cycle completed",
                kind=kind.value,
                extra_data=summary.to_dict(),
                logger=self.logger,
            )
            summaries.append(summary)

        return summaries

    def _log_quiet_skip(self, now: datetime):
        """Record kinds scheduled for this hour that quiet hours hold back, once per hour"""
        bucket = (now.date(), now.hour)
        skipped = [kind.value for kind in KIND_ORDER if now.hour in self.settings.hours_for(kind.value)]
        if not skipped or self._quiet_skip_logged == bucket:
            return

        self._quiet_skip_logged = bucket
        log_scheduler_event(
            EventType.QUIET_HOURS_SKIP,
            f"Quiet hours, skipped: {', '.join(skipped)}",
            extra_data={"skipped_kinds": skipped},
            logger=self.logger,
        )

    def run(self):
        """Main scheduler loop"""
        signal.signal(signal.SIGTERM, self.handle_signal)
        signal.signal(signal.SIGINT, self.handle_signal)

        self.is_running = True
        self.logger.info("=" * 60)
        self.logger.info("Ads Alerts Scheduler started")
        self.logger.info(f"   Daily report hours: {self.settings.daily_report_hours}")
        self.logger.info(f"   Update hours: {self.settings.update_hours}")
        self.logger.info(f"   Alert hours: {self.settings.alert_hours}")
        self.logger.info("=" * 60)
        log_scheduler_event(
            EventType.SCHEDULER_LOOP_STARTED, "Main loop started",
            extra_data=self.settings.to_dict(), logger=self.logger,
        )

        while not self.should_stop:
            self.run_once()
            self._sleep_until_next_poll()

        self.is_running = False
        self.logger.warning("Scheduler stopped")
        log_scheduler_event(
            EventType.SCHEDULER_STOPPED, "Scheduler stopped",
            extra_data={"total_cycles": self.cycle_count}, logger=self.logger,
        )

    def _sleep_until_next_poll(self):
        """Sleep in one-second steps so a signal is honoured quickly"""
        deadline = self.clock() + timedelta(seconds=self.settings.poll_interval_seconds)
        while self.clock() < deadline and not self.should_stop:
            self.sleep(1)


def build_dispatcher() -> NotificationDispatcher:
    """Wire the dispatcher to the database, Meta, Chatwork and the send gate"""
    settings_provider = DbSettingsProvider(SessionLocal)
    return NotificationDispatcher(
        settings_provider=settings_provider,
        metrics_source=MetaMetricsSource(settings_provider, SessionLocal),
        alert_store=AlertStore(create_alert_repository()),
        sink=ChatworkSink(),
        send_gate=create_send_gate(),
    )


def main():
    """Entry point"""
    setup_logging()
    logger = get_logger(service="scheduler")

    try:
        init_db()
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        sys.exit(1)

    scheduler = AlertsScheduler(build_dispatcher(), load_schedule_settings())
    log_scheduler_event(EventType.STARTED, "Scheduler started", logger=logger)

    try:
        scheduler.run()
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
    except Exception as e:
        logger.exception(f"Critical error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
