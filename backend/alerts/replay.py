"""
Historical replay - rebuild alert history from past daily snapshots
"""
import random
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from alerts import catalog
from alerts.config import DEFAULT_BACKFILL_DAYS
from alerts.evaluator import classify, evaluate
from alerts.models import Alert, AlertStatus, DataSource, MetricSnapshot
from alerts.rules import RemediationRules
from sources.base import MetricsSource, SettingsProvider
from utils.logging_setup import get_logger
from utils.time_utils import get_jst_time_aware

logger = get_logger(service="alerts")

# Value ranges of simulated days: (low, high)
SYNTHETIC_RANGES: Dict[str, tuple] = {
    "spend": (1000, 6000),
    "impressions": (1000, 11000),
    "clicks": (10, 210),
    "conversions": (0, 10),
    "ctr": (0, 3),
    "cpm": (500, 2500),
    "cpa": (2000, 12000),
    "cvr": (0, 5),
    "budget_rate": (0, 120),
}
_INTEGER_METRICS = {"spend", "impressions", "clicks", "conversions"}


def synthesize_snapshots(days: int, today: date, rng: Optional[random.Random] = None) -> List[MetricSnapshot]:
    """
    Placeholder days for accounts without any recorded history.

    Values are random within plausible ranges and carry no meaning; every
    snapshot is flagged synthetic. Oldest first, ending yesterday so a
    simulated day never shares a bucket with today's live evaluation.
    """
    rng = rng or random.Random()
    snapshots = []
    for offset in range(days - 1, -1, -1):
        values = {}
        for metric_id, (low, high) in SYNTHETIC_RANGES.items():
            if metric_id in _INTEGER_METRICS:
                values[metric_id] = float(rng.randrange(low, high))
            else:
                values[metric_id] = rng.uniform(low, high)
        snapshots.append(MetricSnapshot(date=today - timedelta(days=offset + 1), values=values, synthetic=True))
    return snapshots


def resolve_statuses(alerts: List[Alert], snapshots: List[MetricSnapshot], targets: Dict[str, float]) -> None:
    """
    An alert is resolved once a later replayed day meets the metric's target.
    Updates alerts in place.
    """
    for alert in alerts:
        target = targets.get(alert.metric_id)
        recovered = any(
            s.date > alert.bucket_date
            and classify(alert.metric_id, catalog.metric_value(s.values, alert.metric_id), target) is None
            for s in snapshots
        )
        alert.status = AlertStatus.RESOLVED if recovered else AlertStatus.ACTIVE


class HistoricalReplay:
    """Runs the evaluator over a user's past days. Never writes to the alert store."""

    def __init__(
        self,
        metrics_source: MetricsSource,
        settings_provider: SettingsProvider,
        simulate_when_empty: bool = False,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = get_jst_time_aware,
        rules: Optional[RemediationRules] = None,
    ):
        self.metrics_source = metrics_source
        self.settings_provider = settings_provider
        self.simulate_when_empty = simulate_when_empty
        self.rng = rng
        self.clock = clock
        self.rules = rules

    def load_series(self, user_id: str, days: int) -> List[MetricSnapshot]:
        """The `days` most recent snapshots, oldest first."""
        series = sorted(self.metrics_source.fetch_series(user_id, days), key=lambda s: s.date)
        series = series[-days:] if days > 0 else []

        if not series and self.simulate_when_empty and days > 0:
            logger.bind(user_id=user_id).warning(
                f"No recorded history, simulating {days} placeholder day(s)"
            )
            series = synthesize_snapshots(days, self.clock().date(), self.rng)
        return series

    def backfill(self, user_id: str, days: int = DEFAULT_BACKFILL_DAYS) -> List[Alert]:
        """
        Alerts for each of the user's last `days` days, newest first.

        Returns:
            Historical alerts; messages are prefixed with their date
        """
        log = logger.bind(user_id=user_id)
        targets = self.settings_provider.targets(user_id)
        if not targets:
            log.info("No targets configured, nothing to replay")
            return []

        series = self.load_series(user_id, days)
        if not series:
            log.info("No historical data to replay")
            return []

        now = self.clock()
        alerts: List[Alert] = []
        for snapshot in series:
            day_alerts = evaluate(
                snapshot,
                targets,
                user_id,
                data_source=DataSource.HISTORICAL,
                now=now,
                rules=self.rules,
            )
            for alert in day_alerts:
                alert.message = f"{snapshot.date.isoformat()}: {alert.message}"
            alerts.extend(day_alerts)

        resolve_statuses(alerts, series, {a.metric_id: a.target_value for a in alerts})

        alerts.sort(key=lambda a: a.timestamp, reverse=True)
        log.info(f"Replayed {len(series)} day(s): {len(alerts)} alert(s)")
        return alerts
