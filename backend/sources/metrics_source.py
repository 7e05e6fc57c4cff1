"""
Metrics source - live snapshots from the ads platform, series from recorded days
"""
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from alerts.models import MetricSnapshot
from database import crud
from sources import meta_api
from sources.base import MetricsSourceError
from sources.settings_provider import DbSettingsProvider
from utils.logging_setup import get_logger
from utils.time_utils import get_jst_date

logger = get_logger(service="meta_api")

# Normalized insight keys stored with each snapshot
SNAPSHOT_METRICS = [
    "spend", "impressions", "reach", "clicks", "ctr", "cpm", "cpc",
    "conversions", "cpa", "cvr", "budget_rate", "frequency",
]


def row_to_snapshot(row: dict, fallback_date: date) -> MetricSnapshot:
    raw_date = row.get("date")
    try:
        snapshot_date = date.fromisoformat(raw_date) if raw_date else fallback_date
    except ValueError:
        snapshot_date = fallback_date
    values = {key: float(row.get(key) or 0) for key in SNAPSHOT_METRICS}
    return MetricSnapshot(date=snapshot_date, values=values)


class MetaMetricsSource:
    """
    fetch_snapshot() asks the ads platform; fetch_series() reads the
    daily_metric_snapshots table, which record_snapshot() fills.
    """

    def __init__(
        self,
        settings_provider: DbSettingsProvider,
        session_factory: Callable[[], Session],
        fetch_daily_stats: Callable = meta_api.fetch_daily_stats,
        today: Callable[[], date] = get_jst_date,
    ):
        self.settings_provider = settings_provider
        self.session_factory = session_factory
        self.fetch_daily_stats = fetch_daily_stats
        self.today = today

    def fetch_snapshot(self, user_id: str, date_preset: str = "today") -> Optional[MetricSnapshot]:
        """
        Latest day for the preset, or None when the account is not configured or has no data.

        Raises:
            MetricsSourceError: when the ads platform request fails
        """
        account = self.settings_provider.ads_account(user_id)
        if account is None:
            logger.bind(user_id=user_id).info("Ads account not configured")
            return None

        rows = self.fetch_daily_stats(
            access_token=account.access_token,
            account_id=account.account_id,
            app_id=account.app_id,
            date_preset=date_preset,
            daily_budget=account.daily_budget,
        )
        if not rows:
            return None

        rows = sorted(rows, key=lambda r: r.get("date") or "")
        snapshot = row_to_snapshot(rows[-1], self.today())

        # Completed days feed the replay history
        if date_preset == "yesterday":
            self.record_snapshot(user_id, snapshot)
        return snapshot

    def fetch_series(self, user_id: str, days: int) -> List[MetricSnapshot]:
        """Recorded days of a user, oldest first, at most `days` of them."""
        if days <= 0:
            return []
        db = self.session_factory()
        try:
            rows = crud.get_daily_snapshots(db, user_id, days)
        except Exception as e:
            raise MetricsSourceError(f"Snapshot history read failed: {e}") from e
        finally:
            db.close()
        return [MetricSnapshot(date=r.stats_date, values=dict(r.values or {})) for r in rows]

    def record_snapshot(self, user_id: str, snapshot: MetricSnapshot) -> bool:
        """Keep a day for later replay; synthetic days are never recorded."""
        if snapshot.synthetic:
            return False
        db = self.session_factory()
        try:
            crud.save_daily_snapshot(db, user_id, snapshot.date, dict(snapshot.values))
            return True
        except Exception as e:
            db.rollback()
            logger.bind(user_id=user_id).error(f"Failed to record snapshot for {snapshot.date}: {e}")
            return False
        finally:
            db.close()
