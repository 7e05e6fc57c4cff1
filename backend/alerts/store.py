"""
Alert store - deduplicated, retention-bounded alert history
"""
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from alerts.config import ALERT_RETENTION_DAYS
from alerts.models import Alert, AlertStatus
from alerts.repository import AlertRepository
from utils.logging_setup import get_logger
from utils.time_utils import get_jst_time_aware

logger = get_logger(service="alerts")


class AlertStore:
    """
    Alert history on top of a repository.

    merge() is a read-modify-write of the whole collection without locking:
    callers must not run two merges against the same repository at once.
    """

    def __init__(
        self,
        repository: AlertRepository,
        retention_days: int = ALERT_RETENTION_DAYS,
        clock: Callable[[], datetime] = get_jst_time_aware,
    ):
        self.repository = repository
        self.retention_days = retention_days
        self.clock = clock

    def merge(self, alerts: List[Alert]) -> bool:
        """
        Merge alerts into the history.

        An alert with the same (user, metric, bucket date) as a stored one replaces
        it in place, unless the incoming alert is simulated and the stored one is
        not; others are appended. Alerts older than the retention window
        are dropped and the whole collection is rewritten.

        Returns:
            True if the history was written, False on a persistence error
        """
        return self._merge(alerts) is not None

    def purge_expired(self) -> int:
        """Drop alerts older than the retention window; returns how many were removed."""
        return self._merge([]) or 0

    def _merge(self, alerts: List[Alert]) -> Optional[int]:
        """Merge and rewrite; returns the number of expired alerts, None on failure."""
        try:
            history = self.repository.load()
        except Exception as e:
            logger.error(f"Alert history read failed, {len(alerts)} alert(s) not saved: {e}")
            return None

        index: Dict[Tuple, int] = {a.identity: i for i, a in enumerate(history)}
        created = 0
        updated = 0
        kept_live = 0

        for alert in alerts:
            position = index.get(alert.identity)
            if position is not None:
                if alert.synthetic and not history[position].synthetic:
                    # Simulated data never replaces a real measurement
                    logger.bind(user_id=alert.user_id).warning(
                        f"Skipping simulated {alert.metric_id} alert for {alert.bucket_date}: "
                        f"a live alert is already stored"
                    )
                    kept_live += 1
                    continue
                history[position] = alert.model_copy(deep=True)
                updated += 1
            else:
                index[alert.identity] = len(history)
                history.append(alert.model_copy(deep=True))
                created += 1

        cutoff = self.clock() - timedelta(days=self.retention_days)
        kept = [a for a in history if a.timestamp > cutoff]
        purged = len(history) - len(kept)

        try:
            self.repository.save(kept)
        except Exception as e:
            logger.error(f"Alert history write failed, previous history left untouched: {e}")
            return None

        logger.info(
            f"Alert history saved: {created} new, {updated} updated, "
            f"{kept_live} simulated skipped, {purged} expired, {len(kept)} total"
        )
        return purged

    def query(self, user_id: str, status: Optional[AlertStatus] = None) -> List[Alert]:
        """Stored alerts of one user, optionally filtered by status. Order is storage order."""
        try:
            history = self.repository.load()
        except Exception as e:
            logger.error(f"Alert history read failed: {e}")
            return []

        return [
            a for a in history
            if a.user_id == user_id and (status is None or a.status == status)
        ]
