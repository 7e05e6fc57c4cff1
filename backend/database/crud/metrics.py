"""
CRUD operations for daily metric snapshots
"""
from datetime import date
from typing import Dict, List
from sqlalchemy.orm import Session

from utils.time_utils import get_jst_time
from database.models import DailyMetricSnapshot

# Rows kept per user
MAX_SNAPSHOTS_PER_USER = 100


def save_daily_snapshot(
    db: Session,
    user_id: str,
    stats_date: date,
    values: Dict[str, float],
    keep_last: int = MAX_SNAPSHOTS_PER_USER
) -> DailyMetricSnapshot:
    """
    Save (or overwrite) one day of metrics for a user.
    Only the newest keep_last days are kept per user.
    """
    row = db.query(DailyMetricSnapshot).filter(
        DailyMetricSnapshot.user_id == user_id,
        DailyMetricSnapshot.stats_date == stats_date
    ).first()

    if row:
        row.values = values
        row.created_at = get_jst_time()
    else:
        row = DailyMetricSnapshot(user_id=user_id, stats_date=stats_date, values=values)
        db.add(row)
    db.flush()

    stale = db.query(DailyMetricSnapshot.id).filter(
        DailyMetricSnapshot.user_id == user_id
    ).order_by(DailyMetricSnapshot.stats_date.desc()).offset(keep_last).all()
    stale_ids = [r.id for r in stale]
    if stale_ids:
        db.query(DailyMetricSnapshot).filter(
            DailyMetricSnapshot.id.in_(stale_ids)
        ).delete(synchronize_session=False)

    db.commit()
    if row.id not in stale_ids:
        db.refresh(row)
    return row


def get_daily_snapshots(db: Session, user_id: str, limit: int) -> List[DailyMetricSnapshot]:
    """Get the newest `limit` days for a user, oldest first"""
    rows = db.query(DailyMetricSnapshot).filter(
        DailyMetricSnapshot.user_id == user_id
    ).order_by(DailyMetricSnapshot.stats_date.desc()).limit(limit).all()
    return list(reversed(rows))
