"""
CRUD operations for alert history
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from database.models import AlertRecord


def get_alert_records(db: Session, user_id: Optional[str] = None) -> List[AlertRecord]:
    """Get stored alerts, optionally for one user"""
    query = db.query(AlertRecord)
    if user_id is not None:
        query = query.filter(AlertRecord.user_id == user_id)
    return query.order_by(AlertRecord.id).all()


def replace_alert_records(db: Session, records: List[AlertRecord]) -> int:
    """
    Replace the whole alert history with the given rows.
    Does not commit: the caller owns the transaction.
    """
    db.query(AlertRecord).delete(synchronize_session=False)
    db.add_all(records)
    db.flush()
    return len(records)
