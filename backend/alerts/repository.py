"""
Alert repositories - where the alert history is persisted.

AlertStore only needs load() and save(); any backend offering both works.
"""
import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from pydantic import TypeAdapter
from sqlalchemy.orm import Session

from alerts.config import ALERT_HISTORY_PATH, ALERT_STORE_BACKEND
from alerts.models import Alert
from database import SessionLocal, crud
from database.models import AlertRecord
from utils.logging_setup import get_logger

logger = get_logger(service="database")

_ALERT_LIST = TypeAdapter(List[Alert])


class AlertRepository(Protocol):
    def load(self) -> List[Alert]:
        ...

    def save(self, alerts: List[Alert]) -> None:
        ...


class JsonFileAlertRepository:
    """Alert history as a JSON array in one file"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> List[Alert]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            raw = f.read()
        if not raw.strip():
            return []
        return _ALERT_LIST.validate_json(raw)

    def save(self, alerts: List[Alert]) -> None:
        """Write to a temp file and swap it in, so a failed write keeps the old file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [a.model_dump(mode="json") for a in alerts]

        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


def alert_to_record(alert: Alert) -> AlertRecord:
    return AlertRecord(
        alert_id=alert.id,
        user_id=alert.user_id,
        metric=alert.metric,
        metric_id=alert.metric_id,
        target_value=alert.target_value,
        current_value=alert.current_value,
        message=alert.message,
        severity=alert.severity.value,
        status=alert.status.value,
        data_source=alert.data_source.value,
        synthetic=alert.synthetic,
        check_items=list(alert.check_items),
        improvements=dict(alert.improvements),
        timestamp=alert.timestamp.isoformat(),
        bucket_date=alert.bucket_date,
    )


def record_to_alert(record: AlertRecord) -> Alert:
    return Alert(
        id=record.alert_id,
        user_id=record.user_id,
        metric=record.metric,
        metric_id=record.metric_id,
        target_value=record.target_value,
        current_value=record.current_value,
        message=record.message,
        severity=record.severity,
        status=record.status,
        data_source=record.data_source,
        synthetic=bool(record.synthetic),
        check_items=record.check_items or [],
        improvements=record.improvements or {},
        timestamp=datetime.fromisoformat(record.timestamp),
        bucket_date=record.bucket_date,
    )


class SqlAlertRepository:
    """Alert history in the alert_history table"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def load(self) -> List[Alert]:
        db = self.session_factory()
        try:
            return [record_to_alert(r) for r in crud.get_alert_records(db)]
        finally:
            db.close()

    def save(self, alerts: List[Alert]) -> None:
        """Rewrite the table in one transaction; on failure nothing changes."""
        db = self.session_factory()
        try:
            count = crud.replace_alert_records(db, [alert_to_record(a) for a in alerts])
            db.commit()
            logger.debug(f"Alert history rewritten: {count} rows")
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def create_alert_repository(
    backend: str = ALERT_STORE_BACKEND,
    path: Path = ALERT_HISTORY_PATH,
    session_factory: Optional[Callable[[], Session]] = None,
) -> AlertRepository:
    """Repository selected by ALERT_STORE_BACKEND ("sql" or "json")"""
    if backend == "json":
        logger.info(f"Alert history in {path}")
        return JsonFileAlertRepository(path)
    if backend != "sql":
        raise ValueError(f"Unknown alert store backend: {backend!r}")
    return SqlAlertRepository(session_factory or SessionLocal)
