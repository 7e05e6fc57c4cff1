"""
Pytest configuration and fixtures.
"""
import os
import tempfile
from datetime import date, datetime
from typing import Dict, List, Optional

import pytest

# Test database and log directory, set before any project import
os.environ["DATABASE_URL"] = "sqlite://"
if not os.getenv("ADS_ALERTS_LOG_DIR"):
    os.environ["ADS_ALERTS_LOG_DIR"] = tempfile.mkdtemp(prefix="ads_alerts_logs_")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from alerts.models import Alert, AlertStatus, DataSource, MetricSnapshot, Severity
from database.models import Base
from sources.base import ChannelCredentials, UserNotificationSettings
from utils.time_utils import JST_TZ


@pytest.fixture
def session_factory():
    """In-memory SQLite shared by every session of one test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def make_alert(
    user_id: str = "u1",
    metric_id: str = "ctr",
    metric: str = "CTR",
    bucket_date: date = date(2026, 10, 17),
    timestamp: Optional[datetime] = None,
    severity: Severity = Severity.WARNING,
    status: AlertStatus = AlertStatus.ACTIVE,
    target_value: float = 2.0,
    current_value: float = 1.5,
    message: str = "CTR is below target 2.0% (current: 1.5%)",
) -> Alert:
    return Alert(
        id=f"{metric_id}_{bucket_date.isoformat()}",
        user_id=user_id,
        metric=metric,
        metric_id=metric_id,
        target_value=target_value,
        current_value=current_value,
        message=message,
        severity=severity,
        timestamp=timestamp or datetime(bucket_date.year, bucket_date.month, bucket_date.day, 12, tzinfo=JST_TZ),
        status=status,
        data_source=DataSource.REALTIME,
        bucket_date=bucket_date,
    )


class FakeSettingsProvider:
    def __init__(
        self,
        users: Optional[Dict[str, Dict[str, float]]] = None,
        disabled: Optional[Dict[str, List[str]]] = None,
    ):
        self.users = users if users is not None else {"u1": {"ctr": 2.0}}
        self.disabled = disabled or {}

    def active_users(self) -> List[str]:
        return list(self.users)

    def targets(self, user_id: str) -> Dict[str, float]:
        return dict(self.users.get(user_id, {}))

    def channel_credentials(self, user_id: str) -> Optional[ChannelCredentials]:
        return ChannelCredentials(token=f"token-{user_id}", room_id=f"room-{user_id}")

    def notification_settings(self, user_id: str) -> UserNotificationSettings:
        off = self.disabled.get(user_id, [])
        return UserNotificationSettings(
            daily_report_enabled="daily" not in off,
            update_notifications_enabled="update" not in off,
            alert_notifications_enabled="alert" not in off,
        )


class FakeMetricsSource:
    def __init__(
        self,
        snapshots: Optional[Dict[str, MetricSnapshot]] = None,
        series: Optional[Dict[str, List[MetricSnapshot]]] = None,
        failing: Optional[List[str]] = None,
    ):
        self.snapshots = snapshots or {}
        self.series = series or {}
        self.failing = failing or []
        self.calls = []

    def fetch_snapshot(self, user_id: str, date_preset: str = "today") -> Optional[MetricSnapshot]:
        self.calls.append((user_id, date_preset))
        if user_id in self.failing:
            raise RuntimeError("upstream unavailable")
        return self.snapshots.get(user_id)

    def fetch_series(self, user_id: str, days: int) -> List[MetricSnapshot]:
        return list(self.series.get(user_id, []))


class FakeSink:
    def __init__(self, result: bool = True, raise_for: Optional[List[str]] = None):
        self.result = result
        self.raise_for = raise_for or []
        self.sent = []

    def send(self, credentials: ChannelCredentials, message: str) -> bool:
        if credentials.room_id in self.raise_for:
            raise ConnectionError("sink down")
        self.sent.append((credentials.room_id, message))
        return self.result


class MemoryRepository:
    """load()/save() on a list, optionally failing"""

    def __init__(self, alerts: Optional[List[Alert]] = None):
        self.alerts = list(alerts or [])
        self.fail_load = False
        self.fail_save = False
        self.saves = 0

    def load(self) -> List[Alert]:
        if self.fail_load:
            raise OSError("read failed")
        return [a.model_copy(deep=True) for a in self.alerts]

    def save(self, alerts: List[Alert]) -> None:
        if self.fail_save:
            raise OSError("write failed")
        self.saves += 1
        self.alerts = [a.model_copy(deep=True) for a in alerts]
