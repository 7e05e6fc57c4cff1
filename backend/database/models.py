"""
Database models for Ads Alerts
Per-user settings, alert history and daily metric snapshots
"""
from sqlalchemy import Column, Integer, String, Boolean, Float, DateTime, Date, Text, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from utils.time_utils import get_jst_time

Base = declarative_base()


# ===== User Models =====

class User(Base):
    """Ads account owner; authentication lives outside this service"""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=True)

    # Status
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=get_jst_time, nullable=False)
    updated_at = Column(DateTime, default=get_jst_time, onupdate=get_jst_time, nullable=False)

    # Relationships
    settings = relationship("UserSettings", back_populates="user", cascade="all, delete-orphan")
    metric_snapshots = relationship("DailyMetricSnapshot", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id='{self.id}', username='{self.username}')>"


class UserSettings(Base):
    """Per-user settings (key-value store)"""
    __tablename__ = "user_settings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    key = Column(String(100), nullable=False, index=True)
    value = Column(JSON, nullable=False)

    # Description
    description = Column(Text, nullable=True)

    # Unique constraint: one key per user
    __table_args__ = (
        UniqueConstraint('user_id', 'key', name='uix_user_settings_key'),
    )

    # Timestamps
    created_at = Column(DateTime, default=get_jst_time, nullable=False)
    updated_at = Column(DateTime, default=get_jst_time, onupdate=get_jst_time, nullable=False)

    # Relationship
    user = relationship("User", back_populates="settings")

    def __repr__(self):
        return f"<UserSettings(user_id='{self.user_id}', key='{self.key}')>"


# ===== Alert Models =====

class AlertRecord(Base):
    """Alert history - one row per (user, metric, bucket date)"""
    __tablename__ = "alert_history"

    id = Column(Integer, primary_key=True, index=True)
    alert_id = Column(String(128), nullable=False)
    user_id = Column(String(64), nullable=False, index=True)

    # Metric
    metric = Column(String(50), nullable=False)  # display name
    metric_id = Column(String(50), nullable=False)
    target_value = Column(Float, nullable=False)
    current_value = Column(Float, nullable=False)

    message = Column(Text, nullable=False)
    severity = Column(String(20), nullable=False, index=True)  # warning / critical
    status = Column(String(20), nullable=False, index=True)  # active / resolved
    data_source = Column(String(20), nullable=False)  # realtime / historical
    synthetic = Column(Boolean, default=False)

    # Remediation
    check_items = Column(JSON, nullable=True)
    improvements = Column(JSON, nullable=True)

    # Aware ISO-8601 timestamp as produced by the evaluator
    timestamp = Column(String(40), nullable=False, index=True)
    bucket_date = Column(Date, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'metric', 'bucket_date', name='uix_alert_identity'),
    )

    def __repr__(self):
        return f"<AlertRecord(user_id='{self.user_id}', metric='{self.metric}', date={self.bucket_date}, severity='{self.severity}')>"


class DailyMetricSnapshot(Base):
    """Daily ads metrics per user - recorded when a daily report is built"""
    __tablename__ = "daily_metric_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Date of stats
    stats_date = Column(Date, nullable=False, index=True)

    # metric id -> value
    values = Column(JSON, nullable=False)

    # Timestamp when the row was recorded
    created_at = Column(DateTime, default=get_jst_time, nullable=False, index=True)

    # Relationship
    user = relationship("User", back_populates="metric_snapshots")

    def __repr__(self):
        return f"<DailyMetricSnapshot(user_id='{self.user_id}', date={self.stats_date})>"
