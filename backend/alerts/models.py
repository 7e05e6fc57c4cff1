"""
Alert and snapshot records
"""
import datetime as dt
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.time_utils import to_jst


class Severity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


class DataSource(str, Enum):
    REALTIME = "realtime"
    HISTORICAL = "historical"


class MetricSnapshot(BaseModel):
    """One dated set of metric values for an ads account"""
    model_config = ConfigDict(frozen=True)

    date: dt.date
    values: Dict[str, float] = Field(default_factory=dict)
    # Placeholder data produced by the simulation mode, never a live measurement
    synthetic: bool = False


class Alert(BaseModel):
    """A metric that missed its target on a given day"""

    id: str
    user_id: str
    metric: str  # display name
    metric_id: str
    target_value: float
    current_value: float
    message: str
    severity: Severity
    timestamp: datetime
    status: AlertStatus = AlertStatus.ACTIVE
    check_items: List[str] = Field(default_factory=list)
    improvements: Dict[str, str] = Field(default_factory=dict)
    data_source: DataSource = DataSource.REALTIME
    bucket_date: date
    synthetic: bool = False

    @property
    def identity(self) -> Tuple[str, str, date]:
        """At most one stored alert exists per identity."""
        return (self.user_id, self.metric, self.bucket_date)

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL

    @field_validator("timestamp")
    @classmethod
    def _aware_timestamp(cls, value: datetime) -> datetime:
        # Naive timestamps are read as JST
        if value.tzinfo is None:
            return to_jst(value)
        return value
