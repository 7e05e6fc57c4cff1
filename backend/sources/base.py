"""
Collaborator interfaces - metrics source and user settings provider
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from alerts.models import MetricSnapshot


class MetricsSourceError(Exception):
    """The ads platform (or the snapshot store) could not be read"""


@dataclass
class ChannelCredentials:
    """Chatwork credentials of one user"""
    token: str
    room_id: str

    def is_complete(self) -> bool:
        return bool(self.token and self.room_id)


@dataclass
class AdsAccountConfig:
    """Ads platform access of one user"""
    access_token: str
    account_id: str
    app_id: str = ""
    daily_budget: Optional[float] = None


@dataclass
class UserNotificationSettings:
    """Per-user switches for each notification kind"""
    daily_report_enabled: bool = True
    update_notifications_enabled: bool = True
    alert_notifications_enabled: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserNotificationSettings":
        return cls(
            daily_report_enabled=data.get("daily_report_enabled", True) is not False,
            update_notifications_enabled=data.get("update_notifications_enabled", True) is not False,
            alert_notifications_enabled=data.get("alert_notifications_enabled", True) is not False,
        )

    def is_enabled(self, kind: str) -> bool:
        return {
            "daily": self.daily_report_enabled,
            "update": self.update_notifications_enabled,
            "alert": self.alert_notifications_enabled,
        }.get(kind, False)


class MetricsSource(Protocol):
    def fetch_snapshot(self, user_id: str, date_preset: str = "today") -> Optional[MetricSnapshot]:
        ...

    def fetch_series(self, user_id: str, days: int) -> List[MetricSnapshot]:
        ...


class SettingsProvider(Protocol):
    def active_users(self) -> List[str]:
        ...

    def targets(self, user_id: str) -> Dict[str, Any]:
        ...

    def channel_credentials(self, user_id: str) -> Optional[ChannelCredentials]:
        ...

    def notification_settings(self, user_id: str) -> UserNotificationSettings:
        ...
