"""
User settings provider backed by the per-user key/value settings table
"""
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from alerts.evaluator import evaluate_settings_targets
from database import crud
from sources.base import AdsAccountConfig, ChannelCredentials, UserNotificationSettings
from utils.logging_setup import get_logger

logger = get_logger(service="database")

# user_settings.key holding everything this service needs
SETTINGS_KEY = "ads_alerts"


def is_dispatchable(settings: Dict[str, Any]) -> bool:
    """Chat delivery enabled and both the chat and the ads credentials present"""
    return bool(
        settings.get("enable_chatwork", True) is not False
        and settings.get("chatwork_api_token")
        and settings.get("chatwork_room_id")
        and settings.get("meta_access_token")
    )


class DbSettingsProvider:
    """Reads user configuration; never writes it"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def raw_settings(self, user_id: str) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            return crud.get_user_setting(db, user_id, SETTINGS_KEY) or {}
        finally:
            db.close()

    def active_users(self) -> List[str]:
        db = self.session_factory()
        try:
            users = crud.get_active_users(db)
            result = []
            for user in users:
                settings = crud.get_user_setting(db, user.id, SETTINGS_KEY) or {}
                if is_dispatchable(settings):
                    result.append(user.id)
                else:
                    logger.debug(f"User {user.id} skipped: chat delivery not configured")
            return result
        finally:
            db.close()

    def targets(self, user_id: str) -> Dict[str, Any]:
        return evaluate_settings_targets(self.raw_settings(user_id))

    def channel_credentials(self, user_id: str) -> Optional[ChannelCredentials]:
        settings = self.raw_settings(user_id)
        token = settings.get("chatwork_api_token") or settings.get("chatwork_token")
        room_id = settings.get("chatwork_room_id")
        if not token or not room_id:
            return None
        return ChannelCredentials(token=str(token), room_id=str(room_id))

    def notification_settings(self, user_id: str) -> UserNotificationSettings:
        return UserNotificationSettings.from_dict(self.raw_settings(user_id))

    def ads_account(self, user_id: str) -> Optional[AdsAccountConfig]:
        settings = self.raw_settings(user_id)
        if not settings.get("meta_access_token") or not settings.get("meta_account_id"):
            return None
        daily_budget = settings.get("target_daily_budget")
        try:
            daily_budget = float(daily_budget) if daily_budget not in (None, "") else None
        except (TypeError, ValueError):
            daily_budget = None
        return AdsAccountConfig(
            access_token=settings["meta_access_token"],
            account_id=settings["meta_account_id"],
            app_id=settings.get("meta_app_id") or "",
            daily_budget=daily_budget,
        )
