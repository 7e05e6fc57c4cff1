"""
CRUD operations - modular structure
Re-exports all functions so callers can use `from database import crud`
"""

# Users: User Management, Settings
from database.crud.users import (
    # User Management
    get_user_by_id,
    get_active_users,
    create_user,
    # User Settings
    get_user_setting,
    set_user_setting,
)

# Alert history
from database.crud.alerts import (
    get_alert_records,
    replace_alert_records,
)

# Daily metric snapshots
from database.crud.metrics import (
    MAX_SNAPSHOTS_PER_USER,
    save_daily_snapshot,
    get_daily_snapshots,
)

__all__ = [
    # Users
    "get_user_by_id",
    "get_active_users",
    "create_user",
    "get_user_setting",
    "set_user_setting",
    # Alerts
    "get_alert_records",
    "replace_alert_records",
    # Metrics
    "MAX_SNAPSHOTS_PER_USER",
    "save_daily_snapshot",
    "get_daily_snapshots",
]
