"""
Database package
"""
from .database import engine, SessionLocal, init_db
from .models import (
    Base,
    User,
    UserSettings,
    AlertRecord,
    DailyMetricSnapshot,
)

# Allow `from database import crud`
from database import crud

__all__ = [
    # Database
    "engine",
    "SessionLocal",
    "init_db",
    # Models
    "Base",
    "User",
    "UserSettings",
    "AlertRecord",
    "DailyMetricSnapshot",
    # CRUD module
    "crud",
]
