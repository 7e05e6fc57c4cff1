"""
CRUD operations for User management
Includes: User, UserSettings
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from utils.time_utils import get_jst_time
from database.models import User, UserSettings


# ===== User Management =====

def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    """Get user by ID"""
    return db.query(User).filter(User.id == user_id).first()


def get_active_users(db: Session) -> List[User]:
    """Get active users, oldest first so dispatch order is stable"""
    return db.query(User).filter(User.is_active == True).order_by(User.created_at, User.id).all()


def create_user(
    db: Session,
    user_id: str,
    username: str,
    email: Optional[str] = None,
    is_active: bool = True
) -> User:
    """Create a new user"""
    user = User(
        id=user_id,
        username=username,
        email=email,
        is_active=is_active
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# ===== User Settings =====

def get_user_setting(db: Session, user_id: str, key: str) -> Optional[dict]:
    """Get user setting by key"""
    setting = db.query(UserSettings).filter(
        UserSettings.user_id == user_id,
        UserSettings.key == key
    ).first()
    if setting:
        return setting.value
    return None


def set_user_setting(
    db: Session,
    user_id: str,
    key: str,
    value: dict,
    description: Optional[str] = None
) -> UserSettings:
    """Set or update user setting"""
    setting = db.query(UserSettings).filter(
        UserSettings.user_id == user_id,
        UserSettings.key == key
    ).first()

    if setting:
        setting.value = value
        setting.updated_at = get_jst_time()
        if description:
            setting.description = description
    else:
        setting = UserSettings(
            user_id=user_id,
            key=key,
            value=value,
            description=description
        )
        db.add(setting)

    db.commit()
    db.refresh(setting)
    return setting
