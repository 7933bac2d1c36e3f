"""
Settings Helper - Read settings and edit policy from database
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from database import commit_or_rollback
from models import Setting

logger = logging.getLogger(__name__)

DEFAULT_EDIT_TIME_LIMIT_MINUTES = 30
DEFAULT_DATE_RANGE_DAYS = 30


def get_setting(db: Session, key: str, default: Optional[str] = None) -> Optional[str]:
    """Get a single setting value (raw string)"""
    setting = db.query(Setting).filter(Setting.key == key).first()
    if setting is None:
        return default
    return setting.value


def get_all_settings(db: Session) -> dict:
    """Get all settings as a flat key -> value dict"""
    return {s.key: s.value for s in db.query(Setting).order_by(Setting.key).all()}


def set_setting(db: Session, key: str, value: str, description: Optional[str] = None) -> Setting:
    """Create or overwrite a setting"""
    setting = db.query(Setting).filter(Setting.key == key).first()
    now = datetime.now(timezone.utc)
    if setting:
        setting.value = value
        setting.updated_at = now
        if description is not None:
            setting.description = description
    else:
        setting = Setting(key=key, value=value, description=description, updated_at=now)
        db.add(setting)
    commit_or_rollback(db, f"save setting {key}")
    return setting


# =============================================================================
# EDIT POLICY
# =============================================================================

def _parse_positive_int(value: Optional[str], default: int) -> int:
    """Parse a setting as a positive integer. Empty, junk, zero or negative -> default."""
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def get_edit_time_limit(db: Session) -> timedelta:
    """How long a member may edit a call they created"""
    raw = get_setting(db, 'edit_time_limit_minutes')
    minutes = _parse_positive_int(raw, DEFAULT_EDIT_TIME_LIMIT_MINUTES)
    if raw is not None and str(minutes) != raw.strip():
        logger.debug(f"edit_time_limit_minutes={raw!r} not usable, using {minutes}")
    return timedelta(minutes=minutes)


def admin_can_always_edit(db: Session) -> bool:
    """Only the literal string 'true' (any case) turns the admin override on"""
    raw = get_setting(db, 'admin_can_always_edit', '')
    return raw.strip().lower() == 'true'


def get_default_date_range_days(db: Session) -> int:
    return _parse_positive_int(get_setting(db, 'default_date_range_days'), DEFAULT_DATE_RANGE_DAYS)


# =============================================================================
# UTC HELPERS
# =============================================================================

def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.
    SQLite hands timestamps back without tzinfo; those were stored as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_utc_iso(dt) -> Optional[str]:
    """
    Format datetime as ISO 8601 with explicit Z suffix for UTC.

    Without Z: "2025-12-28T23:52:36" - JS treats as LOCAL time (WRONG!)
    With Z:    "2025-12-28T23:52:36Z" - JS treats as UTC (CORRECT!)
    """
    if dt is None:
        return None
    return as_utc(dt).strftime('%Y-%m-%dT%H:%M:%S.%fZ').replace('.000000Z', 'Z')
