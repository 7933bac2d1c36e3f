"""
Settings router - Runtime configuration from database
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel

from database import get_db
from models import Setting
from schemas_calls import ActingCredentials
from settings_helper import (
    format_utc_iso, get_all_settings, get_edit_time_limit, admin_can_always_edit,
    get_default_date_range_days,
)
from permissions import set_setting_as
from routers.acting import verify_acting

router = APIRouter()


class SettingUpdate(BaseModel):
    acting: ActingCredentials
    value: str
    description: Optional[str] = None


def format_setting(setting: Setting) -> dict:
    return {
        "key": setting.key,
        "value": setting.value,
        "description": setting.description,
        "updated_at": format_utc_iso(setting.updated_at),
    }


@router.get("")
async def list_all_settings(db: Session = Depends(get_db)):
    """Flat key -> value map"""
    return get_all_settings(db)


@router.get("/edit-policy")
async def get_edit_policy(db: Session = Depends(get_db)):
    """Effective values after defaults are applied"""
    return {
        "edit_time_limit_minutes": int(get_edit_time_limit(db).total_seconds() // 60),
        "admin_can_always_edit": admin_can_always_edit(db),
        "default_date_range_days": get_default_date_range_days(db),
    }


@router.put("/{key}")
async def update_setting(key: str, data: SettingUpdate, db: Session = Depends(get_db)):
    """Create or overwrite a setting (admin only)"""
    admin = verify_acting(db, data.acting)
    setting = set_setting_as(db, admin, key, data.value, data.description)
    return format_setting(setting)
