"""
Users router - login, member roster, PINs
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel

from database import get_db
from schemas_calls import ActingCredentials
from routers.acting import verify_acting, user_summary
import identity
import permissions

router = APIRouter()


class LoginRequest(BaseModel):
    name: str
    pin: str


class UserCreate(BaseModel):
    acting: ActingCredentials
    first_name: str
    last_name: str
    position: str = 'member'
    ems_level: Optional[str] = None
    pin: Optional[str] = None
    is_admin: bool = False
    joined_date: Optional[str] = None      # YYYY-MM-DD


class UserUpdate(BaseModel):
    acting: ActingCredentials
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    position: Optional[str] = None
    ems_level: Optional[str] = None
    active: Optional[bool] = None


class ActingOnly(BaseModel):
    acting: ActingCredentials


class ChangeOwnPinRequest(BaseModel):
    acting: ActingCredentials
    old_pin: str
    new_pin: str


class SetPinRequest(BaseModel):
    acting: ActingCredentials
    new_pin: str


class PositionUpdate(BaseModel):
    acting: ActingCredentials
    position: str


class AdminStatusUpdate(BaseModel):
    acting: ActingCredentials
    is_admin: bool


class JoinDateUpdate(BaseModel):
    acting: ActingCredentials
    joined_date: Optional[str] = None      # YYYY-MM-DD, blank clears


# =============================================================================
# LOGIN
# =============================================================================

@router.post("/login")
async def login(data: LoginRequest, db: Session = Depends(get_db)):
    """Check name + PIN. Nothing is issued - the client re-sends them on writes."""
    user = verify_acting(db, ActingCredentials(name=data.name, pin=data.pin))
    return user_summary(user)


# =============================================================================
# ROSTER
# =============================================================================

@router.get("")
async def list_users(
    include_inactive: bool = False,
    db: Session = Depends(get_db)
):
    """Active members (login dropdown), or everyone for admin screens"""
    users = identity.get_all_users(db) if include_inactive else identity.get_active_users(db)
    return [user_summary(u) for u in users]


@router.get("/admins")
async def list_admins(db: Session = Depends(get_db)):
    return [user_summary(u) for u in identity.get_admin_users(db)]


@router.get("/{user_id}")
async def get_user(user_id: int, db: Session = Depends(get_db)):
    return user_summary(identity.require_user(db, user_id))


@router.post("", status_code=201)
async def create_user(data: UserCreate, db: Session = Depends(get_db)):
    admin = verify_acting(db, data.acting)
    try:
        user = permissions.create_user_as(db, admin, **data.model_dump(exclude={'acting'}))
    except ValueError:
        raise HTTPException(status_code=400, detail="joined_date must be YYYY-MM-DD")
    return user_summary(user)


@router.put("/{user_id}")
async def update_user(user_id: int, data: UserUpdate, db: Session = Depends(get_db)):
    """Only fields that were sent are changed"""
    admin = verify_acting(db, data.acting)
    fields = data.model_dump(exclude={'acting'}, exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="Nothing to update")
    user = permissions.update_user_as(db, admin, user_id, **fields)
    return user_summary(user)


@router.delete("/{user_id}")
async def deactivate_user(user_id: int, data: ActingOnly, db: Session = Depends(get_db)):
    """Soft delete"""
    admin = verify_acting(db, data.acting)
    user = permissions.deactivate_user_as(db, admin, user_id)
    return {"status": "ok", "message": f"{user.display_name} deactivated"}


# =============================================================================
# PINS + ADMIN FIELDS
# =============================================================================

@router.post("/me/pin")
async def change_own_pin(data: ChangeOwnPinRequest, db: Session = Depends(get_db)):
    user = verify_acting(db, data.acting)
    permissions.change_own_pin(db, user, data.old_pin, data.new_pin)
    return {"status": "ok"}


@router.put("/{user_id}/pin")
async def set_user_pin(user_id: int, data: SetPinRequest, db: Session = Depends(get_db)):
    """Admin reset of another member's PIN"""
    admin = verify_acting(db, data.acting)
    permissions.change_user_pin(db, admin, user_id, data.new_pin)
    return {"status": "ok"}


@router.put("/{user_id}/position")
async def set_position(user_id: int, data: PositionUpdate, db: Session = Depends(get_db)):
    admin = verify_acting(db, data.acting)
    user = permissions.set_user_position(db, admin, user_id, data.position)
    return user_summary(user)


@router.put("/{user_id}/admin")
async def set_admin_status(user_id: int, data: AdminStatusUpdate, db: Session = Depends(get_db)):
    admin = verify_acting(db, data.acting)
    user = permissions.set_user_admin_status(db, admin, user_id, data.is_admin)
    return user_summary(user)


@router.put("/{user_id}/join-date")
async def set_join_date(user_id: int, data: JoinDateUpdate, db: Session = Depends(get_db)):
    admin = verify_acting(db, data.acting)
    try:
        user = permissions.set_user_join_date(db, admin, user_id, data.joined_date)
    except ValueError:
        raise HTTPException(status_code=400, detail="joined_date must be YYYY-MM-DD")
    return user_summary(user)
