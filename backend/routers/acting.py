"""
Acting credentials - shared by the mutating endpoints

No sessions or tokens: every write carries the caller's name + PIN and
it is checked again on every request.
"""

from fastapi import HTTPException
from sqlalchemy.orm import Session

from errors import NotFoundError
from identity import authenticate_user
from models import User
from schemas_calls import ActingCredentials


def verify_acting(db: Session, acting: ActingCredentials) -> User:
    """Credentials -> User, or 401"""
    try:
        return authenticate_user(db, acting.name, acting.pin)
    except NotFoundError:
        raise HTTPException(status_code=401, detail="Invalid name or PIN")


def user_summary(user: User) -> dict:
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "full_name": user.full_name,
        "display_name": user.display_name,
        "position": user.position,
        "ems_level": user.ems_level,
        "is_admin": bool(user.is_admin),
        "active": bool(user.active),
        "joined_date": user.joined_date.isoformat() if user.joined_date else None,
    }
