"""
Permission gates

Every gate raises UnauthorizedError on denial. The engine modules
(call_ledger, identity, picklists, settings_helper) trust their callers;
anything reachable from outside goes through here first.
"""

import logging
from datetime import date, datetime
from typing import Optional, Sequence, Union

from sqlalchemy.orm import Session

import call_ledger
import identity
import picklists
import settings_helper
from errors import NotFoundError, UnauthorizedError
from models import Call, Picklist, Setting, User
from schemas_calls import CallBase, CallCreate

logger = logging.getLogger(__name__)


# =============================================================================
# BASIC GATES
# =============================================================================

def require_authenticated(user: Optional[User]) -> User:
    if user is None:
        raise UnauthorizedError("Login required")
    return user


def require_admin(user: Optional[User]) -> User:
    require_authenticated(user)
    if not user.is_admin:
        logger.warning(f"Admin action refused for user {user.id}")
        raise UnauthorizedError("Admin access required")
    return user


# =============================================================================
# CALLS
# =============================================================================

def create_call_as(
    db: Session,
    user: Optional[User],
    call: CallBase,
    apparatus_ids: Optional[Sequence[int]] = None,
    responder_ids: Optional[Sequence[int]] = None,
    responder_roles: Optional[Sequence[str]] = None,
) -> Call:
    """Creator is always the caller, whatever the payload says"""
    require_authenticated(user)
    data = CallCreate(**call.model_dump(exclude={'created_by'}), created_by=user.id)
    return call_ledger.create_call(db, data, apparatus_ids, responder_ids, responder_roles)


def update_call_as(
    db: Session,
    user: Optional[User],
    call_id: int,
    call: CallBase,
    apparatus_ids: Optional[Sequence[int]] = None,
    responder_ids: Optional[Sequence[int]] = None,
    responder_roles: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
) -> Call:
    """Edit window is re-evaluated on every attempt"""
    require_authenticated(user)
    if not call_ledger.can_user_edit_call(db, call_id, user.id, now=now):
        logger.warning(f"Edit of call {call_id} refused for user {user.id}")
        raise UnauthorizedError("Edit window has closed or you are not the creator")
    return call_ledger.update_call(
        db, call_id, call, apparatus_ids, responder_ids, responder_roles, edited_by=user.id,
    )


def delete_call_as(db: Session, user: Optional[User], call_id: int) -> Call:
    require_admin(user)
    return call_ledger.delete_call(db, call_id, edited_by=user.id)


# =============================================================================
# PINS
# =============================================================================

def change_own_pin(db: Session, user: Optional[User], old_pin: str, new_pin: str) -> None:
    """
    Old PIN is checked against the stored row only.
    The break-glass credential is never accepted as proof.
    """
    require_authenticated(user)
    if identity.is_break_glass(user):
        raise UnauthorizedError("Cannot change the break-glass PIN")

    try:
        identity.authenticate_user(db, user.full_name, old_pin, allow_break_glass=False)
    except NotFoundError:
        logger.warning(f"PIN change refused for user {user.id}: old PIN did not match")
        raise UnauthorizedError("Current PIN is incorrect")

    identity.change_pin(db, user.id, new_pin)


def change_user_pin(db: Session, admin: Optional[User], user_id: int, new_pin: str) -> None:
    require_admin(admin)
    identity.change_pin(db, user_id, new_pin)


# =============================================================================
# USER MANAGEMENT
# =============================================================================

def create_user_as(db: Session, admin: Optional[User], **fields) -> User:
    require_admin(admin)
    return identity.create_user(db, **fields)


def update_user_as(db: Session, admin: Optional[User], user_id: int, **fields) -> User:
    require_admin(admin)
    return identity.update_user(db, user_id, **fields)


def deactivate_user_as(db: Session, admin: Optional[User], user_id: int) -> User:
    require_admin(admin)
    return identity.deactivate_user(db, user_id)


def set_user_position(db: Session, admin: Optional[User], user_id: int, position: str) -> User:
    require_admin(admin)
    return identity.update_user_position(db, user_id, position)


def set_user_admin_status(db: Session, admin: Optional[User], user_id: int, is_admin: bool) -> User:
    require_admin(admin)
    return identity.update_user_admin_status(db, user_id, is_admin)


def set_user_join_date(
    db: Session, admin: Optional[User], user_id: int, joined_date: Union[date, str, None]
) -> User:
    require_admin(admin)
    return identity.update_user_join_date(db, user_id, joined_date)


# =============================================================================
# PICKLISTS + SETTINGS
# =============================================================================

def create_picklist_item_as(
    db: Session, admin: Optional[User], category: str, value: str, sort_order: int = 0
) -> Picklist:
    require_admin(admin)
    return picklists.create_picklist_item(db, category, value, sort_order)


def update_picklist_item_as(db: Session, admin: Optional[User], item_id: int, **fields) -> Picklist:
    require_admin(admin)
    return picklists.update_picklist_item(db, item_id, **fields)


def delete_picklist_item_as(db: Session, admin: Optional[User], item_id: int) -> Picklist:
    require_admin(admin)
    return picklists.delete_picklist_item(db, item_id)


def set_setting_as(
    db: Session, admin: Optional[User], key: str, value: str, description: Optional[str] = None
) -> Setting:
    require_admin(admin)
    return settings_helper.set_setting(db, key, value, description)
