"""
Identity Directory - members, PINs, admin flag

Leaf component: answers "who is this caller and are they an admin?".
Holds no authorization logic of its own - the admin gates live in
permissions.py.
"""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional, Union

from sqlalchemy.orm import Session

import config
from database import commit_or_rollback, DEFAULT_ADMIN
from errors import NotFoundError, UnauthorizedError
from models import User

logger = logging.getLogger(__name__)

# Fields update_user() is allowed to overwrite
EDITABLE_USER_FIELDS = (
    'first_name', 'last_name', 'position', 'ems_level',
    'is_admin', 'pin', 'active', 'joined_date',
)


# =============================================================================
# BREAK-GLASS IDENTITY
# =============================================================================

def break_glass_user() -> User:
    """
    Virtual admin returned for the break-glass credential.
    Transient - never added to a session, has no users row.
    """
    return User(
        id=config.BREAK_GLASS_USER_ID,
        first_name="Admin",
        last_name="User",
        position="administrator",
        is_admin=True,
        active=True,
    )


def is_break_glass(user: Optional[User]) -> bool:
    return user is not None and user.id == config.BREAK_GLASS_USER_ID


# =============================================================================
# AUTHENTICATION
# =============================================================================

def authenticate_user(
    db: Session,
    full_name: str,
    pin: str,
    allow_break_glass: Optional[bool] = None,
) -> User:
    """
    Match 'First Last' (case-sensitive), plaintext PIN and active flag.

    Raises NotFoundError with the same message whether the name or the PIN
    was wrong.
    """
    if allow_break_glass is None:
        allow_break_glass = config.BREAK_GLASS_ENABLED

    if allow_break_glass and full_name == config.BREAK_GLASS_NAME and pin == config.BREAK_GLASS_PIN:
        logger.warning("Break-glass credential used to authenticate")
        return break_glass_user()

    user = db.query(User).filter(
        (User.first_name + ' ' + User.last_name) == full_name,
        User.pin == pin,
        User.active == True,
    ).first()

    if user is None:
        logger.info("Authentication failed")
        raise NotFoundError("Invalid name or PIN")

    return user


def validate_admin_pin(db: Session, pin: str) -> bool:
    """True if any active admin has this PIN"""
    match = db.query(User.id).filter(
        User.is_admin == True,
        User.pin == pin,
        User.active == True,
    ).first()
    return match is not None


# =============================================================================
# LOOKUPS
# =============================================================================

def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    """Persisted user by ID, or None. Never returns the break-glass identity."""
    return db.query(User).filter(User.id == user_id).first()


def require_user(db: Session, user_id: int) -> User:
    user = get_user_by_id(db, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


def resolve_identity(db: Session, user_id: int) -> User:
    """
    Like require_user, but also knows the break-glass ID while that
    credential is enabled.
    """
    if user_id == config.BREAK_GLASS_USER_ID and config.BREAK_GLASS_ENABLED:
        return break_glass_user()
    return require_user(db, user_id)


def _ordered(query):
    return query.order_by(User.last_name, User.first_name).all()


def get_active_users(db: Session) -> List[User]:
    """Active members for the login dropdown"""
    return _ordered(db.query(User).filter(User.active == True))


def get_all_users(db: Session) -> List[User]:
    """Everyone, including inactive (admin management)"""
    return _ordered(db.query(User))


def get_admin_users(db: Session) -> List[User]:
    return _ordered(db.query(User).filter(User.is_admin == True, User.active == True))


# =============================================================================
# MUTATORS
# =============================================================================

def _parse_join_date(value: Union[date, str, None]) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def create_user(
    db: Session,
    first_name: str,
    last_name: str,
    position: str = 'member',
    ems_level: Optional[str] = None,
    pin: Optional[str] = None,
    is_admin: bool = False,
    joined_date: Union[date, str, None] = None,
) -> User:
    user = User(
        first_name=first_name,
        last_name=last_name,
        position=position or 'member',
        ems_level=ems_level,
        pin=pin,
        is_admin=is_admin,
        active=True,
        joined_date=_parse_join_date(joined_date),
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    commit_or_rollback(db, f"create user {first_name} {last_name}")
    db.refresh(user)
    logger.info(f"Created user {user.id} ({user.display_name})")
    return user


def update_user(db: Session, user_id: int, **fields) -> User:
    """Overwrite the given fields. Unknown field names are rejected."""
    unknown = set(fields) - set(EDITABLE_USER_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")

    user = require_user(db, user_id)
    for field, value in fields.items():
        if field == 'joined_date':
            value = _parse_join_date(value)
        setattr(user, field, value)

    commit_or_rollback(db, f"update user {user_id}")
    return user


def deactivate_user(db: Session, user_id: int) -> User:
    """Soft delete - historical calls still reference this member"""
    return update_user(db, user_id, active=False)


def change_pin(db: Session, user_id: int, new_pin: str) -> None:
    """
    Unconditional overwrite. Callers verify the old PIN or the admin flag
    before getting here (see permissions.change_own_pin).
    """
    if user_id == config.BREAK_GLASS_USER_ID:
        raise UnauthorizedError("Cannot change the break-glass PIN")

    user = require_user(db, user_id)
    user.pin = new_pin
    commit_or_rollback(db, f"change PIN for user {user_id}")
    logger.info(f"PIN changed for user {user_id}")


def update_user_position(db: Session, user_id: int, position: str) -> User:
    return update_user(db, user_id, position=position)


def update_user_admin_status(db: Session, user_id: int, is_admin: bool) -> User:
    return update_user(db, user_id, is_admin=is_admin)


def update_user_join_date(db: Session, user_id: int, joined_date: Union[date, str, None]) -> User:
    return update_user(db, user_id, joined_date=joined_date)


# =============================================================================
# STARTUP
# =============================================================================

def ensure_admin_exists(db: Session) -> None:
    """
    Make sure there is an admin who can log in.
    Creates the default admin when none exists, and gives the default
    admin a PIN if it was left empty.
    """
    has_admin = db.query(User.id).filter(User.is_admin == True).first() is not None
    if not has_admin:
        db.add(User(is_admin=True, active=True, created_at=datetime.now(timezone.utc), **DEFAULT_ADMIN))
        commit_or_rollback(db, "create default admin")
        logger.info("Created default admin user")
        return

    default_admin = db.query(User).filter(
        User.first_name == DEFAULT_ADMIN['first_name'],
        User.last_name == DEFAULT_ADMIN['last_name'],
        User.is_admin == True,
    ).first()
    if default_admin is not None and not default_admin.pin:
        default_admin.pin = DEFAULT_ADMIN['pin']
        commit_or_rollback(db, "set default admin PIN")
        logger.info("Default admin PIN restored")
