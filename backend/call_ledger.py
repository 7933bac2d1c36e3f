"""
Call Ledger - create, edit, search and number incident reports

Every write runs as one transaction: the call row, its apparatus and
responder associations and the audit entry commit together or not at all.
Store failures surface as LedgerWriteError carrying the underlying exception.

Authorization is NOT checked here. Callers go through permissions.py.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError
from sqlalchemy import extract, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import config
from errors import InvalidFilterError, LedgerWriteError, NotFoundError
from identity import get_user_by_id, resolve_identity
from models import AuditLog, Call, CallApparatus, CallResponder, Picklist, User
from schemas_calls import CallBase, CallCreate, CallSearchFilters
from settings_helper import admin_can_always_edit, as_utc, get_edit_time_limit

logger = logging.getLogger(__name__)

# Fields overwritten by update_call, in display order
CALL_FIELDS = (
    'incident_number', 'call_type', 'mutual_aid', 'address', 'town',
    'location_notes', 'dispatched', 'enroute', 'on_scene', 'clear', 'narrative',
)
TIMESTAMP_FIELDS = ('dispatched', 'enroute', 'on_scene', 'clear')

DEFAULT_SEARCH_LIMIT = 100


# =============================================================================
# AUDIT
# =============================================================================

def log_call_audit(
    db: Session,
    action: str,
    call: Call,
    user_id: Optional[int],
    summary: str,
    changes: Optional[dict] = None,
):
    """
    Add a call change to the audit trail. Does not commit - the entry
    rides in the caller's transaction.
    """
    user_name = None
    if user_id == config.BREAK_GLASS_USER_ID:
        # No users row to point at
        user_name = config.BREAK_GLASS_NAME
        user_id = None
    elif user_id is not None:
        user = get_user_by_id(db, user_id)
        if user:
            user_name = user.display_name

    db.add(AuditLog(
        user_id=user_id,
        user_name=user_name,
        action=action,
        table_name="calls",
        record_id=call.id,
        summary=summary,
        changes=changes,
        created_at=datetime.now(timezone.utc),
    ))


# =============================================================================
# INCIDENT NUMBERING
# =============================================================================

def format_call_number(year: int, number: int) -> str:
    """2026, 7 -> '2026-007'"""
    return f"{year}-{number:03d}"


def _max_number_for_year(db: Session, year: int) -> int:
    """
    Highest NNN among 'YYYY-NNN' numbers for the year.
    Only 8-character numbers count, so hand-typed oddities are skipped.
    """
    rows = db.query(Call.incident_number).filter(
        Call.incident_number.like(f"{year}-%"),
        func.length(Call.incident_number) == 8,
    ).all()

    highest = 0
    for (number,) in rows:
        suffix = number[5:]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def get_next_call_number(db: Session, year: int) -> str:
    """Preview only - takes no lock, another writer may claim it first"""
    return format_call_number(year, _max_number_for_year(db, year) + 1)


def _claim_next_number(db: Session, year: int) -> str:
    """
    Compute the next number inside the caller's transaction.

    The sequence row is written before anything is read, so a second
    creator for the same year blocks here (row lock on PostgreSQL, write
    lock on SQLite) until the first one commits.
    """
    db.execute(
        text("INSERT INTO incident_sequences (year, last_number) VALUES (:year, 0) "
             "ON CONFLICT (year) DO NOTHING"),
        {"year": year},
    )
    db.execute(
        text("UPDATE incident_sequences SET last_number = last_number + 1 WHERE year = :year"),
        {"year": year},
    )

    next_num = _max_number_for_year(db, year) + 1
    db.execute(
        text("UPDATE incident_sequences SET last_number = :num WHERE year = :year"),
        {"num": next_num, "year": year},
    )

    number = format_call_number(year, next_num)
    logger.debug(f"Assigned incident number {number}")
    return number


# =============================================================================
# ASSOCIATIONS
# =============================================================================

def _insert_associations(
    db: Session,
    call_id: int,
    apparatus_ids: Sequence[int],
    responder_ids: Sequence[int],
    responder_roles: Sequence[str],
):
    """responder_roles pairs with responder_ids by index; missing roles are ''"""
    for apparatus_id in apparatus_ids:
        db.add(CallApparatus(call_id=call_id, apparatus_id=apparatus_id))

    for i, responder_id in enumerate(responder_ids):
        role = responder_roles[i] if i < len(responder_roles) else ""
        db.add(CallResponder(call_id=call_id, responder_id=responder_id, responder_role=role or ""))

    db.flush()


def _clear_associations(db: Session, call_id: int):
    db.query(CallApparatus).filter(CallApparatus.call_id == call_id).delete()
    db.query(CallResponder).filter(CallResponder.call_id == call_id).delete()
    db.flush()


def _call_values(data: CallBase) -> dict:
    """Pydantic model -> column values, timestamps normalized to UTC"""
    values = {field: getattr(data, field) for field in CALL_FIELDS}
    for field in TIMESTAMP_FIELDS:
        values[field] = as_utc(values[field])
    values['narrative'] = values['narrative'] or ''
    return values


def _comparable(value):
    if isinstance(value, datetime):
        return as_utc(value)
    return value


def _audit_value(value):
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return value


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def create_call(
    db: Session,
    call: CallCreate,
    apparatus_ids: Optional[Sequence[int]] = None,
    responder_ids: Optional[Sequence[int]] = None,
    responder_roles: Optional[Sequence[str]] = None,
) -> Call:
    """
    Insert a call with its associations and audit entry.

    A blank incident_number is replaced by the next number for the
    dispatch year, read in the offset it was given (naive counts as
    UTC). Any failure, including an unknown creator or a
    duplicate incident number, rolls everything back and raises
    LedgerWriteError. Nothing is retried.
    """
    values = _call_values(call)
    if values['dispatched'] is None:
        raise LedgerWriteError("Failed to create call", ValueError("dispatched is required"))

    try:
        if not values['incident_number']:
            values['incident_number'] = _claim_next_number(db, call.dispatched.year)

        if get_user_by_id(db, call.created_by) is None:
            raise NotFoundError(f"Creator {call.created_by} not found")

        now = datetime.now(timezone.utc)
        new_call = Call(created_by=call.created_by, created_at=now, updated_at=now, **values)
        db.add(new_call)
        db.flush()

        _insert_associations(db, new_call.id, list(apparatus_ids or []),
                             list(responder_ids or []), list(responder_roles or []))

        log_call_audit(
            db, "CREATE", new_call, call.created_by,
            f"Created call {new_call.incident_number}",
            {
                "apparatus_ids": list(apparatus_ids or []),
                "responder_ids": list(responder_ids or []),
            },
        )
        db.commit()
    except (SQLAlchemyError, NotFoundError) as e:
        db.rollback()
        logger.error(f"Failed to create call: {e}")
        raise LedgerWriteError("Failed to create call", e) from e

    db.refresh(new_call)
    logger.info(f"Created call {new_call.id} ({new_call.incident_number})")
    return new_call


def _save_call(
    db: Session,
    existing: Call,
    values: dict,
    apparatus_ids: Sequence[int],
    responder_ids: Sequence[int],
    responder_roles: Sequence[str],
    user_id: Optional[int],
    action: str,
    summary: str,
) -> Call:
    """Overwrite fields, replace both association sets, audit, commit"""
    call_id = existing.id
    changes = {}
    for field, new_value in values.items():
        old_value = getattr(existing, field)
        if _comparable(old_value) != _comparable(new_value):
            changes[field] = {"old": _audit_value(old_value), "new": _audit_value(new_value)}

    try:
        for field, new_value in values.items():
            setattr(existing, field, new_value)
        existing.updated_at = datetime.now(timezone.utc)

        _clear_associations(db, call_id)
        _insert_associations(db, call_id, list(apparatus_ids), list(responder_ids), list(responder_roles))

        log_call_audit(db, action, existing, user_id, summary, changes or None)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save call {call_id}: {e}")
        raise LedgerWriteError(f"Failed to save call {call_id}", e) from e

    db.refresh(existing)
    return existing


def update_call(
    db: Session,
    call_id: int,
    call: CallBase,
    apparatus_ids: Optional[Sequence[int]] = None,
    responder_ids: Optional[Sequence[int]] = None,
    responder_roles: Optional[Sequence[str]] = None,
    edited_by: Optional[int] = None,
) -> Call:
    """
    Overwrite every mutable field and REPLACE both association sets.
    Associations are not diffed: whatever is passed in is the new truth,
    an empty list clears them.
    """
    existing = _require_call(db, call_id)
    updated = _save_call(
        db, existing, _call_values(call),
        apparatus_ids or [], responder_ids or [], responder_roles or [],
        edited_by, "UPDATE", f"Updated call {existing.incident_number}",
    )
    logger.info(f"Updated call {call_id} ({updated.incident_number})")
    return updated


def delete_call(db: Session, call_id: int, edited_by: Optional[int] = None) -> Call:
    """
    Calls are never removed. Re-saves the call unchanged with its current
    associations and records the request in the audit trail.
    """
    existing = _require_call(db, call_id)
    values = {field: getattr(existing, field) for field in CALL_FIELDS}
    apparatus_ids = [apparatus_id for (apparatus_id,) in db.query(CallApparatus.apparatus_id)
                     .filter(CallApparatus.call_id == call_id).order_by(CallApparatus.id).all()]
    responder_rows = db.query(CallResponder.responder_id, CallResponder.responder_role).filter(
        CallResponder.call_id == call_id
    ).order_by(CallResponder.id).all()

    saved = _save_call(
        db, existing, values, apparatus_ids,
        [r.responder_id for r in responder_rows],
        [r.responder_role or "" for r in responder_rows],
        edited_by, "DELETE_REQUESTED", f"Delete requested for call {existing.incident_number}",
    )
    logger.info(f"Delete requested for call {call_id}, record kept")
    return saved


# =============================================================================
# EDIT WINDOW
# =============================================================================

def can_user_edit_call(db: Session, call_id: int, user_id: int, now: Optional[datetime] = None) -> bool:
    """
    Admins edit anything while admin_can_always_edit is 'true'.
    Everyone else may edit only their own call, and only until
    edit_time_limit_minutes have passed since it was created (inclusive).
    """
    call = _require_call(db, call_id)
    user = resolve_identity(db, user_id)

    if user.is_admin and admin_can_always_edit(db):
        return True

    if call.created_by != user.id:
        return False

    now = as_utc(now) if now else datetime.now(timezone.utc)
    return now - as_utc(call.created_at) <= get_edit_time_limit(db)


# =============================================================================
# READS
# =============================================================================

def _require_call(db: Session, call_id: int) -> Call:
    call = db.query(Call).filter(Call.id == call_id).first()
    if not call:
        raise NotFoundError(f"Call {call_id} not found")
    return call


def get_call_by_id(db: Session, call_id: int) -> Tuple[Call, List[Picklist], List[User]]:
    """Call plus its apparatus (sort_order, value) and responders (last, first)"""
    call = _require_call(db, call_id)

    apparatus = db.query(Picklist).join(
        CallApparatus, CallApparatus.apparatus_id == Picklist.id
    ).filter(
        CallApparatus.call_id == call_id
    ).order_by(Picklist.sort_order, Picklist.value).all()

    responders = db.query(User).join(
        CallResponder, CallResponder.responder_id == User.id
    ).filter(
        CallResponder.call_id == call_id
    ).order_by(User.last_name, User.first_name).all()

    return call, apparatus, responders


def get_call_responder_roles(db: Session, call_id: int) -> Dict[int, str]:
    """responder user_id -> role label as stored"""
    rows = db.query(CallResponder.responder_id, CallResponder.responder_role).filter(
        CallResponder.call_id == call_id
    ).all()
    return {responder_id: role or "" for responder_id, role in rows}


def get_recent_calls(db: Session, limit: int = 50, offset: int = 0) -> List[Call]:
    return db.query(Call).order_by(
        Call.created_at.desc(), Call.id.desc()
    ).offset(offset).limit(limit).all()


def get_calls_by_year(db: Session, year: int) -> List[Call]:
    """Calls dispatched in the calendar year (UTC), newest dispatch first"""
    start = datetime(year, 1, 1, tzinfo=timezone.utc)
    end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    return db.query(Call).filter(
        Call.dispatched >= start,
        Call.dispatched < end,
    ).order_by(Call.dispatched.desc(), Call.id.desc()).all()


def get_call_years(db: Session) -> List[int]:
    """Distinct dispatch years, newest first"""
    year = extract('year', Call.dispatched).label('year')
    rows = db.query(year).filter(Call.dispatched.isnot(None)).distinct().order_by(year.desc()).all()
    return [int(y) for (y,) in rows if y is not None]


# =============================================================================
# SEARCH
# =============================================================================

def parse_search_filters(filters: Union[CallSearchFilters, dict, None]) -> CallSearchFilters:
    if filters is None:
        return CallSearchFilters()
    if isinstance(filters, CallSearchFilters):
        return filters
    try:
        return CallSearchFilters.model_validate(filters)
    except ValidationError as e:
        raise InvalidFilterError(f"Invalid search filters: {e}") from e


def search_calls(
    db: Session,
    filters: Union[CallSearchFilters, dict, None] = None,
    limit: int = DEFAULT_SEARCH_LIMIT,
    offset: int = 0,
) -> List[Call]:
    """
    AND of whichever filters are set, newest created first.
    search_text matches anywhere in the address or incident number.
    """
    f = parse_search_filters(filters)
    query = db.query(Call)

    if f.start_date:
        query = query.filter(Call.created_at >= as_utc(f.start_date))
    if f.end_date:
        query = query.filter(Call.created_at <= as_utc(f.end_date))
    if f.call_type:
        query = query.filter(Call.call_type == f.call_type)
    if f.town:
        query = query.filter(Call.town == f.town)
    if f.search_text:
        pattern = f"%{f.search_text}%"
        query = query.filter(
            Call.address.like(pattern) | Call.incident_number.like(pattern)
        )

    return query.order_by(
        Call.created_at.desc(), Call.id.desc()
    ).offset(offset).limit(limit).all()
