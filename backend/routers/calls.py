"""
Calls router - incident reports
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
from pydantic import BaseModel

from database import get_db
from models import Call
from schemas_calls import ActingCredentials, CallBase, CallAssociations
from settings_helper import format_utc_iso
from permissions import create_call_as, update_call_as, delete_call_as
from routers.acting import verify_acting
import call_ledger

router = APIRouter()


class CallWriteRequest(CallAssociations):
    acting: ActingCredentials
    call: CallBase


class CallDeleteRequest(BaseModel):
    acting: ActingCredentials


class EditCheckRequest(BaseModel):
    acting: ActingCredentials


# =============================================================================
# SERIALIZATION
# =============================================================================

def call_to_dict(call: Call) -> dict:
    return {
        "id": call.id,
        "incident_number": call.incident_number,
        "call_type": call.call_type,
        "mutual_aid": call.mutual_aid,
        "address": call.address,
        "town": call.town,
        "location_notes": call.location_notes,
        "dispatched": format_utc_iso(call.dispatched),
        "enroute": format_utc_iso(call.enroute),
        "on_scene": format_utc_iso(call.on_scene),
        "clear": format_utc_iso(call.clear),
        "narrative": call.narrative,
        "created_by": call.created_by,
        "created_at": format_utc_iso(call.created_at),
        "updated_at": format_utc_iso(call.updated_at),
    }


def call_detail(db: Session, call_id: int) -> dict:
    call, apparatus, responders = call_ledger.get_call_by_id(db, call_id)
    roles = call_ledger.get_call_responder_roles(db, call_id)

    result = call_to_dict(call)
    result["apparatus"] = [{"id": a.id, "value": a.value} for a in apparatus]
    result["responders"] = [
        {"id": r.id, "name": r.display_name, "role": roles.get(r.id, "")}
        for r in responders
    ]
    return result


# =============================================================================
# READS
# =============================================================================

@router.get("")
async def list_calls(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    call_type: Optional[str] = None,
    town: Optional[str] = None,
    search_text: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """Search calls, newest first"""
    filters = {
        "start_date": start_date,
        "end_date": end_date,
        "call_type": call_type,
        "town": town,
        "search_text": search_text,
    }
    calls = call_ledger.search_calls(db, filters, limit=limit, offset=offset)
    return {"calls": [call_to_dict(c) for c in calls], "count": len(calls)}


@router.get("/recent")
async def recent_calls(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    calls = call_ledger.get_recent_calls(db, limit=limit, offset=offset)
    return [call_to_dict(c) for c in calls]


@router.get("/years")
async def call_years(db: Session = Depends(get_db)):
    """Years that have calls, for the year dropdown"""
    return {"years": call_ledger.get_call_years(db)}


@router.get("/year/{year}")
async def calls_for_year(year: int, db: Session = Depends(get_db)):
    calls = call_ledger.get_calls_by_year(db, year)
    return [call_to_dict(c) for c in calls]


@router.get("/next-number")
async def next_call_number(
    year: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """Preview of the next incident number. Not reserved."""
    if year is None:
        year = datetime.now().year
    return {"year": year, "next_number": call_ledger.get_next_call_number(db, year)}


@router.get("/{call_id}")
async def get_call(call_id: int, db: Session = Depends(get_db)):
    return call_detail(db, call_id)


@router.post("/{call_id}/can-edit")
async def can_edit_call(
    call_id: int,
    data: EditCheckRequest,
    db: Session = Depends(get_db)
):
    """Lets the UI grey out the edit button"""
    user = verify_acting(db, data.acting)
    return {"can_edit": call_ledger.can_user_edit_call(db, call_id, user.id)}


# =============================================================================
# WRITES
# =============================================================================

@router.post("", status_code=201)
async def create_call(
    data: CallWriteRequest,
    db: Session = Depends(get_db)
):
    """Create call. Creator is the acting user."""
    user = verify_acting(db, data.acting)
    call = create_call_as(
        db, user, data.call,
        data.apparatus_ids, data.responder_ids, data.responder_roles,
    )
    return call_detail(db, call.id)


@router.put("/{call_id}")
async def update_call(
    call_id: int,
    data: CallWriteRequest,
    db: Session = Depends(get_db)
):
    """Full replace of the call and its apparatus/responders"""
    user = verify_acting(db, data.acting)
    update_call_as(
        db, user, call_id, data.call,
        data.apparatus_ids, data.responder_ids, data.responder_roles,
    )
    return call_detail(db, call_id)


@router.delete("/{call_id}")
async def delete_call(
    call_id: int,
    data: CallDeleteRequest,
    db: Session = Depends(get_db)
):
    """Records the request. The call itself is kept."""
    user = verify_acting(db, data.acting)
    delete_call_as(db, user, call_id)
    return {"status": "ok", "id": call_id, "deleted": False}
