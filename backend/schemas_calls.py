"""
Call Pydantic Schemas
Shared by call_ledger.py (library boundary) and routers/calls.py.

Timestamps are accepted with or without an offset. Naive values are
taken as UTC.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime


# =============================================================================
# ACTING CREDENTIALS
# =============================================================================

class ActingCredentials(BaseModel):
    """Name + PIN carried on every mutating request, re-verified each time"""
    name: str               # "First Last"
    pin: str


# =============================================================================
# CALL CRUD SCHEMAS
# =============================================================================

class CallBase(BaseModel):
    """Every mutable call field. update_call overwrites all of them."""
    incident_number: Optional[str] = None   # 2026-001, blank = assign next
    call_type: str
    mutual_aid: Optional[str] = None        # "No" or agency name
    address: str
    town: Optional[str] = None
    location_notes: Optional[str] = None

    dispatched: datetime
    enroute: Optional[datetime] = None
    on_scene: Optional[datetime] = None
    clear: Optional[datetime] = None

    narrative: str = ''


class CallCreate(CallBase):
    """New call. created_by is stamped by the gate layer for HTTP callers."""
    created_by: int


class CallUpdate(CallBase):
    """Full replacement of a call's mutable fields"""
    pass


class CallAssociations(BaseModel):
    """Apparatus and responders attached to a call. Replaced wholesale on update."""
    apparatus_ids: List[int] = Field(default_factory=list)
    responder_ids: List[int] = Field(default_factory=list)
    responder_roles: List[str] = Field(default_factory=list)   # Paired by index, short list pads with ""


# =============================================================================
# SEARCH
# =============================================================================

class CallSearchFilters(BaseModel):
    """
    Typed search filters. Unknown keys are rejected rather than ignored.
    Empty strings count as absent; whitespace is searched as given.
    """
    model_config = ConfigDict(extra="forbid")

    start_date: Optional[datetime] = None   # created_at >=
    end_date: Optional[datetime] = None     # created_at <=
    call_type: Optional[str] = None         # exact
    town: Optional[str] = None              # exact
    search_text: Optional[str] = None       # address or incident number contains

    @field_validator('*', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if v == '':
            return None
        return v

