"""
SQLAlchemy models for the Call Log

Six logical tables (users, picklists, calls, call_apparatus,
call_responders, settings) plus audit_log and the per-year incident
sequence used to serialize numbering.

Column types are kept generic so the same schema runs on PostgreSQL in
production and SQLite in tests.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, Text, ForeignKey, Date, DateTime, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


# =============================================================================
# IDENTITY
# =============================================================================

class User(Base):
    """Fire department member. Soft-deleted via `active`, never removed."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    position = Column(String(50), nullable=False, default='member')  # Chief, Captain, Member...
    ems_level = Column(String(20))                                    # VEFR, EMR, EMT, AEMT, Paramedic
    is_admin = Column(Boolean, nullable=False, default=False)
    pin = Column(String(20))                                          # Plaintext shared secret
    active = Column(Boolean, nullable=False, default=True)
    joined_date = Column(Date)
    created_at = Column(DateTime(timezone=True), default=func.current_timestamp())

    @property
    def full_name(self):
        """Login name: 'First Last'"""
        return f"{self.first_name} {self.last_name}"

    @property
    def display_name(self):
        return f"{self.last_name}, {self.first_name}"


# =============================================================================
# LOOKUPS
# =============================================================================

class Picklist(Base):
    """
    Categorized dropdown value (apparatus, call_type, town, responder_role...).
    Deactivated rather than deleted - historical calls reference them by ID.
    """
    __tablename__ = "picklists"

    id = Column(Integer, primary_key=True)
    category = Column(String(50), nullable=False)
    value = Column(String(100), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint('category', 'value', name='uq_picklists_category_value'),
        Index('idx_picklists_category', 'category'),
        Index('idx_picklists_active', 'active'),
    )


# =============================================================================
# CALLS
# =============================================================================

class Call(Base):
    """
    A single incident report.

    Timeline: only `dispatched` is required. enroute/on_scene/clear are
    independently nullable and no ordering is enforced between them.
    """
    __tablename__ = "calls"

    id = Column(Integer, primary_key=True)
    incident_number = Column(String(20), unique=True)   # 2026-001
    call_type = Column(String(100), nullable=False)
    mutual_aid = Column(String(100))                    # "No" or the agency name
    address = Column(Text, nullable=False)
    town = Column(String(100))
    location_notes = Column(Text)

    dispatched = Column(DateTime(timezone=True), nullable=False)
    enroute = Column(DateTime(timezone=True))
    on_scene = Column(DateTime(timezone=True))
    clear = Column(DateTime(timezone=True))

    narrative = Column(Text, nullable=False, default='')

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.current_timestamp())

    creator = relationship("User")

    __table_args__ = (
        Index('idx_calls_created_at', 'created_at'),
        Index('idx_calls_call_type', 'call_type'),
        Index('idx_calls_town', 'town'),
    )


class CallApparatus(Base):
    """Apparatus (picklist 'apparatus' entry) that responded to a call"""
    __tablename__ = "call_apparatus"

    id = Column(Integer, primary_key=True)
    call_id = Column(Integer, ForeignKey("calls.id", ondelete="CASCADE"), nullable=False)
    apparatus_id = Column(Integer, ForeignKey("picklists.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint('call_id', 'apparatus_id', name='uq_call_apparatus'),
    )


class CallResponder(Base):
    """
    Member who responded to a call.
    responder_role is free text (Driver, Officer...) and is not checked
    against the responder_role picklist.
    """
    __tablename__ = "call_responders"

    id = Column(Integer, primary_key=True)
    call_id = Column(Integer, ForeignKey("calls.id", ondelete="CASCADE"), nullable=False)
    responder_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    responder_role = Column(String(50))

    __table_args__ = (
        UniqueConstraint('call_id', 'responder_id', name='uq_call_responders'),
    )


class IncidentSequence(Base):
    """
    Last incident number issued per year.
    The row is locked by the creating transaction so concurrent creators
    for the same year queue instead of reading the same MAX.
    """
    __tablename__ = "incident_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_number = Column(Integer, nullable=False, default=0)


# =============================================================================
# SETTINGS
# =============================================================================

class Setting(Base):
    """Runtime configuration stored in database (flat key -> string)"""
    __tablename__ = "settings"

    key = Column(String(50), primary_key=True)
    value = Column(Text, nullable=False)
    description = Column(Text)
    updated_at = Column(DateTime(timezone=True), default=func.current_timestamp())


# =============================================================================
# AUDIT LOG
# =============================================================================

class AuditLog(Base):
    """
    Audit trail for call changes.
    user_id is NULL for the break-glass identity, which has no users row.
    """
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True)

    # Who
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    user_name = Column(String(100))

    # What
    action = Column(String(50), nullable=False)   # CREATE, UPDATE, DELETE_REQUESTED
    table_name = Column(String(50), nullable=False)
    record_id = Column(Integer)

    # Details
    summary = Column(Text)
    changes = Column(JSON)

    created_at = Column(DateTime(timezone=True), default=func.current_timestamp())

    user = relationship("User")
