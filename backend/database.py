"""
Database connection for the Call Log
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from config import DATABASE_URL, SQLITE_TIMEOUT
from errors import LedgerWriteError

logger = logging.getLogger(__name__)


def make_engine(url: str = DATABASE_URL):
    """Build an engine. SQLite gets foreign keys and a busy timeout so writers queue."""
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"timeout": SQLITE_TIMEOUT, "check_same_thread": False},
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        url,
        pool_size=10,           # Base connections to keep open
        max_overflow=20,        # Additional connections when busy (30 total max)
        pool_timeout=30,        # Seconds to wait for connection before error
        pool_recycle=1800,      # Recycle connections after 30 min (prevents stale)
        pool_pre_ping=True,     # Test connections before using (handles dropped connections)
    )


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# SCHEMA + SEED DATA
# =============================================================================

DEFAULT_PICKLISTS = {
    "call_type": [
        "Structure Fire", "Vehicle Fire", "Grass Fire", "Medical Emergency",
        "Motor Vehicle Accident", "Hazmat", "Rescue", "Alarm Investigation",
        "Mutual Aid", "Training",
    ],
    "mutual_aid": ["No", "Yes"],
    "mutual_aid_agencies": [
        "Readsboro Fire Dept", "Bennington Fire Dept", "Pownal Fire Dept",
        "Wilmington Fire Dept", "Searsburg Fire Dept",
    ],
    "apparatus": ["Engine 1", "Engine 2", "Truck 1", "Rescue 1", "Ambulance 1", "Chief", "Tanker 1"],
    "town": ["Stamford", "Readsboro", "Whitingham"],
    "responder_role": ["Driver", "Officer", "Firefighter", "EMT", "Medic", "Chief"],
    "position": ["Chief", "Deputy Chief", "Captain", "Member", "Probationary"],
    "ems_level": ["None", "VEFR", "EMR", "EMT", "AEMT", "Paramedic"],
}

DEFAULT_SETTINGS = {
    "report_dir": ("reports", "Directory for exported reports"),
    "auto_print_after_save": ("false", "Print the run sheet after saving a call"),
    "edit_time_limit_minutes": ("30", "Minutes a member may edit a call they created"),
    "admin_can_always_edit": ("true", "Admins may edit any call at any time"),
    "default_date_range_days": ("30", "Default search window for exports"),
}

DEFAULT_ADMIN = {
    "first_name": "Admin",
    "last_name": "User",
    "position": "administrator",
    "pin": "1234",
}


def init_db(bind=None):
    """Create tables and seed defaults. Safe to run on every startup."""
    # Deferred import - models imports Base from this module
    import models
    from identity import ensure_admin_exists

    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=bind)
    db = session_factory()
    try:
        _seed_default_data(db, models)
        ensure_admin_exists(db)
    finally:
        db.close()


def _seed_default_data(db, models):
    if db.query(models.Picklist).count() == 0:
        for category, values in DEFAULT_PICKLISTS.items():
            for sort_order, value in enumerate(values, start=1):
                db.add(models.Picklist(category=category, value=value, sort_order=sort_order, active=True))
        logger.info(f"Seeded {len(DEFAULT_PICKLISTS)} picklist categories")

    existing = {key for (key,) in db.query(models.Setting.key).all()}
    now = datetime.now(timezone.utc)
    for key, (value, description) in DEFAULT_SETTINGS.items():
        if key not in existing:
            db.add(models.Setting(key=key, value=value, description=description, updated_at=now))

    db.commit()


def commit_or_rollback(db, action: str):
    """Commit the session; on any store failure roll back and raise LedgerWriteError"""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {action}: {e}")
        raise LedgerWriteError(f"Failed to {action}", e) from e
