"""
Pytest configuration and fixtures.

Provides:
- A fresh SQLite file database per test (schema + seed data applied)
- Seeded members: two regular members and one admin
- A call factory
- A FastAPI TestClient bound to the per-test database

Usage:
    pytest backend/tests -v
"""

import os

# Must be set before database.py builds its module-level engine
os.environ.setdefault("CALLLOG_DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import config
import identity
import picklists
from call_ledger import create_call
from database import get_db, init_db, make_engine
from schemas_calls import CallCreate
from factories import call_fields


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def break_glass_on(monkeypatch):
    """Tests assume the default configuration regardless of the environment"""
    monkeypatch.setattr(config, "BREAK_GLASS_ENABLED", True)


@pytest.fixture
def engine(tmp_path):
    """SQLite file database with schema and seed data."""
    engine = make_engine(f"sqlite:///{tmp_path / 'calllog.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def member(db):
    return identity.create_user(db, "Jane", "Doe", position="Member", pin="1111")


@pytest.fixture
def other_member(db):
    return identity.create_user(db, "John", "Smith", position="Member", pin="2222")


@pytest.fixture
def admin(db):
    return identity.create_user(db, "Alice", "Chief", position="Chief", pin="9999", is_admin=True)


@pytest.fixture
def apparatus(db):
    """Seeded apparatus, in sort order (Engine 1, Engine 2, Truck 1, ...)"""
    return picklists.get_picklist_by_category(db, "apparatus")


@pytest.fixture
def make_call(db, member):
    """Create a call as `member` unless created_by is given."""
    def _make(apparatus_ids=None, responder_ids=None, responder_roles=None, **overrides):
        created_by = overrides.pop("created_by", member.id)
        data = CallCreate(created_by=created_by, **call_fields(**overrides))
        return create_call(db, data, apparatus_ids, responder_ids, responder_roles)
    return _make


# ============================================================================
# API Fixtures
# ============================================================================

@pytest.fixture
def client(session_factory):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
