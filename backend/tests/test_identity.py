"""
Tests for the identity directory: login, break-glass, PINs, roster.
"""

from datetime import date

import pytest

import config
import identity
import permissions
from database import DEFAULT_ADMIN
from errors import LedgerWriteError, NotFoundError, UnauthorizedError
from models import User
from schemas_calls import CallCreate
from factories import call_fields


class TestAuthenticate:
    """Name + PIN login"""

    def test_valid_credentials(self, db, member):
        user = identity.authenticate_user(db, "Jane Doe", "1111")
        assert user.id == member.id

    def test_wrong_pin_and_wrong_name_look_the_same(self, db, member):
        with pytest.raises(NotFoundError) as bad_pin:
            identity.authenticate_user(db, "Jane Doe", "0000")
        with pytest.raises(NotFoundError) as bad_name:
            identity.authenticate_user(db, "Nobody Here", "1111")
        assert str(bad_pin.value) == str(bad_name.value) == "Invalid name or PIN"

    def test_name_is_case_sensitive(self, db, member):
        with pytest.raises(NotFoundError):
            identity.authenticate_user(db, "jane doe", "1111")

    def test_inactive_member_cannot_log_in(self, db, member):
        identity.deactivate_user(db, member.id)
        with pytest.raises(NotFoundError):
            identity.authenticate_user(db, "Jane Doe", "1111")


class TestBreakGlass:
    """Fixed 'Admin User' / '1234' credential"""

    def test_yields_transient_admin(self, db):
        user = identity.authenticate_user(db, "Admin User", "1234")
        assert user.id == config.BREAK_GLASS_USER_ID
        assert user.is_admin is True
        assert identity.is_break_glass(user)
        assert db.query(User).filter(User.id == 0).first() is None

    def test_works_even_when_admin_row_pin_changed(self, db):
        seeded = db.query(User).filter(User.first_name == "Admin", User.last_name == "User").one()
        identity.change_pin(db, seeded.id, "8080")
        user = identity.authenticate_user(db, "Admin User", "1234")
        assert user.id == 0

    def test_disabled_by_config(self, db, monkeypatch):
        monkeypatch.setattr(config, "BREAK_GLASS_ENABLED", False)
        # Falls through to the seeded admin row, which shares the default PIN
        user = identity.authenticate_user(db, "Admin User", "1234")
        assert user.id != 0

        seeded = db.query(User).filter(User.id == user.id).one()
        identity.change_pin(db, seeded.id, "8080")
        with pytest.raises(NotFoundError):
            identity.authenticate_user(db, "Admin User", "1234")

    def test_per_call_override(self, db):
        user = identity.authenticate_user(db, "Admin User", "1234", allow_break_glass=False)
        assert user.id != 0

    def test_use_is_logged(self, db, caplog):
        with caplog.at_level("WARNING", logger="identity"):
            identity.authenticate_user(db, "Admin User", "1234")
        assert "Break-glass" in caplog.text

    def test_seeded_admin_is_shadowed_until_pin_changes(self, db):
        # The seeded row shares the fixed credential, so it resolves to ID 0
        seeded = db.query(User).filter(User.first_name == "Admin", User.last_name == "User").one()
        shadowed = identity.authenticate_user(db, "Admin User", DEFAULT_ADMIN["pin"])
        assert shadowed.id == 0
        with pytest.raises(LedgerWriteError):
            permissions.create_call_as(db, shadowed, CallCreate(created_by=0, **call_fields()))

        identity.change_pin(db, seeded.id, "8080")
        real = identity.authenticate_user(db, "Admin User", "8080")
        assert real.id == seeded.id
        call = permissions.create_call_as(db, real, CallCreate(created_by=real.id, **call_fields()))
        assert call.created_by == seeded.id

    def test_resolve_identity(self, db, monkeypatch):
        assert identity.resolve_identity(db, 0).is_admin is True
        monkeypatch.setattr(config, "BREAK_GLASS_ENABLED", False)
        with pytest.raises(NotFoundError):
            identity.resolve_identity(db, 0)


class TestChangePin:
    """change_pin overwrites unconditionally"""

    def test_change(self, db, member):
        identity.change_pin(db, member.id, "4321")
        assert identity.authenticate_user(db, "Jane Doe", "4321").id == member.id
        with pytest.raises(NotFoundError):
            identity.authenticate_user(db, "Jane Doe", "1111")

    def test_break_glass_id_rejected(self, db):
        with pytest.raises(UnauthorizedError):
            identity.change_pin(db, 0, "0000")

    def test_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            identity.change_pin(db, 555, "0000")


class TestRoster:
    """Listings, mutators and startup admin"""

    def test_active_users_ordered_by_last_then_first(self, db, member, other_member, admin):
        identity.create_user(db, "Adam", "Doe", pin="3333")
        names = [u.display_name for u in identity.get_active_users(db)]
        assert names == ["Chief, Alice", "Doe, Adam", "Doe, Jane", "Smith, John", "User, Admin"]

    def test_all_users_include_inactive(self, db, member, other_member):
        identity.deactivate_user(db, other_member.id)
        active_ids = [u.id for u in identity.get_active_users(db)]
        all_ids = [u.id for u in identity.get_all_users(db)]
        assert other_member.id not in active_ids
        assert other_member.id in all_ids

    def test_admin_users(self, db, member, admin):
        admins = identity.get_admin_users(db)
        assert [u.display_name for u in admins] == ["Chief, Alice", "User, Admin"]

    def test_get_user_by_id(self, db, member):
        assert identity.get_user_by_id(db, member.id).full_name == "Jane Doe"
        assert identity.get_user_by_id(db, 9999) is None
        assert identity.get_user_by_id(db, 0) is None

    def test_field_updates(self, db, member):
        identity.update_user_position(db, member.id, "Captain")
        identity.update_user_admin_status(db, member.id, True)
        identity.update_user_join_date(db, member.id, "2019-05-04")

        user = identity.require_user(db, member.id)
        assert user.position == "Captain"
        assert user.is_admin is True
        assert user.joined_date == date(2019, 5, 4)

    def test_join_date_cleared(self, db, member):
        identity.update_user_join_date(db, member.id, date(2020, 1, 1))
        identity.update_user_join_date(db, member.id, "")
        assert identity.require_user(db, member.id).joined_date is None

    def test_bad_join_date(self, db, member):
        with pytest.raises(ValueError):
            identity.update_user_join_date(db, member.id, "05/04/2019")

    def test_update_user_rejects_unknown_fields(self, db, member):
        with pytest.raises(ValueError):
            identity.update_user(db, member.id, password_hash="x")

    def test_update_missing_user(self, db):
        with pytest.raises(NotFoundError):
            identity.update_user_position(db, 404, "Captain")

    def test_validate_admin_pin(self, db, member, admin):
        assert identity.validate_admin_pin(db, "9999") is True
        assert identity.validate_admin_pin(db, "1111") is False

    def test_default_admin_seeded_once(self, db):
        identity.ensure_admin_exists(db)
        identity.ensure_admin_exists(db)
        admins = db.query(User).filter(User.is_admin == True).all()
        assert len(admins) == 1
        assert admins[0].full_name == "Admin User"
        assert admins[0].pin == DEFAULT_ADMIN["pin"]

    def test_default_admin_pin_restored(self, db):
        seeded = db.query(User).filter(User.is_admin == True).one()
        seeded.pin = ""
        db.commit()
        identity.ensure_admin_exists(db)
        db.refresh(seeded)
        assert seeded.pin == DEFAULT_ADMIN["pin"]
