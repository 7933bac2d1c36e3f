"""
Tests for search_calls: typed filters, ordering, pagination.
"""

from datetime import datetime, timedelta, timezone

import pytest

from call_ledger import search_calls
from errors import InvalidFilterError
from schemas_calls import CallSearchFilters
from settings_helper import as_utc


@pytest.fixture
def three_calls(make_call):
    """Structure fire in Stamford, MVA in Readsboro, medical in Stamford"""
    fire = make_call(call_type="Structure Fire", town="Stamford", address="12 Main St")
    mva = make_call(call_type="Motor Vehicle Accident", town="Readsboro", address="Route 100 near bridge")
    medical = make_call(call_type="Medical Emergency", town="Stamford", address="4 Mill Rd")
    return fire, mva, medical


class TestSearchOrdering:
    """Newest created first, paginated"""

    def test_no_filters_returns_all_newest_first(self, db, three_calls):
        fire, mva, medical = three_calls
        assert [c.id for c in search_calls(db)] == [medical.id, mva.id, fire.id]
        assert [c.id for c in search_calls(db, {})] == [medical.id, mva.id, fire.id]

    def test_limit_and_offset(self, db, three_calls):
        fire, mva, medical = three_calls
        assert [c.id for c in search_calls(db, {}, limit=2)] == [medical.id, mva.id]
        assert [c.id for c in search_calls(db, {}, limit=2, offset=2)] == [fire.id]


class TestSearchFilters:
    """Each filter narrows; filters combine with AND"""

    def test_call_type_exact(self, db, three_calls):
        _, mva, _ = three_calls
        results = search_calls(db, {"call_type": "Motor Vehicle Accident"})
        assert [c.id for c in results] == [mva.id]
        assert search_calls(db, {"call_type": "Motor Vehicle"}) == []

    def test_town_exact(self, db, three_calls):
        fire, _, medical = three_calls
        assert [c.id for c in search_calls(db, {"town": "Stamford"})] == [medical.id, fire.id]

    def test_search_text_matches_address(self, db, three_calls):
        _, mva, _ = three_calls
        assert [c.id for c in search_calls(db, {"search_text": "bridge"})] == [mva.id]

    def test_search_text_matches_incident_number(self, db, three_calls):
        fire, _, _ = three_calls
        assert [c.id for c in search_calls(db, {"search_text": "2026-001"})] == [fire.id]

    def test_filters_combine_with_and(self, db, three_calls):
        fire, _, _ = three_calls
        results = search_calls(db, {"town": "Stamford", "call_type": "Structure Fire"})
        assert [c.id for c in results] == [fire.id]
        assert search_calls(db, {"town": "Readsboro", "call_type": "Structure Fire"}) == []

    def test_date_range_on_created_at(self, db, three_calls):
        fire, mva, medical = three_calls
        start = as_utc(mva.created_at)
        end = as_utc(medical.created_at)

        results = search_calls(db, {"start_date": start, "end_date": end})
        assert [c.id for c in results] == [medical.id, mva.id]

        future = datetime.now(timezone.utc) + timedelta(days=1)
        assert search_calls(db, {"start_date": future}) == []

    def test_empty_values_are_ignored(self, db, three_calls):
        results = search_calls(db, {"call_type": "", "town": "", "search_text": "", "start_date": ""})
        assert len(results) == 3

    def test_whitespace_search_text_is_searched(self, db, make_call):
        spaced = make_call(address="12 Main St")
        make_call(address="Route100")
        assert [c.id for c in search_calls(db, {"search_text": " "})] == [spaced.id]

    def test_typed_filters_accepted(self, db, three_calls):
        _, mva, _ = three_calls
        results = search_calls(db, CallSearchFilters(town="Readsboro"))
        assert [c.id for c in results] == [mva.id]


class TestSearchValidation:
    """Unknown keys are rejected instead of silently ignored"""

    def test_unknown_key_rejected(self, db, three_calls):
        with pytest.raises(InvalidFilterError):
            search_calls(db, {"query": "Main"})

    def test_invalid_filter_is_a_value_error(self, db):
        with pytest.raises(ValueError):
            search_calls(db, {"bogus": 1})

    def test_bad_date_rejected(self, db):
        with pytest.raises(InvalidFilterError):
            search_calls(db, {"start_date": "not a date"})
