"""
Test data builders shared across test modules.
"""

from datetime import datetime, timezone


DISPATCHED = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def call_fields(**overrides) -> dict:
    """Valid call payload; override any field"""
    fields = {
        "call_type": "Structure Fire",
        "mutual_aid": "No",
        "address": "12 Main St",
        "town": "Stamford",
        "location_notes": None,
        "dispatched": DISPATCHED,
        "narrative": "",
    }
    fields.update(overrides)
    return fields


def acting(name: str, pin: str) -> dict:
    """Request body fragment carrying the caller's credentials"""
    return {"acting": {"name": name, "pin": pin}}
