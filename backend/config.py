"""
Configuration for the Call Log engine

Values come from the environment. Runtime policy (edit window, admin
override) lives in the settings table instead - see settings_helper.py.
"""

import os
import logging

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('true', '1', 'yes', 'on')


# =============================================================================
# DATABASE
# =============================================================================

DATABASE_URL = os.environ.get("CALLLOG_DATABASE_URL", "postgresql:///calllog_db")

# Seconds a SQLite writer waits on a locked database before failing
SQLITE_TIMEOUT = int(os.environ.get("CALLLOG_SQLITE_TIMEOUT", "30"))


# =============================================================================
# BREAK-GLASS CREDENTIAL
# =============================================================================

# Fixed, non-persisted superuser login.
# Disable with CALLLOG_BREAK_GLASS=false once every station has a real admin.
BREAK_GLASS_ENABLED = _env_bool("CALLLOG_BREAK_GLASS", True)
BREAK_GLASS_NAME = "Admin User"
BREAK_GLASS_PIN = "1234"
BREAK_GLASS_USER_ID = 0

if BREAK_GLASS_ENABLED:
    logger.warning(
        "Break-glass credential is enabled. "
        "Set CALLLOG_BREAK_GLASS=false to turn it off."
    )


# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.environ.get("CALLLOG_LOG_LEVEL", "INFO").upper()
