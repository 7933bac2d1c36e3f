"""
Engine exceptions

Routers translate these into HTTP status codes. Library callers can tell a
failed login (NotFoundError) apart from a broken store (LedgerWriteError).
"""

from typing import Optional


class CallLogError(Exception):
    """Base class for all call log engine errors"""


class NotFoundError(CallLogError):
    """A lookup by ID or by credentials matched nothing"""


class LedgerWriteError(CallLogError):
    """A read or write against the store failed. `cause` holds the underlying exception."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self):
        base = super().__str__()
        if self.cause is not None:
            return f"{base}: {self.cause}"
        return base


class UnauthorizedError(CallLogError):
    """The acting identity is not allowed to do this"""


class InvalidFilterError(CallLogError, ValueError):
    """Search was given a filter key or value it does not understand"""
