from __future__ import annotations

from datetime import date
from typing import Iterable

from .enums import LockReason


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class ForbiddenError(DomainError):
    """Raised when a user lacks permission for an action."""


class ConfigurationError(DomainError):
    """Raised when a stored setting holds a value the system cannot use."""


class LockedError(DomainError):
    """Raised when a write targets a date closed to the requester.

    ``reason`` tells the UI which gate rejected the write; ``dates`` lists every
    offending date in the batch.
    """

    def __init__(self, reason: LockReason, dates: Iterable[date]):
        self.reason = reason
        self.dates = sorted(set(dates))
        joined = ", ".join(d.isoformat() for d in self.dates)
        if reason == LockReason.ADMIN_LOCK:
            message = f"Attendance is locked by an administrator for: {joined}"
        else:
            message = f"Attendance edit window has closed for: {joined}"
        super().__init__(message)


class ConflictError(DomainError):
    """Raised when a concurrent write collided on the same student/date."""


class StorageError(DomainError):
    """Raised when the underlying database operation failed."""
