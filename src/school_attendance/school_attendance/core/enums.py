from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for access decisions."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class AttendanceStatus(str, Enum):
    """Attendance status as stored in the database."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"


class LockReason(str, Enum):
    """Why a date is closed to non-admin writers."""

    TIME_WINDOW = "time_window"
    ADMIN_LOCK = "admin_lock"


class AuditAction(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
