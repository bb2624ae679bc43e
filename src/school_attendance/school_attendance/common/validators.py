from __future__ import annotations

from datetime import date
from typing import Optional

from ..core.constants import EARLIEST_ATTENDANCE_DATE
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError


def require_id(value, field_name: str) -> int:
    if value is None or isinstance(value, bool) or str(value).strip() == "":
        raise ValidationError(f"{field_name} is required")
    # Floats such as 1.5 are rejected, not truncated.
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"{field_name} must be an integer id")
    if parsed <= 0:
        raise ValidationError(f"{field_name} must be a positive id")
    return parsed


def parse_status(value) -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(str(value or "").strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in AttendanceStatus)
        raise ValidationError(f"Unknown attendance status {value!r} (expected one of: {allowed})")


def normalize_remarks(value: Optional[str]) -> Optional[str]:
    text = (value or "").strip()
    return text or None


def require_attendance_date(value: date, *, today: date) -> date:
    if value > today:
        raise ValidationError(f"Cannot mark attendance for a future date ({value.isoformat()})")
    if value < EARLIEST_ATTENDANCE_DATE:
        raise ValidationError(f"Attendance date {value.isoformat()} is out of range")
    return value


def require_date_range(start: date, end: date) -> None:
    if end < start:
        raise ValidationError("End date cannot be before start date")


def require_int_in_range(value, field_name: str, *, minimum: int, maximum: Optional[int] = None) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a whole number")
    if parsed < minimum:
        raise ValidationError(f"{field_name} must be at least {minimum}")
    if maximum is not None and parsed > maximum:
        raise ValidationError(f"{field_name} must be at most {maximum}")
    return parsed
