from __future__ import annotations

from datetime import date, datetime, time

from ..core.exceptions import ValidationError

END_OF_DAY = time(23, 59, 59, 999000)


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_date_field(value, field_name: str) -> date:
    """Accept a date or an ISO string from request payloads."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    try:
        return parse_iso_date(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format")


def end_of_day(day: date, *, tzinfo=None) -> datetime:
    """Last millisecond of ``day``; carries ``tzinfo`` so it compares with ``now``."""
    return datetime.combine(day, END_OF_DAY, tzinfo=tzinfo)


def now_local() -> datetime:
    """Current local time.

    Wrapped so tests can patch it.
    """
    return datetime.now()
