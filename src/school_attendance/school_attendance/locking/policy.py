"""Lock policy: decides whether a day's attendance is still editable.

A day stays open to teachers until ``lock_window_hours`` after the end of that
calendar day. Administrators are never locked out. Everything here is a pure
function of its inputs; callers pass the current time and the current setting.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from ..common.datetime_utils import end_of_day
from ..core.enums import LockReason
from ..core.exceptions import ConfigurationError


def lock_boundary(record_date: date, lock_window_hours: int, *, tzinfo=None) -> datetime:
    """Instant at which ``record_date`` closes for non-admin writers."""
    if isinstance(lock_window_hours, bool) or not isinstance(lock_window_hours, int):
        raise ConfigurationError(f"Lock window must be a whole number of hours, got {lock_window_hours!r}")
    if lock_window_hours < 0:
        raise ConfigurationError(f"Lock window cannot be negative ({lock_window_hours} hours)")
    return end_of_day(record_date, tzinfo=tzinfo) + timedelta(hours=lock_window_hours)


def is_writable(record_date: date, lock_window_hours: int, now: datetime, requester_is_admin: bool) -> bool:
    if requester_is_admin:
        return True
    # The boundary takes the tz of ``now`` so naive and aware clocks both compare.
    return now < lock_boundary(record_date, lock_window_hours, tzinfo=now.tzinfo)


@dataclass(frozen=True)
class LockState:
    """Both lock gates for one class/section/date, as seen by a non-admin."""

    work_date: date
    time_locked: bool
    admin_locked: bool
    # None when the window setting is unusable and only an admin is looking.
    locks_at: Optional[datetime]

    @property
    def locked(self) -> bool:
        return self.time_locked or self.admin_locked

    @property
    def reason(self) -> Optional[LockReason]:
        if self.admin_locked:
            return LockReason.ADMIN_LOCK
        if self.time_locked:
            return LockReason.TIME_WINDOW
        return None

    def writable_by(self, *, is_admin: bool) -> bool:
        return is_admin or not self.locked


def evaluate(record_date: date, lock_window_hours: int, now: datetime, *, admin_locked: bool) -> LockState:
    return LockState(
        work_date=record_date,
        time_locked=not is_writable(record_date, lock_window_hours, now, False),
        admin_locked=bool(admin_locked),
        locks_at=lock_boundary(record_date, lock_window_hours, tzinfo=now.tzinfo),
    )
