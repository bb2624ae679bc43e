from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Mapping, Optional, Sequence

from ..academics.access import CohortAccess
from ..academics.model import RosterStudent
from ..academics.repository import AcademicRepository
from ..common.datetime_utils import now_local
from ..common.validators import (
    normalize_remarks,
    parse_status,
    require_attendance_date,
    require_date_range,
    require_id,
)
from ..core.constants import DEFAULT_MAX_ROSTER_SIZE, LOCK_HOURS_SETTING
from ..core.enums import AttendanceStatus, LockReason
from ..core.exceptions import ConfigurationError, ConflictError, ForbiddenError, LockedError, ValidationError
from ..locking import policy
from ..reports.aggregation import AttendanceSummary, summarize
from ..settings.service import SettingsService, parse_lock_hours
from ..users.model import Requester
from .model import AttendanceLock, AttendanceMark, AttendanceRecord, RosterEntry
from .repository import AttendanceRepository, AttendanceWriteTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RosterView:
    class_id: int
    section_id: int
    attendance_date: date
    entries: list[RosterEntry]
    lock: policy.LockState
    can_edit: bool


@dataclass(frozen=True)
class StudentHistory:
    student_id: int
    start_date: date
    end_date: date
    records: list[AttendanceRecord]
    summary: AttendanceSummary


class AttendanceService:
    """Attendance register: lock-gated, all-or-nothing batch upserts plus reads."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        academics: AcademicRepository,
        settings: SettingsService,
        *,
        access: CohortAccess | None = None,
        max_roster_size: int = DEFAULT_MAX_ROSTER_SIZE,
    ):
        self._attendance = attendance
        self._academics = academics
        self._settings = settings
        self._access = access or CohortAccess(academics)
        self._max_roster_size = int(max_roster_size)

    # -- writes ---------------------------------------------------------------

    def submit_attendance(
        self,
        requester: Requester,
        *,
        class_id,
        section_id,
        work_date: date,
        roster: Iterable[Mapping],
        now: datetime | None = None,
    ) -> int:
        """Save one class/section's roster for one date. Returns rows written."""
        class_id = require_id(class_id, "class_id")
        section_id = require_id(section_id, "section_id")

        marks = []
        for entry in roster:
            marks.append(
                AttendanceMark(
                    student_id=require_id(entry.get("student_id"), "student_id"),
                    attendance_date=work_date,
                    status=parse_status(entry.get("status")),
                    remarks=normalize_remarks(entry.get("remarks")),
                )
            )
        if not marks:
            raise ValidationError("Roster is empty")

        self._check_marks(marks, now=now)
        students = self._load_students(marks)
        outsiders = sorted(
            sid for sid, s in students.items() if (s.class_id, s.section_id) != (class_id, section_id)
        )
        if outsiders:
            raise ValidationError(f"Students {outsiders} are not enrolled in this class/section")

        return self._write(marks, requester, students, now=now)

    def upsert_batch(
        self,
        marks: Sequence[AttendanceMark],
        requester: Requester,
        *,
        now: datetime | None = None,
    ) -> int:
        """Insert-or-update every mark, or none of them."""
        if not marks:
            return 0
        self._check_marks(marks, now=now)
        students = self._load_students(marks)
        return self._write(marks, requester, students, now=now)

    def _check_marks(self, marks: Sequence[AttendanceMark], *, now: datetime | None) -> None:
        if len(marks) > self._max_roster_size:
            raise ValidationError(f"A batch may hold at most {self._max_roster_size} records")

        today = (now or now_local()).date()
        seen: set[tuple[int, date]] = set()
        for m in marks:
            require_attendance_date(m.attendance_date, today=today)
            if not isinstance(m.status, AttendanceStatus):
                raise ValidationError(f"Unknown attendance status {m.status!r}")
            key = (int(m.student_id), m.attendance_date)
            if key in seen:
                raise ValidationError(
                    f"Student {m.student_id} appears twice for {m.attendance_date.isoformat()}"
                )
            seen.add(key)

    def _load_students(self, marks: Sequence[AttendanceMark]) -> Mapping[int, RosterStudent]:
        ids = {int(m.student_id) for m in marks}
        students = self._academics.get_students(ids)
        missing = sorted(ids - set(students))
        if missing:
            raise ValidationError(f"Unknown students: {missing}")
        inactive = sorted(sid for sid, s in students.items() if not s.is_active)
        if inactive:
            raise ValidationError(f"Students {inactive} are no longer enrolled")
        return students

    def _authorize(self, requester: Requester, students: Iterable[RosterStudent]) -> None:
        if requester.is_admin:
            return
        cohorts = {(s.class_id, s.section_id) for s in students}
        for class_id, section_id in cohorts:
            if class_id is None or section_id is None:
                raise ForbiddenError("Student is not placed in a class/section")
            self._access.require_manage(requester, class_id=class_id, section_id=section_id)

    def _write(
        self,
        marks: Sequence[AttendanceMark],
        requester: Requester,
        students: Mapping[int, RosterStudent],
        *,
        now: datetime | None,
    ) -> int:
        try:
            return self._write_once(marks, requester, students, now=now)
        except ConflictError:
            logger.warning("Write conflict for %d records, retrying once", len(marks))
            return self._write_once(marks, requester, students, now=now)

    def _write_once(
        self,
        marks: Sequence[AttendanceMark],
        requester: Requester,
        students: Mapping[int, RosterStudent],
        *,
        now: datetime | None,
    ) -> int:
        # One snapshot of the clock and of the lock setting for the whole batch.
        now = now or now_local()
        with self._attendance.transaction() as tx:
            self._authorize(requester, students.values())
            if not requester.is_admin:
                self._ensure_unlocked(tx, marks, students, now=now)
            outcomes = tx.upsert_many(marks, marked_by=requester.user_id, now=now)

        dates = ", ".join(sorted({m.attendance_date.isoformat() for m in marks}))
        logger.info("User %s saved %d attendance records for %s", requester.user_id, len(outcomes), dates)
        return len(outcomes)

    def _ensure_unlocked(
        self,
        tx: AttendanceWriteTransaction,
        marks: Sequence[AttendanceMark],
        students: Mapping[int, RosterStudent],
        *,
        now: datetime,
    ) -> None:
        hours = parse_lock_hours(tx.read_setting(LOCK_HOURS_SETTING))

        time_locked = {
            m.attendance_date
            for m in marks
            if not policy.is_writable(m.attendance_date, hours, now, False)
        }

        keys = {
            (students[int(m.student_id)].class_id, students[int(m.student_id)].section_id, m.attendance_date)
            for m in marks
        }
        admin_locked = {d for _, _, d in tx.find_admin_locks(keys)}

        if admin_locked:
            logger.warning("Rejected write on administratively locked dates %s", sorted(admin_locked))
            raise LockedError(LockReason.ADMIN_LOCK, admin_locked | time_locked)
        if time_locked:
            logger.warning("Rejected write after lock window (%sh) on %s", hours, sorted(time_locked))
            raise LockedError(LockReason.TIME_WINDOW, time_locked)

    # -- administrative locks -------------------------------------------------

    def lock_date(
        self, requester: Requester, *, class_id, section_id, lock_date: date, now: datetime | None = None
    ) -> AttendanceLock:
        if not requester.is_admin:
            raise ForbiddenError("Only administrators can lock attendance")
        lock = self._attendance.create_admin_lock(
            class_id=require_id(class_id, "class_id"),
            section_id=require_id(section_id, "section_id"),
            lock_date=lock_date,
            locked_by=requester.user_id,
            locked_at=now or now_local(),
        )
        logger.info("User %s locked class %s/%s on %s", requester.user_id, class_id, section_id, lock_date)
        return lock

    def unlock_date(self, requester: Requester, *, class_id, section_id, lock_date: date) -> bool:
        if not requester.is_admin:
            raise ForbiddenError("Only administrators can unlock attendance")
        removed = self._attendance.delete_admin_lock(
            class_id=require_id(class_id, "class_id"),
            section_id=require_id(section_id, "section_id"),
            lock_date=lock_date,
        )
        if removed:
            logger.info("User %s unlocked class %s/%s on %s", requester.user_id, class_id, section_id, lock_date)
        return removed

    # -- reads ------------------------------------------------------------------

    def find_by_student_and_date_range(
        self, student_id: int, start_date: date, end_date: date
    ) -> list[AttendanceRecord]:
        require_date_range(start_date, end_date)
        return list(self._attendance.find_by_student_and_date_range(int(student_id), start_date, end_date))

    def find_by_date(self, attendance_date: date, student_ids: Iterable[int]) -> Mapping[int, AttendanceRecord]:
        return self._attendance.find_by_date(attendance_date, [int(i) for i in student_ids])

    def is_locked_for_date(self, class_id: int, section_id: int, lock_date: date) -> bool:
        """True when an administrator has locked this class/section/date."""
        return (
            self._attendance.get_admin_lock(class_id=int(class_id), section_id=int(section_id), lock_date=lock_date)
            is not None
        )

    def lock_state(
        self,
        *,
        class_id: int,
        section_id: int,
        work_date: date,
        now: datetime | None = None,
        requester_is_admin: bool = False,
    ) -> policy.LockState:
        admin_locked = self.is_locked_for_date(class_id, section_id, work_date)
        try:
            hours = self._settings.lock_window_hours()
        except ConfigurationError:
            # Admins bypass the time window, so the setting does not apply to them.
            if not requester_is_admin:
                raise
            logger.warning("Lock window setting is unusable; showing %s without a time window", work_date)
            return policy.LockState(work_date=work_date, time_locked=False, admin_locked=admin_locked, locks_at=None)
        return policy.evaluate(work_date, hours, now or now_local(), admin_locked=admin_locked)

    def is_date_locked(
        self, requester: Requester, *, class_id, section_id, work_date: date, now: datetime | None = None
    ) -> policy.LockState:
        class_id = require_id(class_id, "class_id")
        section_id = require_id(section_id, "section_id")
        self._access.require_manage(requester, class_id=class_id, section_id=section_id)
        return self.lock_state(
            class_id=class_id, section_id=section_id, work_date=work_date, now=now, requester_is_admin=requester.is_admin
        )

    def get_attendance_for_date(
        self, requester: Requester, *, class_id, section_id, work_date: date, now: datetime | None = None
    ) -> RosterView:
        class_id = require_id(class_id, "class_id")
        section_id = require_id(section_id, "section_id")
        self._access.require_manage(requester, class_id=class_id, section_id=section_id)

        students = self._academics.list_roster(class_id=class_id, section_id=section_id)
        existing = self._attendance.find_by_date(work_date, [s.student_id for s in students])

        entries = []
        for s in students:
            rec = existing.get(s.student_id)
            entries.append(
                RosterEntry(
                    student=s,
                    # Unmarked students show as present; nothing is stored until saved.
                    status=rec.status if rec else AttendanceStatus.PRESENT,
                    remarks=rec.remarks if rec else None,
                    is_marked=rec is not None,
                )
            )

        lock = self.lock_state(
            class_id=class_id, section_id=section_id, work_date=work_date, now=now, requester_is_admin=requester.is_admin
        )
        return RosterView(
            class_id=class_id,
            section_id=section_id,
            attendance_date=work_date,
            entries=entries,
            lock=lock,
            can_edit=lock.writable_by(is_admin=requester.is_admin),
        )

    def get_student_history(
        self, requester: Requester, *, student_id, start_date: date, end_date: date
    ) -> StudentHistory:
        student_id = require_id(student_id, "student_id")
        self._access.require_student_view(requester, student_id=student_id)
        records = self.find_by_student_and_date_range(student_id, start_date, end_date)
        return StudentHistory(
            student_id=student_id,
            start_date=start_date,
            end_date=end_date,
            records=records,
            summary=summarize(records),
        )

    def resolve_student_id(self, requester: Requester) -> Optional[int]:
        """Student id behind a student account (for "my attendance")."""
        if not requester.is_student:
            return None
        return self._academics.get_student_id_for_user(requester.user_id)
