from __future__ import annotations

from datetime import date, datetime
from typing import ContextManager, Iterable, Mapping, Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceLock, AttendanceMark, AttendanceRecord, UpsertOutcome

CohortDate = tuple[int, int, date]


class AttendanceWriteTransaction(Protocol):
    """Operations that must share one database transaction during a batch write."""

    def read_setting(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def find_admin_locks(self, keys: Iterable[CohortDate]) -> set[CohortDate]:
        """Subset of ``keys`` (class_id, section_id, date) that carry a lock row."""

        raise NotImplementedError

    def upsert_many(
        self,
        marks: Sequence[AttendanceMark],
        *,
        marked_by: int,
        now: datetime,
    ) -> list[UpsertOutcome]:
        """Insert-or-update keyed on (student_id, date) as one atomic statement per mark."""

        raise NotImplementedError


class AttendanceRepository(Protocol):
    def transaction(self) -> ContextManager[AttendanceWriteTransaction]:
        raise NotImplementedError

    def find_by_student_and_date_range(
        self, student_id: int, start_date: date, end_date: date
    ) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def find_by_date(self, attendance_date: date, student_ids: Iterable[int]) -> Mapping[int, AttendanceRecord]:
        raise NotImplementedError

    def find_for_students_in_range(
        self, student_ids: Iterable[int], start_date: date, end_date: date
    ) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def count_by_status(self, attendance_date: date) -> Mapping[AttendanceStatus, int]:
        raise NotImplementedError

    def get_admin_lock(self, *, class_id: int, section_id: int, lock_date: date) -> Optional[AttendanceLock]:
        raise NotImplementedError

    def create_admin_lock(
        self, *, class_id: int, section_id: int, lock_date: date, locked_by: int, locked_at: datetime
    ) -> AttendanceLock:
        """Create the lock row, or return the existing one untouched."""

        raise NotImplementedError

    def delete_admin_lock(self, *, class_id: int, section_id: int, lock_date: date) -> bool:
        raise NotImplementedError
