from __future__ import annotations

import copy
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional

import pytest

from src.school_attendance.school_attendance.academics.model import CohortAssignment, RosterStudent
from src.school_attendance.school_attendance.attendance.model import (
    AttendanceLock,
    AttendanceRecord,
    UpsertOutcome,
)
from src.school_attendance.school_attendance.attendance.service import AttendanceService
from src.school_attendance.school_attendance.core.enums import AttendanceStatus, Role
from src.school_attendance.school_attendance.core.exceptions import ConflictError
from src.school_attendance.school_attendance.reports.service import ReportService
from src.school_attendance.school_attendance.settings.model import Setting
from src.school_attendance.school_attendance.settings.service import SettingsService
from src.school_attendance.school_attendance.users.model import Requester

ADMIN = Requester(user_id=1, role=Role.ADMIN, full_name="Admin")
TEACHER = Requester(user_id=10, role=Role.TEACHER, full_name="Class Teacher")
OTHER_TEACHER = Requester(user_id=11, role=Role.TEACHER, full_name="Other Teacher")
STUDENT = Requester(user_id=50, role=Role.STUDENT, full_name="Student One")


@dataclass
class InMemoryAcademics:
    students: dict[int, RosterStudent]
    assignments: list[CohortAssignment] = field(default_factory=list)
    student_by_user: dict[int, int] = field(default_factory=dict)

    def list_roster(self, *, class_id: int, section_id: int):
        found = [
            s for s in self.students.values()
            if s.is_active and s.class_id == class_id and s.section_id == section_id
        ]
        return sorted(found, key=lambda s: (s.roll_number or "", s.student_id))

    def get_students(self, student_ids):
        return {int(i): self.students[int(i)] for i in student_ids if int(i) in self.students}

    def list_assignments_for_user(self, user_id: int):
        return [a for a in self.assignments if a.teacher_user_id == user_id]

    def get_student_id_for_user(self, user_id: int) -> Optional[int]:
        return self.student_by_user.get(user_id)


@dataclass
class InMemorySettings:
    values: dict[str, str] = field(default_factory=lambda: {"attendance_lock_hours": "24", "low_attendance_threshold": "75"})

    def get_value(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def list_all(self):
        return [Setting(key=k, value=v) for k, v in sorted(self.values.items())]

    def upsert_many(self, entries) -> None:
        for key, value, _ in entries:
            self.values[key] = value


class InMemoryTransaction:
    def __init__(self, repo: "InMemoryAttendance"):
        self._repo = repo

    def read_setting(self, key):
        return self._repo.settings.get_value(key)

    def find_admin_locks(self, keys):
        return {k for k in keys if k in self._repo.locks}

    def upsert_many(self, marks, *, marked_by, now):
        if self._repo.conflicts_to_raise > 0:
            self._repo.conflicts_to_raise -= 1
            raise ConflictError("simulated duplicate key")

        outcomes = []
        for m in marks:
            key = (m.student_id, m.attendance_date)
            before = self._repo.records.get(key)
            if before is None:
                self._repo.next_id += 1
                after = AttendanceRecord(
                    attendance_id=self._repo.next_id,
                    student_id=m.student_id,
                    attendance_date=m.attendance_date,
                    status=m.status,
                    remarks=m.remarks,
                    marked_by=marked_by,
                    marked_at=now,
                    updated_at=now,
                )
            else:
                after = replace(before, status=m.status, remarks=m.remarks, marked_by=marked_by, updated_at=now)
            self._repo.records[key] = after
            outcomes.append(UpsertOutcome(before=before, after=after))
        return outcomes


class InMemoryAttendance:
    """Dict-backed register; a transaction restores the prior state if its block raises."""

    def __init__(self, settings: InMemorySettings):
        self.settings = settings
        self.records: dict[tuple[int, date], AttendanceRecord] = {}
        self.locks: dict[tuple[int, int, date], AttendanceLock] = {}
        self.next_id = 0
        self.conflicts_to_raise = 0
        self.transactions = 0

    @contextmanager
    def transaction(self):
        self.transactions += 1
        saved = (copy.copy(self.records), self.next_id)
        try:
            yield InMemoryTransaction(self)
        except Exception:
            self.records, self.next_id = saved
            raise

    def find_by_student_and_date_range(self, student_id, start_date, end_date):
        found = [
            r for (sid, d), r in self.records.items()
            if sid == student_id and start_date <= d <= end_date
        ]
        return sorted(found, key=lambda r: r.attendance_date)

    def find_by_date(self, attendance_date, student_ids):
        ids = set(student_ids)
        return {sid: r for (sid, d), r in self.records.items() if d == attendance_date and sid in ids}

    def find_for_students_in_range(self, student_ids, start_date, end_date):
        ids = set(student_ids)
        found = [r for (sid, d), r in self.records.items() if sid in ids and start_date <= d <= end_date]
        return sorted(found, key=lambda r: (r.student_id, r.attendance_date))

    def count_by_status(self, attendance_date):
        counts = {s: 0 for s in AttendanceStatus}
        for (_, d), r in self.records.items():
            if d == attendance_date:
                counts[r.status] += 1
        return counts

    def get_admin_lock(self, *, class_id, section_id, lock_date):
        return self.locks.get((class_id, section_id, lock_date))

    def create_admin_lock(self, *, class_id, section_id, lock_date, locked_by, locked_at):
        key = (class_id, section_id, lock_date)
        if key not in self.locks:
            self.locks[key] = AttendanceLock(
                class_id=class_id, section_id=section_id, lock_date=lock_date, locked_at=locked_at, locked_by=locked_by
            )
        return self.locks[key]

    def delete_admin_lock(self, *, class_id, section_id, lock_date):
        return self.locks.pop((class_id, section_id, lock_date), None) is not None


def _student(student_id: int, roll: str, class_id: int = 1, section_id: int = 1, is_active: bool = True) -> RosterStudent:
    return RosterStudent(
        student_id=student_id,
        full_name=f"Student {student_id}",
        admission_number=f"ADM-{student_id}",
        roll_number=roll,
        class_id=class_id,
        section_id=section_id,
        is_active=is_active,
    )


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 1, 10, 9, 0, 0)


@pytest.fixture
def academics() -> InMemoryAcademics:
    students = {sid: _student(sid, f"{i + 1:02d}") for i, sid in enumerate([101, 102, 103, 104, 105])}
    students[201] = _student(201, "01", class_id=2, section_id=1)
    students[106] = _student(106, "06", is_active=False)
    return InMemoryAcademics(
        students=students,
        assignments=[
            CohortAssignment(teacher_user_id=TEACHER.user_id, class_id=1, section_id=1, is_class_teacher=True),
            CohortAssignment(teacher_user_id=OTHER_TEACHER.user_id, class_id=2, section_id=1, subject_id=3),
        ],
        student_by_user={STUDENT.user_id: 101},
    )


@pytest.fixture
def settings_repo() -> InMemorySettings:
    return InMemorySettings()


@pytest.fixture
def attendance_repo(settings_repo) -> InMemoryAttendance:
    return InMemoryAttendance(settings_repo)


@pytest.fixture
def settings_service(settings_repo) -> SettingsService:
    return SettingsService(settings_repo)


@pytest.fixture
def attendance_service(attendance_repo, academics, settings_service) -> AttendanceService:
    return AttendanceService(attendance_repo, academics, settings_service, max_roster_size=50)


@pytest.fixture
def report_service(attendance_repo, academics, settings_service) -> ReportService:
    return ReportService(attendance_repo, academics, settings_service)


@pytest.fixture
def admin() -> Requester:
    return ADMIN


@pytest.fixture
def teacher() -> Requester:
    return TEACHER


@pytest.fixture
def other_teacher() -> Requester:
    return OTHER_TEACHER


@pytest.fixture
def student() -> Requester:
    return STUDENT
