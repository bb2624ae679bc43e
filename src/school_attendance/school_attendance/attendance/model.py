from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..academics.model import RosterStudent
from ..core.enums import AttendanceStatus, AuditAction


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one student's attendance on one calendar date."""

    student_id: int
    attendance_date: date
    status: AttendanceStatus
    remarks: Optional[str]
    marked_by: Optional[int]
    marked_at: datetime
    updated_at: datetime
    attendance_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "attendance_id": self.attendance_id,
            "student_id": self.student_id,
            "date": self.attendance_date.isoformat(),
            "status": self.status.value,
            "remarks": self.remarks,
            "marked_by": self.marked_by,
            "marked_at": self.marked_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class AttendanceMark:
    """Write-model: the status a caller wants stored for a student/date."""

    student_id: int
    attendance_date: date
    status: AttendanceStatus
    remarks: Optional[str] = None


@dataclass(frozen=True)
class UpsertOutcome:
    """What one upsert did; ``before`` is None for inserts."""

    before: Optional[AttendanceRecord]
    after: AttendanceRecord

    @property
    def action(self) -> AuditAction:
        return AuditAction.INSERT if self.before is None else AuditAction.UPDATE


@dataclass(frozen=True)
class AttendanceLock:
    """Administrative lock row for one class/section/date."""

    class_id: int
    section_id: int
    lock_date: date
    locked_at: datetime
    locked_by: Optional[int]


@dataclass(frozen=True)
class RosterEntry:
    """Read-model for the marking screen."""

    student: RosterStudent
    status: AttendanceStatus
    remarks: Optional[str]
    is_marked: bool

    def to_dict(self) -> dict:
        return {
            "student_id": self.student.student_id,
            "full_name": self.student.full_name,
            "admission_number": self.student.admission_number,
            "roll_number": self.student.roll_number,
            "status": self.status.value,
            "remarks": self.remarks or "",
            "is_marked": self.is_marked,
        }
