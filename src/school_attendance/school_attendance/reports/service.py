from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..academics.access import CohortAccess
from ..academics.model import RosterStudent
from ..academics.repository import AcademicRepository
from ..attendance.repository import AttendanceRepository
from ..common.validators import require_date_range, require_id
from ..core.exceptions import ForbiddenError
from ..settings.service import SettingsService
from ..users.model import Requester
from .aggregation import AttendanceSummary, CohortSummary, summarize, summarize_cohort


@dataclass(frozen=True)
class StudentReportRow:
    student: RosterStudent
    summary: AttendanceSummary

    def to_dict(self) -> dict:
        return {
            "student_id": self.student.student_id,
            "full_name": self.student.full_name,
            "admission_number": self.student.admission_number,
            "roll_number": self.student.roll_number,
            **self.summary.to_dict(),
        }


@dataclass(frozen=True)
class CohortReport:
    class_id: int
    section_id: int
    start_date: date
    end_date: date
    rows: list[StudentReportRow]
    cohort: CohortSummary


class ReportService:
    def __init__(
        self,
        attendance: AttendanceRepository,
        academics: AcademicRepository,
        settings: SettingsService,
        *,
        access: Optional[CohortAccess] = None,
    ):
        self._attendance = attendance
        self._academics = academics
        self._settings = settings
        self._access = access or CohortAccess(academics)

    def get_report(
        self,
        requester: Requester,
        *,
        class_id,
        section_id,
        start_date: date,
        end_date: date,
    ) -> CohortReport:
        class_id = require_id(class_id, "class_id")
        section_id = require_id(section_id, "section_id")
        require_date_range(start_date, end_date)
        self._access.require_manage(requester, class_id=class_id, section_id=section_id)

        students = self._academics.list_roster(class_id=class_id, section_id=section_id)
        records = self._attendance.find_for_students_in_range(
            [s.student_id for s in students], start_date, end_date
        )

        by_student: dict[int, list] = defaultdict(list)
        for r in records:
            by_student[r.student_id].append(r)

        rows = [StudentReportRow(student=s, summary=summarize(by_student.get(s.student_id, []))) for s in students]
        cohort = summarize_cohort(
            [row.summary for row in rows],
            threshold=self._settings.low_attendance_threshold(),
        )
        return CohortReport(
            class_id=class_id,
            section_id=section_id,
            start_date=start_date,
            end_date=end_date,
            rows=rows,
            cohort=cohort,
        )

    def daily_overview(self, requester: Requester, *, attendance_date: date) -> dict:
        """School-wide counts by status for one date (admin dashboard)."""
        if not requester.is_admin:
            raise ForbiddenError("Only administrators can view the school overview")
        counts = self._attendance.count_by_status(attendance_date)
        summary = AttendanceSummary(**{status.value: int(n) for status, n in counts.items()})
        return {"date": attendance_date.isoformat(), **summary.to_dict()}
