"""Attendance percentages for dashboards and reports.

Late counts as attended. Percentages are whole numbers rounded half up on the
final ratio. Empty input is a normal state ("nothing marked yet") and yields
zeros, never an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from ..core.constants import DEFAULT_LOW_ATTENDANCE_THRESHOLD
from ..core.enums import AttendanceStatus


def ratio_percent_half_up(numerator: int, denominator: int) -> int:
    """round_half_up(100 * numerator / denominator) in integer arithmetic; 0 when denominator is 0."""
    if denominator <= 0:
        return 0
    return (200 * numerator + denominator) // (2 * denominator)


def mean_half_up(values: list[int]) -> int:
    if not values:
        return 0
    return (2 * sum(values) + len(values)) // (2 * len(values))


@dataclass(frozen=True)
class AttendanceSummary:
    present: int = 0
    absent: int = 0
    late: int = 0

    @property
    def total(self) -> int:
        return self.present + self.absent + self.late

    @property
    def attended(self) -> int:
        return self.present + self.late

    @property
    def percentage(self) -> int:
        return ratio_percent_half_up(self.attended, self.total)

    def to_dict(self) -> dict:
        return {
            "present": self.present,
            "absent": self.absent,
            "late": self.late,
            "total": self.total,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class CohortSummary:
    student_count: int
    average_percentage: int
    below_threshold_count: int
    threshold: int

    def to_dict(self) -> dict:
        return {
            "student_count": self.student_count,
            "average_percentage": self.average_percentage,
            "below_threshold_count": self.below_threshold_count,
            "threshold": self.threshold,
        }


def summarize(records: Iterable) -> AttendanceSummary:
    """Count records by ``status``."""
    counts = {status: 0 for status in AttendanceStatus}
    for r in records:
        counts[AttendanceStatus(r.status)] += 1
    return AttendanceSummary(
        present=counts[AttendanceStatus.PRESENT],
        absent=counts[AttendanceStatus.ABSENT],
        late=counts[AttendanceStatus.LATE],
    )


def summarize_cohort(
    per_student: Iterable[Union[AttendanceSummary, int]],
    *,
    threshold: int = DEFAULT_LOW_ATTENDANCE_THRESHOLD,
) -> CohortSummary:
    """Unweighted mean of each student's own percentage.

    A student with 2 records counts as much as one with 40; raw counts are not
    pooled.
    """
    percentages = [p.percentage if isinstance(p, AttendanceSummary) else int(p) for p in per_student]
    return CohortSummary(
        student_count=len(percentages),
        average_percentage=mean_half_up(percentages),
        below_threshold_count=sum(1 for p in percentages if p < threshold),
        threshold=threshold,
    )
