from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RosterStudent:
    """A student as placed in one class/section."""

    student_id: int
    full_name: str
    admission_number: str
    roll_number: Optional[str]
    class_id: Optional[int]
    section_id: Optional[int]
    user_id: Optional[int] = None
    is_active: bool = True


@dataclass(frozen=True)
class CohortAssignment:
    """A teacher assigned to a class/section, optionally for one subject."""

    teacher_user_id: int
    class_id: int
    section_id: int
    subject_id: Optional[int] = None
    is_class_teacher: bool = False

    def covers(self, class_id: int, section_id: int) -> bool:
        return self.class_id == int(class_id) and self.section_id == int(section_id)
