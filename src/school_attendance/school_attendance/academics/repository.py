from __future__ import annotations

from typing import Iterable, Mapping, Optional, Protocol, Sequence

from .model import CohortAssignment, RosterStudent


class AcademicRepository(Protocol):
    def list_roster(self, *, class_id: int, section_id: int) -> Sequence[RosterStudent]:
        """Active students of a class/section, ordered by roll number."""

        raise NotImplementedError

    def get_students(self, student_ids: Iterable[int]) -> Mapping[int, RosterStudent]:
        raise NotImplementedError

    def list_assignments_for_user(self, user_id: int) -> Sequence[CohortAssignment]:
        raise NotImplementedError

    def get_student_id_for_user(self, user_id: int) -> Optional[int]:
        raise NotImplementedError
