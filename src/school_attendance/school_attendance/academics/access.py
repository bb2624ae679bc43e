from __future__ import annotations

from ..core.exceptions import ForbiddenError
from ..users.model import Requester
from .repository import AcademicRepository


class CohortAccess:
    """Who may read or write attendance for a class/section or a student."""

    def __init__(self, academics: AcademicRepository):
        self._academics = academics

    def can_manage(self, requester: Requester, *, class_id: int, section_id: int) -> bool:
        if requester.is_admin:
            return True
        if not requester.is_teacher:
            return False
        return any(
            a.covers(class_id, section_id)
            for a in self._academics.list_assignments_for_user(requester.user_id)
        )

    def require_manage(self, requester: Requester, *, class_id: int, section_id: int) -> None:
        if not self.can_manage(requester, class_id=class_id, section_id=section_id):
            raise ForbiddenError("You are not assigned to this class/section")

    def require_student_view(self, requester: Requester, *, student_id: int) -> None:
        if requester.is_admin:
            return
        if requester.is_student:
            own_id = self._academics.get_student_id_for_user(requester.user_id)
            if own_id is None or own_id != int(student_id):
                raise ForbiddenError("Students can only view their own attendance")
            return

        student = self._academics.get_students([student_id]).get(int(student_id))
        if student is None or student.class_id is None or student.section_id is None:
            raise ForbiddenError("You are not assigned to this student's class/section")
        self.require_manage(requester, class_id=student.class_id, section_id=student.section_id)
