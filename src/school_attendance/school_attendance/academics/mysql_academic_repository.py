from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, placeholders
from .model import CohortAssignment, RosterStudent
from .repository import AcademicRepository

_STUDENT_COLUMNS = """
    s.student_id, s.user_id, u.full_name, s.admission_number, s.roll_number,
    s.class_id, s.section_id, s.is_active
"""


def _to_student(r: dict) -> RosterStudent:
    return RosterStudent(
        student_id=int(r["student_id"]),
        user_id=int(r["user_id"]) if r.get("user_id") is not None else None,
        full_name=r.get("full_name") or "",
        admission_number=r["admission_number"],
        roll_number=r.get("roll_number"),
        class_id=int(r["class_id"]) if r.get("class_id") is not None else None,
        section_id=int(r["section_id"]) if r.get("section_id") is not None else None,
        is_active=bool(r.get("is_active", 1)),
    )


class MySQLAcademicRepository(AcademicRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_roster(self, *, class_id: int, section_id: int) -> Sequence[RosterStudent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_STUDENT_COLUMNS}
                FROM students s
                LEFT JOIN users u ON u.user_id = s.user_id
                WHERE s.class_id=%s AND s.section_id=%s AND s.is_active=1
                ORDER BY s.roll_number IS NULL, s.roll_number, s.student_id
                """,
                (int(class_id), int(section_id)),
            )
            return [_to_student(r) for r in fetchall(cur)]

    def get_students(self, student_ids: Iterable[int]) -> Mapping[int, RosterStudent]:
        ids = sorted({int(i) for i in student_ids})
        if not ids:
            return {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_STUDENT_COLUMNS}
                FROM students s
                LEFT JOIN users u ON u.user_id = s.user_id
                WHERE s.student_id IN ({placeholders(len(ids))})
                """,
                tuple(ids),
            )
            return {int(r["student_id"]): _to_student(r) for r in fetchall(cur)}

    def list_assignments_for_user(self, user_id: int) -> Sequence[CohortAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT t.user_id, ta.class_id, ta.section_id, ta.subject_id, ta.is_class_teacher
                FROM teacher_assignments ta
                JOIN teachers t ON t.teacher_id = ta.teacher_id
                WHERE t.user_id=%s
                """,
                (int(user_id),),
            )
            return [
                CohortAssignment(
                    teacher_user_id=int(r["user_id"]),
                    class_id=int(r["class_id"]),
                    section_id=int(r["section_id"]),
                    subject_id=int(r["subject_id"]) if r.get("subject_id") is not None else None,
                    is_class_teacher=bool(r.get("is_class_teacher")),
                )
                for r in fetchall(cur)
            ]

    def get_student_id_for_user(self, user_id: int) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT student_id FROM students WHERE user_id=%s", (int(user_id),))
            r = fetchone(cur)
            return int(r["student_id"]) if r else None
