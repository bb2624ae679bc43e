from __future__ import annotations

from datetime import date, datetime

from src.school_attendance.school_attendance.attendance.model import AttendanceMark
from src.school_attendance.school_attendance.attendance.mysql_attendance_repository import (
    MySQLAttendanceTransaction,
)
from src.school_attendance.school_attendance.core.enums import AttendanceStatus, AuditAction

DAY = date(2025, 1, 10)
FIRST_MARKED = datetime(2025, 1, 10, 8, 0)
NOW = datetime(2025, 1, 10, 9, 0)


class RecordingCursor:
    """Records statements; each SELECT pops the next prepared result set."""

    def __init__(self, result_sets):
        self.result_sets = list(result_sets)
        self.statements = []
        self._rows = []

    def execute(self, sql, params=None):
        self.statements.append(("execute", " ".join(sql.split()), params))
        if sql.lstrip().upper().startswith("SELECT"):
            self._rows = self.result_sets.pop(0)

    def executemany(self, sql, seq_params):
        self.statements.append(("executemany", " ".join(sql.split()), list(seq_params)))

    def fetchall(self):
        return self._rows

    def fetchone(self):
        return self._rows[0] if self._rows else None


def row(student_id, status, marked_at, updated_at, attendance_id):
    return {
        "attendance_id": attendance_id,
        "student_id": student_id,
        "attendance_date": DAY,
        "status": status,
        "remarks": None,
        "marked_by": 10,
        "marked_at": marked_at,
        "updated_at": updated_at,
    }


def test_upsert_is_single_statement_that_never_touches_marked_at():
    cur = RecordingCursor(
        [
            [row(101, "present", FIRST_MARKED, FIRST_MARKED, 1)],
            [row(101, "absent", FIRST_MARKED, NOW, 1), row(102, "late", NOW, NOW, 2)],
        ]
    )
    tx = MySQLAttendanceTransaction(cur)

    outcomes = tx.upsert_many(
        [
            AttendanceMark(101, DAY, AttendanceStatus.ABSENT),
            AttendanceMark(102, DAY, AttendanceStatus.LATE),
        ],
        marked_by=10,
        now=NOW,
    )

    kinds = [kind for kind, _, _ in cur.statements]
    assert kinds == ["execute", "executemany", "execute"]
    assert cur.statements[0][1].endswith("FOR UPDATE")

    _, insert_sql, params = cur.statements[1]
    assert insert_sql.startswith("INSERT INTO attendance(")
    head, update_clause = insert_sql.split("ON DUPLICATE KEY UPDATE")
    assert "marked_at" in head
    assert "marked_at" not in update_clause
    assert "updated_at=VALUES(updated_at)" in update_clause
    assert params == [
        (101, DAY, "absent", None, 10, NOW, NOW),
        (102, DAY, "late", None, 10, NOW, NOW),
    ]

    assert [o.action for o in outcomes] == [AuditAction.UPDATE, AuditAction.INSERT]
    assert outcomes[0].before.status == AttendanceStatus.PRESENT
    assert outcomes[0].after.marked_at == FIRST_MARKED
    assert outcomes[0].after.updated_at == NOW


def test_admin_lock_lookup_uses_row_constructor():
    cur = RecordingCursor([[{"class_id": 1, "section_id": 1, "lock_date": DAY}]])
    tx = MySQLAttendanceTransaction(cur)

    found = tx.find_admin_locks({(1, 1, DAY), (2, 1, DAY)})

    _, sql, params = cur.statements[0]
    assert "(class_id, section_id, lock_date) IN ((%s,%s,%s),(%s,%s,%s))" in sql
    assert params == (1, 1, DAY, 2, 1, DAY)
    assert found == {(1, 1, DAY)}


def test_empty_batch_issues_no_sql():
    cur = RecordingCursor([])
    assert MySQLAttendanceTransaction(cur).upsert_many([], marked_by=10, now=NOW) == []
    assert cur.statements == []
