from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterable, Iterator, Mapping, Optional, Sequence

from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, placeholders
from .model import AttendanceLock, AttendanceMark, AttendanceRecord, UpsertOutcome
from .repository import AttendanceRepository, AttendanceWriteTransaction, CohortDate

_RECORD_COLUMNS = """
    attendance_id, student_id, attendance_date, status, remarks, marked_by, marked_at, updated_at
"""


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        student_id=int(r["student_id"]),
        attendance_date=r["attendance_date"],
        status=AttendanceStatus(r["status"]),
        remarks=r.get("remarks"),
        marked_by=int(r["marked_by"]) if r.get("marked_by") is not None else None,
        marked_at=r["marked_at"],
        updated_at=r["updated_at"],
    )


def _to_lock(r: dict) -> AttendanceLock:
    return AttendanceLock(
        class_id=int(r["class_id"]),
        section_id=int(r["section_id"]),
        lock_date=r["lock_date"],
        locked_at=r["locked_at"],
        locked_by=int(r["locked_by"]) if r.get("locked_by") is not None else None,
    )


class MySQLAttendanceTransaction(AttendanceWriteTransaction):
    """Runs on the cursor of an open transaction; never commits on its own."""

    def __init__(self, cur):
        self._cur = cur

    def read_setting(self, key: str) -> Optional[str]:
        self._cur.execute(
            "SELECT setting_value FROM settings WHERE setting_key=%s LOCK IN SHARE MODE",
            (key,),
        )
        r = fetchone(self._cur)
        return None if not r else str(r["setting_value"])

    def find_admin_locks(self, keys: Iterable[CohortDate]) -> set[CohortDate]:
        wanted = sorted({(int(c), int(s), d) for c, s, d in keys})
        if not wanted:
            return set()
        row_values = ",".join(["(%s,%s,%s)"] * len(wanted))
        params = [value for key in wanted for value in key]
        self._cur.execute(
            f"""
            SELECT class_id, section_id, lock_date
            FROM attendance_locks
            WHERE (class_id, section_id, lock_date) IN ({row_values})
            LOCK IN SHARE MODE
            """,
            tuple(params),
        )
        return {(int(r["class_id"]), int(r["section_id"]), r["lock_date"]) for r in fetchall(self._cur)}

    def _select_for_update(self, by_date: Mapping[date, list[int]]) -> dict[tuple[int, date], AttendanceRecord]:
        found: dict[tuple[int, date], AttendanceRecord] = {}
        for work_date, student_ids in by_date.items():
            self._cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS}
                FROM attendance
                WHERE attendance_date=%s AND student_id IN ({placeholders(len(student_ids))})
                FOR UPDATE
                """,
                (work_date, *student_ids),
            )
            for r in fetchall(self._cur):
                rec = _to_record(r)
                found[(rec.student_id, rec.attendance_date)] = rec
        return found

    def upsert_many(
        self,
        marks: Sequence[AttendanceMark],
        *,
        marked_by: int,
        now: datetime,
    ) -> list[UpsertOutcome]:
        if not marks:
            return []

        by_date: dict[date, list[int]] = defaultdict(list)
        for m in marks:
            by_date[m.attendance_date].append(int(m.student_id))

        before = self._select_for_update(by_date)

        # The unique key (student_id, attendance_date) makes each row a single
        # atomic insert-or-update; marked_at keeps its first value.
        self._cur.executemany(
            """
            INSERT INTO attendance(student_id, attendance_date, status, remarks, marked_by, marked_at, updated_at)
            VALUES(%s,%s,%s,%s,%s,%s,%s)
            ON DUPLICATE KEY UPDATE
                status=VALUES(status),
                remarks=VALUES(remarks),
                marked_by=VALUES(marked_by),
                updated_at=VALUES(updated_at)
            """,
            [
                (int(m.student_id), m.attendance_date, m.status.value, m.remarks, int(marked_by), now, now)
                for m in marks
            ],
        )

        after = self._select_for_update(by_date)
        return [
            UpsertOutcome(
                before=before.get((int(m.student_id), m.attendance_date)),
                after=after[(int(m.student_id), m.attendance_date)],
            )
            for m in marks
        ]


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @contextmanager
    def transaction(self) -> Iterator[MySQLAttendanceTransaction]:
        with db_cursor(self._conn_factory) as (_, cur):
            yield MySQLAttendanceTransaction(cur)

    def find_by_student_and_date_range(
        self, student_id: int, start_date: date, end_date: date
    ) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS}
                FROM attendance
                WHERE student_id=%s AND attendance_date BETWEEN %s AND %s
                ORDER BY attendance_date ASC
                """,
                (int(student_id), start_date, end_date),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def find_by_date(self, attendance_date: date, student_ids: Iterable[int]) -> Mapping[int, AttendanceRecord]:
        ids = sorted({int(i) for i in student_ids})
        if not ids:
            return {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS}
                FROM attendance
                WHERE attendance_date=%s AND student_id IN ({placeholders(len(ids))})
                """,
                (attendance_date, *ids),
            )
            return {int(r["student_id"]): _to_record(r) for r in fetchall(cur)}

    def find_for_students_in_range(
        self, student_ids: Iterable[int], start_date: date, end_date: date
    ) -> Sequence[AttendanceRecord]:
        ids = sorted({int(i) for i in student_ids})
        if not ids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_RECORD_COLUMNS}
                FROM attendance
                WHERE student_id IN ({placeholders(len(ids))})
                  AND attendance_date BETWEEN %s AND %s
                ORDER BY student_id ASC, attendance_date ASC
                """,
                (*ids, start_date, end_date),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def count_by_status(self, attendance_date: date) -> Mapping[AttendanceStatus, int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT status, COUNT(*) AS total
                FROM attendance
                WHERE attendance_date=%s
                GROUP BY status
                """,
                (attendance_date,),
            )
            counts = {status: 0 for status in AttendanceStatus}
            for r in fetchall(cur):
                counts[AttendanceStatus(r["status"])] = int(r["total"])
            return counts

    def get_admin_lock(self, *, class_id: int, section_id: int, lock_date: date) -> Optional[AttendanceLock]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT class_id, section_id, lock_date, locked_at, locked_by
                FROM attendance_locks
                WHERE class_id=%s AND section_id=%s AND lock_date=%s
                """,
                (int(class_id), int(section_id), lock_date),
            )
            r = fetchone(cur)
            return _to_lock(r) if r else None

    def create_admin_lock(
        self, *, class_id: int, section_id: int, lock_date: date, locked_by: int, locked_at: datetime
    ) -> AttendanceLock:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT IGNORE INTO attendance_locks(class_id, section_id, lock_date, locked_at, locked_by)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (int(class_id), int(section_id), lock_date, locked_at, int(locked_by)),
            )
            cur.execute(
                """
                SELECT class_id, section_id, lock_date, locked_at, locked_by
                FROM attendance_locks
                WHERE class_id=%s AND section_id=%s AND lock_date=%s
                """,
                (int(class_id), int(section_id), lock_date),
            )
            return _to_lock(fetchone(cur))

    def delete_admin_lock(self, *, class_id: int, section_id: int, lock_date: date) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM attendance_locks WHERE class_id=%s AND section_id=%s AND lock_date=%s",
                (int(class_id), int(section_id), lock_date),
            )
            return cur.rowcount > 0
