from __future__ import annotations

import json
from typing import Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor
from .model import AuditEntry
from .repository import AuditSink


class MySQLAuditRepository(AuditSink):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def append_many(self, entries: Sequence[AuditEntry]) -> None:
        if not entries:
            return
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                """
                INSERT INTO audit_logs(table_name, record_id, action, old_data, new_data, performed_by, performed_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                [
                    (
                        e.table_name,
                        e.record_id,
                        e.action.value,
                        json.dumps(e.old_data) if e.old_data is not None else None,
                        json.dumps(e.new_data),
                        e.performed_by,
                        e.performed_at,
                    )
                    for e in entries
                ],
            )
