from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Setting
from .repository import SettingsRepository


class MySQLSettingsRepository(SettingsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_value(self, key: str) -> Optional[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT setting_value FROM settings WHERE setting_key=%s", (key,))
            r = fetchone(cur)
            return None if not r else str(r["setting_value"])

    def list_all(self) -> Sequence[Setting]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT setting_key, setting_value, description, updated_at
                FROM settings
                ORDER BY setting_key
                """
            )
            return [
                Setting(
                    key=r["setting_key"],
                    value=str(r["setting_value"]),
                    description=r.get("description"),
                    updated_at=r.get("updated_at"),
                )
                for r in fetchall(cur)
            ]

    def upsert_many(self, entries: Sequence[tuple[str, str, Optional[str]]]) -> None:
        """Store ``(key, value, description)`` rows in one transaction."""
        if not entries:
            return
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                """
                INSERT INTO settings(setting_key, setting_value, description)
                VALUES(%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    setting_value=VALUES(setting_value),
                    description=COALESCE(VALUES(description), description)
                """,
                [(key, value, description) for key, value, description in entries],
            )
