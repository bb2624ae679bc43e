from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import ConflictError, StorageError
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)

# Errors worth one more attempt: the other writer has committed by then.
_CONFLICT_ERRNOS = {
    errorcode.ER_DUP_ENTRY,
    errorcode.ER_LOCK_DEADLOCK,
    errorcode.ER_LOCK_WAIT_TIMEOUT,
}


def translate_error(exc: mysql.connector.Error) -> Exception:
    """Map a connector error onto the domain error taxonomy."""
    if getattr(exc, "errno", None) in _CONFLICT_ERRNOS:
        return ConflictError(f"Concurrent write detected: {exc.msg}")
    return StorageError(f"Database operation failed: {exc}")


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """Yield ``(conn, cur)`` inside one transaction.

    Commits when the block exits normally, rolls back on any exception, and turns
    ``mysql.connector`` failures into ``ConflictError``/``StorageError``.
    """
    try:
        conn = conn_factory.connect()
    except mysql.connector.Error as exc:
        logger.exception("Could not open database connection")
        raise StorageError(f"Database unavailable: {exc}") from exc

    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.Error as exc:
        conn.rollback()
        raise translate_error(exc) from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def placeholders(count: int) -> str:
    """``%s,%s,...`` for an IN clause of ``count`` values."""
    return ",".join(["%s"] * count)
