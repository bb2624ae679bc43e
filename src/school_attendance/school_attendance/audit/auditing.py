"""Audit trail for attendance writes.

``AuditedAttendanceRepository`` wraps any attendance repository. Upserts made in
its transactions are collected and, once the transaction has committed, handed
to an ``AuditSink`` and mirrored to the ``audit`` logger. Auditing is
best-effort: a failing sink is logged and never undoes a committed write.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Sequence

from ..attendance.model import AttendanceMark, UpsertOutcome
from ..attendance.repository import AttendanceRepository, AttendanceWriteTransaction
from .model import AuditEntry
from .repository import AuditSink

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")


class _AuditingTransaction:
    def __init__(self, inner: AttendanceWriteTransaction, pending: list[UpsertOutcome]):
        self._inner = inner
        self._pending = pending

    def read_setting(self, key):
        return self._inner.read_setting(key)

    def find_admin_locks(self, keys):
        return self._inner.find_admin_locks(keys)

    def upsert_many(self, marks: Sequence[AttendanceMark], *, marked_by: int, now: datetime) -> list[UpsertOutcome]:
        outcomes = self._inner.upsert_many(marks, marked_by=marked_by, now=now)
        self._pending.extend(outcomes)
        return outcomes


class AuditedAttendanceRepository:
    def __init__(self, inner: AttendanceRepository, sink: AuditSink, *, enabled: bool = True):
        self._inner = inner
        self._sink = sink
        self.enabled = enabled

    @contextmanager
    def transaction(self) -> Iterator[AttendanceWriteTransaction]:
        if not self.enabled:
            with self._inner.transaction() as tx:
                yield tx
            return

        pending: list[UpsertOutcome] = []
        with self._inner.transaction() as tx:
            yield _AuditingTransaction(tx, pending)
        self._record(pending)

    def _record(self, outcomes: list[UpsertOutcome]) -> None:
        if not outcomes:
            return
        entries = [AuditEntry.from_outcome(o) for o in outcomes]
        for e in entries:
            audit_logger.info(e.describe())
        try:
            self._sink.append_many(entries)
        except Exception:
            logger.exception("Failed to persist %d audit entries", len(entries))

    def __getattr__(self, name):
        # Reads and lock administration pass straight through.
        return getattr(self._inner, name)
