from __future__ import annotations

from typing import Protocol, Sequence

from .model import AuditEntry


class AuditSink(Protocol):
    def append_many(self, entries: Sequence[AuditEntry]) -> None:
        raise NotImplementedError
