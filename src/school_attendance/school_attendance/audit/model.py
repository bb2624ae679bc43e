from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.constants import ATTENDANCE_TABLE
from ..core.enums import AuditAction
from ..attendance.model import UpsertOutcome


@dataclass(frozen=True)
class AuditEntry:
    table_name: str
    record_id: Optional[int]
    action: AuditAction
    old_data: Optional[dict]
    new_data: dict
    performed_by: Optional[int]
    performed_at: datetime

    @classmethod
    def from_outcome(cls, outcome: UpsertOutcome) -> "AuditEntry":
        after = outcome.after
        return cls(
            table_name=ATTENDANCE_TABLE,
            record_id=after.attendance_id,
            action=outcome.action,
            old_data=outcome.before.to_dict() if outcome.before else None,
            new_data=after.to_dict(),
            performed_by=after.marked_by,
            performed_at=after.updated_at,
        )

    def describe(self) -> str:
        old_status = (self.old_data or {}).get("status", "-")
        return (
            f"{self.action.value.upper()} {self.table_name}#{self.record_id} "
            f"student={self.new_data.get('student_id')} date={self.new_data.get('date')} "
            f"status={old_status}->{self.new_data.get('status')} by={self.performed_by or 'N/A'}"
        )
