from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Setting:
    """One row of the key/value settings store."""

    key: str
    value: str
    description: Optional[str] = None
    updated_at: Optional[datetime] = None
