from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Setting


class SettingsRepository(Protocol):
    def get_value(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def list_all(self) -> Sequence[Setting]:
        raise NotImplementedError

    def upsert_many(self, entries: Sequence[tuple[str, str, Optional[str]]]) -> None:
        raise NotImplementedError
