from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional

from ..common.validators import require_int_in_range
from ..core.constants import (
    DEFAULT_LOCK_HOURS,
    DEFAULT_LOW_ATTENDANCE_THRESHOLD,
    LOCK_HOURS_SETTING,
    LOW_ATTENDANCE_SETTING,
)
from ..core.exceptions import ConfigurationError, ForbiddenError, ValidationError
from ..users.model import Requester
from .repository import SettingsRepository

logger = logging.getLogger(__name__)


def parse_lock_hours(raw: Optional[str]) -> int:
    """Stored lock window -> hours. Missing means the default."""
    if raw is None:
        return DEFAULT_LOCK_HOURS
    try:
        hours = int(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"Setting {LOCK_HOURS_SETTING}={raw!r} is not a whole number")
    if hours < 0:
        raise ConfigurationError(f"Setting {LOCK_HOURS_SETTING}={raw!r} cannot be negative")
    return hours


def parse_threshold(raw: Optional[str]) -> int:
    if raw is None:
        return DEFAULT_LOW_ATTENDANCE_THRESHOLD
    try:
        threshold = int(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"Setting {LOW_ATTENDANCE_SETTING}={raw!r} is not a whole number")
    if not 0 <= threshold <= 100:
        raise ConfigurationError(f"Setting {LOW_ATTENDANCE_SETTING}={raw!r} must be between 0 and 100")
    return threshold


# key -> (input validator, description shown on the settings screen)
_EDITABLE: dict[str, tuple[Callable[[object], int], str]] = {
    LOCK_HOURS_SETTING: (
        lambda v: require_int_in_range(v, "Attendance lock time (hours)", minimum=0),
        "Hours after which attendance gets locked",
    ),
    LOW_ATTENDANCE_SETTING: (
        lambda v: require_int_in_range(v, "Low attendance threshold (%)", minimum=0, maximum=100),
        "Percentage below which attendance is considered low",
    ),
}


class SettingsService:
    """Runtime settings. Values are read on every call so admin edits apply at once."""

    def __init__(self, settings: SettingsRepository):
        self._settings = settings

    def lock_window_hours(self) -> int:
        return parse_lock_hours(self._settings.get_value(LOCK_HOURS_SETTING))

    def low_attendance_threshold(self) -> int:
        return parse_threshold(self._settings.get_value(LOW_ATTENDANCE_SETTING))

    def list_settings(self) -> list[dict]:
        return [
            {"key": s.key, "value": s.value, "description": s.description}
            for s in self._settings.list_all()
        ]

    def update(self, requester: Requester, *, key: str, value) -> int:
        return self.update_many(requester, {key: value})[key]

    def update_many(self, requester: Requester, values: Mapping[str, object]) -> dict[str, int]:
        """Validate every entry, then store them together; one bad entry stores nothing."""
        if not requester.is_admin:
            raise ForbiddenError("Only administrators can change settings")
        if not values:
            raise ValidationError("Nothing to update")

        parsed: dict[str, int] = {}
        for key, value in values.items():
            if key not in _EDITABLE:
                raise ValidationError(f"Unknown setting {key!r}")
            validate, _ = _EDITABLE[key]
            parsed[key] = validate(value)

        self._settings.upsert_many(
            [(key, str(value), _EDITABLE[key][1]) for key, value in parsed.items()]
        )
        for key, value in parsed.items():
            logger.info("Setting %s changed to %s by user %s", key, value, requester.user_id)
        return parsed
