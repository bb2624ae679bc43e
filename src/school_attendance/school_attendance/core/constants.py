"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from datetime import date

LOCK_HOURS_SETTING = "attendance_lock_hours"
LOW_ATTENDANCE_SETTING = "low_attendance_threshold"

DEFAULT_LOCK_HOURS = 24
DEFAULT_LOW_ATTENDANCE_THRESHOLD = 75

DEFAULT_MAX_ROSTER_SIZE = 200
EARLIEST_ATTENDANCE_DATE = date(2000, 1, 1)

ATTENDANCE_TABLE = "attendance"
