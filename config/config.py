"""Settings shared by every environment; each environment module overrides what it needs."""

import os


def env_flag(name: str, default: str = "0") -> bool:
    return bool(int(os.getenv(name, default)))


def db_config_from_env(*, default_password: str = "") -> dict:
    return {
        "host": os.getenv("DB_HOST", "localhost"),
        "port": int(os.getenv("DB_PORT", "3306")),
        "user": os.getenv("DB_USER", "root"),
        "password": os.getenv("DB_PASSWORD", default_password),
        "database": os.getenv("DB_NAME", "school_attendance"),
    }


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Upper bound on one roster submission.
MAX_ROSTER_SIZE = int(os.getenv("MAX_ROSTER_SIZE", "200"))

AUDIT_ENABLED = env_flag("AUDIT_ENABLED", "1")
