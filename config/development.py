import os

from .config import AUDIT_ENABLED, LOG_LEVEL, MAX_ROSTER_SIZE, db_config_from_env, env_flag

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = db_config_from_env(default_password="")

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = env_flag("AUTO_INIT_DB", "1")
# Optional: also insert default settings rows on startup
AUTO_SEED_DB = env_flag("AUTO_SEED_DB", "1")
