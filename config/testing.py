import os

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "attendance_engine_test"),
}

STORE_BACKEND = os.getenv("STORE_BACKEND", "memory")

CIVIL_UTC_OFFSET = "+05:30"

DEFAULT_GRACE_MINUTES = 30
GRACE_CACHE_TTL_SECONDS = 3600
GRACE_WAIT_TIMEOUT_SECONDS = 1.0

LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
