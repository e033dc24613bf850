import os

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "attendance_engine"),
}

# mysql | memory
STORE_BACKEND = os.getenv("STORE_BACKEND", "mysql")

# All date-boundary math runs in this fixed offset
CIVIL_UTC_OFFSET = os.getenv("CIVIL_UTC_OFFSET", "+05:30")

# Used when the lateGraceMinutes setting is missing or malformed
DEFAULT_GRACE_MINUTES = int(os.getenv("DEFAULT_GRACE_MINUTES", "30"))
GRACE_CACHE_TTL_SECONDS = int(os.getenv("GRACE_CACHE_TTL_SECONDS", "3600"))
GRACE_WAIT_TIMEOUT_SECONDS = float(os.getenv("GRACE_WAIT_TIMEOUT_SECONDS", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, schema.sql is applied on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed demo data on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
