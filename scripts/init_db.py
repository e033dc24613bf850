from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import current_env, get_settings_module

from src.attendance_engine.attendance_engine.database.bootstrap import apply_schema, list_tables

SCHEMA_PATH = REPO_ROOT / "database" / "schema.sql"
REQUIRED_TABLES = (
    "settings",
    "shifts",
    "employees",
    "leave_balances",
    "holidays",
    "leave_requests",
    "leave_request_dates",
    "attendance_records",
    "break_logs",
)


def main() -> int:
    settings = importlib.import_module(get_settings_module())
    if getattr(settings, "STORE_BACKEND", "mysql") != "mysql":
        print(f"SKIP: '{current_env()}' settings use the {settings.STORE_BACKEND} store, nothing to initialise")
        return 0

    db_config = dict(settings.DB_CONFIG)
    apply_schema(db_config, schema_path=SCHEMA_PATH)
    tables = set(list_tables(db_config))
    missing = [t for t in REQUIRED_TABLES if t not in tables]
    target = f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}"
    if missing:
        print(f"FAIL: {target} is missing tables: {', '.join(missing)}")
        return 1

    print(f"OK: attendance engine schema applied -> {target} ({len(REQUIRED_TABLES)} engine tables, {len(tables)} total)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
