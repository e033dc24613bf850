from __future__ import annotations

import importlib
import logging
from pathlib import Path

from dotenv import load_dotenv

from config import get_settings_module

from .common.civil_clock import set_civil_offset
from .common.logging_setup import configure_logging
from .container import Container, build_container
from .database.bootstrap import apply_schema, apply_seed_sql, list_tables

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[3]


def create_container() -> Container:
    load_dotenv(override=False)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    set_civil_offset(getattr(settings, "CIVIL_UTC_OFFSET", "+05:30"))

    db_config = getattr(settings, "DB_CONFIG", None)
    store_backend = getattr(settings, "STORE_BACKEND", "mysql")
    logger.info(
        "settings=%s backend=%s db=%s@%s:%s/%s",
        settings_module,
        store_backend,
        (db_config or {}).get("user"),
        (db_config or {}).get("host"),
        (db_config or {}).get("port", 3306),
        (db_config or {}).get("database"),
    )

    if store_backend == "mysql":
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=REPO_ROOT / "database" / "schema.sql")
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config, seed_path=REPO_ROOT / "database" / "seed.sql")
            logger.info("demo seed ready")

    return build_container(
        db_config=db_config,
        store_backend=store_backend,
        default_grace_minutes=int(getattr(settings, "DEFAULT_GRACE_MINUTES", 30)),
        grace_ttl_seconds=float(getattr(settings, "GRACE_CACHE_TTL_SECONDS", 3600)),
        grace_wait_timeout=float(getattr(settings, "GRACE_WAIT_TIMEOUT_SECONDS", 5.0)),
    )
