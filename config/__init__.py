"""Settings module selection for the attendance engine.

``ATTENDANCE_ENGINE_ENV`` wins over the generic ``APP_ENV`` so the engine can
run with its own settings beside another app sharing the environment.
"""

import os

_ALIASES = {
    "prod": "production",
    "production": "production",
    "test": "testing",
    "testing": "testing",
    "memory": "testing",
}


def current_env() -> str:
    env = os.getenv("ATTENDANCE_ENGINE_ENV") or os.getenv("APP_ENV") or "development"
    return _ALIASES.get(env.strip().lower(), "development")


def get_settings_module() -> str:
    # Anything unrecognised runs against the development database.
    return f"config.{current_env()}"
