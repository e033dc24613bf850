from __future__ import annotations

import pytest

from config import current_env, get_settings_module


@pytest.mark.parametrize(
    "engine_env, app_env, expected",
    [
        (None, None, "config.development"),
        (None, "PROD", "config.production"),
        (None, "test", "config.testing"),
        ("memory", "production", "config.testing"),
        ("production", "test", "config.production"),
        (None, "staging", "config.development"),
    ],
)
def test_settings_module_selection(monkeypatch, engine_env, app_env, expected):
    for name, value in (("ATTENDANCE_ENGINE_ENV", engine_env), ("APP_ENV", app_env)):
        if value is None:
            monkeypatch.delenv(name, raising=False)
        else:
            monkeypatch.setenv(name, value)

    assert get_settings_module() == expected
    assert expected.endswith(current_env())
