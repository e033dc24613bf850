from __future__ import annotations

import threading

import pytest

from src.attendance_engine.attendance_engine.settings.grace_period import GracePeriodProvider, coerce_minutes
from src.attendance_engine.attendance_engine.settings.model import Setting


class FakeClock:
    def __init__(self):
        self.t = 1000.0

    def __call__(self) -> float:
        return self.t


class FakeSettings:
    def __init__(self, value=None, *, present: bool = True):
        self.value = value
        self.present = present
        self.reads = 0
        self.fail = False

    def find_one(self, key: str):
        self.reads += 1
        if self.fail:
            raise TimeoutError("settings store timed out")
        if not self.present:
            return None
        return Setting(key=key, value=self.value)


class BlockingSettings:
    def __init__(self, value):
        self.value = value
        self.reads = 0
        self.entered = threading.Event()
        self.release = threading.Event()

    def find_one(self, key: str):
        self.reads += 1
        self.entered.set()
        assert self.release.wait(5)
        return Setting(key=key, value=self.value)


@pytest.mark.parametrize(
    "value,expected",
    [(15, 15), ("45", 45), (" 20 ", 20), (10.0, 10), (0, 0), (-5, None), (True, None), ("abc", None), (7.5, None), (None, None)],
)
def test_coerce_minutes(value, expected):
    assert coerce_minutes(value) == expected


def test_get_caches_within_ttl():
    settings = FakeSettings(15)
    clock = FakeClock()
    provider = GracePeriodProvider(settings, ttl_seconds=3600, clock=clock)

    assert provider.get() == 15
    clock.t += 3599
    assert provider.get() == 15
    assert settings.reads == 1


def test_get_reloads_after_ttl():
    settings = FakeSettings(15)
    clock = FakeClock()
    provider = GracePeriodProvider(settings, ttl_seconds=3600, clock=clock)

    provider.get()
    settings.value = 20
    clock.t += 3600

    assert provider.get() == 20
    assert settings.reads == 2


@pytest.mark.parametrize("settings", [FakeSettings(present=False), FakeSettings("abc"), FakeSettings(-1), FakeSettings(True)])
def test_missing_or_malformed_value_falls_back_to_default(settings, caplog):
    provider = GracePeriodProvider(settings, clock=FakeClock())

    with caplog.at_level("WARNING"):
        assert provider.get() == 30
    assert "lateGraceMinutes" in caplog.text
    # The default is cached like a real value.
    assert provider.get() == 30
    assert settings.reads == 1


def test_read_failure_serves_last_value_and_retries_next_time():
    settings = FakeSettings(12)
    clock = FakeClock()
    provider = GracePeriodProvider(settings, ttl_seconds=10, clock=clock)
    assert provider.get() == 12

    clock.t += 11
    settings.fail = True
    assert provider.get() == 12
    assert provider.get() == 12
    assert settings.reads == 3

    settings.fail = False
    settings.value = 18
    assert provider.get() == 18


def test_read_failure_without_cache_serves_default():
    settings = FakeSettings(12)
    settings.fail = True
    provider = GracePeriodProvider(settings, default_minutes=30, clock=FakeClock())

    assert provider.get() == 30
    assert provider.status()["is_valid"] is False


def test_invalidate_forces_reload_and_keeps_value_as_fallback():
    settings = FakeSettings(15)
    provider = GracePeriodProvider(settings, clock=FakeClock())
    provider.get()

    provider.invalidate()
    status = provider.status()
    assert status["cached_minutes"] == 15
    assert status["is_valid"] is False

    settings.value = 25
    assert provider.get() == 25
    assert settings.reads == 2


def test_concurrent_callers_share_one_reload():
    settings = BlockingSettings(40)
    provider = GracePeriodProvider(settings, wait_timeout=5)
    results: list[int] = []

    def call():
        results.append(provider.get())

    leader = threading.Thread(target=call)
    leader.start()
    assert settings.entered.wait(5)
    assert provider.status()["loading"] is True

    followers = [threading.Thread(target=call) for _ in range(5)]
    for t in followers:
        t.start()
    settings.release.set()
    for t in [leader, *followers]:
        t.join(5)

    assert results == [40] * 6
    assert settings.reads == 1
    assert provider.status()["loading"] is False


def test_follower_timeout_degrades_to_fallback():
    settings = BlockingSettings(40)
    provider = GracePeriodProvider(settings, wait_timeout=0.05, default_minutes=30)
    leader = threading.Thread(target=provider.get)
    leader.start()
    assert settings.entered.wait(5)

    try:
        assert provider.get() == 30
    finally:
        settings.release.set()
        leader.join(5)
    assert provider.get() == 40


def test_invalidate_during_reload_discards_stale_value():
    settings = BlockingSettings(40)
    provider = GracePeriodProvider(settings, wait_timeout=5)
    leader = threading.Thread(target=provider.get)
    leader.start()
    assert settings.entered.wait(5)

    provider.invalidate()
    settings.release.set()
    leader.join(5)

    assert provider.status()["is_valid"] is False
    assert provider.get() == 40
    assert settings.reads == 2


def test_status_snapshot():
    clock = FakeClock()
    provider = GracePeriodProvider(FakeSettings(15), ttl_seconds=100, clock=clock)
    assert provider.status()["cached_minutes"] is None

    provider.get()
    clock.t += 40
    status = provider.status()

    assert status == {
        "key": "lateGraceMinutes",
        "cached_minutes": 15,
        "age_seconds": 40.0,
        "is_valid": True,
        "ttl_remaining_seconds": 60.0,
        "loading": False,
    }
