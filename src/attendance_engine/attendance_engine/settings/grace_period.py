"""Cached access to the late-arrival grace period.

The provider is an ordinary object with its own lifecycle: build one per
process and hand it to the services that need it. Reads are cached for a TTL;
when the cache is stale exactly one caller reloads from the settings store and
every concurrent caller waits on that same in-flight future.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

from ..core.constants import (
    DEFAULT_GRACE_MINUTES,
    GRACE_CACHE_TTL_SECONDS,
    GRACE_SETTING_KEY,
    GRACE_WAIT_TIMEOUT_SECONDS,
)
from .repository import SettingsRepository

logger = logging.getLogger(__name__)


def coerce_minutes(value: Any) -> Optional[int]:
    """Return a non-negative whole number of minutes, or None when malformed."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        minutes = value
    elif isinstance(value, float):
        if not value.is_integer():
            return None
        minutes = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        minutes = int(value.strip())
    else:
        return None
    return minutes if minutes >= 0 else None


class GracePeriodProvider:
    def __init__(
        self,
        settings: SettingsRepository,
        *,
        key: str = GRACE_SETTING_KEY,
        ttl_seconds: float = GRACE_CACHE_TTL_SECONDS,
        default_minutes: int = DEFAULT_GRACE_MINUTES,
        wait_timeout: float = GRACE_WAIT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings
        self._key = key
        self._ttl = float(ttl_seconds)
        self._default = int(default_minutes)
        self._wait_timeout = float(wait_timeout)
        self._clock = clock

        self._lock = threading.Lock()
        self._value: Optional[int] = None
        self._loaded_at: Optional[float] = None
        self._generation = 0
        self._inflight: dict[str, Future] = {}

    def _is_fresh(self) -> bool:
        return self._loaded_at is not None and (self._clock() - self._loaded_at) < self._ttl

    def _fallback(self) -> int:
        value = self._value
        return value if value is not None else self._default

    def get(self) -> int:
        """Current grace minutes. Never raises."""
        with self._lock:
            if self._is_fresh():
                return self._value
            future = self._inflight.get(self._key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[self._key] = future
            generation = self._generation

        if not leader:
            try:
                return future.result(timeout=self._wait_timeout)
            except FutureTimeoutError:
                logger.warning("Timed out waiting for %s reload, serving fallback", self._key)
                return self._fallback()

        value = self._fallback()
        try:
            value = self._reload(generation)
        finally:
            with self._lock:
                if self._inflight.get(self._key) is future:
                    del self._inflight[self._key]
            future.set_result(value)
        return value

    def _reload(self, generation: int) -> int:
        try:
            setting = self._settings.find_one(self._key)
        except Exception:
            # Keep the old timestamp so the next call retries the read.
            logger.warning("Failed to read %s, serving fallback", self._key, exc_info=True)
            return self._fallback()

        minutes = coerce_minutes(setting.value if setting else None)
        if minutes is None:
            if setting is None:
                logger.warning("%s is not set, using default of %s minutes", self._key, self._default)
            else:
                logger.warning("%s has invalid value %r, using default of %s minutes", self._key, setting.value, self._default)
            minutes = self._default

        with self._lock:
            if generation == self._generation:
                self._value = minutes
                self._loaded_at = self._clock()
            else:
                logger.debug("Discarding %s reload started before invalidate()", self._key)
        return minutes

    def invalidate(self) -> None:
        """Force the next ``get()`` to reload. The last value stays as fallback."""
        with self._lock:
            self._generation += 1
            self._loaded_at = None
        logger.info("%s cache invalidated", self._key)

    def status(self) -> dict:
        with self._lock:
            age = None if self._loaded_at is None else self._clock() - self._loaded_at
            return {
                "key": self._key,
                "cached_minutes": self._value,
                "age_seconds": age,
                "is_valid": self._is_fresh(),
                "ttl_remaining_seconds": None if age is None else max(0.0, self._ttl - age),
                "loading": self._key in self._inflight,
            }
