from __future__ import annotations

from typing import Optional, Protocol

from .model import Setting


class SettingsRepository(Protocol):
    def find_one(self, key: str) -> Optional[Setting]:
        raise NotImplementedError
