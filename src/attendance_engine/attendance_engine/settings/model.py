from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Setting:
    """A single keyed admin setting (e.g. ``lateGraceMinutes``)."""

    key: str
    value: Any
