from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..shifts.model import ShiftSchedule
from .strategies.base import ArrivalStrategy
from .strategies.beyond_grace_strategy import BeyondGraceStrategy
from .strategies.on_time_strategy import OnTimeStrategy


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose the arrival strategy from late minutes and grace."""

    def for_arrival(self, *, late_minutes: int, shift: Optional[ShiftSchedule], grace_minutes: int) -> ArrivalStrategy:
        if not shift:
            return OnTimeStrategy()

        if late_minutes <= grace_minutes:
            return OnTimeStrategy()
        return BeyondGraceStrategy()
