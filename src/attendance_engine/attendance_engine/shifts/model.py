from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time

from ..core.enums import SaturdayPolicy


@dataclass(frozen=True)
class ShiftSchedule:
    """Domain entity: a single daily shift with its alternate-Saturday policy."""

    start_time: time
    end_time: time
    duration_minutes: int = field(default=-1)
    paid_break_allowance_minutes: int = 0
    saturday_policy: SaturdayPolicy = SaturdayPolicy.ALL_WORKING
    shift_name: str = ""

    def __post_init__(self):
        if self.duration_minutes < 0:
            object.__setattr__(self, "duration_minutes", span_minutes(self.start_time, self.end_time))

    @property
    def start_hhmm(self) -> str:
        return self.start_time.strftime("%H:%M")


def span_minutes(start: time, end: time) -> int:
    """Minutes from start to end, wrapping past midnight for overnight shifts."""
    anchor = datetime(2000, 1, 1)
    delta = datetime.combine(anchor, end) - datetime.combine(anchor, start)
    minutes = int(delta.total_seconds() // 60)
    return minutes if minutes > 0 else minutes + 24 * 60
