from __future__ import annotations

from ...core.enums import AttendanceStatus
from .base import ArrivalDecision, ArrivalStrategy


class OnTimeStrategy(ArrivalStrategy):
    """Arrival within the grace window (or no shift assigned)."""

    def classify(self, *, late_minutes: int, grace_minutes: int) -> ArrivalDecision:
        return ArrivalDecision(status=AttendanceStatus.ON_TIME, is_late=False, is_half_day=False)
