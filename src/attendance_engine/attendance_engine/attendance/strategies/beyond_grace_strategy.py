from __future__ import annotations

from ...core.enums import AttendanceStatus
from .base import ArrivalDecision, ArrivalStrategy


class BeyondGraceStrategy(ArrivalStrategy):
    """Arrival past the grace window: flagged late and classified half-day together."""

    def classify(self, *, late_minutes: int, grace_minutes: int) -> ArrivalDecision:
        return ArrivalDecision(status=AttendanceStatus.HALF_DAY, is_late=True, is_half_day=True)
