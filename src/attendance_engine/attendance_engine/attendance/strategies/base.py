from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ...core.enums import AttendanceStatus


@dataclass(frozen=True)
class ArrivalDecision:
    status: AttendanceStatus
    is_late: bool
    is_half_day: bool


class ArrivalStrategy(ABC):
    """Strategy Pattern: encapsulate how an arrival is classified."""

    @abstractmethod
    def classify(self, *, late_minutes: int, grace_minutes: int) -> ArrivalDecision:
        raise NotImplementedError
