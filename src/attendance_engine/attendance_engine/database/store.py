from __future__ import annotations

from dataclasses import dataclass
from typing import ContextManager, Protocol

from ..attendance.repository import AttendanceRepository, BreakLogRepository
from ..employees.repository import EmployeeRepository
from ..leaves.repository import HolidayRepository, LeaveRequestRepository


@dataclass(frozen=True)
class StoreSession:
    """Repositories bound to one open transaction."""

    employees: EmployeeRepository
    attendance: AttendanceRepository
    breaks: BreakLogRepository
    leaves: LeaveRequestRepository
    holidays: HolidayRepository


class RecordStore(Protocol):
    def transaction(self) -> ContextManager[StoreSession]:
        """All-or-nothing unit of work: commits on normal exit, rolls back on any exception."""

        raise NotImplementedError
