from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AdminOverride, AttendanceStatus, BreakType, HalfDayCause, StatusSource


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one attendance record per (employee, civil date)."""

    employee_id: int
    work_date: date
    clock_in_time: Optional[datetime] = None
    clock_out_time: Optional[datetime] = None
    paid_break_minutes: int = 0
    unpaid_break_minutes: int = 0
    is_late: bool = False
    is_half_day: bool = False
    late_minutes: int = 0
    attendance_status: AttendanceStatus = AttendanceStatus.ABSENT
    status_source: StatusSource = StatusSource.COMPUTED
    admin_override: AdminOverride = AdminOverride.NONE
    override_reason: Optional[str] = None
    leave_request_id: Optional[int] = None
    preserved_worked_minutes: Optional[int] = None
    preserved_clock_in: Optional[datetime] = None
    preserved_clock_out: Optional[datetime] = None
    notes: tuple[str, ...] = ()
    attendance_id: Optional[int] = None

    @property
    def is_leave_linked(self) -> bool:
        return self.leave_request_id is not None

    @property
    def has_worked_time(self) -> bool:
        return self.clock_in_time is not None

    @property
    def has_open_session(self) -> bool:
        return self.clock_in_time is not None and self.clock_out_time is None

    @property
    def has_open_preserved_session(self) -> bool:
        """Clocked in before a full-day leave was approved and not clocked out yet."""
        return (
            self.is_leave_linked
            and self.clock_in_time is None
            and self.preserved_clock_in is not None
            and self.preserved_clock_out is None
        )


@dataclass(frozen=True)
class BreakLog:
    """One paid or unpaid break taken during an open session."""

    employee_id: int
    work_date: date
    break_type: BreakType
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: int = 0
    break_id: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.end_time is None


@dataclass(frozen=True)
class StatusResolution:
    """Output of the status resolver; ``source`` records who decided the status."""

    is_late: bool
    is_half_day: bool
    late_minutes: int
    attendance_status: AttendanceStatus
    source: StatusSource = StatusSource.COMPUTED
    half_day_cause: Optional[HalfDayCause] = None
    worked_minutes: Optional[int] = None
