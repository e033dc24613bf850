from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional

from ..common.work_calendar import is_saturday_off, is_weekend
from ..core.enums import AttendanceStatus, DayStatus, SaturdayPolicy
from .model import AttendanceRecord


@dataclass(frozen=True)
class DayView:
    """Calendar read-model: what one day looks like for one employee."""

    day: date
    status: DayStatus
    attendance_status: Optional[AttendanceStatus] = None
    holiday_name: Optional[str] = None
    leave_request_id: Optional[int] = None


def resolve_day(
    day: date,
    *,
    record: Optional[AttendanceRecord],
    saturday_policy: SaturdayPolicy,
    holidays: Mapping[date, str],
    approved_leave_id: Optional[int] = None,
    today: date,
) -> DayView:
    """Holiday > approved leave > weekend / week off > worked > absent or not yet due."""
    if day in holidays:
        return DayView(day=day, status=DayStatus.HOLIDAY, holiday_name=holidays[day])

    leave_id = approved_leave_id
    if leave_id is None and record is not None and record.attendance_status == AttendanceStatus.LEAVE:
        leave_id = record.leave_request_id
    if leave_id is not None:
        return DayView(
            day=day,
            status=DayStatus.LEAVE,
            attendance_status=record.attendance_status if record else AttendanceStatus.LEAVE,
            leave_request_id=leave_id,
        )

    if is_weekend(day):
        return DayView(day=day, status=DayStatus.WEEKEND)
    if is_saturday_off(day, saturday_policy):
        return DayView(day=day, status=DayStatus.WEEK_OFF)

    if record is not None and record.clock_in_time is not None:
        return DayView(day=day, status=DayStatus.WORKED, attendance_status=record.attendance_status)

    if day < today:
        return DayView(day=day, status=DayStatus.ABSENT, attendance_status=AttendanceStatus.ABSENT)
    return DayView(day=day, status=DayStatus.NOT_APPLICABLE)
