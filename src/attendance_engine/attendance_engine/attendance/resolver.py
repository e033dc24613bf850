"""Attendance status resolution.

``resolve`` is a pure function of its inputs: it re-derives late minutes from
the clock-in instant every time, so recalculating an unchanged record yields
the same result, and admin edits to session times are always reflected.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from ..common.civil_clock import civil_date_of, minutes_between, shift_instant
from ..core.constants import MIN_FULL_DAY_MINUTES
from ..core.enums import AdminOverride, AttendanceStatus, HalfDayCause, StatusSource
from ..shifts.model import ShiftSchedule
from .factory import AttendanceStrategyFactory
from .model import AttendanceRecord, StatusResolution

_default_factory = AttendanceStrategyFactory()


def late_minutes_for(clock_in_time: datetime, shift: Optional[ShiftSchedule]) -> int:
    if shift is None:
        return 0
    start = shift_instant(civil_date_of(clock_in_time), shift.start_time)
    return max(0, minutes_between(start, clock_in_time))


def net_worked_minutes(
    clock_in_time: datetime,
    clock_out_time: datetime,
    *,
    paid_break_minutes: int = 0,
    unpaid_break_minutes: int = 0,
    paid_break_allowance_minutes: int = 0,
) -> int:
    """Gross session minus unpaid breaks minus paid breaks beyond the allowance."""
    gross = max(0, minutes_between(clock_in_time, clock_out_time))
    excess_paid = max(0, int(paid_break_minutes) - int(paid_break_allowance_minutes))
    return max(0, gross - int(unpaid_break_minutes) - excess_paid)


def resolve(
    clock_in_time: Optional[datetime],
    shift: Optional[ShiftSchedule],
    grace_period_minutes: int,
    *,
    clock_out_time: Optional[datetime] = None,
    worked_minutes: Optional[int] = None,
    paid_break_minutes: int = 0,
    unpaid_break_minutes: int = 0,
    admin_override: AdminOverride = AdminOverride.NONE,
    factory: Optional[AttendanceStrategyFactory] = None,
) -> StatusResolution:
    if clock_in_time is None:
        return StatusResolution(
            is_late=False,
            is_half_day=False,
            late_minutes=0,
            attendance_status=AttendanceStatus.ABSENT,
        )

    factory = factory or _default_factory
    grace = int(grace_period_minutes)
    late_minutes = late_minutes_for(clock_in_time, shift)
    strategy = factory.for_arrival(late_minutes=late_minutes, shift=shift, grace_minutes=grace)
    arrival = strategy.classify(late_minutes=late_minutes, grace_minutes=grace)

    if worked_minutes is None and clock_out_time is not None:
        worked_minutes = net_worked_minutes(
            clock_in_time,
            clock_out_time,
            paid_break_minutes=paid_break_minutes,
            unpaid_break_minutes=unpaid_break_minutes,
            paid_break_allowance_minutes=shift.paid_break_allowance_minutes if shift else 0,
        )
    short_hours = worked_minutes is not None and worked_minutes < MIN_FULL_DAY_MINUTES

    if admin_override == AdminOverride.OVERRIDE_HALF_DAY:
        # Half-day is suppressed; punctuality still reflects the real arrival.
        return StatusResolution(
            is_late=arrival.is_late,
            is_half_day=False,
            late_minutes=late_minutes,
            attendance_status=AttendanceStatus.LATE if arrival.is_late else AttendanceStatus.ON_TIME,
            source=StatusSource.ADMIN_OVERRIDE,
            worked_minutes=worked_minutes,
        )

    if admin_override == AdminOverride.OVERRIDE_LATE:
        # Lateness is waived, including the half-day it caused. Hours still count.
        return StatusResolution(
            is_late=False,
            is_half_day=short_hours,
            late_minutes=late_minutes,
            attendance_status=AttendanceStatus.HALF_DAY if short_hours else AttendanceStatus.ON_TIME,
            source=StatusSource.ADMIN_OVERRIDE,
            half_day_cause=HalfDayCause.INSUFFICIENT_HOURS if short_hours else None,
            worked_minutes=worked_minutes,
        )

    if arrival.is_half_day:
        return StatusResolution(
            is_late=arrival.is_late,
            is_half_day=True,
            late_minutes=late_minutes,
            attendance_status=AttendanceStatus.HALF_DAY,
            half_day_cause=HalfDayCause.LATE_ARRIVAL,
            worked_minutes=worked_minutes,
        )

    if short_hours:
        return StatusResolution(
            is_late=arrival.is_late,
            is_half_day=True,
            late_minutes=late_minutes,
            attendance_status=AttendanceStatus.HALF_DAY,
            half_day_cause=HalfDayCause.INSUFFICIENT_HOURS,
            worked_minutes=worked_minutes,
        )

    return StatusResolution(
        is_late=arrival.is_late,
        is_half_day=False,
        late_minutes=late_minutes,
        attendance_status=arrival.status,
        worked_minutes=worked_minutes,
    )


def resolve_record(
    record: AttendanceRecord,
    shift: Optional[ShiftSchedule],
    grace_period_minutes: int,
    *,
    factory: Optional[AttendanceStrategyFactory] = None,
) -> StatusResolution:
    return resolve(
        record.clock_in_time,
        shift,
        grace_period_minutes,
        clock_out_time=record.clock_out_time,
        paid_break_minutes=record.paid_break_minutes,
        unpaid_break_minutes=record.unpaid_break_minutes,
        admin_override=record.admin_override,
        factory=factory,
    )


def apply_resolution(record: AttendanceRecord, resolution: StatusResolution) -> AttendanceRecord:
    return replace(
        record,
        is_late=resolution.is_late,
        is_half_day=resolution.is_half_day,
        late_minutes=resolution.late_minutes,
        attendance_status=resolution.attendance_status,
        status_source=resolution.source,
    )


def recompute_record(
    record: AttendanceRecord,
    shift: Optional[ShiftSchedule],
    grace_period_minutes: int,
    *,
    factory: Optional[AttendanceStrategyFactory] = None,
) -> tuple[AttendanceRecord, StatusResolution]:
    """Natural (non-leave) status of a record, with any admin override honoured."""
    resolution = resolve_record(record, shift, grace_period_minutes, factory=factory)
    return apply_resolution(record, resolution), resolution
