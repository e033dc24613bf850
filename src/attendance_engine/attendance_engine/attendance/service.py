from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from ..common import civil_clock
from ..common.validators import require_non_negative
from ..common.work_calendar import date_range, month_bounds
from ..core.enums import AdminOverride, AttendanceStatus, BreakType, HalfDayCause, RequestStatus
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..database.store import RecordStore, StoreSession
from ..employees.model import Employee
from ..integrations.outbound import ATTENDANCE_LOG_UPDATED, OutboundEvents, PendingEvents
from ..settings.grace_period import GracePeriodProvider
from .day_status import DayView, resolve_day
from .factory import AttendanceStrategyFactory
from .model import AttendanceRecord, BreakLog, StatusResolution
from .resolver import apply_resolution, net_worked_minutes, resolve_record

logger = logging.getLogger(__name__)


class AttendanceService:
    def __init__(
        self,
        store: RecordStore,
        grace: GracePeriodProvider,
        *,
        events: Optional[OutboundEvents] = None,
        strategy_factory: Optional[AttendanceStrategyFactory] = None,
        clock: Callable[[], datetime] = civil_clock.now,
    ):
        self._store = store
        self._grace = grace
        self._events = events or OutboundEvents()
        self._factory = strategy_factory or AttendanceStrategyFactory()
        self._clock = clock

    @staticmethod
    def _employee(s: StoreSession, employee_id: int) -> Employee:
        employee = s.employees.get_by_id(int(employee_id))
        if not employee:
            raise NotFoundError(f"Employee {employee_id} not found")
        return employee

    @staticmethod
    def _record(s: StoreSession, employee_id: int, work_date: date) -> AttendanceRecord:
        record = s.attendance.get_for_employee_and_date(int(employee_id), work_date)
        if not record:
            raise NotFoundError(f"No attendance record for employee {employee_id} on {work_date.isoformat()}")
        return record

    def _resolve(self, record: AttendanceRecord, employee: Employee, grace: int) -> tuple[AttendanceRecord, StatusResolution]:
        resolution = resolve_record(record, employee.shift, grace, factory=self._factory)
        return apply_resolution(record, resolution), resolution

    def _save(
        self,
        s: StoreSession,
        before: Optional[AttendanceRecord],
        after: AttendanceRecord,
        resolution: Optional[StatusResolution],
        pending: PendingEvents,
        *,
        actor_id: Optional[int] = None,
    ) -> AttendanceRecord:
        stored = s.attendance.upsert(after)
        pending.emit(
            ATTENDANCE_LOG_UPDATED,
            {
                "employee_id": stored.employee_id,
                "work_date": stored.work_date.isoformat(),
                "attendance_status": stored.attendance_status.value,
                "is_half_day": stored.is_half_day,
                "is_late": stored.is_late,
            },
        )

        was_half_day = bool(before and before.is_half_day)
        if (
            resolution is not None
            and resolution.is_half_day
            and not was_half_day
            and resolution.half_day_cause == HalfDayCause.LATE_ARRIVAL
        ):
            details = {
                "employee_id": stored.employee_id,
                "work_date": stored.work_date.isoformat(),
                "late_minutes": stored.late_minutes,
            }
            pending.audit("HALF_DAY_LATE_ARRIVAL", actor_id, details)
            pending.notify(
                stored.employee_id,
                f"You arrived {stored.late_minutes} minutes late on {stored.work_date.isoformat()}; "
                "the day is marked as a half day.",
                details,
            )
            pending.notify_admins("Half day marked for late arrival", details)
        return stored

    def clock_in(self, employee_id: int, *, now: Optional[datetime] = None) -> AttendanceRecord:
        now = civil_clock.to_civil(now or self._clock())
        work_date = now.date()
        grace = self._grace.get()
        pending = PendingEvents()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            if not employee.is_active:
                raise ValidationError("Inactive employees cannot clock in")

            before = s.attendance.get_for_employee_and_date(employee.employee_id, work_date)
            if before is None:
                created = s.attendance.create_if_absent(
                    AttendanceRecord(employee_id=employee.employee_id, work_date=work_date, clock_in_time=now)
                )
                if not created:
                    raise ConflictError("Already clocked in today")
            else:
                if before.has_worked_time:
                    raise ConflictError("Already clocked in today")
                if before.is_leave_linked and not before.is_half_day:
                    raise ConflictError("You are on approved leave today")
                if not s.attendance.set_clock_in_if_empty(
                    employee_id=employee.employee_id, work_date=work_date, clock_in_time=now
                ):
                    raise ConflictError("Already clocked in today")

            record = self._record(s, employee.employee_id, work_date)
            if record.is_leave_linked:
                # Half-day leave: the worked half keeps the day a half day.
                after = replace(record, attendance_status=AttendanceStatus.HALF_DAY, is_half_day=True)
                resolution = None
            else:
                after, resolution = self._resolve(record, employee, grace)
            stored = self._save(s, before, after, resolution, pending)

        pending.dispatch(self._events)
        logger.info("Employee %s clocked in at %s (%s)", employee_id, now.isoformat(), stored.attendance_status.value)
        return stored

    @staticmethod
    def _open_record(s: StoreSession, employee_id: int, now: datetime) -> Optional[AttendanceRecord]:
        # Overnight shifts keep the record opened on the previous civil day.
        for work_date in (now.date(), now.date() - timedelta(days=1)):
            candidate = s.attendance.get_for_employee_and_date(employee_id, work_date)
            if candidate and (candidate.has_open_session or candidate.has_open_preserved_session):
                return candidate
        return None

    def clock_out(self, employee_id: int, *, now: Optional[datetime] = None) -> AttendanceRecord:
        now = civil_clock.to_civil(now or self._clock())
        grace = self._grace.get()
        pending = PendingEvents()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            record = self._open_record(s, employee.employee_id, now)
            if record is None:
                raise ValidationError("You have not clocked in")
            if now < (record.clock_in_time or record.preserved_clock_in):
                raise ValidationError("Clock-out cannot be earlier than clock-in")

            if self._end_active_break(s, employee.employee_id, now, pending) is not None:
                record = self._record(s, employee.employee_id, record.work_date)

            if record.has_open_preserved_session:
                stored = self._close_preserved_session(s, employee, record, now, pending)
            else:
                if not s.attendance.set_clock_out_if_open(
                    employee_id=employee.employee_id, work_date=record.work_date, clock_out_time=now
                ):
                    raise ConflictError("Already clocked out")

                closed = replace(record, clock_out_time=now)
                if closed.is_leave_linked:
                    stored = self._save(s, record, closed, None, pending)
                else:
                    after, resolution = self._resolve(closed, employee, grace)
                    stored = self._save(s, record, after, resolution, pending)

        pending.dispatch(self._events)
        return stored

    def _close_preserved_session(
        self,
        s: StoreSession,
        employee: Employee,
        record: AttendanceRecord,
        now: datetime,
        pending: PendingEvents,
    ) -> AttendanceRecord:
        """Clock-out after a full-day leave was approved mid-session.

        The day stays on leave; the session's end and worked minutes go to the
        preserved fields so rejecting the leave later restores a complete day.
        """
        worked = net_worked_minutes(
            record.preserved_clock_in,
            now,
            paid_break_minutes=record.paid_break_minutes,
            unpaid_break_minutes=record.unpaid_break_minutes,
            paid_break_allowance_minutes=employee.shift.paid_break_allowance_minutes if employee.shift else 0,
        )
        if not s.attendance.close_preserved_session_if_open(
            employee_id=employee.employee_id, work_date=record.work_date, clock_out_time=now, worked_minutes=worked
        ):
            raise ConflictError("Already clocked out")

        closed = replace(
            record,
            preserved_clock_out=now,
            preserved_worked_minutes=worked,
            notes=record.notes + (f"Clocked out at {now.strftime('%H:%M')} during approved leave; worked time preserved",),
        )
        return self._save(s, record, closed, None, pending)

    def start_break(self, employee_id: int, break_type: BreakType, *, now: Optional[datetime] = None) -> BreakLog:
        try:
            break_type = BreakType(break_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown break type: {break_type!r}") from exc
        now = civil_clock.to_civil(now or self._clock())
        pending = PendingEvents()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            record = self._open_record(s, employee.employee_id, now)
            if record is None or not record.has_open_session:
                raise ValidationError("You must be clocked in to start a break")
            if s.breaks.get_active(employee.employee_id) is not None:
                raise ConflictError("You are already on a break")

            started = BreakLog(
                employee_id=employee.employee_id,
                work_date=record.work_date,
                break_type=break_type,
                start_time=now,
            )
            started = replace(started, break_id=s.breaks.create(started))
            pending.notify_admins(
                f"{employee.full_name} started a {break_type.value.lower()} break",
                {"employee_id": employee.employee_id, "break_id": started.break_id},
            )
            pending.emit(
                ATTENDANCE_LOG_UPDATED,
                {
                    "employee_id": employee.employee_id,
                    "work_date": record.work_date.isoformat(),
                    "break_id": started.break_id,
                    "break_type": break_type.value,
                },
            )

        pending.dispatch(self._events)
        logger.info("Employee %s started %s break %s", employee_id, break_type.value, started.break_id)
        return started

    def end_break(self, employee_id: int, *, now: Optional[datetime] = None) -> AttendanceRecord:
        now = civil_clock.to_civil(now or self._clock())
        grace = self._grace.get()
        pending = PendingEvents()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            ended = self._end_active_break(s, employee.employee_id, now, pending)
            if ended is None:
                raise ValidationError("No active break to end")

            record = self._record(s, employee.employee_id, ended.work_date)
            if record.clock_out_time is not None and not record.is_leave_linked:
                after, resolution = self._resolve(record, employee, grace)
                stored = self._save(s, record, after, resolution, pending)
            else:
                stored = self._save(s, record, record, None, pending)

        pending.dispatch(self._events)
        logger.info("Employee %s ended break %s after %s minute(s)", employee_id, ended.break_id, ended.duration_minutes)
        return stored

    @staticmethod
    def _end_active_break(s: StoreSession, employee_id: int, now: datetime, pending: PendingEvents) -> Optional[BreakLog]:
        active = s.breaks.get_active(employee_id)
        if active is None:
            return None
        if now < active.start_time:
            raise ValidationError("Break end cannot be earlier than its start")

        duration = max(0, civil_clock.minutes_between(active.start_time, now))
        if not s.breaks.end_if_active(active.break_id, end_time=now, duration_minutes=duration):
            raise ConflictError("Break is already ended")

        paid = duration if active.break_type == BreakType.PAID else 0
        if not s.attendance.add_break_minutes(
            employee_id=employee_id, work_date=active.work_date, paid_minutes=paid, unpaid_minutes=duration - paid
        ):
            raise NotFoundError(f"No attendance record for employee {employee_id} on {active.work_date.isoformat()}")
        pending.notify_admins(
            f"Employee {employee_id} ended a {active.break_type.value.lower()} break ({duration} min)",
            {"employee_id": employee_id, "break_id": active.break_id},
        )
        return replace(active, end_time=now, duration_minutes=duration)

    def recalculate(self, employee_id: int, work_date: date, *, actor_id: Optional[int] = None) -> AttendanceRecord:
        """Re-derive the status from the record's current clock times."""
        grace = self._grace.get()
        pending = PendingEvents()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            record = self._record(s, employee.employee_id, civil_clock.parse_date(work_date))
            if record.is_leave_linked:
                return record
            after, resolution = self._resolve(record, employee, grace)
            if after == record:
                return record
            stored = self._save(s, record, after, resolution, pending, actor_id=actor_id)

        pending.dispatch(self._events)
        return stored

    def recalculate_range(self, start_date: date, end_date: date) -> int:
        """Scheduled job: recompute every non-leave record in the range. Returns records changed."""
        start_date, end_date = civil_clock.parse_date(start_date), civil_clock.parse_date(end_date)
        if end_date < start_date:
            raise ValidationError("End date must not be before start date")
        grace = self._grace.get()
        pending = PendingEvents()
        changed = 0

        with self._store.transaction() as s:
            employees: dict[int, Optional[Employee]] = {}
            for record in s.attendance.list_between(start_date=start_date, end_date=end_date):
                if record.is_leave_linked:
                    continue
                if record.employee_id not in employees:
                    employees[record.employee_id] = s.employees.get_by_id(record.employee_id)
                employee = employees[record.employee_id]
                if employee is None:
                    logger.warning("Skipping record of unknown employee %s", record.employee_id)
                    continue
                after, resolution = self._resolve(record, employee, grace)
                if after != record:
                    self._save(s, record, after, resolution, pending)
                    changed += 1

        pending.dispatch(self._events)
        logger.info("Recalculated %s-%s: %s record(s) changed", start_date, end_date, changed)
        return changed

    def edit_sessions(
        self,
        employee_id: int,
        work_date: date,
        *,
        clock_in_time: Optional[datetime] = None,
        clock_out_time: Optional[datetime] = None,
        paid_break_minutes: Optional[int] = None,
        unpaid_break_minutes: Optional[int] = None,
        actor_id: Optional[int] = None,
    ) -> AttendanceRecord:
        """Admin edit of clock times or breaks, followed by a recompute."""
        work_date = civil_clock.parse_date(work_date)
        grace = self._grace.get()
        pending = PendingEvents()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            before = s.attendance.get_for_employee_and_date(employee.employee_id, work_date)
            record = before or AttendanceRecord(employee_id=employee.employee_id, work_date=work_date)

            changes = {}
            if clock_in_time is not None:
                changes["clock_in_time"] = civil_clock.to_civil(clock_in_time)
            if clock_out_time is not None:
                changes["clock_out_time"] = civil_clock.to_civil(clock_out_time)
            for name, value in (("paid_break_minutes", paid_break_minutes), ("unpaid_break_minutes", unpaid_break_minutes)):
                if value is not None:
                    changes[name] = int(require_non_negative(value, name))
            edited = replace(record, **changes)

            if edited.clock_out_time is not None:
                if edited.clock_in_time is None:
                    raise ValidationError("Clock-out needs a clock-in")
                if edited.clock_out_time < edited.clock_in_time:
                    raise ValidationError("Clock-out cannot be earlier than clock-in")

            if edited.is_leave_linked:
                resolution = None
                after = edited
            else:
                after, resolution = self._resolve(edited, employee, grace)
            stored = self._save(s, before, after, resolution, pending, actor_id=actor_id)
            pending.audit(
                "ATTENDANCE_SESSION_EDITED",
                actor_id,
                {
                    "employee_id": stored.employee_id,
                    "work_date": work_date.isoformat(),
                    "changes": {k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in changes.items()},
                    "attendance_status": stored.attendance_status.value,
                },
            )

        pending.dispatch(self._events)
        return stored

    def set_admin_override(
        self,
        employee_id: int,
        work_date: date,
        override: AdminOverride,
        *,
        reason: str,
        actor_id: Optional[int] = None,
    ) -> AttendanceRecord:
        override = AdminOverride(override)
        if override == AdminOverride.NONE:
            raise ValidationError("Use clear_admin_override to remove an override")
        if not reason or not reason.strip():
            raise ValidationError("Override reason is required")
        return self._change_override(employee_id, work_date, override, reason.strip(), actor_id, "ATTENDANCE_OVERRIDE_SET")

    def clear_admin_override(self, employee_id: int, work_date: date, *, actor_id: Optional[int] = None) -> AttendanceRecord:
        return self._change_override(employee_id, work_date, AdminOverride.NONE, None, actor_id, "ATTENDANCE_OVERRIDE_CLEARED")

    def _change_override(
        self,
        employee_id: int,
        work_date: date,
        override: AdminOverride,
        reason: Optional[str],
        actor_id: Optional[int],
        event: str,
    ) -> AttendanceRecord:
        work_date = civil_clock.parse_date(work_date)
        grace = self._grace.get()
        pending = PendingEvents()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            before = self._record(s, employee.employee_id, work_date)
            if before.is_leave_linked:
                raise ConflictError("Attendance on an approved leave day cannot be overridden")
            edited = replace(before, admin_override=override, override_reason=reason)
            after, resolution = self._resolve(edited, employee, grace)
            stored = self._save(s, before, after, resolution, pending, actor_id=actor_id)
            pending.audit(
                event,
                actor_id,
                {
                    "employee_id": stored.employee_id,
                    "work_date": work_date.isoformat(),
                    "override": override.value,
                    "reason": reason,
                    "before": {"status": before.attendance_status.value, "is_half_day": before.is_half_day, "is_late": before.is_late},
                    "after": {"status": stored.attendance_status.value, "is_half_day": stored.is_half_day, "is_late": stored.is_late},
                },
            )

        pending.dispatch(self._events)
        return stored

    def day_status(self, employee_id: int, day: date, *, today: Optional[date] = None) -> DayView:
        day = civil_clock.parse_date(day)
        today = today or civil_clock.today_date()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            record = s.attendance.get_for_employee_and_date(employee.employee_id, day)
            holidays = {
                h.holiday_date: h.name
                for h in s.holidays.list_between(start_date=day, end_date=day)
                if not h.is_tentative
            }
            approved = s.leaves.list_approved_covering(employee.employee_id, day)

        return resolve_day(
            day,
            record=record,
            saturday_policy=employee.saturday_policy,
            holidays=holidays,
            approved_leave_id=approved[0].request_id if approved else None,
            today=today,
        )

    def month_view(self, employee_id: int, year: int, month: int, *, today: Optional[date] = None) -> list[DayView]:
        start, end = month_bounds(date(year, month, 1))
        today = today or civil_clock.today_date()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            records = {r.work_date: r for r in s.attendance.list_for_employee(employee.employee_id, start_date=start, end_date=end)}
            holidays = {
                h.holiday_date: h.name
                for h in s.holidays.list_between(start_date=start, end_date=end)
                if not h.is_tentative
            }
            leave_by_day: dict[date, int] = {}
            for leave in s.leaves.list_for_employee_between(
                employee.employee_id, start_date=start, end_date=end, statuses=[RequestStatus.APPROVED]
            ):
                for d in leave.leave_dates:
                    leave_by_day.setdefault(d, leave.request_id)

        return [
            resolve_day(
                d,
                record=records.get(d),
                saturday_policy=employee.saturday_policy,
                holidays=holidays,
                approved_leave_id=leave_by_day.get(d),
                today=today,
            )
            for d in date_range(start, end)
        ]
