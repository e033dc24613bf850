"""Keeps attendance records and leave balances consistent with leave decisions.

Every public method is one store transaction: the ledger change, the
attendance records and the leave-request row commit together or not at all.
Status changes are conditional writes against the status that was read, so a
concurrent decision on the same request loses with ``ConflictError`` instead
of applying twice. Audit, notifications and broadcasts go out after commit.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Sequence

from ..attendance.factory import AttendanceStrategyFactory
from ..attendance.model import AttendanceRecord
from ..attendance.resolver import net_worked_minutes, recompute_record
from ..common import civil_clock
from ..common.validators import normalize_leave_dates
from ..core.enums import AttendanceStatus, RequestStatus, StatusSource
from ..core.exceptions import ConflictError, NotFoundError, PolicyViolation, ValidationError
from ..database.store import RecordStore, StoreSession
from ..employees.model import Employee
from ..integrations.outbound import ATTENDANCE_LOG_UPDATED, LEAVE_STATUS_UPDATED, OutboundEvents, PendingEvents
from ..settings.grace_period import GracePeriodProvider
from .ledger import LeaveBalanceLedger, balance_field_for, leave_duration
from .model import LeaveRequest
from .policy import LeavePolicyValidator
from .service import LeaveRequestService

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.REJECTED},
    RequestStatus.APPROVED: {RequestStatus.REJECTED},
    RequestStatus.REJECTED: set(),
}


def require_transition(current: RequestStatus, target: RequestStatus) -> None:
    if target not in _TRANSITIONS[current]:
        raise ConflictError(f"Cannot move a {current.value} leave request to {target.value}")


class AttendanceLeaveSynchronizer:
    def __init__(
        self,
        store: RecordStore,
        grace: GracePeriodProvider,
        *,
        ledger: Optional[LeaveBalanceLedger] = None,
        validator: Optional[LeavePolicyValidator] = None,
        events: Optional[OutboundEvents] = None,
        strategy_factory: Optional[AttendanceStrategyFactory] = None,
        clock: Callable[[], datetime] = civil_clock.now,
    ):
        self._store = store
        self._grace = grace
        self._ledger = ledger or LeaveBalanceLedger()
        self._validator = validator or LeavePolicyValidator()
        self._events = events or OutboundEvents()
        self._factory = strategy_factory or AttendanceStrategyFactory()
        self._clock = clock

    # -- leave decisions -------------------------------------------------

    def approve(self, request_id: int, *, actor_id: Optional[int] = None) -> LeaveRequest:
        pending = PendingEvents()

        with self._store.transaction() as s:
            request = self._load_leave(s, request_id)
            require_transition(request.status, RequestStatus.APPROVED)
            employee = self._load_employee(s, request.employee_id)

            deducted = 0.0
            leave_field = balance_field_for(request.request_type)
            if leave_field is not None:
                days = leave_duration(request.leave_dates, request.leave_type)
                employee, deducted = self._ledger.deduct(
                    employee, leave_field, days, allow_negative=bool(request.admin_override_reason)
                )
                s.employees.save_balances(employee.employee_id, employee.balances)

            self._transition(s, request, RequestStatus.APPROVED, actor_id=actor_id, deducted_days=deducted)
            approved = replace(request, status=RequestStatus.APPROVED, deducted_days=deducted)

            for day in approved.leave_dates:
                self._stamp_leave(s, employee, approved, day, pending)

            self._queue_decision(pending, approved, actor_id, "LEAVE_APPROVED")
            approved = s.leaves.get_by_id(request_id) or approved

        pending.dispatch(self._events)
        logger.info("Leave request %s approved (%s day(s) deducted)", request_id, deducted)
        return approved

    def reject(self, request_id: int, *, actor_id: Optional[int] = None, notes: Optional[str] = None) -> LeaveRequest:
        grace = self._grace.get()
        pending = PendingEvents()

        with self._store.transaction() as s:
            request = self._load_leave(s, request_id)
            require_transition(request.status, RequestStatus.REJECTED)

            if request.status == RequestStatus.APPROVED:
                self._reverse_approval(s, request, grace, pending)

            self._transition(
                s, request, RequestStatus.REJECTED, actor_id=actor_id, deducted_days=0.0, rejection_notes=notes
            )
            rejected = replace(request, status=RequestStatus.REJECTED, deducted_days=0.0)
            self._queue_decision(pending, rejected, actor_id, "LEAVE_REJECTED")
            rejected = s.leaves.get_by_id(request_id) or rejected

        pending.dispatch(self._events)
        logger.info("Leave request %s rejected (was %s)", request_id, request.status.value)
        return rejected

    def edit_dates(self, request_id: int, leave_dates: Iterable, *, actor_id: Optional[int] = None) -> LeaveRequest:
        """Replace the date set; on an approved request only the difference is resynchronized.

        The new dates go through the leave policy again, with the request itself
        left out of the monthly counts. Admin-overridden requests skip it.
        """
        new_dates = normalize_leave_dates(leave_dates)
        today = civil_clock.to_civil(self._clock()).date()
        grace = self._grace.get()
        pending = PendingEvents()

        with self._store.transaction() as s:
            request = self._load_leave(s, request_id)
            if request.status == RequestStatus.REJECTED:
                raise ConflictError("Rejected leave requests cannot be edited")
            self._check_policy(s, request, new_dates, today)

            deducted = request.deducted_days
            if request.status == RequestStatus.APPROVED:
                employee = self._load_employee(s, request.employee_id)
                leave_field = balance_field_for(request.request_type)
                if leave_field is not None:
                    employee = self._ledger.revert(employee, leave_field, request.deducted_days)
                    employee, deducted = self._ledger.deduct(
                        employee,
                        leave_field,
                        leave_duration(new_dates, request.leave_type),
                        allow_negative=bool(request.admin_override_reason),
                    )
                    s.employees.save_balances(employee.employee_id, employee.balances)

            if not s.leaves.update_dates(
                request.request_id, expected_status=request.status, leave_dates=new_dates, deducted_days=deducted
            ):
                raise ConflictError(f"Leave request {request_id} changed while it was being edited")
            edited = replace(request, leave_dates=tuple(new_dates), deducted_days=deducted)

            removed, added = self.diff_dates(request.leave_dates, new_dates)
            if request.status == RequestStatus.APPROVED:
                employee = self._load_employee(s, request.employee_id)
                for day in removed:
                    record = s.attendance.get_for_employee_and_date(request.employee_id, day)
                    if record is not None and record.leave_request_id == request.request_id:
                        self._restore_natural(s, employee, record, grace, pending)
                for day in added:
                    self._stamp_leave(s, employee, edited, day, pending)

            pending.audit(
                "LEAVE_DATES_EDITED",
                actor_id,
                {
                    "request_id": request.request_id,
                    "employee_id": request.employee_id,
                    "status": request.status.value,
                    "removed": [d.isoformat() for d in removed],
                    "added": [d.isoformat() for d in added],
                    "deducted_days": deducted,
                },
            )
            pending.emit(LEAVE_STATUS_UPDATED, {"request_id": request.request_id, "status": request.status.value})
            edited = s.leaves.get_by_id(request_id) or edited

        pending.dispatch(self._events)
        return edited

    def delete(self, request_id: int, *, actor_id: Optional[int] = None) -> None:
        grace = self._grace.get()
        pending = PendingEvents()

        with self._store.transaction() as s:
            request = self._load_leave(s, request_id)
            if request.status == RequestStatus.APPROVED:
                self._reverse_approval(s, request, grace, pending)
            if not s.leaves.delete(request.request_id):
                raise ConflictError(f"Leave request {request_id} was already deleted")
            pending.audit(
                "LEAVE_DELETED",
                actor_id,
                {"request_id": request.request_id, "employee_id": request.employee_id, "status": request.status.value},
            )
            pending.emit(LEAVE_STATUS_UPDATED, {"request_id": request.request_id, "status": "DELETED"})

        pending.dispatch(self._events)

    # -- year-end --------------------------------------------------------

    def decide_year_end(
        self, request_id: int, new_status: RequestStatus, *, actor_id: Optional[int] = None
    ) -> LeaveRequest:
        new_status = RequestStatus(new_status)
        if new_status == RequestStatus.PENDING:
            raise ValidationError("Year-end requests can only be approved or rejected")
        decided_at = civil_clock.to_civil(self._clock())
        pending = PendingEvents()

        with self._store.transaction() as s:
            request = self._load_year_end(s, request_id)
            if request.is_processed or request.status != RequestStatus.PENDING:
                raise ConflictError(f"Year-end request {request_id} was already processed")

            if new_status == RequestStatus.APPROVED:
                employee = self._load_employee(s, request.employee_id)
                employee = self._ledger.apply_year_end(employee, request, today=decided_at.date())
                s.employees.save_balances(employee.employee_id, employee.balances)

            if not s.leaves.decide_year_end(
                request.request_id, new_status=new_status, decided_by=actor_id, decided_at=decided_at
            ):
                raise ConflictError(f"Year-end request {request_id} was already processed")

            decided = replace(request, status=new_status, is_processed=new_status == RequestStatus.APPROVED)
            self._queue_decision(pending, decided, actor_id, f"YEAR_END_{new_status.value}")
            decided = s.leaves.get_by_id(request_id) or decided

        pending.dispatch(self._events)
        return decided

    def delete_year_end(self, request_id: int, *, actor_id: Optional[int] = None) -> None:
        pending = PendingEvents()

        with self._store.transaction() as s:
            request = self._load_year_end(s, request_id)
            if request.status == RequestStatus.REJECTED:
                raise ConflictError("Rejected year-end requests cannot be deleted")

            if request.status == RequestStatus.APPROVED:
                employee = self._load_employee(s, request.employee_id)
                employee = self._ledger.rollback_year_end(employee, request)
                s.employees.save_balances(employee.employee_id, employee.balances)

            if not s.leaves.delete(request.request_id):
                raise ConflictError(f"Year-end request {request_id} was already deleted")
            pending.audit(
                "YEAR_END_DELETED",
                actor_id,
                {
                    "request_id": request.request_id,
                    "employee_id": request.employee_id,
                    "status": request.status.value,
                    "action": request.year_end.action.value,
                    "days": request.year_end.days,
                },
            )

        pending.dispatch(self._events)

    # -- helpers ---------------------------------------------------------

    @staticmethod
    def diff_dates(old: Sequence[date], new: Sequence[date]) -> tuple[list[date], list[date]]:
        old_set, new_set = set(old), set(new)
        return sorted(old_set - new_set), sorted(new_set - old_set)

    def _load_leave(self, s: StoreSession, request_id: int) -> LeaveRequest:
        request = s.leaves.get_by_id(int(request_id), for_update=True)
        if request is None:
            raise NotFoundError(f"Leave request {request_id} not found")
        if request.is_year_end:
            raise ValidationError("Year-end requests are decided through the year-end path")
        return request

    def _load_year_end(self, s: StoreSession, request_id: int) -> LeaveRequest:
        request = s.leaves.get_by_id(int(request_id), for_update=True)
        if request is None:
            raise NotFoundError(f"Year-end request {request_id} not found")
        if not request.is_year_end:
            raise ValidationError(f"Leave request {request_id} is not a year-end request")
        return request

    def _check_policy(self, s: StoreSession, request: LeaveRequest, new_dates: Sequence[date], today: date) -> None:
        if request.admin_override_reason:
            return
        employee = self._load_employee(s, request.employee_id)
        context = LeaveRequestService.policy_context(
            s, employee.employee_id, new_dates, exclude_request_id=request.request_id
        )
        decision = self._validator.validate(
            employee, new_dates, request.request_type, request.leave_type, context=context, today=today
        )
        if not decision.allowed:
            raise PolicyViolation(decision.rule, decision.message)

    @staticmethod
    def _load_employee(s: StoreSession, employee_id: int) -> Employee:
        employee = s.employees.get_by_id(employee_id, for_update=True)
        if employee is None:
            raise NotFoundError(f"Employee {employee_id} not found")
        return employee

    def _transition(
        self,
        s: StoreSession,
        request: LeaveRequest,
        new_status: RequestStatus,
        *,
        actor_id: Optional[int],
        deducted_days: float,
        rejection_notes: Optional[str] = None,
    ) -> None:
        ok = s.leaves.transition(
            request.request_id,
            expected_status=request.status,
            new_status=new_status,
            decided_by=actor_id,
            decided_at=self._clock(),
            deducted_days=deducted_days,
            rejection_notes=rejection_notes,
        )
        if not ok:
            raise ConflictError(f"Leave request {request.request_id} was decided concurrently")

    def _reverse_approval(self, s: StoreSession, request: LeaveRequest, grace: int, pending: PendingEvents) -> None:
        employee = self._load_employee(s, request.employee_id)
        leave_field = balance_field_for(request.request_type)
        if leave_field is not None and request.deducted_days:
            employee = self._ledger.revert(employee, leave_field, request.deducted_days)
            s.employees.save_balances(employee.employee_id, employee.balances)

        for record in s.attendance.list_for_leave(request.request_id):
            self._restore_natural(s, employee, record, grace, pending)

    def _stamp_leave(
        self,
        s: StoreSession,
        employee: Employee,
        request: LeaveRequest,
        day: date,
        pending: PendingEvents,
    ) -> None:
        existing = s.attendance.get_for_employee_and_date(request.employee_id, day)
        if existing is not None and existing.leave_request_id not in (None, request.request_id):
            raise ConflictError(f"{day.isoformat()} is already covered by leave request {existing.leave_request_id}")

        record = existing or AttendanceRecord(employee_id=request.employee_id, work_date=day)
        changes = dict(
            leave_request_id=request.request_id,
            status_source=StatusSource.LEAVE,
            is_late=False,
            late_minutes=0,
        )

        clock_in = record.clock_in_time or record.preserved_clock_in
        clock_out = record.clock_out_time or record.preserved_clock_out
        if clock_in is not None and record.preserved_clock_in is None:
            worked = None
            if clock_out is not None:
                worked = net_worked_minutes(
                    clock_in,
                    clock_out,
                    paid_break_minutes=record.paid_break_minutes,
                    unpaid_break_minutes=record.unpaid_break_minutes,
                    paid_break_allowance_minutes=employee.shift.paid_break_allowance_minutes if employee.shift else 0,
                )
            changes.update(
                preserved_worked_minutes=worked,
                preserved_clock_in=clock_in,
                preserved_clock_out=clock_out,
            )
            changes["notes"] = record.notes + (
                f"Leave #{request.request_id} approved after clock-in at "
                f"{civil_clock.to_civil(clock_in).strftime('%H:%M')}; worked time preserved",
            )

        if request.leave_type.is_half_day and clock_in is not None:
            # The other half was worked, so the day stays a half day.
            changes.update(attendance_status=AttendanceStatus.HALF_DAY, is_half_day=True)
        elif request.leave_type.is_half_day:
            changes.update(attendance_status=AttendanceStatus.LEAVE, is_half_day=True)
        else:
            # Worked time lives in the preserved fields so it is not counted twice.
            changes.update(
                attendance_status=AttendanceStatus.LEAVE,
                is_half_day=False,
                clock_in_time=None,
                clock_out_time=None,
            )

        stored = s.attendance.upsert(replace(record, **changes))
        pending.emit(ATTENDANCE_LOG_UPDATED, self._record_payload(stored))

    def _restore_natural(
        self,
        s: StoreSession,
        employee: Employee,
        record: AttendanceRecord,
        grace: int,
        pending: PendingEvents,
    ) -> None:
        note = f"Leave #{record.leave_request_id} reverted"
        unlinked = replace(
            record,
            clock_in_time=record.clock_in_time or record.preserved_clock_in,
            clock_out_time=record.clock_out_time or record.preserved_clock_out,
            leave_request_id=None,
            preserved_worked_minutes=None,
            preserved_clock_in=None,
            preserved_clock_out=None,
            notes=record.notes + (note,),
        )
        natural, _ = recompute_record(unlinked, employee.shift, grace, factory=self._factory)
        stored = s.attendance.upsert(natural)
        pending.emit(ATTENDANCE_LOG_UPDATED, self._record_payload(stored))

    @staticmethod
    def _record_payload(record: AttendanceRecord) -> dict:
        return {
            "employee_id": record.employee_id,
            "work_date": record.work_date.isoformat(),
            "attendance_status": record.attendance_status.value,
            "is_half_day": record.is_half_day,
            "is_late": record.is_late,
            "leave_request_id": record.leave_request_id,
        }

    @staticmethod
    def _queue_decision(pending: PendingEvents, request: LeaveRequest, actor_id: Optional[int], event: str) -> None:
        details = {
            "request_id": request.request_id,
            "employee_id": request.employee_id,
            "request_type": request.request_type.value,
            "status": request.status.value,
            "leave_dates": [d.isoformat() for d in request.leave_dates],
            "deducted_days": request.deducted_days,
        }
        pending.audit(event, actor_id, details)
        pending.notify(
            request.employee_id,
            f"Your {request.request_type.value.replace('_', ' ').lower()} request is now {request.status.value.lower()}",
            {"request_id": request.request_id, "status": request.status.value},
        )
        pending.emit(LEAVE_STATUS_UPDATED, {"request_id": request.request_id, "status": request.status.value})
