from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Sequence

from ..common import civil_clock
from ..common.validators import normalize_leave_dates, require_non_empty
from ..common.work_calendar import month_bounds
from ..core.enums import (
    CertificateRequirement,
    LeaveField,
    LeaveType,
    PolicyRule,
    RequestStatus,
    RequestType,
    YearEndAction,
)
from ..core.exceptions import InsufficientBalanceError, NotFoundError, PolicyViolation, ValidationError
from ..database.store import RecordStore, StoreSession
from ..employees.model import Employee
from ..integrations.outbound import LEAVE_STATUS_UPDATED, OutboundEvents, PendingEvents
from .ledger import LeaveBalanceLedger, leave_duration
from .model import LeaveRequest, PolicyDecision, YearEndDetails
from .policy import LeavePolicyValidator, PolicyContext

logger = logging.getLogger(__name__)


class LeaveRequestService:
    """Submission side of the leave workflow: policy, certificate and balance checks."""

    def __init__(
        self,
        store: RecordStore,
        *,
        validator: Optional[LeavePolicyValidator] = None,
        ledger: Optional[LeaveBalanceLedger] = None,
        events: Optional[OutboundEvents] = None,
        clock: Callable[[], datetime] = civil_clock.now,
    ):
        self._store = store
        self._validator = validator or LeavePolicyValidator()
        self._ledger = ledger or LeaveBalanceLedger()
        self._events = events or OutboundEvents()
        self._clock = clock

    @staticmethod
    def _employee(s: StoreSession, employee_id: int) -> Employee:
        employee = s.employees.get_by_id(int(employee_id))
        if not employee:
            raise NotFoundError(f"Employee {employee_id} not found")
        return employee

    @staticmethod
    def policy_context(
        s: StoreSession,
        employee_id: int,
        dates: Sequence[date],
        *,
        exclude_request_id: Optional[int] = None,
    ) -> PolicyContext:
        start, _ = month_bounds(min(dates))
        _, end = month_bounds(max(dates))
        existing = [
            r
            for r in s.leaves.list_for_employee_between(
                employee_id,
                start_date=start,
                end_date=end,
                statuses=[RequestStatus.PENDING, RequestStatus.APPROVED],
            )
            if r.request_id != exclude_request_id
        ]
        holidays = frozenset(
            h.holiday_date for h in s.holidays.list_between(start_date=start, end_date=end) if not h.is_tentative
        )
        return PolicyContext(existing_requests=existing, holidays=holidays)

    def check_eligibility(
        self,
        employee_id: int,
        leave_dates: Iterable,
        request_type: RequestType,
        leave_type: LeaveType = LeaveType.FULL_DAY,
        *,
        admin_override_reason: Optional[str] = None,
        today: Optional[date] = None,
    ) -> PolicyDecision:
        """Preview the policy decision without creating anything."""
        dates = normalize_leave_dates(leave_dates)
        today = today or civil_clock.to_civil(self._clock()).date()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            context = self.policy_context(s, employee.employee_id, dates)

        return self._validator.validate(
            employee, dates, request_type, leave_type, admin_override_reason, context=context, today=today
        )

    def submit(
        self,
        employee_id: int,
        leave_dates: Iterable,
        request_type: RequestType,
        leave_type: LeaveType = LeaveType.FULL_DAY,
        *,
        reason: str,
        admin_override_reason: Optional[str] = None,
        medical_certificate: Optional[str] = None,
        actor_id: Optional[int] = None,
        today: Optional[date] = None,
    ) -> LeaveRequest:
        request_type = RequestType(request_type)
        leave_type = LeaveType(leave_type)
        if request_type == RequestType.YEAR_END:
            raise ValidationError("Use submit_year_end for year-end requests")
        reason = require_non_empty(reason, "Reason")
        dates = normalize_leave_dates(leave_dates)
        now = civil_clock.to_civil(self._clock())
        today = today or now.date()
        pending = PendingEvents()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            context = self.policy_context(s, employee.employee_id, dates)
            decision = self._validator.validate(
                employee, dates, request_type, leave_type, admin_override_reason, context=context, today=today
            )
            if not decision.allowed:
                raise PolicyViolation(decision.rule, decision.message)

            if decision.certificate == CertificateRequirement.REQUIRED and not medical_certificate:
                raise ValidationError("A medical certificate is required for backdated sick leave")

            days = leave_duration(dates, leave_type)
            overridden = decision.rule == PolicyRule.ADMIN_OVERRIDE
            if not overridden:
                check = self._ledger.check_balance(employee, request_type, days)
                if not check.sufficient:
                    raise InsufficientBalanceError(check.message, available=check.available, requested=days)

            request = LeaveRequest(
                request_id=None,
                employee_id=employee.employee_id,
                request_type=request_type,
                leave_type=leave_type,
                leave_dates=tuple(dates),
                reason=reason,
                is_backdated=dates[0] < today,
                admin_override_reason=admin_override_reason.strip() if overridden else None,
                medical_certificate=medical_certificate,
                created_at=now,
            )
            created = replace(request, request_id=s.leaves.create(request))

            details = {
                "request_id": created.request_id,
                "employee_id": created.employee_id,
                "request_type": request_type.value,
                "leave_type": leave_type.value,
                "leave_dates": [d.isoformat() for d in dates],
                "days": days,
            }
            if overridden:
                pending.audit(
                    "LEAVE_POLICY_ADMIN_OVERRIDE",
                    actor_id,
                    {**details, "employee_name": employee.full_name, "override_reason": created.admin_override_reason},
                )
            pending.audit("LEAVE_SUBMITTED", actor_id or employee.employee_id, details)
            pending.notify_admins(f"New {request_type.value.replace('_', ' ').lower()} request from {employee.full_name}", details)
            pending.emit(LEAVE_STATUS_UPDATED, {"request_id": created.request_id, "status": created.status.value})

        pending.dispatch(self._events)
        logger.info("Leave request %s submitted by employee %s", created.request_id, employee_id)
        return created

    def submit_year_end(
        self,
        employee_id: int,
        leave_field: LeaveField,
        action: YearEndAction,
        days: float,
        *,
        year: Optional[int] = None,
        reason: str = "",
        actor_id: Optional[int] = None,
    ) -> LeaveRequest:
        leave_field = LeaveField(leave_field)
        action = YearEndAction(action)
        if days is None or days <= 0:
            raise ValidationError("Year-end days must be greater than zero")
        now = civil_clock.to_civil(self._clock())
        pending = PendingEvents()

        with self._store.transaction() as s:
            employee = self._employee(s, employee_id)
            available = employee.balances.balance(leave_field)
            if days > available:
                raise InsufficientBalanceError(
                    f"Only {available:g} day(s) of {leave_field.value} leave are available for year-end processing",
                    available=available,
                    requested=days,
                )

            request = LeaveRequest(
                request_id=None,
                employee_id=employee.employee_id,
                request_type=RequestType.YEAR_END,
                reason=reason or f"Year-end {action.value.replace('_', ' ').lower()}",
                year_end=YearEndDetails(year=year or now.year, leave_field=leave_field, action=action, days=float(days)),
                created_at=now,
            )
            created = replace(request, request_id=s.leaves.create(request))
            pending.audit(
                "YEAR_END_SUBMITTED",
                actor_id or employee.employee_id,
                {
                    "request_id": created.request_id,
                    "employee_id": employee.employee_id,
                    "leave_field": leave_field.value,
                    "action": action.value,
                    "days": float(days),
                    "year": created.year_end.year,
                },
            )
            pending.emit(LEAVE_STATUS_UPDATED, {"request_id": created.request_id, "status": created.status.value})

        pending.dispatch(self._events)
        return created
