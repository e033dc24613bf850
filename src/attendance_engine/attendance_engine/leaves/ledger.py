from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Optional, Sequence

from ..common import civil_clock
from ..core.enums import LeaveField, LeaveType, RequestType, YearEndAction
from ..core.exceptions import ConflictError, ValidationError
from ..employees.model import Employee
from .model import BalanceCheck, LeaveRequest

logger = logging.getLogger(__name__)

_BALANCE_FIELDS = {
    RequestType.SICK: LeaveField.SICK,
    RequestType.CASUAL: LeaveField.CASUAL,
    RequestType.PLANNED: LeaveField.PAID,
}


def balance_field_for(request_type: RequestType) -> Optional[LeaveField]:
    """Balance bucket charged for a request type; None when the type has no balance."""
    return _BALANCE_FIELDS.get(RequestType(request_type))


def leave_duration(leave_dates: Sequence[date], leave_type: LeaveType) -> float:
    per_day = 0.5 if LeaveType(leave_type).is_half_day else 1.0
    return len(leave_dates) * per_day


class LeaveBalanceLedger:
    """Balance arithmetic on the employee profile.

    Every method returns a new ``Employee``; persisting it is the caller's job
    and happens inside the caller's store transaction.
    """

    def check_balance(self, employee: Employee, request_type: RequestType, days: float) -> BalanceCheck:
        leave_field = balance_field_for(request_type)
        if leave_field is None:
            return BalanceCheck(sufficient=True, available=0.0, requested=days, message="No balance check required")

        available = employee.balances.balance(leave_field)
        if available < days:
            return BalanceCheck(
                sufficient=False,
                available=available,
                requested=days,
                message=(
                    f"You have {available:g} day(s) of {leave_field.value} leave remaining, "
                    f"but this request requires {days:g} day(s)."
                ),
            )
        return BalanceCheck(sufficient=True, available=available, requested=days, message="Sufficient balance available")

    def deduct(
        self,
        employee: Employee,
        leave_field: LeaveField,
        days: float,
        *,
        allow_negative: bool = False,
    ) -> tuple[Employee, float]:
        """Take ``days`` off the balance. Returns the employee and the amount actually taken.

        Normal deduction clamps at zero; only an admin override may go negative.
        """
        if days < 0:
            raise ValidationError("Leave days must not be negative")

        current = employee.balances.balance(leave_field)
        if allow_negative:
            new_balance = current - days
        elif current > 0:
            new_balance = max(0.0, current - days)
        else:
            new_balance = current

        deducted = current - new_balance
        if deducted < days:
            logger.warning(
                "Employee %s %s balance clamped: requested %s, deducted %s",
                employee.employee_id, LeaveField(leave_field).value, days, deducted,
            )
        return self._with_balance(employee, leave_field, new_balance), deducted

    def revert(self, employee: Employee, leave_field: LeaveField, days: float) -> Employee:
        if days < 0:
            raise ValidationError("Leave days must not be negative")
        return self._with_balance(employee, leave_field, employee.balances.balance(leave_field) + days)

    def apply_year_end(self, employee: Employee, request: LeaveRequest, *, today: Optional[date] = None) -> Employee:
        details = self._year_end_details(request)
        if details.action == YearEndAction.CARRY_FORWARD:
            return self.apply_carry_forward(employee, request, today=today)
        return self.apply_encash(employee, request)

    @staticmethod
    def opens_target_year(closing_year: int, on: date) -> bool:
        """True once the year after ``closing_year`` has started, or in December of the closing year."""
        return on.year > closing_year or (on.year == closing_year and on.month == 12)

    def apply_carry_forward(self, employee: Employee, request: LeaveRequest, *, today: Optional[date] = None) -> Employee:
        """Credit carried-forward days towards the year after ``year_end.year``.

        From December of the closing year on, the balance becomes the target
        year's opening balance (entitlement plus the carried days). Earlier in
        the closing year the days are added to the current balance.
        """
        details = self._year_end_details(request)
        if request.is_processed:
            raise ConflictError(f"Year-end request {request.request_id} was already processed")

        today = today or civil_clock.today_date()
        current = employee.balances.balance(details.leave_field)
        if self.opens_target_year(details.year, today):
            new_balance = employee.balances.entitlement(details.leave_field) + details.days
        else:
            new_balance = current + details.days
        logger.info(
            "Carry forward %s %s day(s) for employee %s into %s: balance %s -> %s",
            details.days, details.leave_field.value, employee.employee_id, details.year + 1, current, new_balance,
        )
        return self._with_balance(employee, details.leave_field, new_balance)

    def apply_encash(self, employee: Employee, request: LeaveRequest) -> Employee:
        details = self._year_end_details(request)
        if request.is_processed:
            raise ConflictError(f"Year-end request {request.request_id} was already processed")

        logger.info(
            "Encash %s %s day(s) for employee %s (%s): balance unchanged",
            details.days, details.leave_field.value, employee.employee_id, details.year,
        )
        return employee

    def rollback_year_end(self, employee: Employee, request: LeaveRequest) -> Employee:
        details = self._year_end_details(request)
        if not request.is_processed:
            raise ConflictError(f"Year-end request {request.request_id} was never processed")

        if details.action == YearEndAction.ENCASH:
            return employee
        decided_on = civil_clock.civil_date_of(request.decided_at) if request.decided_at else None
        if decided_on is not None and not self.opens_target_year(details.year, decided_on):
            # Credited on top of the running balance, so take exactly those days back.
            return self._with_balance(employee, details.leave_field, employee.balances.balance(details.leave_field) - details.days)
        return self._with_balance(employee, details.leave_field, employee.balances.entitlement(details.leave_field))
    @staticmethod
    def _year_end_details(request: LeaveRequest):
        if not request.is_year_end or request.year_end is None:
            raise ValidationError("Not a year-end request")
        return request.year_end

    @staticmethod
    def _with_balance(employee: Employee, leave_field: LeaveField, balance: float) -> Employee:
        return replace(employee, balances=employee.balances.with_balance(leave_field, balance))
