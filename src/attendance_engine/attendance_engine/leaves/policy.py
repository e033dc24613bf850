"""Leave eligibility rules.

The validator is pure: callers load the employee's existing requests and the
holiday calendar into a ``PolicyContext`` and pass "today" explicitly. Checks
run in a fixed order and the first failure wins; an admin override reason
short-circuits every check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import AbstractSet, Optional, Sequence

from ..common import civil_clock
from ..common.validators import normalize_leave_dates
from ..common.work_calendar import count_working_days, is_saturday_off, month_key
from ..core import constants
from ..core.enums import (
    CertificateRequirement,
    EmploymentStatus,
    LeaveType,
    PolicyRule,
    RequestStatus,
    RequestType,
)
from ..core.exceptions import ValidationError
from ..employees.model import Employee
from .model import LeaveRequest, PolicyDecision

logger = logging.getLogger(__name__)

TUESDAY = 1
THURSDAY = 3
FRIDAY = 4
SATURDAY = 5

_RESTRICTED_EMPLOYEE_TYPES = {EmploymentStatus.PROBATION, EmploymentStatus.INTERN}
_RESTRICTED_ALLOWED_TYPES = {RequestType.LOSS_OF_PAY, RequestType.COMPENSATORY}
_ACTIVE_STATUSES = (RequestStatus.PENDING, RequestStatus.APPROVED)


@dataclass(frozen=True)
class PolicyContext:
    """What the validator needs to know beyond the request itself.

    ``existing_requests`` are the employee's other requests touching the
    requested months (the request being edited must already be excluded).
    """

    existing_requests: Sequence[LeaveRequest] = ()
    holidays: AbstractSet[date] = frozenset()


def _day_weight(leave_type: LeaveType) -> float:
    return 0.5 if LeaveType(leave_type).is_half_day else 1.0


class LeavePolicyValidator:
    def __init__(
        self,
        *,
        casual_notice_days: int = constants.CASUAL_NOTICE_DAYS,
        planned_notice_days: int = constants.PLANNED_NOTICE_DAYS,
        planned_long_notice_days: int = constants.PLANNED_LONG_NOTICE_DAYS,
        weekday_exempt_notice_days: int = constants.WEEKDAY_RULE_EXEMPT_NOTICE_DAYS,
        monthly_request_limit: int = constants.MONTHLY_REQUEST_LIMIT,
        monthly_working_days_limit: float = constants.MONTHLY_WORKING_DAYS_LIMIT,
    ):
        self._casual_notice = casual_notice_days
        self._planned_notice = planned_notice_days
        self._planned_long_notice = planned_long_notice_days
        self._exempt_notice = weekday_exempt_notice_days
        self._request_limit = monthly_request_limit
        self._working_days_limit = monthly_working_days_limit

    def validate(
        self,
        employee: Employee,
        leave_dates: Sequence,
        request_type: RequestType,
        leave_type: LeaveType = LeaveType.FULL_DAY,
        admin_override_reason: Optional[str] = None,
        *,
        context: PolicyContext = PolicyContext(),
        today: Optional[date] = None,
    ) -> PolicyDecision:
        request_type = RequestType(request_type)
        leave_type = LeaveType(leave_type)
        if request_type == RequestType.YEAR_END:
            raise ValidationError("Year-end requests are not subject to leave policy")

        dates = normalize_leave_dates(leave_dates)
        today = today or civil_clock.today_date()

        if admin_override_reason and admin_override_reason.strip():
            logger.info(
                "Leave policy admin override: employee=%s type=%s leave_type=%s dates=%s reason=%r",
                employee.employee_id,
                request_type.value,
                leave_type.value,
                [d.isoformat() for d in dates],
                admin_override_reason.strip(),
            )
            return PolicyDecision.allow("Admin override applied", rule=PolicyRule.ADMIN_OVERRIDE)

        notice = (dates[0] - today).days
        checks = (
            lambda: self._check_employee_type(employee, request_type),
            lambda: self._check_backdated(employee, request_type, notice),
            lambda: self._check_notice(employee, dates, request_type, notice, today, context),
            lambda: self._check_monthly_caps(employee, dates, request_type, leave_type, context),
            lambda: self._check_weekdays(employee, dates, request_type, notice),
        )
        for check in checks:
            denial = check()
            if denial is not None:
                logger.info(
                    "Leave request denied for employee %s: %s (%s)",
                    employee.employee_id, denial.rule.value, denial.message,
                )
                return denial

        certificate = self.certificate_requirement(notice) if request_type == RequestType.SICK else None
        return PolicyDecision.allow(certificate=certificate)

    @staticmethod
    def certificate_requirement(notice_days: int) -> CertificateRequirement:
        """Sick leave: same-day needs none, backdated needs one, future is optional."""
        if notice_days == 0:
            return CertificateRequirement.NOT_REQUIRED
        if notice_days < 0:
            return CertificateRequirement.REQUIRED
        return CertificateRequirement.OPTIONAL

    def required_planned_notice(self, working_days: int) -> int:
        if working_days > constants.PLANNED_MEDIUM_SPAN_MAX_DAYS:
            return self._planned_long_notice
        return self._planned_notice

    def _check_employee_type(self, employee: Employee, request_type: RequestType) -> Optional[PolicyDecision]:
        status = employee.employment_status
        if status in _RESTRICTED_EMPLOYEE_TYPES and request_type not in _RESTRICTED_ALLOWED_TYPES:
            return PolicyDecision.deny(
                PolicyRule.EMPLOYEE_TYPE_RESTRICTION,
                f"During {status.value.lower()}, only Loss of Pay or Compensatory leave is allowed. "
                f"{request_type.value.title()} leave will be available after confirmation.",
            )
        return None

    def _check_backdated(self, employee: Employee, request_type: RequestType, notice: int) -> Optional[PolicyDecision]:
        if notice >= 0:
            return None
        status = employee.employment_status
        if status in _RESTRICTED_EMPLOYEE_TYPES and request_type != RequestType.LOSS_OF_PAY:
            days_past = -notice
            return PolicyDecision.deny(
                PolicyRule.BACKDATED_LOP_REQUIRED,
                f"This leave starts {days_past} day(s) ago. During {status.value.lower()}, "
                "backdated leave must be applied as Loss of Pay.",
            )
        return None

    def _check_notice(
        self,
        employee: Employee,
        dates: Sequence[date],
        request_type: RequestType,
        notice: int,
        today: date,
        context: PolicyContext,
    ) -> Optional[PolicyDecision]:
        if request_type == RequestType.CASUAL and notice < self._casual_notice:
            return PolicyDecision.deny(
                PolicyRule.CASUAL_ADVANCE_NOTICE,
                f"Casual leave must be applied at least {self._casual_notice} days in advance; "
                f"this request gives {notice} day(s) of notice.",
            )

        if request_type == RequestType.PLANNED:
            working_days = count_working_days(dates, employee.saturday_policy, context.holidays)
            required = self.required_planned_notice(working_days)
            if notice < required:
                return PolicyDecision.deny(
                    PolicyRule.PLANNED_ADVANCE_NOTICE,
                    f"Planned leave of {working_days} working day(s) requires at least {required} days "
                    f"of advance notice; this request gives {notice}.",
                )

        if request_type == RequestType.COMPENSATORY and today.weekday() in (FRIDAY, SATURDAY):
            return PolicyDecision.deny(
                PolicyRule.COMPOFF_THURSDAY_DEADLINE,
                f"Comp-off requests must be submitted by Thursday of the same week; today is {today.strftime('%A')}.",
            )
        return None

    def _check_monthly_caps(
        self,
        employee: Employee,
        dates: Sequence[date],
        request_type: RequestType,
        leave_type: LeaveType,
        context: PolicyContext,
    ) -> Optional[PolicyDecision]:
        policy = employee.saturday_policy
        months = sorted({month_key(d) for d in dates})

        for year, month in months:
            label = date(year, month, 1).strftime("%B %Y")
            in_month = [
                r for r in context.existing_requests
                if r.status in _ACTIVE_STATUSES
                and not r.is_year_end
                and any(month_key(d) == (year, month) for d in r.leave_dates)
            ]
            if len(in_month) >= self._request_limit:
                return PolicyDecision.deny(
                    PolicyRule.MONTHLY_REQUEST_LIMIT,
                    f"You already have {len(in_month)} leave requests for {label}. "
                    f"The maximum is {self._request_limit} requests per month.",
                )

            if request_type == RequestType.PLANNED:
                continue

            used = 0.0
            for r in in_month:
                if r.request_type == RequestType.PLANNED:
                    continue
                month_days = [d for d in r.leave_dates if month_key(d) == (year, month)]
                used += count_working_days(month_days, policy, context.holidays) * _day_weight(r.leave_type)

            requested = [d for d in dates if month_key(d) == (year, month)]
            new_days = count_working_days(requested, policy, context.holidays) * _day_weight(leave_type)
            if used + new_days > self._working_days_limit:
                return PolicyDecision.deny(
                    PolicyRule.MONTHLY_WORKING_DAYS_LIMIT,
                    f"You have already used {used:g} working day(s) of leave in {label}. "
                    f"This request would exceed the monthly limit of {self._working_days_limit:g} working days.",
                )
        return None

    def _check_weekdays(
        self,
        employee: Employee,
        dates: Sequence[date],
        request_type: RequestType,
        notice: int,
    ) -> Optional[PolicyDecision]:
        # Planned leave only reaches here with valid notice.
        if request_type == RequestType.PLANNED:
            return None
        if request_type in (RequestType.CASUAL, RequestType.LOSS_OF_PAY) and notice > self._exempt_notice:
            return None

        hint = f"Apply at least {self._exempt_notice + 1} days in advance for more flexibility."
        for d in dates:
            weekday = d.weekday()
            if weekday == TUESDAY:
                return PolicyDecision.deny(PolicyRule.TUESDAY_BLOCKED, f"Short-notice leave cannot include Tuesday {d.isoformat()}. {hint}")
            if weekday == THURSDAY:
                return PolicyDecision.deny(PolicyRule.THURSDAY_BLOCKED, f"Short-notice leave cannot include Thursday {d.isoformat()}. {hint}")
            if weekday == FRIDAY and is_saturday_off(d + timedelta(days=1), employee.saturday_policy):
                return PolicyDecision.deny(
                    PolicyRule.FRIDAY_BEFORE_SATURDAY_OFF,
                    f"Leave cannot include Friday {d.isoformat()} because the following Saturday is off. {hint}",
                )
        return None
