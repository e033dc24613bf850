from __future__ import annotations

from datetime import date, time

import pytest

from src.attendance_engine.attendance_engine.core.enums import (
    CertificateRequirement,
    EmploymentStatus,
    LeaveType,
    PolicyRule,
    RequestStatus,
    RequestType,
    SaturdayPolicy,
)
from src.attendance_engine.attendance_engine.core.exceptions import FormatError, ValidationError
from src.attendance_engine.attendance_engine.employees.model import Employee
from src.attendance_engine.attendance_engine.leaves.model import LeaveRequest
from src.attendance_engine.attendance_engine.leaves.policy import LeavePolicyValidator, PolicyContext
from src.attendance_engine.attendance_engine.shifts.model import ShiftSchedule

SHIFT = ShiftSchedule(start_time=time(9, 0), end_time=time(18, 30), saturday_policy=SaturdayPolicy.WEEK_1_3_OFF)
PERMANENT = Employee(employee_id=1, full_name="Asha Verma", shift=SHIFT)
PROBATION = Employee(employee_id=2, full_name="Rahul Nair", employment_status=EmploymentStatus.PROBATION, shift=SHIFT)


def existing(request_id: int, request_type: RequestType, *days: date, status=RequestStatus.PENDING, leave_type=LeaveType.FULL_DAY):
    return LeaveRequest(
        request_id=request_id,
        employee_id=1,
        request_type=request_type,
        leave_type=leave_type,
        leave_dates=tuple(days),
        status=status,
    )


def validate(employee, dates, request_type, leave_type=LeaveType.FULL_DAY, override=None, *, today, context=PolicyContext()):
    return LeavePolicyValidator().validate(employee, dates, request_type, leave_type, override, context=context, today=today)


def test_casual_with_three_days_notice_is_denied():
    # Tuesday 13 Oct -> Friday 16 Oct
    decision = validate(PERMANENT, [date(2026, 10, 16)], RequestType.CASUAL, today=date(2026, 10, 13))

    assert decision.allowed is False
    assert decision.rule == PolicyRule.CASUAL_ADVANCE_NOTICE
    assert "5 days" in decision.message


def test_casual_with_six_days_notice_is_allowed():
    # Tuesday 13 Oct -> Monday 19 Oct
    decision = validate(PERMANENT, [date(2026, 10, 19)], RequestType.CASUAL, today=date(2026, 10, 13))

    assert decision.allowed is True
    assert decision.rule == PolicyRule.ALLOWED


def test_probation_may_only_use_lop_or_compoff():
    denied = validate(PROBATION, [date(2026, 10, 26)], RequestType.CASUAL, today=date(2026, 10, 13))
    allowed = validate(PROBATION, [date(2026, 10, 26)], RequestType.LOSS_OF_PAY, today=date(2026, 10, 13))

    assert denied.rule == PolicyRule.EMPLOYEE_TYPE_RESTRICTION
    assert "probation" in denied.message
    assert allowed.allowed is True


def test_backdated_probation_leave_must_be_lop():
    decision = validate(PROBATION, [date(2026, 10, 12)], RequestType.COMPENSATORY, today=date(2026, 10, 14))

    assert decision.rule == PolicyRule.BACKDATED_LOP_REQUIRED
    assert "2 day(s) ago" in decision.message


def test_backdated_sick_leave_requires_certificate():
    decision = validate(PERMANENT, [date(2026, 10, 12)], RequestType.SICK, today=date(2026, 10, 13))

    assert decision.allowed is True
    assert decision.certificate == CertificateRequirement.REQUIRED


def test_sick_certificate_by_notice():
    same_day = validate(PERMANENT, [date(2026, 10, 19)], RequestType.SICK, today=date(2026, 10, 19))
    future = validate(PERMANENT, [date(2026, 10, 21)], RequestType.SICK, today=date(2026, 10, 19))

    assert same_day.certificate == CertificateRequirement.NOT_REQUIRED
    assert future.certificate == CertificateRequirement.OPTIONAL


def test_planned_short_span_needs_thirty_days():
    # Mon 2 Nov - Fri 6 Nov, 5 working days
    dates = [date(2026, 11, d) for d in range(2, 7)]

    assert validate(PERMANENT, dates, RequestType.PLANNED, today=date(2026, 10, 1)).allowed is True
    denied = validate(PERMANENT, dates, RequestType.PLANNED, today=date(2026, 10, 13))
    assert denied.rule == PolicyRule.PLANNED_ADVANCE_NOTICE


def test_planned_long_span_needs_sixty_days():
    # 2-11 Nov: Sat 7 Nov is an off Saturday and Sun 8 Nov a weekend, 8 working days
    dates = [date(2026, 11, d) for d in range(2, 12)]

    decision = validate(PERMANENT, dates, RequestType.PLANNED, today=date(2026, 10, 1))

    assert decision.rule == PolicyRule.PLANNED_ADVANCE_NOTICE
    assert "60 days" in decision.message


def test_planned_working_days_exclude_holidays():
    dates = [date(2026, 11, d) for d in range(2, 12)]
    context = PolicyContext(holidays=frozenset({date(2026, 11, 9)}))

    assert validate(PERMANENT, dates, RequestType.PLANNED, today=date(2026, 10, 1), context=context).allowed is True


def test_compoff_must_be_submitted_by_thursday():
    late = validate(PERMANENT, [date(2026, 10, 19)], RequestType.COMPENSATORY, today=date(2026, 10, 16))
    in_time = validate(PERMANENT, [date(2026, 10, 19)], RequestType.COMPENSATORY, today=date(2026, 10, 15))

    assert late.rule == PolicyRule.COMPOFF_THURSDAY_DEADLINE
    assert in_time.allowed is True


def test_monthly_request_limit():
    context = PolicyContext(
        existing_requests=[
            existing(1, RequestType.LOSS_OF_PAY, date(2026, 11, 2)),
            existing(2, RequestType.LOSS_OF_PAY, date(2026, 11, 3)),
            existing(3, RequestType.SICK, date(2026, 11, 4), status=RequestStatus.APPROVED),
            existing(4, RequestType.PLANNED, date(2026, 11, 5)),
            existing(5, RequestType.CASUAL, date(2026, 11, 6), status=RequestStatus.REJECTED),
        ]
    )

    decision = validate(PERMANENT, [date(2026, 11, 16)], RequestType.LOSS_OF_PAY, today=date(2026, 10, 1), context=context)

    assert decision.rule == PolicyRule.MONTHLY_REQUEST_LIMIT
    assert "November 2026" in decision.message


def test_monthly_caps_apply_to_every_month_touched():
    context = PolicyContext(
        existing_requests=[existing(i, RequestType.LOSS_OF_PAY, date(2026, 11, 1 + i)) for i in range(1, 5)]
    )
    dates = [date(2026, 10, 29), date(2026, 10, 30), date(2026, 11, 16)]

    decision = validate(PERMANENT, dates, RequestType.LOSS_OF_PAY, today=date(2026, 9, 1), context=context)

    assert decision.rule == PolicyRule.MONTHLY_REQUEST_LIMIT


def test_planned_leave_is_exempt_from_working_day_cap():
    context = PolicyContext(
        existing_requests=[
            existing(1, RequestType.CASUAL, date(2026, 11, 2), date(2026, 11, 3), date(2026, 11, 4)),
            existing(2, RequestType.LOSS_OF_PAY, date(2026, 11, 5)),
        ]
    )
    dates = [date(2026, 11, 9), date(2026, 11, 10)]

    casual = validate(PERMANENT, dates, RequestType.CASUAL, today=date(2026, 10, 1), context=context)
    planned = validate(PERMANENT, dates, RequestType.PLANNED, today=date(2026, 10, 1), context=context)

    assert casual.rule == PolicyRule.MONTHLY_WORKING_DAYS_LIMIT
    assert planned.allowed is True


def test_half_day_counts_as_half_towards_working_day_cap():
    context = PolicyContext(
        existing_requests=[
            existing(1, RequestType.CASUAL, date(2026, 11, 2), date(2026, 11, 3), date(2026, 11, 4)),
            existing(2, RequestType.LOSS_OF_PAY, date(2026, 11, 5)),
        ]
    )

    decision = validate(
        PERMANENT, [date(2026, 11, 9)], RequestType.CASUAL, LeaveType.HALF_DAY_FIRST, today=date(2026, 10, 1), context=context
    )

    assert decision.allowed is True


def test_existing_planned_leave_does_not_use_working_day_cap():
    context = PolicyContext(
        existing_requests=[existing(1, RequestType.PLANNED, *[date(2026, 11, d) for d in range(2, 7)], status=RequestStatus.APPROVED)]
    )

    decision = validate(PERMANENT, [date(2026, 11, 9), date(2026, 11, 10)], RequestType.CASUAL, today=date(2026, 10, 1), context=context)

    assert decision.allowed is True


@pytest.mark.parametrize(
    "today,leave_day,rule",
    [
        (date(2026, 10, 13), date(2026, 10, 20), PolicyRule.TUESDAY_BLOCKED),
        (date(2026, 10, 13), date(2026, 10, 22), PolicyRule.THURSDAY_BLOCKED),
        (date(2026, 10, 9), date(2026, 10, 16), PolicyRule.FRIDAY_BEFORE_SATURDAY_OFF),
    ],
)
def test_short_notice_weekday_restrictions(today, leave_day, rule):
    decision = validate(PERMANENT, [leave_day], RequestType.CASUAL, today=today)

    assert decision.rule == rule
    assert "11 days in advance" in decision.message


def test_friday_before_working_saturday_is_allowed():
    # Sat 24 Oct is week 4, a working Saturday under WEEK_1_3_OFF
    assert validate(PERMANENT, [date(2026, 10, 23)], RequestType.CASUAL, today=date(2026, 10, 16)).allowed is True


def test_long_notice_casual_is_exempt_from_weekday_rules():
    assert validate(PERMANENT, [date(2026, 10, 27)], RequestType.CASUAL, today=date(2026, 10, 13)).allowed is True


def test_sick_leave_is_subject_to_weekday_rules():
    decision = validate(PERMANENT, [date(2026, 10, 20)], RequestType.SICK, today=date(2026, 10, 19))
    assert decision.rule == PolicyRule.TUESDAY_BLOCKED


def test_admin_override_short_circuits_every_rule(caplog):
    with caplog.at_level("INFO"):
        decision = validate(
            PROBATION, [date(2026, 10, 20)], RequestType.CASUAL, override="Family emergency", today=date(2026, 10, 19)
        )

    assert decision.allowed is True
    assert decision.rule == PolicyRule.ADMIN_OVERRIDE
    assert "Family emergency" in caplog.text


def test_blank_override_reason_is_ignored():
    decision = validate(PROBATION, [date(2026, 10, 26)], RequestType.CASUAL, override="   ", today=date(2026, 10, 13))
    assert decision.rule == PolicyRule.EMPLOYEE_TYPE_RESTRICTION


def test_invalid_input():
    validator = LeavePolicyValidator()

    with pytest.raises(ValidationError):
        validator.validate(PERMANENT, [], RequestType.CASUAL, today=date(2026, 10, 1))
    with pytest.raises(ValidationError):
        validator.validate(PERMANENT, ["2026-11-02", "2026-11-02"], RequestType.CASUAL, today=date(2026, 10, 1))
    with pytest.raises(FormatError):
        validator.validate(PERMANENT, ["02/11/2026"], RequestType.CASUAL, today=date(2026, 10, 1))
    with pytest.raises(ValidationError):
        validator.validate(PERMANENT, ["2026-11-02"], RequestType.YEAR_END, today=date(2026, 10, 1))


def test_required_planned_notice():
    validator = LeavePolicyValidator()

    assert validator.required_planned_notice(3) == 30
    assert validator.required_planned_notice(7) == 30
    assert validator.required_planned_notice(8) == 60
