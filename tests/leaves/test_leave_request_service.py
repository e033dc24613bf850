from __future__ import annotations

from datetime import date, datetime, time

import pytest

from src.attendance_engine.attendance_engine.common.civil_clock import civil_tz
from src.attendance_engine.attendance_engine.core.enums import (
    EmploymentStatus,
    LeaveField,
    PolicyRule,
    RequestStatus,
    RequestType,
    SaturdayPolicy,
    YearEndAction,
)
from src.attendance_engine.attendance_engine.core.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    PolicyViolation,
    ValidationError,
)
from src.attendance_engine.attendance_engine.database.memory_store import InMemoryRecordStore, InMemorySettingsRepository
from src.attendance_engine.attendance_engine.employees.model import Employee, LeaveBalances, LeaveBucket
from src.attendance_engine.attendance_engine.integrations.outbound import OutboundEvents
from src.attendance_engine.attendance_engine.leaves.model import Holiday, LeaveRequest
from src.attendance_engine.attendance_engine.leaves.service import LeaveRequestService
from src.attendance_engine.attendance_engine.leaves.sync import AttendanceLeaveSynchronizer
from src.attendance_engine.attendance_engine.settings.grace_period import GracePeriodProvider
from src.attendance_engine.attendance_engine.shifts.model import ShiftSchedule

SHIFT = ShiftSchedule(start_time=time(9, 0), end_time=time(18, 30), saturday_policy=SaturdayPolicy.WEEK_1_3_OFF)


class RecordingAudit:
    def __init__(self):
        self.events = []

    def record(self, event, actor_id, details):
        self.events.append((event, actor_id, dict(details)))


def build(*, status=EmploymentStatus.PERMANENT, casual: float = 6, now=datetime(2026, 10, 13, 10, 0)):
    store = InMemoryRecordStore()
    store.employees.add(
        Employee(
            employee_id=1,
            full_name="Asha Verma",
            employment_status=status,
            shift=SHIFT,
            balances=LeaveBalances(
                buckets={
                    LeaveField.SICK: LeaveBucket(6, 6),
                    LeaveField.CASUAL: LeaveBucket(6, casual),
                    LeaveField.PAID: LeaveBucket(10, 8),
                }
            ),
        )
    )
    audit = RecordingAudit()
    svc = LeaveRequestService(
        store,
        events=OutboundEvents(audit=audit),
        clock=lambda: now.replace(tzinfo=civil_tz()),
    )
    return svc, store, audit


def test_submit_creates_pending_request():
    svc, store, audit = build()

    created = svc.submit(1, ["2026-10-19"], RequestType.CASUAL, reason="Wedding", actor_id=1)

    assert created.request_id is not None
    assert created.status == RequestStatus.PENDING
    assert created.leave_dates == (date(2026, 10, 19),)
    assert created.is_backdated is False
    assert store.leaves.get_by_id(created.request_id) == created
    assert [e[0] for e in audit.events] == ["LEAVE_SUBMITTED"]


def test_policy_violation_carries_rule_and_stores_nothing():
    svc, store, audit = build()

    with pytest.raises(PolicyViolation) as exc:
        svc.submit(1, ["2026-10-16"], RequestType.CASUAL, reason="Trip")

    assert exc.value.rule == PolicyRule.CASUAL_ADVANCE_NOTICE
    assert store.leaves.rows == {}
    assert audit.events == []


def test_backdated_sick_leave_needs_certificate():
    svc, _, _ = build()

    with pytest.raises(ValidationError):
        svc.submit(1, ["2026-10-12"], RequestType.SICK, reason="Fever")

    created = svc.submit(1, ["2026-10-12"], RequestType.SICK, reason="Fever", medical_certificate="cert-123.pdf")
    assert created.is_backdated is True
    assert created.medical_certificate == "cert-123.pdf"


def test_insufficient_balance():
    svc, store, _ = build(casual=1)

    with pytest.raises(InsufficientBalanceError) as exc:
        svc.submit(1, ["2026-10-19", "2026-10-21"], RequestType.CASUAL, reason="Trip")

    assert exc.value.available == 1
    assert exc.value.requested == 2
    assert store.leaves.rows == {}


def test_admin_override_skips_policy_and_balance_and_is_audited():
    svc, _, audit = build(status=EmploymentStatus.PROBATION, casual=0)

    created = svc.submit(
        1,
        ["2026-10-14"],
        RequestType.CASUAL,
        reason="Hospital visit",
        admin_override_reason="  Approved by HR head ",
        actor_id=50,
    )

    assert created.admin_override_reason == "Approved by HR head"
    override = next(e for e in audit.events if e[0] == "LEAVE_POLICY_ADMIN_OVERRIDE")
    assert override[1] == 50
    assert override[2]["override_reason"] == "Approved by HR head"
    assert override[2]["employee_name"] == "Asha Verma"


def test_existing_requests_count_towards_monthly_limit():
    svc, store, _ = build(now=datetime(2026, 10, 1, 10, 0))
    for day in (2, 3, 4, 5):
        store.leaves.create(
            LeaveRequest(
                request_id=None, employee_id=1, request_type=RequestType.LOSS_OF_PAY, leave_dates=(date(2026, 11, day),)
            )
        )
    store.leaves.create(
        LeaveRequest(
            request_id=None,
            employee_id=1,
            request_type=RequestType.LOSS_OF_PAY,
            leave_dates=(date(2026, 11, 6),),
            status=RequestStatus.REJECTED,
        )
    )

    with pytest.raises(PolicyViolation) as exc:
        svc.submit(1, ["2026-11-16"], RequestType.LOSS_OF_PAY, reason="Personal")
    assert exc.value.rule == PolicyRule.MONTHLY_REQUEST_LIMIT


def test_check_eligibility_uses_confirmed_holidays_only():
    svc, store, _ = build(now=datetime(2026, 10, 1, 10, 0))
    dates = [date(2026, 11, d) for d in range(2, 12)]

    store.holidays.add(Holiday(holiday_date=date(2026, 11, 9), name="Diwali", is_tentative=True))
    assert svc.check_eligibility(1, dates, RequestType.PLANNED).rule == PolicyRule.PLANNED_ADVANCE_NOTICE

    store.holidays.add(Holiday(holiday_date=date(2026, 11, 9), name="Diwali", is_tentative=False))
    assert svc.check_eligibility(1, dates, RequestType.PLANNED).allowed is True
    assert store.leaves.rows == {}


def test_submit_input_errors():
    svc, _, _ = build()

    with pytest.raises(ValidationError):
        svc.submit(1, ["2026-10-19"], RequestType.CASUAL, reason="  ")
    with pytest.raises(ValidationError):
        svc.submit(1, ["2026-10-19"], RequestType.YEAR_END, reason="Rollover")
    with pytest.raises(NotFoundError):
        svc.submit(42, ["2026-10-19"], RequestType.CASUAL, reason="Trip")


def test_submit_year_end():
    svc, _, audit = build()

    with pytest.raises(ValidationError):
        svc.submit_year_end(1, LeaveField.PAID, YearEndAction.CARRY_FORWARD, 0)
    with pytest.raises(InsufficientBalanceError):
        svc.submit_year_end(1, LeaveField.PAID, YearEndAction.CARRY_FORWARD, 9)

    created = svc.submit_year_end(1, LeaveField.PAID, YearEndAction.CARRY_FORWARD, 8)

    assert created.request_type == RequestType.YEAR_END
    assert created.leave_dates == ()
    assert created.year_end.year == 2026
    assert created.year_end.days == 8
    assert created.is_processed is False
    assert "YEAR_END_SUBMITTED" in [e[0] for e in audit.events]


def test_submit_then_approve_updates_balance():
    svc, store, _ = build()
    sync = AttendanceLeaveSynchronizer(store, GracePeriodProvider(InMemorySettingsRepository()))

    created = svc.submit(1, ["2026-10-19", "2026-10-21"], RequestType.CASUAL, reason="Wedding")
    sync.approve(created.request_id)

    assert store.employees.get_by_id(1).balances.balance(LeaveField.CASUAL) == 4
