from __future__ import annotations

import threading
from datetime import date, datetime, time

import pytest

from src.attendance_engine.attendance_engine.attendance.model import AttendanceRecord
from src.attendance_engine.attendance_engine.attendance.service import AttendanceService
from src.attendance_engine.attendance_engine.core.enums import (
    AdminOverride,
    AttendanceStatus,
    BreakType,
    DayStatus,
    SaturdayPolicy,
    StatusSource,
)
from src.attendance_engine.attendance_engine.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.attendance_engine.attendance_engine.database.memory_store import InMemoryRecordStore, InMemorySettingsRepository
from src.attendance_engine.attendance_engine.employees.model import Employee
from src.attendance_engine.attendance_engine.integrations.outbound import ATTENDANCE_LOG_UPDATED, OutboundEvents
from src.attendance_engine.attendance_engine.settings.grace_period import GracePeriodProvider
from src.attendance_engine.attendance_engine.shifts.model import ShiftSchedule

DAY = date(2026, 10, 19)


class RecordingSinks:
    def __init__(self):
        self.audits = []
        self.notifications = []
        self.admin_notifications = []
        self.broadcasts = []

    def record(self, event, actor_id, details):
        self.audits.append((event, actor_id, dict(details)))

    def notify(self, user_id, message, metadata=None):
        self.notifications.append((user_id, message))

    def notify_admins(self, message, metadata=None):
        self.admin_notifications.append(message)

    def emit(self, event_name, payload):
        self.broadcasts.append((event_name, dict(payload)))

    def audit_events(self):
        return [a[0] for a in self.audits]


class ExplodingBroadcaster:
    def emit(self, event_name, payload):
        raise ConnectionError("socket server down")


def build(shift: ShiftSchedule | None = None, *, grace: int = 30, events: OutboundEvents | None = None):
    store = InMemoryRecordStore()
    store.employees.add(
        Employee(
            employee_id=1,
            full_name="Asha Verma",
            shift=shift or ShiftSchedule(
                start_time=time(9, 0),
                end_time=time(18, 30),
                paid_break_allowance_minutes=30,
                saturday_policy=SaturdayPolicy.WEEK_1_3_OFF,
            ),
        )
    )
    settings = InMemorySettingsRepository({"lateGraceMinutes": grace})
    sinks = RecordingSinks()
    events = events or OutboundEvents(audit=sinks, notifier=sinks, broadcaster=sinks)
    svc = AttendanceService(store, GracePeriodProvider(settings), events=events)
    return svc, store, settings, sinks


def test_clock_in_within_grace_is_on_time():
    svc, store, _, sinks = build()

    rec = svc.clock_in(1, now=datetime(2026, 10, 19, 9, 10))

    assert rec.attendance_status == AttendanceStatus.ON_TIME
    assert rec.late_minutes == 10
    assert store.attendance.get_for_employee_and_date(1, DAY) == rec
    assert sinks.broadcasts[0][0] == ATTENDANCE_LOG_UPDATED


def test_second_clock_in_conflicts():
    svc, _, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 10))

    with pytest.raises(ConflictError):
        svc.clock_in(1, now=datetime(2026, 10, 19, 9, 12))


def test_unknown_employee():
    svc, _, _, _ = build()

    with pytest.raises(NotFoundError):
        svc.clock_in(99, now=datetime(2026, 10, 19, 9, 0))


def test_late_half_day_notifies_employee_and_admins():
    svc, _, _, sinks = build()

    rec = svc.clock_in(1, now=datetime(2026, 10, 19, 9, 45))

    assert rec.attendance_status == AttendanceStatus.HALF_DAY
    assert rec.is_late is True
    assert "HALF_DAY_LATE_ARRIVAL" in sinks.audit_events()
    assert sinks.notifications[0][0] == 1
    assert "45 minutes late" in sinks.notifications[0][1]
    assert sinks.admin_notifications


def test_short_hours_half_day_does_not_send_late_notice():
    svc, _, _, sinks = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))

    rec = svc.clock_out(1, now=datetime(2026, 10, 19, 17, 0))

    assert rec.attendance_status == AttendanceStatus.HALF_DAY
    assert rec.is_late is False
    assert "HALF_DAY_LATE_ARRIVAL" not in sinks.audit_events()
    assert sinks.notifications == []


def test_full_day_clock_out():
    svc, _, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))

    rec = svc.clock_out(1, now=datetime(2026, 10, 19, 18, 30))

    assert rec.attendance_status == AttendanceStatus.ON_TIME
    assert rec.clock_out_time is not None


def test_clock_out_without_clock_in():
    svc, _, _, _ = build()

    with pytest.raises(ValidationError):
        svc.clock_out(1, now=datetime(2026, 10, 19, 18, 0))


def test_second_clock_out_is_rejected():
    svc, _, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))
    svc.clock_out(1, now=datetime(2026, 10, 19, 18, 30))

    with pytest.raises(ValidationError):
        svc.clock_out(1, now=datetime(2026, 10, 19, 18, 31))


def test_clock_out_losing_the_conditional_update_conflicts(monkeypatch):
    svc, store, _, sinks = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))
    sinks.broadcasts.clear()
    monkeypatch.setattr(store.attendance, "set_clock_out_if_open", lambda **kwargs: False)

    with pytest.raises(ConflictError):
        svc.clock_out(1, now=datetime(2026, 10, 19, 18, 30))

    assert store.attendance.get_for_employee_and_date(1, DAY).clock_out_time is None
    assert sinks.broadcasts == []


def test_overnight_shift_closes_previous_day_record():
    shift = ShiftSchedule(start_time=time(22, 0), end_time=time(6, 30))
    svc, store, _, _ = build(shift)
    svc.clock_in(1, now=datetime(2026, 10, 19, 22, 5))

    rec = svc.clock_out(1, now=datetime(2026, 10, 20, 6, 40))

    assert rec.work_date == DAY
    assert rec.attendance_status == AttendanceStatus.ON_TIME
    assert store.attendance.get_for_employee_and_date(1, date(2026, 10, 20)) is None


def test_failed_transaction_leaves_no_record(monkeypatch):
    svc, store, _, sinks = build()

    def broken_upsert(record):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store.attendance, "upsert", broken_upsert)
    with pytest.raises(RuntimeError):
        svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))

    assert store.attendance.get_for_employee_and_date(1, DAY) is None
    assert sinks.broadcasts == []


def test_outbound_failures_do_not_fail_the_operation():
    events = OutboundEvents(broadcaster=ExplodingBroadcaster())
    svc, store, _, _ = build(events=events)

    rec = svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))

    assert store.attendance.get_for_employee_and_date(1, DAY) == rec


def test_clock_in_blocked_on_full_day_leave():
    svc, store, _, _ = build()
    store.attendance.upsert(
        AttendanceRecord(
            employee_id=1,
            work_date=DAY,
            attendance_status=AttendanceStatus.LEAVE,
            status_source=StatusSource.LEAVE,
            leave_request_id=9,
        )
    )

    with pytest.raises(ConflictError):
        svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))


def test_clock_in_on_half_day_leave_keeps_half_day():
    svc, store, _, _ = build()
    store.attendance.upsert(
        AttendanceRecord(
            employee_id=1,
            work_date=DAY,
            is_half_day=True,
            attendance_status=AttendanceStatus.LEAVE,
            status_source=StatusSource.LEAVE,
            leave_request_id=9,
        )
    )

    rec = svc.clock_in(1, now=datetime(2026, 10, 19, 14, 0))

    assert rec.attendance_status == AttendanceStatus.HALF_DAY
    assert rec.leave_request_id == 9


def test_recalculate_uses_current_grace_setting():
    svc, _, settings, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 45))

    settings.values["lateGraceMinutes"] = 60
    svc._grace.invalidate()
    rec = svc.recalculate(1, DAY)

    assert rec.attendance_status == AttendanceStatus.ON_TIME
    assert rec.late_minutes == 45


def test_recalculate_skips_leave_linked_records():
    svc, store, settings, _ = build()
    leave_record = AttendanceRecord(
        employee_id=1, work_date=DAY, attendance_status=AttendanceStatus.LEAVE, leave_request_id=4
    )
    store.attendance.upsert(leave_record)

    rec = svc.recalculate(1, DAY)

    assert rec.attendance_status == AttendanceStatus.LEAVE


def test_recalculate_range_counts_changed_records():
    svc, _, settings, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 45))
    svc.clock_in(1, now=datetime(2026, 10, 20, 9, 5))

    settings.values["lateGraceMinutes"] = 60
    svc._grace.invalidate()

    assert svc.recalculate_range(date(2026, 10, 19), date(2026, 10, 20)) == 1
    assert svc.recalculate_range(date(2026, 10, 19), date(2026, 10, 20)) == 0
    with pytest.raises(ValidationError):
        svc.recalculate_range(date(2026, 10, 20), date(2026, 10, 19))


def test_admin_override_survives_recalculation_and_can_be_cleared():
    svc, _, _, sinks = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 45))

    rec = svc.set_admin_override(1, DAY, AdminOverride.OVERRIDE_HALF_DAY, reason="Client visit", actor_id=50)
    assert rec.attendance_status == AttendanceStatus.LATE
    assert rec.is_half_day is False
    assert rec.status_source == StatusSource.ADMIN_OVERRIDE

    assert svc.recalculate(1, DAY).is_half_day is False

    cleared = svc.clear_admin_override(1, DAY, actor_id=50)
    assert cleared.attendance_status == AttendanceStatus.HALF_DAY
    assert cleared.status_source == StatusSource.COMPUTED

    audit = next(a for a in sinks.audits if a[0] == "ATTENDANCE_OVERRIDE_SET")
    assert audit[1] == 50
    assert audit[2]["before"]["is_half_day"] is True
    assert audit[2]["after"]["is_half_day"] is False
    assert "ATTENDANCE_OVERRIDE_CLEARED" in sinks.audit_events()


def test_admin_override_requires_reason():
    svc, _, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 45))

    with pytest.raises(ValidationError):
        svc.set_admin_override(1, DAY, AdminOverride.OVERRIDE_LATE, reason=" ")
    with pytest.raises(ValidationError):
        svc.set_admin_override(1, DAY, AdminOverride.NONE, reason="x")


def test_edit_sessions_recomputes_status():
    svc, _, _, sinks = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 45))

    rec = svc.edit_sessions(
        1,
        DAY,
        clock_in_time=datetime(2026, 10, 19, 9, 5),
        clock_out_time=datetime(2026, 10, 19, 18, 0),
        actor_id=50,
    )

    assert rec.attendance_status == AttendanceStatus.ON_TIME
    assert rec.late_minutes == 5
    assert "ATTENDANCE_SESSION_EDITED" in sinks.audit_events()


def test_edit_sessions_rejects_inverted_times():
    svc, _, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))

    with pytest.raises(ValidationError):
        svc.edit_sessions(1, DAY, clock_out_time=datetime(2026, 10, 19, 8, 0))
    with pytest.raises(ValidationError):
        svc.edit_sessions(1, DAY, unpaid_break_minutes=-5)


def test_day_status_and_month_view():
    svc, _, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))

    assert svc.day_status(1, DAY, today=DAY).status == DayStatus.WORKED

    month = svc.month_view(1, 2026, 10, today=DAY)
    by_day = {v.day: v.status for v in month}
    assert len(month) == 31
    assert by_day[date(2026, 10, 18)] == DayStatus.WEEKEND
    assert by_day[date(2026, 10, 17)] == DayStatus.WEEK_OFF
    assert by_day[date(2026, 10, 16)] == DayStatus.ABSENT
    assert by_day[date(2026, 10, 20)] == DayStatus.NOT_APPLICABLE


def test_paid_break_adds_paid_minutes():
    svc, store, _, sinks = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))

    started = svc.start_break(1, BreakType.PAID, now=datetime(2026, 10, 19, 13, 0))
    rec = svc.end_break(1, now=datetime(2026, 10, 19, 13, 25))

    assert started.is_active
    assert rec.paid_break_minutes == 25
    assert rec.unpaid_break_minutes == 0
    assert store.breaks.get_active(1) is None
    assert any("started a paid break" in m for m in sinks.admin_notifications)


def test_break_requires_open_session():
    svc, _, _, _ = build()

    with pytest.raises(ValidationError):
        svc.start_break(1, BreakType.UNPAID, now=datetime(2026, 10, 19, 13, 0))

    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))
    svc.clock_out(1, now=datetime(2026, 10, 19, 18, 30))
    with pytest.raises(ValidationError):
        svc.start_break(1, BreakType.UNPAID, now=datetime(2026, 10, 19, 19, 0))


def test_second_break_while_on_break_conflicts():
    svc, _, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))
    svc.start_break(1, BreakType.PAID, now=datetime(2026, 10, 19, 11, 0))

    with pytest.raises(ConflictError):
        svc.start_break(1, BreakType.UNPAID, now=datetime(2026, 10, 19, 11, 5))


def test_unknown_break_type_is_rejected():
    svc, _, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))

    with pytest.raises(ValidationError):
        svc.start_break(1, "SMOKE", now=datetime(2026, 10, 19, 11, 0))


def test_end_break_without_active_break():
    svc, _, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))

    with pytest.raises(ValidationError):
        svc.end_break(1, now=datetime(2026, 10, 19, 11, 0))


def test_clock_out_ends_active_unpaid_break_and_counts_it():
    svc, store, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))
    svc.start_break(1, BreakType.UNPAID, now=datetime(2026, 10, 19, 17, 20))

    rec = svc.clock_out(1, now=datetime(2026, 10, 19, 18, 30))

    assert store.breaks.get_active(1) is None
    assert rec.unpaid_break_minutes == 70
    assert rec.is_half_day is True
    assert rec.attendance_status == AttendanceStatus.HALF_DAY


def test_concurrent_end_break_only_one_wins():
    svc, store, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))
    svc.start_break(1, BreakType.UNPAID, now=datetime(2026, 10, 19, 13, 0))
    barrier = threading.Barrier(2)
    results, errors = [], []

    def end():
        barrier.wait()
        try:
            results.append(svc.end_break(1, now=datetime(2026, 10, 19, 13, 30)))
        except (ValidationError, ConflictError) as exc:
            errors.append(exc)

    threads = [threading.Thread(target=end) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 1
    assert len(errors) == 1
    assert store.attendance.get_for_employee_and_date(1, DAY).unpaid_break_minutes == 30


def test_end_break_on_stale_read_loses_the_conditional_update(monkeypatch):
    svc, store, _, _ = build()
    svc.clock_in(1, now=datetime(2026, 10, 19, 9, 0))
    stale = svc.start_break(1, BreakType.UNPAID, now=datetime(2026, 10, 19, 13, 0))
    svc.end_break(1, now=datetime(2026, 10, 19, 13, 30))

    monkeypatch.setattr(store.breaks, "get_active", lambda employee_id: stale)
    with pytest.raises(ConflictError):
        svc.end_break(1, now=datetime(2026, 10, 19, 13, 45))

    assert store.attendance.get_for_employee_and_date(1, DAY).unpaid_break_minutes == 30
