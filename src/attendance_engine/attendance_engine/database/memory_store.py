"""In-process record store.

Backs the ``memory`` store backend (local runs and tests). A transaction holds
a re-entrant lock and snapshots every table; any exception restores the
snapshot, so a failed unit of work leaves no partial state behind.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Optional, Sequence

from ..attendance.model import AttendanceRecord, BreakLog
from ..attendance.repository import AttendanceRepository, BreakLogRepository
from ..core.enums import RequestStatus
from ..employees.model import Employee, LeaveBalances
from ..employees.repository import EmployeeRepository
from ..leaves.model import Holiday, LeaveRequest
from ..leaves.repository import HolidayRepository, LeaveRequestRepository
from ..settings.model import Setting
from ..settings.repository import SettingsRepository
from .store import RecordStore, StoreSession


class _Table:
    def __init__(self):
        self.rows: dict = {}
        self.next_id = 1

    def snapshot(self) -> tuple[dict, int]:
        return dict(self.rows), self.next_id

    def restore(self, state: tuple[dict, int]) -> None:
        self.rows, self.next_id = dict(state[0]), state[1]

    def allocate_id(self) -> int:
        new_id = self.next_id
        self.next_id += 1
        return new_id


class InMemoryEmployeeRepository(_Table, EmployeeRepository):
    def add(self, employee: Employee) -> Employee:
        self.rows[employee.employee_id] = employee
        return employee

    def get_by_id(self, employee_id: int, *, for_update: bool = False) -> Optional[Employee]:
        return self.rows.get(int(employee_id))

    def save_balances(self, employee_id: int, balances: LeaveBalances) -> bool:
        employee = self.rows.get(int(employee_id))
        if not employee:
            return False
        self.rows[employee.employee_id] = replace(employee, balances=balances)
        return True


class InMemoryAttendanceRepository(_Table, AttendanceRepository):
    def get_for_employee_and_date(self, employee_id: int, work_date: date) -> Optional[AttendanceRecord]:
        return self.rows.get((int(employee_id), work_date))

    def list_for_employee(self, employee_id: int, *, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        items = [
            r for (eid, d), r in self.rows.items()
            if eid == int(employee_id) and start_date <= d <= end_date
        ]
        return sorted(items, key=lambda r: r.work_date)

    def list_between(self, *, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        items = [r for (_, d), r in self.rows.items() if start_date <= d <= end_date]
        return sorted(items, key=lambda r: (r.work_date, r.employee_id))

    def list_for_leave(self, leave_request_id: int) -> Sequence[AttendanceRecord]:
        items = [r for r in self.rows.values() if r.leave_request_id == int(leave_request_id)]
        return sorted(items, key=lambda r: r.work_date)

    def create_if_absent(self, record: AttendanceRecord) -> bool:
        key = (record.employee_id, record.work_date)
        if key in self.rows:
            return False
        self.rows[key] = replace(record, attendance_id=self.allocate_id())
        return True

    def set_clock_in_if_empty(self, *, employee_id: int, work_date: date, clock_in_time: datetime) -> bool:
        key = (int(employee_id), work_date)
        record = self.rows.get(key)
        if record is None or record.clock_in_time is not None:
            return False
        self.rows[key] = replace(record, clock_in_time=clock_in_time)
        return True

    def set_clock_out_if_open(self, *, employee_id: int, work_date: date, clock_out_time: datetime) -> bool:
        key = (int(employee_id), work_date)
        record = self.rows.get(key)
        if record is None or record.clock_in_time is None or record.clock_out_time is not None:
            return False
        self.rows[key] = replace(record, clock_out_time=clock_out_time)
        return True

    def close_preserved_session_if_open(
        self, *, employee_id: int, work_date: date, clock_out_time: datetime, worked_minutes: int
    ) -> bool:
        key = (int(employee_id), work_date)
        record = self.rows.get(key)
        if record is None or not record.has_open_preserved_session:
            return False
        self.rows[key] = replace(record, preserved_clock_out=clock_out_time, preserved_worked_minutes=worked_minutes)
        return True

    def add_break_minutes(self, *, employee_id: int, work_date: date, paid_minutes: int, unpaid_minutes: int) -> bool:
        key = (int(employee_id), work_date)
        record = self.rows.get(key)
        if record is None:
            return False
        self.rows[key] = replace(
            record,
            paid_break_minutes=record.paid_break_minutes + int(paid_minutes),
            unpaid_break_minutes=record.unpaid_break_minutes + int(unpaid_minutes),
        )
        return True

    def upsert(self, record: AttendanceRecord) -> AttendanceRecord:
        key = (record.employee_id, record.work_date)
        existing = self.rows.get(key)
        attendance_id = existing.attendance_id if existing else self.allocate_id()
        stored = replace(record, attendance_id=attendance_id)
        self.rows[key] = stored
        return stored


class InMemoryBreakLogRepository(_Table, BreakLogRepository):
    def get_active(self, employee_id: int) -> Optional[BreakLog]:
        active = [b for b in self.rows.values() if b.employee_id == int(employee_id) and b.is_active]
        return max(active, key=lambda b: (b.start_time, b.break_id), default=None)

    def create(self, break_log: BreakLog) -> int:
        break_id = self.allocate_id()
        self.rows[break_id] = replace(break_log, break_id=break_id)
        return break_id

    def end_if_active(self, break_id: int, *, end_time: datetime, duration_minutes: int) -> bool:
        current = self.rows.get(int(break_id))
        if current is None or not current.is_active:
            return False
        self.rows[current.break_id] = replace(current, end_time=end_time, duration_minutes=int(duration_minutes))
        return True


class InMemoryLeaveRequestRepository(_Table, LeaveRequestRepository):
    def get_by_id(self, request_id: int, *, for_update: bool = False) -> Optional[LeaveRequest]:
        return self.rows.get(int(request_id))

    def create(self, request: LeaveRequest) -> int:
        request_id = self.allocate_id()
        self.rows[request_id] = replace(request, request_id=request_id)
        return request_id

    def list_for_employee_between(
        self,
        employee_id: int,
        *,
        start_date: date,
        end_date: date,
        statuses: Iterable[RequestStatus],
    ) -> Sequence[LeaveRequest]:
        wanted = {RequestStatus(s) for s in statuses}
        return [
            r for _, r in sorted(self.rows.items())
            if r.employee_id == int(employee_id)
            and r.status in wanted
            and any(start_date <= d <= end_date for d in r.leave_dates)
        ]

    def list_approved_covering(self, employee_id: int, day: date) -> Sequence[LeaveRequest]:
        return self.list_for_employee_between(employee_id, start_date=day, end_date=day, statuses=[RequestStatus.APPROVED])

    def transition(
        self,
        request_id: int,
        *,
        expected_status: RequestStatus,
        new_status: RequestStatus,
        decided_by: Optional[int],
        decided_at: datetime,
        deducted_days: float,
        rejection_notes: Optional[str] = None,
    ) -> bool:
        current = self.rows.get(int(request_id))
        if current is None or current.status != expected_status:
            return False
        self.rows[current.request_id] = replace(
            current,
            status=RequestStatus(new_status),
            decided_by=decided_by,
            decided_at=decided_at,
            deducted_days=deducted_days,
            rejection_notes=rejection_notes if rejection_notes is not None else current.rejection_notes,
        )
        return True

    def update_dates(
        self,
        request_id: int,
        *,
        expected_status: RequestStatus,
        leave_dates: Sequence[date],
        deducted_days: float,
    ) -> bool:
        current = self.rows.get(int(request_id))
        if current is None or current.status != expected_status:
            return False
        self.rows[current.request_id] = replace(current, leave_dates=tuple(leave_dates), deducted_days=deducted_days)
        return True

    def decide_year_end(
        self,
        request_id: int,
        *,
        new_status: RequestStatus,
        decided_by: Optional[int],
        decided_at: datetime,
    ) -> bool:
        current = self.rows.get(int(request_id))
        if current is None or current.status != RequestStatus.PENDING or current.is_processed:
            return False
        self.rows[current.request_id] = replace(
            current,
            status=RequestStatus(new_status),
            is_processed=RequestStatus(new_status) == RequestStatus.APPROVED,
            decided_by=decided_by,
            decided_at=decided_at,
        )
        return True

    def delete(self, request_id: int) -> bool:
        return self.rows.pop(int(request_id), None) is not None


class InMemoryHolidayRepository(_Table, HolidayRepository):
    def add(self, holiday: Holiday) -> Holiday:
        self.rows[holiday.holiday_date] = holiday
        return holiday

    def list_between(self, *, start_date: date, end_date: date) -> Sequence[Holiday]:
        return [h for d, h in sorted(self.rows.items()) if start_date <= d <= end_date]


class InMemorySettingsRepository(SettingsRepository):
    def __init__(self, values: Optional[dict[str, Any]] = None):
        self.values = dict(values or {})

    def find_one(self, key: str) -> Optional[Setting]:
        if key not in self.values:
            return None
        return Setting(key=key, value=self.values[key])


class InMemoryRecordStore(RecordStore):
    def __init__(self):
        self.employees = InMemoryEmployeeRepository()
        self.attendance = InMemoryAttendanceRepository()
        self.breaks = InMemoryBreakLogRepository()
        self.leaves = InMemoryLeaveRequestRepository()
        self.holidays = InMemoryHolidayRepository()
        self._tables = (self.employees, self.attendance, self.breaks, self.leaves, self.holidays)
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[StoreSession]:
        with self._lock:
            snapshot = [t.snapshot() for t in self._tables]
            try:
                yield StoreSession(
                    employees=self.employees,
                    attendance=self.attendance,
                    breaks=self.breaks,
                    leaves=self.leaves,
                    holidays=self.holidays,
                )
            except BaseException:
                for table, state in zip(self._tables, snapshot):
                    table.restore(state)
                raise
