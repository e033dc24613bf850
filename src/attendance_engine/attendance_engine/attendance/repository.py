from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from .model import AttendanceRecord, BreakLog


class AttendanceRepository(Protocol):
    def get_for_employee_and_date(self, employee_id: int, work_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_for_employee(self, employee_id: int, *, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_between(self, *, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_leave(self, leave_request_id: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def create_if_absent(self, record: AttendanceRecord) -> bool:
        """Insert unless a record for (employee, date) exists. False when one does."""

        raise NotImplementedError

    def set_clock_in_if_empty(self, *, employee_id: int, work_date: date, clock_in_time: datetime) -> bool:
        raise NotImplementedError

    def set_clock_out_if_open(self, *, employee_id: int, work_date: date, clock_out_time: datetime) -> bool:
        """Atomic ``UPDATE ... WHERE clock_out_time IS NULL``. False when already closed."""

        raise NotImplementedError

    def close_preserved_session_if_open(
        self, *, employee_id: int, work_date: date, clock_out_time: datetime, worked_minutes: int
    ) -> bool:
        """Clock-out on a leave-linked day: fills ``preserved_clock_out`` only while it is still empty."""

        raise NotImplementedError

    def add_break_minutes(self, *, employee_id: int, work_date: date, paid_minutes: int, unpaid_minutes: int) -> bool:
        """Atomic increment of the break totals."""

        raise NotImplementedError

    def upsert(self, record: AttendanceRecord) -> AttendanceRecord:
        raise NotImplementedError


class BreakLogRepository(Protocol):
    def get_active(self, employee_id: int) -> Optional[BreakLog]:
        raise NotImplementedError

    def create(self, break_log: BreakLog) -> int:
        raise NotImplementedError

    def end_if_active(self, break_id: int, *, end_time: datetime, duration_minutes: int) -> bool:
        """Atomic ``UPDATE ... WHERE end_time IS NULL``. False when the break was already ended."""

        raise NotImplementedError
