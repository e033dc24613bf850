from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from ..attendance.mysql_attendance_repository import MySQLAttendanceRepository
from ..attendance.mysql_break_repository import MySQLBreakLogRepository
from ..employees.mysql_employee_repository import MySQLEmployeeRepository
from ..leaves.mysql_holiday_repository import MySQLHolidayRepository
from ..leaves.mysql_leave_repository import MySQLLeaveRequestRepository
from .connection import DatabaseConnection
from .mysql_base import db_cursor
from .store import RecordStore, StoreSession


class MySQLRecordStore(RecordStore):
    """One connection and one cursor per transaction, shared by every repository."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @contextmanager
    def transaction(self) -> Iterator[StoreSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            yield StoreSession(
                employees=MySQLEmployeeRepository(cur),
                attendance=MySQLAttendanceRepository(cur),
                breaks=MySQLBreakLogRepository(cur),
                leaves=MySQLLeaveRequestRepository(cur),
                holidays=MySQLHolidayRepository(cur),
            )
