from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional, Sequence

from ..core.enums import AdminOverride, AttendanceStatus, StatusSource
from ..database.mysql_base import (
    fetchall,
    fetchone,
    from_db_datetime,
    normalize_mysql_date,
    to_db_datetime,
)
from .model import AttendanceRecord
from .repository import AttendanceRepository

_COLUMNS = """
    attendance_id, employee_id, work_date, clock_in_time, clock_out_time,
    paid_break_minutes, unpaid_break_minutes, is_late, is_half_day, late_minutes,
    attendance_status, status_source, admin_override, override_reason, leave_request_id,
    preserved_worked_minutes, preserved_clock_in, preserved_clock_out, notes
"""


def _to_record(r: Dict[str, Any]) -> AttendanceRecord:
    notes = r.get("notes") or ""
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        employee_id=int(r["employee_id"]),
        work_date=normalize_mysql_date(r["work_date"]),
        clock_in_time=from_db_datetime(r.get("clock_in_time")),
        clock_out_time=from_db_datetime(r.get("clock_out_time")),
        paid_break_minutes=int(r.get("paid_break_minutes") or 0),
        unpaid_break_minutes=int(r.get("unpaid_break_minutes") or 0),
        is_late=bool(r.get("is_late")),
        is_half_day=bool(r.get("is_half_day")),
        late_minutes=int(r.get("late_minutes") or 0),
        attendance_status=AttendanceStatus(r["attendance_status"]),
        status_source=StatusSource(r.get("status_source") or StatusSource.COMPUTED.value),
        admin_override=AdminOverride(r.get("admin_override") or AdminOverride.NONE.value),
        override_reason=r.get("override_reason"),
        leave_request_id=int(r["leave_request_id"]) if r.get("leave_request_id") is not None else None,
        preserved_worked_minutes=int(r["preserved_worked_minutes"]) if r.get("preserved_worked_minutes") is not None else None,
        preserved_clock_in=from_db_datetime(r.get("preserved_clock_in")),
        preserved_clock_out=from_db_datetime(r.get("preserved_clock_out")),
        notes=tuple(n for n in notes.split("\n") if n),
    )


class MySQLAttendanceRepository(AttendanceRepository):
    """Runs on the cursor of the surrounding store transaction."""

    def __init__(self, cur):
        self._cur = cur

    def get_for_employee_and_date(self, employee_id: int, work_date: date) -> Optional[AttendanceRecord]:
        self._cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM attendance_records
            WHERE employee_id=%s AND work_date=%s
            FOR UPDATE
            """,
            (int(employee_id), work_date),
        )
        r = fetchone(self._cur)
        return _to_record(r) if r else None

    def list_for_employee(self, employee_id: int, *, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        self._cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM attendance_records
            WHERE employee_id=%s AND work_date BETWEEN %s AND %s
            ORDER BY work_date
            """,
            (int(employee_id), start_date, end_date),
        )
        return [_to_record(r) for r in fetchall(self._cur)]

    def list_between(self, *, start_date: date, end_date: date) -> Sequence[AttendanceRecord]:
        self._cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM attendance_records
            WHERE work_date BETWEEN %s AND %s
            ORDER BY work_date, employee_id
            """,
            (start_date, end_date),
        )
        return [_to_record(r) for r in fetchall(self._cur)]

    def list_for_leave(self, leave_request_id: int) -> Sequence[AttendanceRecord]:
        self._cur.execute(
            f"""
            SELECT {_COLUMNS}
            FROM attendance_records
            WHERE leave_request_id=%s
            ORDER BY work_date
            FOR UPDATE
            """,
            (int(leave_request_id),),
        )
        return [_to_record(r) for r in fetchall(self._cur)]

    def create_if_absent(self, record: AttendanceRecord) -> bool:
        self._cur.execute(
            """
            INSERT IGNORE INTO attendance_records(
                employee_id, work_date, clock_in_time, attendance_status, status_source, admin_override
            )
            VALUES(%s,%s,%s,%s,%s,%s)
            """,
            (
                record.employee_id,
                record.work_date,
                to_db_datetime(record.clock_in_time),
                record.attendance_status.value,
                record.status_source.value,
                record.admin_override.value,
            ),
        )
        return self._cur.rowcount > 0

    def set_clock_in_if_empty(self, *, employee_id: int, work_date: date, clock_in_time: datetime) -> bool:
        self._cur.execute(
            """
            UPDATE attendance_records
            SET clock_in_time=%s
            WHERE employee_id=%s AND work_date=%s AND clock_in_time IS NULL
            """,
            (to_db_datetime(clock_in_time), int(employee_id), work_date),
        )
        return self._cur.rowcount > 0

    def set_clock_out_if_open(self, *, employee_id: int, work_date: date, clock_out_time: datetime) -> bool:
        self._cur.execute(
            """
            UPDATE attendance_records
            SET clock_out_time=%s
            WHERE employee_id=%s AND work_date=%s
              AND clock_in_time IS NOT NULL AND clock_out_time IS NULL
            """,
            (to_db_datetime(clock_out_time), int(employee_id), work_date),
        )
        return self._cur.rowcount > 0

    def close_preserved_session_if_open(
        self, *, employee_id: int, work_date: date, clock_out_time: datetime, worked_minutes: int
    ) -> bool:
        self._cur.execute(
            """
            UPDATE attendance_records
            SET preserved_clock_out=%s, preserved_worked_minutes=%s
            WHERE employee_id=%s AND work_date=%s
              AND leave_request_id IS NOT NULL AND clock_in_time IS NULL
              AND preserved_clock_in IS NOT NULL AND preserved_clock_out IS NULL
            """,
            (to_db_datetime(clock_out_time), int(worked_minutes), int(employee_id), work_date),
        )
        return self._cur.rowcount > 0

    def add_break_minutes(self, *, employee_id: int, work_date: date, paid_minutes: int, unpaid_minutes: int) -> bool:
        self._cur.execute(
            """
            UPDATE attendance_records
            SET paid_break_minutes=paid_break_minutes + %s,
                unpaid_break_minutes=unpaid_break_minutes + %s
            WHERE employee_id=%s AND work_date=%s
            """,
            (int(paid_minutes), int(unpaid_minutes), int(employee_id), work_date),
        )
        return self._cur.rowcount > 0

    def upsert(self, record: AttendanceRecord) -> AttendanceRecord:
        self._cur.execute(
            """
            INSERT INTO attendance_records(
                employee_id, work_date, clock_in_time, clock_out_time,
                paid_break_minutes, unpaid_break_minutes, is_late, is_half_day, late_minutes,
                attendance_status, status_source, admin_override, override_reason, leave_request_id,
                preserved_worked_minutes, preserved_clock_in, preserved_clock_out, notes
            )
            VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
            ON DUPLICATE KEY UPDATE
                clock_in_time=VALUES(clock_in_time),
                clock_out_time=VALUES(clock_out_time),
                paid_break_minutes=VALUES(paid_break_minutes),
                unpaid_break_minutes=VALUES(unpaid_break_minutes),
                is_late=VALUES(is_late),
                is_half_day=VALUES(is_half_day),
                late_minutes=VALUES(late_minutes),
                attendance_status=VALUES(attendance_status),
                status_source=VALUES(status_source),
                admin_override=VALUES(admin_override),
                override_reason=VALUES(override_reason),
                leave_request_id=VALUES(leave_request_id),
                preserved_worked_minutes=VALUES(preserved_worked_minutes),
                preserved_clock_in=VALUES(preserved_clock_in),
                preserved_clock_out=VALUES(preserved_clock_out),
                notes=VALUES(notes)
            """,
            (
                record.employee_id,
                record.work_date,
                to_db_datetime(record.clock_in_time),
                to_db_datetime(record.clock_out_time),
                int(record.paid_break_minutes),
                int(record.unpaid_break_minutes),
                int(record.is_late),
                int(record.is_half_day),
                int(record.late_minutes),
                record.attendance_status.value,
                record.status_source.value,
                record.admin_override.value,
                record.override_reason,
                record.leave_request_id,
                record.preserved_worked_minutes,
                to_db_datetime(record.preserved_clock_in),
                to_db_datetime(record.preserved_clock_out),
                "\n".join(record.notes) or None,
            ),
        )
        stored = self.get_for_employee_and_date(record.employee_id, record.work_date)
        return stored or record
