from __future__ import annotations

from typing import Optional

from ..core.enums import EmploymentStatus, LeaveField, SaturdayPolicy
from ..database.mysql_base import fetchall, fetchone, normalize_mysql_time
from ..shifts.model import ShiftSchedule
from .model import Employee, LeaveBalances, LeaveBucket
from .repository import EmployeeRepository


class MySQLEmployeeRepository(EmployeeRepository):
    """Runs on the cursor of the surrounding store transaction."""

    def __init__(self, cur):
        self._cur = cur

    def get_by_id(self, employee_id: int, *, for_update: bool = False) -> Optional[Employee]:
        lock = " FOR UPDATE" if for_update else ""
        self._cur.execute(
            f"""
            SELECT
                e.employee_id, e.full_name, e.employment_status, e.is_active,
                s.shift_name, s.start_time, s.end_time, s.duration_minutes,
                s.paid_break_allowance_minutes, s.saturday_policy
            FROM employees e
            LEFT JOIN shifts s ON s.shift_id = e.shift_id
            WHERE e.employee_id=%s{lock}
            """,
            (int(employee_id),),
        )
        r = fetchone(self._cur)
        if not r:
            return None

        shift = None
        if r.get("start_time") is not None:
            shift = ShiftSchedule(
                start_time=normalize_mysql_time(r["start_time"]),
                end_time=normalize_mysql_time(r["end_time"]),
                duration_minutes=int(r["duration_minutes"]) if r.get("duration_minutes") is not None else -1,
                paid_break_allowance_minutes=int(r.get("paid_break_allowance_minutes") or 0),
                saturday_policy=SaturdayPolicy(r.get("saturday_policy") or SaturdayPolicy.ALL_WORKING.value),
                shift_name=r.get("shift_name") or "",
            )

        self._cur.execute(
            f"""
            SELECT leave_field, entitlement, balance
            FROM leave_balances
            WHERE employee_id=%s{lock}
            """,
            (int(employee_id),),
        )
        balances = LeaveBalances()
        buckets = dict(balances.buckets)
        for b in fetchall(self._cur):
            buckets[LeaveField(b["leave_field"])] = LeaveBucket(
                entitlement=float(b["entitlement"]),
                balance=float(b["balance"]),
            )

        return Employee(
            employee_id=int(r["employee_id"]),
            full_name=r["full_name"],
            employment_status=EmploymentStatus(r["employment_status"]),
            shift=shift,
            balances=LeaveBalances(buckets=buckets),
            is_active=bool(r.get("is_active", 1)),
        )

    def save_balances(self, employee_id: int, balances: LeaveBalances) -> bool:
        for leave_field, bucket in balances.buckets.items():
            self._cur.execute(
                """
                INSERT INTO leave_balances(employee_id, leave_field, entitlement, balance)
                VALUES(%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE entitlement=VALUES(entitlement), balance=VALUES(balance)
                """,
                (int(employee_id), LeaveField(leave_field).value, bucket.entitlement, bucket.balance),
            )
        return True
