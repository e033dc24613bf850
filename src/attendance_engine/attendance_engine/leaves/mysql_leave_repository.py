from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Sequence

from ..core.enums import LeaveField, LeaveType, RequestStatus, RequestType, YearEndAction
from ..database.mysql_base import fetchall, fetchone, from_db_datetime, normalize_mysql_date, to_db_datetime
from .model import LeaveRequest, YearEndDetails
from .repository import LeaveRequestRepository

_COLUMNS = """
    lr.request_id, lr.employee_id, lr.request_type, lr.leave_type, lr.status, lr.reason,
    lr.is_backdated, lr.admin_override_reason, lr.medical_certificate, lr.deducted_days,
    lr.year_end_year, lr.year_end_field, lr.year_end_action, lr.year_end_days, lr.is_processed,
    lr.created_at, lr.decided_by, lr.decided_at, lr.rejection_notes
"""


class MySQLLeaveRequestRepository(LeaveRequestRepository):
    """Runs on the cursor of the surrounding store transaction."""

    def __init__(self, cur):
        self._cur = cur

    def _dates_for(self, request_id: int) -> tuple[date, ...]:
        self._cur.execute(
            "SELECT leave_date FROM leave_request_dates WHERE request_id=%s ORDER BY leave_date",
            (int(request_id),),
        )
        return tuple(normalize_mysql_date(r["leave_date"]) for r in fetchall(self._cur))

    def _to_request(self, r: Dict[str, Any]) -> LeaveRequest:
        request_type = RequestType(r["request_type"])
        year_end = None
        if request_type == RequestType.YEAR_END:
            year_end = YearEndDetails(
                year=int(r["year_end_year"]),
                leave_field=LeaveField(r["year_end_field"]),
                action=YearEndAction(r["year_end_action"]),
                days=float(r["year_end_days"]),
            )
        return LeaveRequest(
            request_id=int(r["request_id"]),
            employee_id=int(r["employee_id"]),
            request_type=request_type,
            leave_type=LeaveType(r.get("leave_type") or LeaveType.FULL_DAY.value),
            leave_dates=() if year_end else self._dates_for(int(r["request_id"])),
            status=RequestStatus(r["status"]),
            reason=r.get("reason") or "",
            is_backdated=bool(r.get("is_backdated")),
            admin_override_reason=r.get("admin_override_reason"),
            medical_certificate=r.get("medical_certificate"),
            deducted_days=float(r.get("deducted_days") or 0),
            year_end=year_end,
            is_processed=bool(r.get("is_processed")),
            created_at=from_db_datetime(r.get("created_at")),
            decided_by=int(r["decided_by"]) if r.get("decided_by") is not None else None,
            decided_at=from_db_datetime(r.get("decided_at")),
            rejection_notes=r.get("rejection_notes"),
        )

    def _replace_dates(self, request_id: int, leave_dates: Iterable[date]) -> None:
        self._cur.execute("DELETE FROM leave_request_dates WHERE request_id=%s", (int(request_id),))
        for d in leave_dates:
            self._cur.execute(
                "INSERT INTO leave_request_dates(request_id, leave_date) VALUES(%s,%s)",
                (int(request_id), d),
            )

    def get_by_id(self, request_id: int, *, for_update: bool = False) -> Optional[LeaveRequest]:
        lock = " FOR UPDATE" if for_update else ""
        self._cur.execute(
            f"SELECT {_COLUMNS} FROM leave_requests lr WHERE lr.request_id=%s{lock}",
            (int(request_id),),
        )
        r = fetchone(self._cur)
        return self._to_request(r) if r else None

    def create(self, request: LeaveRequest) -> int:
        ye = request.year_end
        self._cur.execute(
            """
            INSERT INTO leave_requests(
                employee_id, request_type, leave_type, status, reason, is_backdated,
                admin_override_reason, medical_certificate, deducted_days,
                year_end_year, year_end_field, year_end_action, year_end_days, is_processed, created_at
            )
            VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
            """,
            (
                request.employee_id,
                request.request_type.value,
                request.leave_type.value,
                request.status.value,
                request.reason,
                int(request.is_backdated),
                request.admin_override_reason,
                request.medical_certificate,
                request.deducted_days,
                ye.year if ye else None,
                ye.leave_field.value if ye else None,
                ye.action.value if ye else None,
                ye.days if ye else None,
                int(request.is_processed),
                to_db_datetime(request.created_at),
            ),
        )
        request_id = int(self._cur.lastrowid)
        self._replace_dates(request_id, request.leave_dates)
        return request_id

    def list_for_employee_between(
        self,
        employee_id: int,
        *,
        start_date: date,
        end_date: date,
        statuses: Iterable[RequestStatus],
    ) -> Sequence[LeaveRequest]:
        status_values = [RequestStatus(s).value for s in statuses]
        if not status_values:
            return []
        placeholders = ",".join(["%s"] * len(status_values))
        self._cur.execute(
            f"""
            SELECT DISTINCT {_COLUMNS}
            FROM leave_requests lr
            JOIN leave_request_dates d ON d.request_id = lr.request_id
            WHERE lr.employee_id=%s
              AND d.leave_date BETWEEN %s AND %s
              AND lr.status IN ({placeholders})
            ORDER BY lr.request_id
            """,
            (int(employee_id), start_date, end_date, *status_values),
        )
        rows = fetchall(self._cur)
        return [self._to_request(r) for r in rows]

    def list_approved_covering(self, employee_id: int, day: date) -> Sequence[LeaveRequest]:
        return self.list_for_employee_between(
            employee_id, start_date=day, end_date=day, statuses=[RequestStatus.APPROVED]
        )

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
        self._cur.execute(
            """
            UPDATE leave_requests
            SET status=%s, decided_by=%s, decided_at=%s, deducted_days=%s,
                rejection_notes=COALESCE(%s, rejection_notes)
            WHERE request_id=%s AND status=%s
            """,
            (
                RequestStatus(new_status).value,
                decided_by,
                to_db_datetime(decided_at),
                deducted_days,
                rejection_notes,
                int(request_id),
                RequestStatus(expected_status).value,
            ),
        )
        return self._cur.rowcount > 0

    def update_dates(
        self,
        request_id: int,
        *,
        expected_status: RequestStatus,
        leave_dates: Sequence[date],
        deducted_days: float,
    ) -> bool:
        self._cur.execute(
            """
            UPDATE leave_requests
            SET deducted_days=%s
            WHERE request_id=%s AND status=%s
            """,
            (deducted_days, int(request_id), RequestStatus(expected_status).value),
        )
        if self._cur.rowcount == 0:
            # MySQL reports 0 rows when nothing changed; confirm the status guard instead.
            self._cur.execute(
                "SELECT 1 AS ok FROM leave_requests WHERE request_id=%s AND status=%s",
                (int(request_id), RequestStatus(expected_status).value),
            )
            if not fetchone(self._cur):
                return False
        self._replace_dates(request_id, leave_dates)
        return True

    def decide_year_end(
        self,
        request_id: int,
        *,
        new_status: RequestStatus,
        decided_by: Optional[int],
        decided_at: datetime,
    ) -> bool:
        new_status = RequestStatus(new_status)
        self._cur.execute(
            """
            UPDATE leave_requests
            SET status=%s, is_processed=%s, decided_by=%s, decided_at=%s
            WHERE request_id=%s AND status=%s AND is_processed=0
            """,
            (
                new_status.value,
                int(new_status == RequestStatus.APPROVED),
                decided_by,
                to_db_datetime(decided_at),
                int(request_id),
                RequestStatus.PENDING.value,
            ),
        )
        return self._cur.rowcount > 0

    def delete(self, request_id: int) -> bool:
        self._cur.execute("DELETE FROM leave_request_dates WHERE request_id=%s", (int(request_id),))
        self._cur.execute("DELETE FROM leave_requests WHERE request_id=%s", (int(request_id),))
        return self._cur.rowcount > 0
