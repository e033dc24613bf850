from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from ..core.enums import BreakType
from ..database.mysql_base import fetchone, from_db_datetime, normalize_mysql_date, to_db_datetime
from .model import BreakLog
from .repository import BreakLogRepository


def _to_break(r: Dict[str, Any]) -> BreakLog:
    return BreakLog(
        break_id=int(r["break_id"]),
        employee_id=int(r["employee_id"]),
        work_date=normalize_mysql_date(r["work_date"]),
        break_type=BreakType(r["break_type"]),
        start_time=from_db_datetime(r["start_time"]),
        end_time=from_db_datetime(r.get("end_time")),
        duration_minutes=int(r.get("duration_minutes") or 0),
    )


class MySQLBreakLogRepository(BreakLogRepository):
    def __init__(self, cur):
        self._cur = cur

    def get_active(self, employee_id: int) -> Optional[BreakLog]:
        self._cur.execute(
            """
            SELECT break_id, employee_id, work_date, break_type, start_time, end_time, duration_minutes
            FROM break_logs
            WHERE employee_id=%s AND end_time IS NULL
            ORDER BY start_time DESC, break_id DESC
            LIMIT 1
            FOR UPDATE
            """,
            (int(employee_id),),
        )
        r = fetchone(self._cur)
        return _to_break(r) if r else None

    def create(self, break_log: BreakLog) -> int:
        self._cur.execute(
            """
            INSERT INTO break_logs(employee_id, work_date, break_type, start_time)
            VALUES(%s,%s,%s,%s)
            """,
            (
                break_log.employee_id,
                break_log.work_date,
                break_log.break_type.value,
                to_db_datetime(break_log.start_time),
            ),
        )
        return int(self._cur.lastrowid)

    def end_if_active(self, break_id: int, *, end_time: datetime, duration_minutes: int) -> bool:
        self._cur.execute(
            """
            UPDATE break_logs
            SET end_time=%s, duration_minutes=%s
            WHERE break_id=%s AND end_time IS NULL
            """,
            (to_db_datetime(end_time), int(duration_minutes), int(break_id)),
        )
        return self._cur.rowcount > 0
