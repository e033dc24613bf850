from __future__ import annotations

from datetime import date
from typing import Sequence

from ..database.mysql_base import fetchall, normalize_mysql_date
from .model import Holiday
from .repository import HolidayRepository


class MySQLHolidayRepository(HolidayRepository):
    def __init__(self, cur):
        self._cur = cur

    def list_between(self, *, start_date: date, end_date: date) -> Sequence[Holiday]:
        self._cur.execute(
            """
            SELECT holiday_date, name, is_tentative
            FROM holidays
            WHERE holiday_date BETWEEN %s AND %s
            ORDER BY holiday_date
            """,
            (start_date, end_date),
        )
        return [
            Holiday(
                holiday_date=normalize_mysql_date(r["holiday_date"]),
                name=r["name"],
                is_tentative=bool(r.get("is_tentative")),
            )
            for r in fetchall(self._cur)
        ]
