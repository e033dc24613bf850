from __future__ import annotations

import calendar
import math
from datetime import date, timedelta
from typing import AbstractSet, Iterable

from ..core.enums import SaturdayPolicy

SUNDAY = 6
SATURDAY = 5


def week_of_month(day: date) -> int:
    """1-based week number used by alternate-Saturday policies (days 1-7 are week 1)."""
    return math.ceil(day.day / 7)


def is_saturday_off(day: date, policy: SaturdayPolicy | None) -> bool:
    if day.weekday() != SATURDAY:
        return False

    policy = policy or SaturdayPolicy.ALL_WORKING
    week = week_of_month(day)
    if policy == SaturdayPolicy.ALL_OFF:
        return True
    if policy == SaturdayPolicy.WEEK_1_3_OFF:
        return week in (1, 3)
    if policy == SaturdayPolicy.WEEK_2_4_OFF:
        return week in (2, 4)
    return False


def is_weekend(day: date) -> bool:
    return day.weekday() == SUNDAY


def is_working_day(day: date, policy: SaturdayPolicy | None, holidays: AbstractSet[date] = frozenset()) -> bool:
    """Not a Sunday, not an off Saturday under policy and not a holiday."""
    if is_weekend(day) or is_saturday_off(day, policy):
        return False
    return day not in holidays


def count_working_days(days: Iterable[date], policy: SaturdayPolicy | None, holidays: AbstractSet[date] = frozenset()) -> int:
    return sum(1 for d in days if is_working_day(d, policy, holidays))


def month_bounds(day: date) -> tuple[date, date]:
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def month_key(day: date) -> tuple[int, int]:
    return day.year, day.month


def date_range(start: date, end: date) -> list[date]:
    if end < start:
        return []
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]
