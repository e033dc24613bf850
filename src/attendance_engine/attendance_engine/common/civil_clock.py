"""Date and time helpers anchored to the company's civil timezone.

Every date-boundary decision (which day a clock-in belongs to, what "today"
is, when a shift starts) goes through this module so the server's local
timezone never leaks into attendance or leave math. The timezone is a fixed
UTC offset; there is no daylight saving to drift across.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Union

from ..core.constants import CIVIL_UTC_OFFSET
from ..core.exceptions import FormatError

DateLike = Union[date, datetime, str]

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def parse_utc_offset(value: str) -> timezone:
    """Parse ``+05:30`` style offsets into a fixed ``timezone``."""
    m = _OFFSET_RE.match((value or "").strip())
    if not m:
        raise FormatError(f"Invalid UTC offset: {value!r}")
    sign, hours, minutes = m.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    if delta >= timedelta(hours=24):
        raise FormatError(f"Invalid UTC offset: {value!r}")
    return timezone(-delta if sign == "-" else delta, name=f"UTC{sign}{hours}:{minutes}")


_civil_tz = parse_utc_offset(CIVIL_UTC_OFFSET)


def set_civil_offset(value: str) -> None:
    """Re-anchor the civil timezone (called once at startup from settings)."""
    global _civil_tz
    _civil_tz = parse_utc_offset(value)


def civil_tz() -> timezone:
    return _civil_tz


def now() -> datetime:
    """Current instant, expressed in civil time.

    Note: Wrapped so tests can patch/mock easier.
    """
    return datetime.now(timezone.utc).astimezone(_civil_tz)


def today_date() -> date:
    return now().date()


def today() -> str:
    """Current civil date as ``YYYY-MM-DD``."""
    return today_date().isoformat()


def to_civil(instant: datetime) -> datetime:
    """Express an instant in civil time. Naive values are taken as civil already."""
    if not isinstance(instant, datetime):
        raise FormatError(f"Expected a datetime, got {type(instant).__name__}")
    if instant.tzinfo is None:
        return instant.replace(tzinfo=_civil_tz)
    return instant.astimezone(_civil_tz)


def civil_date_of(instant: datetime) -> date:
    return to_civil(instant).date()


def _parse_timestamp(text: str) -> datetime:
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        raise FormatError(f"Invalid date: {text!r}")


def parse_date(value: DateLike) -> date:
    """Normalize a date, datetime or ISO string to a civil calendar date."""
    if isinstance(value, datetime):
        return civil_date_of(value)
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if _DATE_RE.match(text):
            try:
                return date.fromisoformat(text)
            except ValueError:
                raise FormatError(f"Invalid date: {value!r}")
        if "T" in text or " " in text:
            return civil_date_of(_parse_timestamp(text))
    raise FormatError(f"Invalid date: {value!r}")


def date_only(value: DateLike) -> str:
    """Normalize any timestamp or string to the ``YYYY-MM-DD`` record key."""
    return parse_date(value).isoformat()


def parse_hhmm(value: Union[str, time]) -> time:
    if isinstance(value, time):
        return value
    m = _HHMM_RE.match((value or "").strip()) if isinstance(value, str) else None
    if not m:
        raise FormatError(f"Invalid time (HH:MM): {value!r}")
    hours, minutes, seconds = int(m.group(1)), int(m.group(2)), int(m.group(3) or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise FormatError(f"Invalid time (HH:MM): {value!r}")
    return time(hours, minutes, seconds)


def shift_instant(day: DateLike, wall_clock: Union[str, time]) -> datetime:
    """Absolute instant of a wall-clock time on a civil date."""
    return datetime.combine(parse_date(day), parse_hhmm(wall_clock), tzinfo=_civil_tz)


def days_between(start: DateLike, end: DateLike) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative if end is earlier)."""
    return (parse_date(end) - parse_date(start)).days


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes elapsed, floored."""
    seconds = (to_civil(end) - to_civil(start)).total_seconds()
    return int(seconds // 60)
