from __future__ import annotations

from datetime import date
from typing import Iterable

from ..core.exceptions import ValidationError
from .civil_clock import DateLike, parse_date


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_non_negative(value: float, field_name: str) -> float:
    if value is None or value < 0:
        raise ValidationError(f"{field_name} must not be negative")
    return value


def normalize_leave_dates(values: Iterable[DateLike]) -> list[date]:
    """Parse and sort leave dates; duplicates and empty lists are rejected."""
    dates = [parse_date(v) for v in values or []]
    if not dates:
        raise ValidationError("At least one leave date is required")
    if len(set(dates)) != len(dates):
        raise ValidationError("Leave dates must be unique")
    return sorted(dates)
