from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

from ..core.constants import DEFAULT_CASUAL_ENTITLEMENT, DEFAULT_PAID_ENTITLEMENT, DEFAULT_SICK_ENTITLEMENT
from ..core.enums import EmploymentStatus, LeaveField, SaturdayPolicy
from ..shifts.model import ShiftSchedule


@dataclass(frozen=True)
class LeaveBucket:
    entitlement: float
    balance: float


def _default_buckets() -> dict:
    return {
        LeaveField.SICK: LeaveBucket(DEFAULT_SICK_ENTITLEMENT, DEFAULT_SICK_ENTITLEMENT),
        LeaveField.CASUAL: LeaveBucket(DEFAULT_CASUAL_ENTITLEMENT, DEFAULT_CASUAL_ENTITLEMENT),
        LeaveField.PAID: LeaveBucket(DEFAULT_PAID_ENTITLEMENT, DEFAULT_PAID_ENTITLEMENT),
    }


@dataclass(frozen=True)
class LeaveBalances:
    """Ledger entry embedded on the employee profile: entitlement and balance per bucket."""

    buckets: dict = field(default_factory=_default_buckets)

    def bucket(self, leave_field: LeaveField) -> LeaveBucket:
        return self.buckets.get(LeaveField(leave_field), LeaveBucket(0, 0))

    def balance(self, leave_field: LeaveField) -> float:
        return self.bucket(leave_field).balance

    def entitlement(self, leave_field: LeaveField) -> float:
        return self.bucket(leave_field).entitlement

    def with_balance(self, leave_field: LeaveField, balance: float) -> "LeaveBalances":
        leave_field = LeaveField(leave_field)
        buckets = dict(self.buckets)
        buckets[leave_field] = replace(self.bucket(leave_field), balance=balance)
        return LeaveBalances(buckets=buckets)


@dataclass(frozen=True)
class Employee:
    """Domain entity: Employee profile as seen by attendance and leave rules."""

    employee_id: int
    full_name: str
    employment_status: EmploymentStatus = EmploymentStatus.PERMANENT
    shift: Optional[ShiftSchedule] = None
    balances: LeaveBalances = field(default_factory=LeaveBalances)
    is_active: bool = True

    @property
    def saturday_policy(self) -> SaturdayPolicy:
        if self.shift is None:
            return SaturdayPolicy.ALL_WORKING
        return self.shift.saturday_policy
