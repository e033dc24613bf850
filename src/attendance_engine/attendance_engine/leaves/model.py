from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import (
    CertificateRequirement,
    LeaveField,
    LeaveType,
    PolicyRule,
    RequestStatus,
    RequestType,
    YearEndAction,
)
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class YearEndDetails:
    year: int
    leave_field: LeaveField
    action: YearEndAction
    days: float


@dataclass(frozen=True)
class LeaveRequest:
    """Domain entity: a leave request and its approval state."""

    request_id: Optional[int]
    employee_id: int
    request_type: RequestType
    leave_type: LeaveType = LeaveType.FULL_DAY
    leave_dates: tuple[date, ...] = ()
    status: RequestStatus = RequestStatus.PENDING
    reason: str = ""
    is_backdated: bool = False
    admin_override_reason: Optional[str] = None
    medical_certificate: Optional[str] = None
    # Exact amount taken from the ledger on approval; reversal restores this.
    deducted_days: float = 0.0
    year_end: Optional[YearEndDetails] = None
    is_processed: bool = False
    created_at: Optional[datetime] = None
    decided_by: Optional[int] = None
    decided_at: Optional[datetime] = None
    rejection_notes: Optional[str] = None

    def __post_init__(self):
        if self.request_type == RequestType.YEAR_END:
            if self.leave_dates:
                raise ValidationError("Year-end requests carry no leave dates")
            if self.year_end is None:
                raise ValidationError("Year-end requests need year-end details")

    @property
    def is_year_end(self) -> bool:
        return self.request_type == RequestType.YEAR_END


@dataclass(frozen=True)
class Holiday:
    holiday_date: date
    name: str
    is_tentative: bool = False


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    rule: PolicyRule
    message: str
    certificate: Optional[CertificateRequirement] = None

    @classmethod
    def allow(cls, message: str = "Leave request meets all policy requirements", *, rule: PolicyRule = PolicyRule.ALLOWED, certificate=None) -> "PolicyDecision":
        return cls(allowed=True, rule=rule, message=message, certificate=certificate)

    @classmethod
    def deny(cls, rule: PolicyRule, message: str) -> "PolicyDecision":
        return cls(allowed=False, rule=rule, message=message)


@dataclass(frozen=True)
class BalanceCheck:
    sufficient: bool
    available: float
    requested: float
    message: str
