from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """Normalized per-day attendance status stored on a record."""

    ON_TIME = "ON_TIME"
    LATE = "LATE"
    HALF_DAY = "HALF_DAY"
    ABSENT = "ABSENT"
    LEAVE = "LEAVE"


class StatusSource(str, Enum):
    """Who decided the current attendance status."""

    COMPUTED = "COMPUTED"
    ADMIN_OVERRIDE = "ADMIN_OVERRIDE"
    LEAVE = "LEAVE"


class AdminOverride(str, Enum):
    NONE = "NONE"
    OVERRIDE_HALF_DAY = "OVERRIDE_HALF_DAY"
    OVERRIDE_LATE = "OVERRIDE_LATE"


class BreakType(str, Enum):
    PAID = "PAID"
    UNPAID = "UNPAID"


class HalfDayCause(str, Enum):
    LATE_ARRIVAL = "LATE_ARRIVAL"
    INSUFFICIENT_HOURS = "INSUFFICIENT_HOURS"


class DayStatus(str, Enum):
    """Calendar view of a single day for one employee."""

    HOLIDAY = "HOLIDAY"
    LEAVE = "LEAVE"
    WEEKEND = "WEEKEND"
    WEEK_OFF = "WEEK_OFF"
    WORKED = "WORKED"
    ABSENT = "ABSENT"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class RequestStatus(str, Enum):
    """Approval state of a leave request."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RequestType(str, Enum):
    SICK = "SICK"
    PLANNED = "PLANNED"
    CASUAL = "CASUAL"
    LOSS_OF_PAY = "LOSS_OF_PAY"
    COMPENSATORY = "COMPENSATORY"
    BACKDATED_LEAVE = "BACKDATED_LEAVE"
    YEAR_END = "YEAR_END"


class LeaveType(str, Enum):
    FULL_DAY = "FULL_DAY"
    HALF_DAY_FIRST = "HALF_DAY_FIRST"
    HALF_DAY_SECOND = "HALF_DAY_SECOND"

    @property
    def is_half_day(self) -> bool:
        return self is not LeaveType.FULL_DAY


class EmploymentStatus(str, Enum):
    PERMANENT = "PERMANENT"
    PROBATION = "PROBATION"
    INTERN = "INTERN"


class SaturdayPolicy(str, Enum):
    """Alternate-Saturday policy attached to a shift assignment."""

    ALL_OFF = "ALL_OFF"
    ALL_WORKING = "ALL_WORKING"
    WEEK_1_3_OFF = "WEEK_1_3_OFF"
    WEEK_2_4_OFF = "WEEK_2_4_OFF"


class LeaveField(str, Enum):
    """Balance bucket on the employee profile."""

    SICK = "sick"
    CASUAL = "casual"
    PAID = "paid"


class YearEndAction(str, Enum):
    CARRY_FORWARD = "CARRY_FORWARD"
    ENCASH = "ENCASH"


class CertificateRequirement(str, Enum):
    NOT_REQUIRED = "NOT_REQUIRED"
    OPTIONAL = "OPTIONAL"
    REQUIRED = "REQUIRED"


class PolicyRule(str, Enum):
    """Stable codes returned by the leave policy validator."""

    ALLOWED = "ALLOWED"
    ADMIN_OVERRIDE = "ADMIN_OVERRIDE"
    EMPLOYEE_TYPE_RESTRICTION = "EMPLOYEE_TYPE_RESTRICTION"
    BACKDATED_LOP_REQUIRED = "BACKDATED_LOP_REQUIRED"
    CASUAL_ADVANCE_NOTICE = "CASUAL_ADVANCE_NOTICE"
    PLANNED_ADVANCE_NOTICE = "PLANNED_ADVANCE_NOTICE"
    COMPOFF_THURSDAY_DEADLINE = "COMPOFF_THURSDAY_DEADLINE"
    MONTHLY_REQUEST_LIMIT = "MONTHLY_REQUEST_LIMIT"
    MONTHLY_WORKING_DAYS_LIMIT = "MONTHLY_WORKING_DAYS_LIMIT"
    TUESDAY_BLOCKED = "TUESDAY_BLOCKED"
    THURSDAY_BLOCKED = "THURSDAY_BLOCKED"
    FRIDAY_BEFORE_SATURDAY_OFF = "FRIDAY_BEFORE_SATURDAY_OFF"
