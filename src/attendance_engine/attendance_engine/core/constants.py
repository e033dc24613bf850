"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

CIVIL_UTC_OFFSET = "+05:30"

GRACE_SETTING_KEY = "lateGraceMinutes"
DEFAULT_GRACE_MINUTES = 30
GRACE_CACHE_TTL_SECONDS = 60 * 60
GRACE_WAIT_TIMEOUT_SECONDS = 5.0

# 8.5 hours of net work is a full day.
MIN_FULL_DAY_MINUTES = 510

CASUAL_NOTICE_DAYS = 5
PLANNED_NOTICE_DAYS = 30
PLANNED_LONG_NOTICE_DAYS = 60
PLANNED_MEDIUM_SPAN_MAX_DAYS = 7
WEEKDAY_RULE_EXEMPT_NOTICE_DAYS = 10

MONTHLY_REQUEST_LIMIT = 4
MONTHLY_WORKING_DAYS_LIMIT = 5

DEFAULT_SICK_ENTITLEMENT = 6
DEFAULT_CASUAL_ENTITLEMENT = 6
DEFAULT_PAID_ENTITLEMENT = 10
