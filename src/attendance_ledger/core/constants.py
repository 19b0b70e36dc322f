"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
Settings modules may override the policy values through `build_container`.
"""

from datetime import time

MAX_DAILY_MINUTES = 24 * 60

NIGHT_START = time(22, 0)
NIGHT_END = time(6, 0)

# Keyed by DayType value. Informational (pay), the hour bank is credited in plain minutes.
OVERTIME_MULTIPLIERS = {
    "WORKED": 1.5,
    "REST": 2.0,
    "HOLIDAY": 2.0,
}

VACATION_DAYS_PER_YEAR = 30

IMPORT_MAX_ROWS = 50_000

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 200
MAX_REPORT_DAYS = 366
