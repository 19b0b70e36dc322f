"""Attendance and ledger policy shared by every environment."""

import os

OVERTIME_MULTIPLIERS = {
    "WORKED": float(os.getenv("OVERTIME_MULTIPLIER_WORKED", "1.5")),
    "REST": float(os.getenv("OVERTIME_MULTIPLIER_REST", "2.0")),
    "HOLIDAY": float(os.getenv("OVERTIME_MULTIPLIER_HOLIDAY", "2.0")),
}

MAX_DAILY_MINUTES = int(os.getenv("MAX_DAILY_MINUTES", "1440"))

# Night window, HH:MM local time.
NIGHT_START = os.getenv("NIGHT_START", "22:00")
NIGHT_END = os.getenv("NIGHT_END", "06:00")

VACATION_DAYS_PER_YEAR = int(os.getenv("VACATION_DAYS_PER_YEAR", "30"))

IMPORT_MAX_ROWS = int(os.getenv("IMPORT_MAX_ROWS", "50000"))
