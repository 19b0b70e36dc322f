from __future__ import annotations

from datetime import date
from typing import Optional

from ..core.constants import MAX_REPORT_DAYS
from ..core.exceptions import ValidationError


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def optional_text(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def require_date_range(start: date, end: date, *, max_days: int = MAX_REPORT_DAYS) -> None:
    if end < start:
        raise ValidationError("End date must be on or after start date")
    if (end - start).days + 1 > max_days:
        raise ValidationError(f"Date range cannot exceed {max_days} days")


def require_positive(value, field_name: str):
    if value is None or value <= 0:
        raise ValidationError(f"{field_name} must be greater than zero")
    return value


def require_non_zero(value, field_name: str):
    if value is None or value == 0:
        raise ValidationError(f"{field_name} must not be zero")
    return value
