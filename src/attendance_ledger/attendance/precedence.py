from __future__ import annotations

from typing import Optional

from ..core.enums import DayType
from ..schedules.model import ResolvedDay


def computed_day_type(resolved: ResolvedDay, *, has_punches: bool) -> DayType:
    """Classification from the calendar alone: holiday > schedule."""
    if resolved.is_holiday:
        return DayType.HOLIDAY
    if not resolved.day.is_work_day:
        return DayType.REST
    return DayType.WORKED if has_punches else DayType.ABSENT


def resolve_day_type(resolved: ResolvedDay, *, override: Optional[DayType], has_punches: bool) -> DayType:
    """Single precedence rule for a day: manual override > holiday > schedule."""
    if override is not None:
        return override
    return computed_day_type(resolved, has_punches=has_punches)
