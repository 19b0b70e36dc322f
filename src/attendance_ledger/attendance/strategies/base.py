from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Mapping, Sequence

from ...common.datetime_utils import minutes_between
from ...core.constants import MAX_DAILY_MINUTES, NIGHT_END, NIGHT_START, OVERTIME_MULTIPLIERS
from ...core.enums import DayType, OvertimeStatus, RecordStatus
from ...schedules.model import ResolvedDay
from ..model import DayComputation


@dataclass(frozen=True)
class DayContext:
    """Everything a strategy needs to compile one employee-day."""

    work_date: date
    day_type: DayType
    computed_day_type: DayType
    resolved: ResolvedDay
    punch_times: Sequence[datetime]
    multipliers: Mapping[str, float] = field(default_factory=lambda: dict(OVERTIME_MULTIPLIERS))
    max_daily_minutes: int = MAX_DAILY_MINUTES
    night_start: time = NIGHT_START
    night_end: time = NIGHT_END

    @property
    def has_odd_punches(self) -> bool:
        return len(self.punch_times) % 2 == 1

    def intervals(self) -> list[tuple[datetime, datetime]]:
        """Consecutive in/out pairs; a trailing unpaired punch is ignored."""
        ordered = sorted(self.punch_times)
        return [(ordered[i], ordered[i + 1]) for i in range(0, len(ordered) - 1, 2)]

    def multiplier_for(self, day_type: DayType) -> float:
        return float(self.multipliers.get(day_type.value, 1.0))


def overlaps_night(start: datetime, end: datetime, night_start: time, night_end: time) -> bool:
    """True when [start, end) intersects any night window (night_start .. next day's night_end)."""
    day = start.date() - timedelta(days=1)
    while day <= end.date():
        window_start = datetime.combine(day, night_start)
        window_end = datetime.combine(day + timedelta(days=1), night_end)
        if start < window_end and window_start < end:
            return True
        day += timedelta(days=1)
    return False


class DayStrategy(ABC):
    """Strategy Pattern: encapsulate how one kind of day turns punches into minutes."""

    @abstractmethod
    def compute(self, ctx: DayContext) -> DayComputation:
        raise NotImplementedError

    def _worked_minutes(self, ctx: DayContext) -> tuple[int, bool]:
        """Sum of paired intervals, clipped to the daily maximum. Returns (minutes, clipped)."""
        total = sum(max(0, minutes_between(a, b)) for a, b in ctx.intervals())
        if total > ctx.max_daily_minutes:
            return ctx.max_daily_minutes, True
        return total, False

    def _is_night_shift(self, ctx: DayContext) -> bool:
        if ctx.resolved.day.crosses_midnight and ctx.day_type == DayType.WORKED:
            return True
        return any(overlaps_night(a, b, ctx.night_start, ctx.night_end) for a, b in ctx.intervals())

    def _with_overtime(
        self,
        ctx: DayContext,
        *,
        scheduled: int,
        effective: int,
        late: int,
        clipped: bool,
    ) -> DayComputation:
        incomplete = ctx.has_odd_punches or clipped
        raw = max(0, effective - scheduled)
        if incomplete:
            status = RecordStatus.INCOMPLETE
            overtime_status = OvertimeStatus.NONE
        elif raw > 0:
            status = RecordStatus.PENDING_OVERTIME
            overtime_status = OvertimeStatus.PENDING
        else:
            status = RecordStatus.COMPLETE
            overtime_status = OvertimeStatus.NONE

        return DayComputation(
            day_type=ctx.day_type,
            computed_day_type=ctx.computed_day_type,
            status=status,
            scheduled_minutes=scheduled,
            effective_minutes=effective,
            late_minutes=late,
            overtime_raw_minutes=raw,
            overtime_multiplier=ctx.multiplier_for(ctx.day_type),
            overtime_status=overtime_status,
            is_holiday=ctx.resolved.is_holiday,
            is_night_shift=self._is_night_shift(ctx),
            punch_count=len(ctx.punch_times),
        )
