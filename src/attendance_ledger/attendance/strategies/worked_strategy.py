from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from ...common.datetime_utils import minutes_between
from ...core.enums import RecordStatus
from ..model import DayComputation
from .base import DayContext, DayStrategy


class WorkedDayStrategy(DayStrategy):
    """Scheduled work day with punches: late minutes plus overtime beyond the schedule."""

    def compute(self, ctx: DayContext) -> DayComputation:
        day = ctx.resolved.day
        scheduled = day.scheduled_minutes
        effective, clipped = self._worked_minutes(ctx)

        late = 0
        if ctx.punch_times and day.is_work_day and day.start_time is not None:
            start = datetime.combine(ctx.work_date, day.start_time)
            late = max(0, minutes_between(start, min(ctx.punch_times)) - int(day.entry_grace_mins))

        computation = self._with_overtime(ctx, scheduled=scheduled, effective=effective, late=late, clipped=clipped)
        if not ctx.punch_times and scheduled > 0:
            # Marked worked but nothing to compute from.
            return replace(computation, status=RecordStatus.INCOMPLETE)
        return computation
