from __future__ import annotations

from ...core.enums import RecordStatus
from ..model import DayComputation
from .base import DayContext, DayStrategy


class AbsentStrategy(DayStrategy):
    """Work day without punches. Left INCOMPLETE until someone justifies it."""

    def compute(self, ctx: DayContext) -> DayComputation:
        return DayComputation(
            day_type=ctx.day_type,
            computed_day_type=ctx.computed_day_type,
            status=RecordStatus.INCOMPLETE,
            scheduled_minutes=ctx.resolved.scheduled_minutes,
            overtime_multiplier=ctx.multiplier_for(ctx.day_type),
            is_holiday=ctx.resolved.is_holiday,
        )
