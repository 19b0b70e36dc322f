from __future__ import annotations

from ...core.enums import OvertimeStatus, RecordStatus
from ..model import DayComputation
from .base import DayContext, DayStrategy


class NonWorkedOverrideStrategy(DayStrategy):
    """Manual override to a non-worked type (leave, absence, rest). All minutes are zero."""

    def compute(self, ctx: DayContext) -> DayComputation:
        return DayComputation(
            day_type=ctx.day_type,
            computed_day_type=ctx.computed_day_type,
            status=RecordStatus.COMPLETE,
            overtime_multiplier=ctx.multiplier_for(ctx.day_type),
            overtime_status=OvertimeStatus.NONE,
            is_holiday=ctx.resolved.is_holiday,
            punch_count=len(ctx.punch_times),
        )
