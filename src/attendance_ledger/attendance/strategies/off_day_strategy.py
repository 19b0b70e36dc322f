from __future__ import annotations

from ..model import DayComputation
from .base import DayContext, DayStrategy


class OffDayStrategy(DayStrategy):
    """Holiday or rest day: nothing is scheduled, so every worked minute is overtime."""

    def compute(self, ctx: DayContext) -> DayComputation:
        effective, clipped = self._worked_minutes(ctx)
        return self._with_overtime(ctx, scheduled=0, effective=effective, late=0, clipped=clipped)
