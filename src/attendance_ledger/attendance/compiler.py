from __future__ import annotations

import logging
from datetime import date, time
from typing import Mapping, Optional, Sequence

from ..core.constants import MAX_DAILY_MINUTES, NIGHT_END, NIGHT_START, OVERTIME_MULTIPLIERS
from ..core.enums import DayType
from ..punches.model import AttendancePunch
from ..schedules.model import ResolvedDay
from .factory import DayStrategyFactory
from .model import DayComputation
from .precedence import computed_day_type, resolve_day_type
from .strategies.base import DayContext

logger = logging.getLogger(__name__)


class AttendanceCompiler:
    """Pure function of (punches, resolved calendar day, override) -> computed day.

    Holds no state besides its settings, so the same inputs always compile to the same record.
    """

    def __init__(
        self,
        *,
        strategy_factory: DayStrategyFactory | None = None,
        multipliers: Optional[Mapping[str, float]] = None,
        max_daily_minutes: int = MAX_DAILY_MINUTES,
        night_start: time = NIGHT_START,
        night_end: time = NIGHT_END,
    ):
        self._factory = strategy_factory or DayStrategyFactory()
        self._multipliers = dict(multipliers or OVERTIME_MULTIPLIERS)
        self._max_daily_minutes = int(max_daily_minutes)
        self._night_start = night_start
        self._night_end = night_end

    def compile(
        self,
        *,
        employee_id: int,
        work_date: date,
        resolved: ResolvedDay,
        punches: Sequence[AttendancePunch],
        override: Optional[DayType] = None,
    ) -> DayComputation:
        times = sorted(p.punched_at for p in punches)
        has_punches = bool(times)
        day_type = resolve_day_type(resolved, override=override, has_punches=has_punches)

        ctx = DayContext(
            work_date=work_date,
            day_type=day_type,
            computed_day_type=computed_day_type(resolved, has_punches=has_punches),
            resolved=resolved,
            punch_times=tuple(times),
            multipliers=self._multipliers,
            max_daily_minutes=self._max_daily_minutes,
            night_start=self._night_start,
            night_end=self._night_end,
        )
        strategy = self._factory.for_day(day_type=day_type, override=override)
        computation = strategy.compute(ctx)

        if computation.effective_minutes >= self._max_daily_minutes and has_punches:
            logger.warning(
                "Employee %s on %s: worked time clipped to %s minutes",
                employee_id,
                work_date,
                self._max_daily_minutes,
            )
        return computation
