from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import DayType
from .strategies.absent_strategy import AbsentStrategy
from .strategies.base import DayStrategy
from .strategies.off_day_strategy import OffDayStrategy
from .strategies.override_strategy import NonWorkedOverrideStrategy
from .strategies.worked_strategy import WorkedDayStrategy


@dataclass
class DayStrategyFactory:
    """Factory Pattern: choose the computation for a day from its resolved type."""

    def for_day(self, *, day_type: DayType, override: Optional[DayType]) -> DayStrategy:
        if override is not None and override != DayType.WORKED:
            return NonWorkedOverrideStrategy()
        if day_type == DayType.WORKED:
            return WorkedDayStrategy()
        if day_type in (DayType.REST, DayType.HOLIDAY):
            return OffDayStrategy()
        return AbsentStrategy()
