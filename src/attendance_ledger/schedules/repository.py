from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import Holiday, NewSchedule, WorkSchedule


class ScheduleRepository(Protocol):
    def get_effective(self, target_date: date) -> Optional[WorkSchedule]:
        """Schedule with the greatest effective_from <= target_date."""

        raise NotImplementedError

    def list_history(self) -> Sequence[WorkSchedule]:
        """All schedules, newest effective_from first."""

        raise NotImplementedError

    def exists_effective_from(self, effective_from: date) -> bool:
        raise NotImplementedError

    def create(self, schedule: NewSchedule, *, created_by: Optional[int], created_by_username: Optional[str]) -> int:
        raise NotImplementedError

    def get_by_id(self, schedule_id: int) -> Optional[WorkSchedule]:
        raise NotImplementedError


class HolidayRepository(Protocol):
    def list_all(self) -> Sequence[Holiday]:
        raise NotImplementedError

    def matching(self, day: date) -> Sequence[Holiday]:
        """Exact holidays on `day` plus recurring ones on the same month/day."""

        raise NotImplementedError

    def get_by_id(self, holiday_id: int) -> Optional[Holiday]:
        raise NotImplementedError

    def create(self, *, holiday_date: date, name: str, is_national: bool, is_recurring: bool) -> int:
        raise NotImplementedError

    def delete(self, *, holiday_id: int) -> bool:
        raise NotImplementedError
