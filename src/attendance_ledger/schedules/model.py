from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional, Sequence


@dataclass(frozen=True)
class ScheduleDay:
    """One weekday of a work schedule. day_of_week: 0=Sunday .. 6=Saturday."""

    day_of_week: int
    is_work_day: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    entry_grace_mins: int = 0
    exit_grace_mins: int = 0

    @property
    def crosses_midnight(self) -> bool:
        return bool(self.is_work_day and self.start_time and self.end_time and self.end_time <= self.start_time)

    @property
    def scheduled_minutes(self) -> int:
        if not self.is_work_day or not self.start_time or not self.end_time:
            return 0
        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        if end <= start:
            end += 24 * 60
        return end - start


@dataclass(frozen=True)
class WorkSchedule:
    """Company-wide schedule, authoritative from `effective_from` until superseded."""

    schedule_id: int
    name: str
    effective_from: date
    days: Sequence[ScheduleDay]
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_by_username: Optional[str] = None
    created_at: Optional[datetime] = None

    def day_for(self, day_of_week: int) -> Optional[ScheduleDay]:
        for d in self.days:
            if d.day_of_week == day_of_week:
                return d
        return None


@dataclass(frozen=True)
class Holiday:
    holiday_id: int
    holiday_date: date
    name: str
    is_national: bool = True
    is_recurring: bool = False

    def applies_to(self, day: date) -> bool:
        if self.is_recurring:
            return (self.holiday_date.month, self.holiday_date.day) == (day.month, day.day)
        return self.holiday_date == day

    def occurrence_in(self, year: int) -> Optional[date]:
        if not self.is_recurring:
            return self.holiday_date if self.holiday_date.year == year else None
        try:
            return self.holiday_date.replace(year=year)
        except ValueError:
            # Feb 29 in a non-leap year.
            return None


@dataclass(frozen=True)
class ResolvedDay:
    """What the schedule and the holiday calendar say about one date."""

    work_date: date
    schedule_id: int
    day: ScheduleDay
    is_holiday: bool = False
    holiday_name: Optional[str] = None

    @property
    def scheduled_minutes(self) -> int:
        return self.day.scheduled_minutes


@dataclass(frozen=True)
class NewScheduleDay:
    day_of_week: int
    is_work_day: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    entry_grace_mins: int = 0
    exit_grace_mins: int = 0


@dataclass(frozen=True)
class NewSchedule:
    name: str
    effective_from: date
    days: Sequence[NewScheduleDay] = field(default_factory=tuple)
    notes: Optional[str] = None
