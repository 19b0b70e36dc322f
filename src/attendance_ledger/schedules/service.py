from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional, Sequence

from ..common.authz import Actor, require_role
from ..common.datetime_utils import sunday_based_weekday
from ..common.validators import optional_text, require_non_empty
from ..core.enums import Role
from ..core.exceptions import NoScheduleConfigured, NotFoundError, ValidationError
from .model import Holiday, NewSchedule, ResolvedDay, WorkSchedule
from .repository import HolidayRepository, ScheduleRepository

logger = logging.getLogger(__name__)

MAX_GRACE_MINUTES = 240


@dataclass(frozen=True)
class CalendarChange:
    """Dates whose compiled attendance may no longer match the calendar.

    `end=None` means open-ended; `month_day` narrows the range to one recurring date.
    """

    start: date
    end: Optional[date] = None
    month_day: Optional[tuple[int, int]] = None

    def covers(self, day: date) -> bool:
        if day < self.start or (self.end is not None and day > self.end):
            return False
        if self.month_day is not None:
            return (day.month, day.day) == self.month_day
        return True


CalendarListener = Callable[[CalendarChange], None]


class ScheduleService:
    """Schedule resolver plus schedule administration.

    Schedules are company-wide: the employee id is accepted by `resolve` for
    symmetry with the callers but does not select a schedule.
    """

    def __init__(self, schedules: ScheduleRepository, holidays: HolidayRepository):
        self._schedules = schedules
        self._holidays = holidays
        self._listeners: List[CalendarListener] = []

    def subscribe(self, listener: CalendarListener) -> None:
        self._listeners.append(listener)

    def notify(self, change: CalendarChange) -> None:
        for listener in self._listeners:
            listener(change)

    def resolve(self, employee_id: int, target_date: date) -> ResolvedDay:
        schedule = self._schedules.get_effective(target_date)
        if schedule is None:
            raise NoScheduleConfigured(f"No work schedule configured for {target_date.isoformat()}")

        day_of_week = sunday_based_weekday(target_date)
        day = schedule.day_for(day_of_week)
        if day is None:
            raise NoScheduleConfigured(
                f"Schedule {schedule.name!r} has no entry for weekday {day_of_week}"
            )

        holidays = self._holidays.matching(target_date)
        holiday = next((h for h in holidays if h.applies_to(target_date)), None)
        return ResolvedDay(
            work_date=target_date,
            schedule_id=schedule.schedule_id,
            day=day,
            is_holiday=holiday is not None,
            holiday_name=holiday.name if holiday else None,
        )

    def current(self, today: date) -> WorkSchedule:
        schedule = self._schedules.get_effective(today)
        if schedule is None:
            raise NoScheduleConfigured("No work schedule configured")
        return schedule

    def for_date(self, target_date: date) -> WorkSchedule:
        schedule = self._schedules.get_effective(target_date)
        if schedule is None:
            raise NoScheduleConfigured(f"No work schedule configured for {target_date.isoformat()}")
        return schedule

    def history(self) -> Sequence[WorkSchedule]:
        return self._schedules.list_history()

    def create(self, *, actor: Actor, schedule: NewSchedule) -> WorkSchedule:
        require_role(actor, Role.ADMIN)

        name = require_non_empty(schedule.name, "Schedule name")
        self._validate_days(schedule)
        if self._schedules.exists_effective_from(schedule.effective_from):
            raise ValidationError(f"A schedule already starts on {schedule.effective_from.isoformat()}")

        schedule = NewSchedule(
            name=name,
            effective_from=schedule.effective_from,
            days=tuple(sorted(schedule.days, key=lambda d: d.day_of_week)),
            notes=optional_text(schedule.notes),
        )
        schedule_id = self._schedules.create(schedule, created_by=actor.user_id, created_by_username=actor.username)
        logger.info(
            "Schedule %s (%r) created by %s, effective from %s",
            schedule_id,
            name,
            actor.username or actor.user_id,
            schedule.effective_from,
        )

        # Supersedes the previous schedule until the next one takes over.
        later = [s.effective_from for s in self._schedules.list_history() if s.effective_from > schedule.effective_from]
        end = min(later) if later else None
        if end is not None:
            end = date.fromordinal(end.toordinal() - 1)
        self.notify(CalendarChange(start=schedule.effective_from, end=end))

        created = self._schedules.get_by_id(schedule_id)
        if created is None:
            raise NotFoundError("Created schedule could not be read back")
        return created

    @staticmethod
    def _validate_days(schedule: NewSchedule) -> None:
        seen = sorted(d.day_of_week for d in schedule.days)
        if seen != list(range(7)):
            raise ValidationError("A schedule needs exactly one entry per weekday (0=Sunday .. 6=Saturday)")

        for d in schedule.days:
            if d.entry_grace_mins < 0 or d.exit_grace_mins < 0:
                raise ValidationError("Grace minutes cannot be negative")
            if d.entry_grace_mins > MAX_GRACE_MINUTES or d.exit_grace_mins > MAX_GRACE_MINUTES:
                raise ValidationError(f"Grace minutes cannot exceed {MAX_GRACE_MINUTES}")
            if d.is_work_day:
                if d.start_time is None or d.end_time is None:
                    raise ValidationError(f"Work day {d.day_of_week} needs a start and end time")
                if d.start_time == d.end_time:
                    raise ValidationError(f"Work day {d.day_of_week} has equal start and end time")


class HolidayService:
    def __init__(self, holidays: HolidayRepository, schedules: ScheduleService):
        self._holidays = holidays
        self._schedules = schedules

    def list_for_year(self, year: int) -> list[dict]:
        """Holidays falling in `year`, recurring ones projected onto it."""
        out = []
        for h in self._holidays.list_all():
            occurrence = h.occurrence_in(int(year))
            if occurrence is None:
                continue
            out.append({"holiday": h, "date": occurrence})
        out.sort(key=lambda x: x["date"])
        return out

    def create(
        self,
        *,
        actor: Actor,
        holiday_date: date,
        name: str,
        is_national: bool = True,
        is_recurring: bool = False,
    ) -> Holiday:
        require_role(actor, Role.ADMIN)
        name = require_non_empty(name, "Holiday name")

        holiday_id = self._holidays.create(
            holiday_date=holiday_date,
            name=name,
            is_national=bool(is_national),
            is_recurring=bool(is_recurring),
        )
        holiday = self._holidays.get_by_id(holiday_id)
        if holiday is None:
            raise NotFoundError("Created holiday could not be read back")
        logger.info("Holiday %s (%r) created for %s by %s", holiday_id, name, holiday_date, actor.username or actor.user_id)
        self._schedules.notify(self._change_for(holiday))
        return holiday

    def delete(self, *, actor: Actor, holiday_id: int) -> None:
        require_role(actor, Role.ADMIN)

        holiday = self._holidays.get_by_id(int(holiday_id))
        if holiday is None:
            raise NotFoundError("Holiday not found")
        if not self._holidays.delete(holiday_id=int(holiday_id)):
            raise NotFoundError("Holiday not found")
        logger.info("Holiday %s (%r) deleted by %s", holiday_id, holiday.name, actor.username or actor.user_id)
        self._schedules.notify(self._change_for(holiday))

    @staticmethod
    def _change_for(holiday: Holiday) -> CalendarChange:
        if holiday.is_recurring:
            return CalendarChange(
                start=date.min,
                month_day=(holiday.holiday_date.month, holiday.holiday_date.day),
            )
        return CalendarChange(start=holiday.holiday_date, end=holiday.holiday_date)
