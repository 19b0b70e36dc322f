from __future__ import annotations

from dataclasses import replace
from datetime import date, time

import pytest

from conftest import ADMIN, SUPERVISOR, office_week
from attendance_ledger.core.exceptions import (
    AuthorizationError,
    NoScheduleConfigured,
    NotFoundError,
    ValidationError,
)
from attendance_ledger.schedules.model import NewScheduleDay
from attendance_ledger.schedules.service import CalendarChange


def test_resolve_uses_schedule_in_force(container):
    monday = container.schedule_service.resolve(1, date(2025, 3, 3))
    sunday = container.schedule_service.resolve(1, date(2025, 3, 9))

    assert monday.day.is_work_day is True
    assert monday.scheduled_minutes == 540
    assert sunday.day.is_work_day is False
    assert sunday.is_holiday is False


def test_resolve_before_any_schedule(container):
    with pytest.raises(NoScheduleConfigured):
        container.schedule_service.resolve(1, date(2024, 12, 31))


def test_new_schedule_supersedes_from_its_start(container):
    svc = container.schedule_service
    created = svc.create(actor=ADMIN, schedule=office_week(date(2025, 4, 1), name="Abril"))

    assert created.name == "Abril"
    assert svc.for_date(date(2025, 3, 31)).effective_from == date(2025, 1, 1)
    assert svc.for_date(date(2025, 4, 1)).schedule_id == created.schedule_id
    assert [s.effective_from for s in svc.history()] == [date(2025, 4, 1), date(2025, 1, 1)]


def test_schedule_validation(container):
    svc = container.schedule_service
    week = office_week(date(2025, 5, 1))

    with pytest.raises(AuthorizationError):
        svc.create(actor=SUPERVISOR, schedule=week)
    with pytest.raises(ValidationError):
        svc.create(actor=ADMIN, schedule=replace(week, days=week.days[:6]))
    with pytest.raises(ValidationError):
        svc.create(actor=ADMIN, schedule=replace(week, name=" "))
    with pytest.raises(ValidationError):
        svc.create(actor=ADMIN, schedule=office_week(date(2025, 1, 1)))

    missing_end = (NewScheduleDay(1, True, time(8, 0), None),) + tuple(d for d in week.days if d.day_of_week != 1)
    with pytest.raises(ValidationError):
        svc.create(actor=ADMIN, schedule=replace(week, days=missing_end))

    long_grace = tuple(replace(d, entry_grace_mins=300) if d.day_of_week == 1 else d for d in week.days)
    with pytest.raises(ValidationError):
        svc.create(actor=ADMIN, schedule=replace(week, days=long_grace))


def test_schedule_change_notifies_until_next_schedule(container):
    changes = []
    container.schedule_service.subscribe(changes.append)
    container.schedule_service.create(actor=ADMIN, schedule=office_week(date(2025, 6, 1), name="Junio"))

    container.schedule_service.create(actor=ADMIN, schedule=office_week(date(2025, 4, 1), name="Abril"))

    assert changes[-1] == CalendarChange(start=date(2025, 4, 1), end=date(2025, 5, 31))


def test_holidays_mark_resolved_days(container):
    container.holiday_service.create(actor=ADMIN, holiday_date=date(2025, 3, 4), name="Feriado regional")
    container.holiday_service.create(
        actor=ADMIN, holiday_date=date(2000, 5, 1), name="Dia del Trabajo", is_recurring=True
    )

    assert container.schedule_service.resolve(1, date(2025, 3, 4)).holiday_name == "Feriado regional"
    assert container.schedule_service.resolve(1, date(2026, 3, 4)).is_holiday is False
    assert container.schedule_service.resolve(1, date(2025, 5, 1)).is_holiday is True


def test_holidays_for_year_project_recurring_ones(container):
    svc = container.holiday_service
    svc.create(actor=ADMIN, holiday_date=date(2000, 12, 25), name="Navidad", is_recurring=True)
    svc.create(actor=ADMIN, holiday_date=date(2025, 6, 29), name="San Pedro y San Pablo")
    svc.create(actor=ADMIN, holiday_date=date(2024, 7, 28), name="Fiestas Patrias 2024")

    listed = svc.list_for_year(2025)

    assert [(h["holiday"].name, h["date"]) for h in listed] == [
        ("San Pedro y San Pablo", date(2025, 6, 29)),
        ("Navidad", date(2025, 12, 25)),
    ]


def test_recurring_holiday_change_covers_only_its_day():
    change = CalendarChange(start=date.min, month_day=(5, 1))

    assert change.covers(date(2025, 5, 1))
    assert not change.covers(date(2025, 5, 2))


def test_delete_holiday(container):
    svc = container.holiday_service
    holiday = svc.create(actor=ADMIN, holiday_date=date(2025, 3, 4), name="Feriado regional")

    with pytest.raises(AuthorizationError):
        svc.delete(actor=SUPERVISOR, holiday_id=holiday.holiday_id)
    svc.delete(actor=ADMIN, holiday_id=holiday.holiday_id)

    assert container.schedule_service.resolve(1, date(2025, 3, 4)).is_holiday is False
    with pytest.raises(NotFoundError):
        svc.delete(actor=ADMIN, holiday_id=holiday.holiday_id)
