from __future__ import annotations

from datetime import date

import pytest

from conftest import ADMIN, SUPERVISOR
from attendance_ledger.common.pagination import PageRequest
from attendance_ledger.core.enums import DayType, RecordStatus
from attendance_ledger.core.exceptions import EmployeeNotFound, ValidationError

MARCH = (date(2025, 3, 1), date(2025, 3, 31))


@pytest.fixture
def month(punch, container):
    punch(1, "2025-03-03 08:03:00", "2025-03-03 17:10:00")
    punch(2, "2025-03-04 08:20:00", "2025-03-04 17:00:00")
    container.attendance_service.override(
        actor=SUPERVISOR, employee_id=1, work_date=date(2025, 3, 5), day_type=DayType.ABSENT, notes="Falta"
    )
    return container


def test_detail_is_newest_first_with_employee(month):
    page = month.report_service.detail(start=MARCH[0], end=MARCH[1])

    assert page.total == 3
    assert [row["date"] for row in page.items] == ["2025-03-05", "2025-03-04", "2025-03-03"]
    assert page.items[1]["employee"]["apellidos"] == "Gómez"


def test_detail_filters(month):
    by_status = month.report_service.detail(start=MARCH[0], end=MARCH[1], status=RecordStatus.PENDING_OVERTIME)
    by_employee = month.report_service.detail(start=MARCH[0], end=MARCH[1], employee_id=2)
    small_page = month.report_service.detail(start=MARCH[0], end=MARCH[1], page=PageRequest(page=2, page_size=2))

    assert [r["date"] for r in by_status.items] == ["2025-03-03"]
    assert by_employee.total == 1
    assert small_page.total == 3
    assert len(small_page.items) == 1


def test_detail_rejects_bad_ranges(month):
    with pytest.raises(ValidationError):
        month.report_service.detail(start=MARCH[1], end=MARCH[0])
    with pytest.raises(ValidationError):
        month.report_service.detail(start=date(2024, 1, 1), end=date(2025, 3, 1))


def test_detail_rows_are_flat(month):
    rows = month.report_service.detail_rows(start=MARCH[0], end=MARCH[1], employee_id=1)

    assert [r["date"] for r in rows] == ["2025-03-03", "2025-03-05"]
    assert rows[0]["employee"] == "Ana Pérez"
    assert rows[0]["overtime_status"] == "PENDING"
    assert rows[1]["day_type"] == "ABSENT"


def test_tardiness_lists_only_late_days(month):
    page = month.report_service.tardiness(start=MARCH[0], end=MARCH[1])

    assert page.total == 1
    assert page.items[0]["lateMinutes"] == 15
    assert page.items[0]["employee"]["id"] == 2


def test_absences_by_type(month):
    page = month.report_service.absences(start=MARCH[0], end=MARCH[1])

    assert page.total == 1
    assert page.items[0]["dayType"] == "ABSENT"
    assert page.items[0]["registeredBy"] == "supervisor"

    with pytest.raises(ValidationError):
        month.report_service.absences(start=MARCH[0], end=MARCH[1], day_type=DayType.WORKED)


def test_monthly_summary(month):
    month.overtime_service.approve(actor=SUPERVISOR, employee_id=1, work_date=date(2025, 3, 3))

    summary = month.report_service.monthly_summary(1, 2025, 3)

    assert summary["workedDays"] == 1
    assert summary["effectiveMinutes"] == 547
    assert summary["approvedOvertimeMinutes"] == 7
    assert summary["hourBankBalance"] == 7
    assert summary["vacationBalance"] == 0.0
    assert summary["dayTypeSummary"] == {"WORKED": 1, "ABSENT": 1}

    with pytest.raises(EmployeeNotFound):
        month.report_service.monthly_summary(99, 2025, 3)
    with pytest.raises(ValidationError):
        month.report_service.monthly_summary(1, 2025, 13)


def test_monthly_covers_active_employees(month):
    page = month.report_service.monthly(year=2025, month=3)

    assert page.total == 2
    assert [s["employeeId"] for s in page.items] == [1, 2]
    assert page.items[1]["lateMinutes"] == 15


def test_dashboard_stats(month):
    month.hour_bank_service.adjust(actor=ADMIN, employee_id=2, minutes=-60, notes="Tardanzas")
    month.hour_bank_service.adjust(actor=ADMIN, employee_id=1, minutes=90, notes="Saldo inicial")

    stats = month.report_service.stats(today=date(2025, 3, 10)).to_dict()

    assert stats == {
        "pendingOvertimeCount": 1,
        "incompleteRecordsCount": 0,
        "debtorCount": 1,
        "absenceAlertsCount": 1,
        "totalPositiveMinutes": 90,
        "totalNegativeMinutes": -60,
    }
