from __future__ import annotations

import io
from datetime import date, datetime, time

import pytest
from openpyxl import Workbook

from conftest import ADMIN, STAFF, SUPERVISOR
from attendance_ledger.biometric.reader import PunchFileReader
from attendance_ledger.core.enums import PunchSource, RecordStatus
from attendance_ledger.core.exceptions import AuthorizationError, ValidationError

DEVICE_EXPORT = (
    "AC-No.,Name,Time\n"
    "17,Ana,03/03/2025 08:03:00\n"
    "17,Ana,03/03/2025 17:10:00\n"
    "99,Desconocido,03/03/2025 08:00:00\n"
    "18,Luis,03/03/2025 08:00:00\n"
    "17,Ana,ayer temprano\n"
)


def _csv(text: str = DEVICE_EXPORT) -> io.BytesIO:
    return io.BytesIO(text.encode("utf-8"))


@pytest.fixture
def mapped(container):
    container.mapping_service.create(actor=ADMIN, biometric_id="17", employee_id=1)
    inactive = container.mapping_service.create(actor=ADMIN, biometric_id="18", employee_id=2)
    container.mapping_service.update(actor=ADMIN, mapping_id=inactive.mapping_id, is_active=False)
    return container


def _import(container, text: str = DEVICE_EXPORT, **kwargs):
    return container.import_reconciler.import_file(actor=SUPERVISOR, stream=_csv(text), filename="marcaciones.csv", **kwargs)


# Reader


def test_reader_parses_day_first_csv():
    rows = PunchFileReader().read(_csv(), "marcaciones.csv")

    assert [r.row_number for r in rows] == [2, 3, 4, 5, 6]
    assert rows[0].biometric_id == "17"
    assert rows[0].punched_at == datetime(2025, 3, 3, 8, 3)
    assert rows[4].error is not None
    assert rows[4].punched_at is None


def test_reader_skips_blank_rows_and_flags_missing_ids():
    rows = PunchFileReader().read(_csv("EnNo,DateTime\n,\n,2025-03-03 08:00:00\n5,2025-03-03T09:00:00\n"), "x.csv")

    assert len(rows) == 2
    assert rows[0].error == "Missing biometric id"
    assert rows[1].punched_at == datetime(2025, 3, 3, 9, 0)


def test_reader_combines_date_and_time_columns_from_xlsx():
    wb = Workbook()
    ws = wb.active
    ws.append(["Biometric ID", "Fecha", "Hora"])
    ws.append([17, datetime(2025, 3, 3), time(8, 3)])
    ws.append([17, datetime(2025, 3, 3), time(17, 10)])
    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)

    rows = PunchFileReader().read(buffer, "export.xlsx")

    assert [(r.biometric_id, r.punched_at) for r in rows] == [
        ("17", datetime(2025, 3, 3, 8, 3)),
        ("17", datetime(2025, 3, 3, 17, 10)),
    ]


def test_reader_rejects_bad_files():
    reader = PunchFileReader(max_rows=2)

    with pytest.raises(ValidationError):
        reader.read(_csv(), "marcaciones.txt")
    with pytest.raises(ValidationError):
        reader.read(_csv("Nombre,Time\nAna,2025-03-03 08:00\n"), "x.csv")
    with pytest.raises(ValidationError):
        reader.read(_csv("ID,Nombre\n17,Ana\n"), "x.csv")
    with pytest.raises(ValidationError):
        reader.read(_csv(), "marcaciones.csv")


@pytest.mark.parametrize("filename", ["export.xlsx", "export.xls"])
def test_reader_rejects_corrupt_workbooks(filename):
    with pytest.raises(ValidationError):
        PunchFileReader().read(io.BytesIO(b"not really a workbook"), filename)


# Reconciler


def test_import_stores_punches_and_reports_row_errors(mapped, repos):
    result = _import(mapped)

    assert result.imported == 2
    assert result.updated == 0
    assert result.skipped == 0
    assert result.incomplete == 0
    reasons = {e["biometricId"]: e["reason"] for e in result.errors}
    assert reasons["99"] == "Unmapped biometric id"
    assert reasons["18"] == "Biometric mapping is inactive"
    assert reasons["17"].startswith("Invalid timestamp")
    assert len(result.errors) == 3

    record = mapped.attendance_service.get_day(1, date(2025, 3, 3))
    assert record.effective_minutes == 547
    assert record.status == RecordStatus.PENDING_OVERTIME
    assert {p.source for p in record.punches} == {PunchSource.BIOMETRIC}


def test_reimport_is_idempotent(mapped, repos):
    _import(mapped)
    saves = repos.attendance.saves

    result = _import(mapped)

    assert (result.imported, result.updated, result.skipped) == (0, 0, 2)
    assert len(repos.punches.punches) == 2
    assert repos.attendance.saves == saves


def test_force_reimport_updates_existing_punches(mapped, repos):
    _import(mapped)

    result = _import(mapped, force_reimport=True)

    assert (result.imported, result.updated, result.skipped) == (0, 2, 0)
    assert len(repos.punches.punches) == 2
    assert mapped.attendance_service.get_day(1, date(2025, 3, 3)).effective_minutes == 547


def test_force_reimport_keeps_manual_punches(mapped, repos):
    mapped.attendance_service.add_manual_punch(
        actor=SUPERVISOR, employee_id=1, punched_at=datetime(2025, 3, 3, 8, 3), notes="Reloj fuera de servicio"
    )

    result = _import(mapped, force_reimport=True)

    assert (result.imported, result.updated, result.skipped) == (1, 0, 1)
    first = repos.punches.list_for_day(1, date(2025, 3, 3))[0]
    assert first.source == PunchSource.MANUAL
    assert first.notes == "Reloj fuera de servicio"


def test_single_punch_day_counts_as_incomplete(mapped):
    result = _import(mapped, "AC-No.,Time\n17,04/03/2025 08:00:00\n")

    assert result.imported == 1
    assert result.incomplete == 1


def test_closed_days_are_not_touched(mapped, repos):
    _import(mapped)
    mapped.overtime_service.approve(actor=SUPERVISOR, employee_id=1, work_date=date(2025, 3, 3))
    mapped.attendance_service.close_period(actor=ADMIN, start=date(2025, 3, 1), end=date(2025, 3, 31))

    result = _import(mapped, "AC-No.,Time\n17,03/03/2025 12:00:00\n17,03/03/2025 13:00:00\n")

    assert result.imported == 0
    assert [e["reason"] for e in result.errors] == ["Pay period is closed for this day"] * 2
    assert len(repos.punches.list_for_day(1, date(2025, 3, 3))) == 2


def test_import_needs_supervisor(mapped):
    with pytest.raises(AuthorizationError):
        mapped.import_reconciler.import_file(actor=STAFF, stream=_csv(), filename="marcaciones.csv")
