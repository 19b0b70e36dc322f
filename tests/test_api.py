from __future__ import annotations

import io

import pytest
from openpyxl import load_workbook

from attendance_ledger.main import create_app

SUPERVISOR_HEADERS = {"X-User-Role": "supervisor", "X-User-Id": "10", "X-User-Name": "supervisor"}
ADMIN_HEADERS = {"X-User-Role": "admin", "X-User-Id": "20", "X-User-Name": "admin"}
SUPERUSER_HEADERS = {"X-User-Role": "superuser", "X-User-Id": "30", "X-User-Name": "root"}


@pytest.fixture
def client(monkeypatch, container):
    monkeypatch.setenv("APP_ENV", "testing")
    app = create_app(container)
    return app.test_client()


def _punch_monday(client):
    for stamp in ("2025-03-03T08:03:00", "2025-03-03T17:10:00"):
        resp = client.post(
            "/api/asistencia/punch",
            json={"employeeId": 1, "punchedAt": stamp, "notes": "Olvido de marcacion"},
            headers=SUPERVISOR_HEADERS,
        )
        assert resp.status_code == 201
    return resp.get_json()


def test_missing_role_is_forbidden(client):
    resp = client.post("/api/asistencia/punch", json={"employeeId": 1, "punchedAt": "2025-03-03T08:00:00"})

    assert resp.status_code == 403
    assert resp.get_json()["error"] == "forbidden"


def test_domain_errors_map_to_status_codes(client):
    missing = client.get("/api/asistencia/1/2025-03-03")
    bad_date = client.get("/api/asistencia/1/03-03-2025")
    unknown = client.get("/api/no-such-route")

    assert missing.status_code == 404
    assert missing.get_json()["error"] == "record_not_found"
    assert bad_date.status_code == 400
    assert bad_date.get_json()["error"] == "validation_error"
    assert unknown.status_code == 404


def test_punch_and_overtime_flow(client):
    day = _punch_monday(client)

    assert day["effectiveMinutes"] == 547
    assert day["status"] == "PENDING_OVERTIME"
    assert day["overtimeMultiplier"] == 1.5
    assert [p["source"] for p in day["punches"]] == ["MANUAL", "MANUAL"]
    assert day["employee"]["dni"] == "12345678"

    pending = client.get("/api/asistencia/overtime/pending").get_json()
    assert [(p["employeeId"], p["date"]) for p in pending] == [(1, "2025-03-03")]

    approved = client.post(
        "/api/asistencia/1/2025-03-03/overtime/approve",
        json={"notes": "Cierre de mes"},
        headers=SUPERVISOR_HEADERS,
    )
    assert approved.status_code == 200
    assert approved.get_json()["overtimeStatus"] == "APPROVED"

    again = client.post("/api/asistencia/1/2025-03-03/overtime/approve", json={}, headers=SUPERVISOR_HEADERS)
    assert again.status_code == 409

    balance = client.get("/api/banco-horas/1").get_json()
    assert (balance["employeeId"], balance["totalMinutes"], balance["isNegative"]) == (1, 7, False)

    txs = client.get("/api/banco-horas/1/transactions?type=overtime_accrual").get_json()
    assert txs["total"] == 1
    assert txs["data"][0]["delta"] == 7


def test_attendance_listing_is_paginated(client):
    _punch_monday(client)

    body = client.get("/api/asistencia/1?start=2025-03-01&end=2025-03-31&limit=5").get_json()

    assert body["total"] == 1
    assert body["pageSize"] == 5
    assert body["data"][0]["employee"]["nombres"] == "Ana"

    assert client.get("/api/asistencia/1?status=BOGUS").status_code == 400
    assert client.get("/api/asistencia/1?limit=0").status_code == 400


def test_override_requires_document_for_leave(client):
    _punch_monday(client)

    resp = client.post(
        "/api/asistencia/1/2025-03-03/override",
        json={"dayType": "vacation", "notes": "Vacaciones"},
        headers=SUPERVISOR_HEADERS,
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "document_ref_required"

    resp = client.post(
        "/api/asistencia/1/2025-03-03/override",
        json={"dayType": "VACATION", "notes": "Vacaciones", "documentRef": "SOL-12"},
        headers=SUPERVISOR_HEADERS,
    )
    assert resp.get_json()["dayType"] == "VACATION"

    reverted = client.delete("/api/asistencia/1/2025-03-03/override", json={}, headers=ADMIN_HEADERS)
    assert reverted.get_json()["dayType"] == "WORKED"

    corrections = client.get("/api/asistencia/1/2025-03-03/corrections").get_json()
    assert [c["action"] for c in corrections] == ["OVERRIDE", "REVERT_OVERRIDE"]


def test_patch_and_close_period(client):
    _punch_monday(client)

    refused = client.post(
        "/api/asistencia/close-period", json={"start": "2025-03-01", "end": "2025-03-31"}, headers=ADMIN_HEADERS
    )
    assert refused.status_code == 400

    client.post(
        "/api/asistencia/1/2025-03-03/overtime/reject", json={"notes": "No autorizado"}, headers=SUPERVISOR_HEADERS
    )
    closed = client.post(
        "/api/asistencia/close-period", json={"start": "2025-03-01", "end": "2025-03-31"}, headers=ADMIN_HEADERS
    )
    assert closed.get_json() == {"success": True, "closed": 1}

    patched = client.patch(
        "/api/asistencia/1/2025-03-03",
        json={"notes": "Correccion de planilla", "effectiveMinutes": 530},
        headers=SUPERUSER_HEADERS,
    )
    assert patched.status_code == 200
    assert patched.get_json()["effectiveMinutes"] == 530
    assert patched.get_json()["status"] == "CLOSED"


def test_hour_bank_adjustment_needs_notes(client):
    resp = client.post("/api/banco-horas/2/ajuste", json={"minutes": -60}, headers=ADMIN_HEADERS)
    assert resp.status_code == 400

    resp = client.post(
        "/api/banco-horas/2/ajuste", json={"minutes": -60, "notes": "corrección"}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 201
    assert resp.get_json()["isNegative"] is True

    debtors = client.get("/api/banco-horas/deudores").get_json()
    assert [(d["employee"]["id"], d["totalMinutes"]) for d in debtors] == [(2, -60)]

    verify = client.get("/api/banco-horas/2/verify").get_json()
    assert verify["ok"] is True
    assert verify["headBalance"] == -60


def test_vacation_endpoints(client):
    resp = client.post(
        "/api/vacaciones/1/acreditar", json={"days": 30, "periodStart": "2024-03-01"}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 201

    resp = client.post("/api/vacaciones/1/uso", json={"days": 1.5, "notes": "Tramite"}, headers=ADMIN_HEADERS)
    body = resp.get_json()
    assert body["availableDays"] == 28.5
    assert body["usedDays"] == 1.5
    assert body["periodStart"] == "2024-03-01"

    run = client.post(
        "/api/vacaciones/acreditar-aniversarios", json={"asOf": "2025-03-10"}, headers=ADMIN_HEADERS
    ).get_json()
    assert run["accrued"] == []
    assert run["skipped"] == 2


def test_import_upload(client):
    client.post(
        "/api/biometric-mapping", json={"biometricId": "17", "employeeId": 1}, headers=ADMIN_HEADERS
    )
    export = b"AC-No.,Time\n17,03/03/2025 08:03:00\n17,03/03/2025 17:10:00\n42,03/03/2025 08:00:00\n"

    resp = client.post(
        "/api/asistencia/import",
        data={"file": (io.BytesIO(export), "marcaciones.csv"), "forceReimport": "false"},
        headers=SUPERVISOR_HEADERS,
        content_type="multipart/form-data",
    )

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["imported"] == 2
    assert body["errors"] == [{"biometricId": "42", "date": "2025-03-03", "reason": "Unmapped biometric id"}]

    missing = client.post("/api/asistencia/import", data={}, headers=SUPERVISOR_HEADERS)
    assert missing.status_code == 400


def test_mapping_and_holiday_endpoints(client):
    created = client.post(
        "/api/biometric-mapping", json={"biometricId": "17", "employeeId": 1}, headers=ADMIN_HEADERS
    )
    assert created.status_code == 201
    duplicate = client.post(
        "/api/biometric-mapping", json={"biometricId": "17", "employeeId": 2}, headers=ADMIN_HEADERS
    )
    assert duplicate.status_code == 409

    unmapped = client.get("/api/biometric-mapping/unmapped-employees").get_json()
    assert [e["id"] for e in unmapped] == [2]

    holiday = client.post(
        "/api/feriados", json={"date": "2025-07-28", "name": "Fiestas Patrias", "isRecurring": True}, headers=ADMIN_HEADERS
    )
    assert holiday.status_code == 201
    listed = client.get("/api/feriados?year=2026").get_json()
    assert [h["date"] for h in listed] == ["2026-07-28"]


def test_schedule_create_endpoint(client):
    days = [
        {"dayOfWeek": d, "isWorkDay": 1 <= d <= 5, "startTime": "09:00", "endTime": "18:00", "entryGraceMins": 10}
        if 1 <= d <= 5
        else {"dayOfWeek": d, "isWorkDay": False}
        for d in range(7)
    ]

    resp = client.post(
        "/api/horario", json={"name": "Nuevo", "effectiveFrom": "2025-04-01", "days": days}, headers=ADMIN_HEADERS
    )

    assert resp.status_code == 201
    assert resp.get_json()["days"][1]["scheduledMinutes"] == 540
    history = client.get("/api/horario/historial").get_json()
    assert [s["effectiveFrom"] for s in history] == ["2025-04-01", "2025-01-01"]
    assert client.get("/api/horario/por-fecha/2025-04-02").get_json()["name"] == "Nuevo"


def test_reports_and_csv_export(client):
    _punch_monday(client)

    detail = client.get("/api/reportes/asistencia/detalle?start=2025-03-01&end=2025-03-31").get_json()
    assert detail["total"] == 1

    csv_resp = client.get("/api/reportes/asistencia/detalle.csv?start=2025-03-01&end=2025-03-31")
    assert csv_resp.mimetype == "text/csv"
    text = csv_resp.data.decode("utf-8-sig")
    assert text.splitlines()[0].startswith("date,dni,employee,day_type")
    assert "2025-03-03,12345678,Ana Pérez,WORKED" in text

    monthly = client.get("/api/reportes/asistencia/mensual?year=2025&month=3").get_json()
    assert monthly["total"] == 2

    stats = client.get("/api/dashboard/stats").get_json()
    assert stats["hours"]["pendingOvertimeCount"] == 1


def test_detail_excel_export(client):
    _punch_monday(client)

    resp = client.get("/api/reportes/asistencia/detalle.xlsx?start=2025-03-01&end=2025-03-31")

    assert resp.status_code == 200
    assert resp.headers["Content-Disposition"].endswith("attendance_20250301_20250331.xlsx")
    sheet = load_workbook(io.BytesIO(resp.data))["Asistencia"]
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0][:4] == ("date", "dni", "employee", "day_type")
    assert rows[1][:4] == ("2025-03-03", "12345678", "Ana Pérez", "WORKED")
