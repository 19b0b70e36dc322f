from __future__ import annotations

from datetime import date

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..common.http import (
    arg_bool,
    arg_date,
    arg_int,
    body_date,
    body_datetime,
    body_int,
    current_actor,
    json_body,
    page_request,
    paginated,
    parse_enum,
)
from ..common.presenters import correction_json, record_json
from ..core.enums import DayType, RecordStatus
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    def _employee(employee_id: int):
        employee = container.employees_repo.get_by_id(employee_id)
        return employee.summary() if employee else {"id": employee_id}

    def _record(record):
        return jsonify(record_json(record, _employee(record.employee_id)))

    @app.route("/api/asistencia/<int:employee_id>", methods=["GET"], endpoint="attendance_list")
    def attendance_list(employee_id: int):
        page = container.attendance_service.list_for_employee(
            employee_id,
            start=arg_date("start", required=False),
            end=arg_date("end", required=False),
            status=parse_enum(RecordStatus, request.args.get("status"), "status"),
            day_type=parse_enum(DayType, request.args.get("dayType"), "dayType"),
            page=page_request(),
        )
        employee = _employee(employee_id)
        return paginated(page, lambda r: record_json(r, employee))

    @app.route("/api/asistencia/<int:employee_id>/<date_s>", methods=["GET"], endpoint="attendance_day")
    def attendance_day(employee_id: int, date_s: str):
        return _record(container.attendance_service.get_day(employee_id, parse_iso_date(date_s)))

    @app.route("/api/asistencia/<int:employee_id>/<date_s>", methods=["PATCH"], endpoint="attendance_patch")
    def attendance_patch(employee_id: int, date_s: str):
        actor = current_actor()
        data = json_body()
        record = container.attendance_service.patch(
            actor=actor,
            employee_id=employee_id,
            work_date=parse_iso_date(date_s),
            notes=data.get("notes"),
            effective_minutes=body_int(data, "effectiveMinutes", required=False),
            overtime_effective_minutes=body_int(data, "overtimeEffectiveMinutes", required=False),
        )
        return _record(record)

    @app.route(
        "/api/asistencia/<int:employee_id>/<date_s>/corrections",
        methods=["GET"],
        endpoint="attendance_corrections",
    )
    def attendance_corrections(employee_id: int, date_s: str):
        items = container.attendance_service.corrections(employee_id, parse_iso_date(date_s))
        return jsonify([correction_json(c) for c in items])

    @app.route("/api/asistencia/punch", methods=["POST"], endpoint="attendance_punch")
    def attendance_punch():
        actor = current_actor()
        data = json_body()
        record = container.attendance_service.add_manual_punch(
            actor=actor,
            employee_id=body_int(data, "employeeId"),
            punched_at=body_datetime(data, "punchedAt"),
            notes=data.get("notes"),
        )
        return jsonify(record_json(record, _employee(record.employee_id))), 201

    @app.route("/api/asistencia/<int:employee_id>/<date_s>/override", methods=["POST"], endpoint="attendance_override")
    def attendance_override(employee_id: int, date_s: str):
        actor = current_actor()
        data = json_body()
        day_type = parse_enum(DayType, data.get("dayType"), "dayType")
        if day_type is None:
            raise ValidationError("dayType is required")
        record = container.attendance_service.override(
            actor=actor,
            employee_id=employee_id,
            work_date=parse_iso_date(date_s),
            day_type=day_type,
            notes=data.get("notes"),
            document_ref=data.get("documentRef"),
        )
        return _record(record)

    @app.route(
        "/api/asistencia/<int:employee_id>/<date_s>/override",
        methods=["DELETE"],
        endpoint="attendance_revert_override",
    )
    def attendance_revert_override(employee_id: int, date_s: str):
        actor = current_actor()
        data = json_body()
        record = container.attendance_service.revert_override(
            actor=actor,
            employee_id=employee_id,
            work_date=parse_iso_date(date_s),
            notes=data.get("notes"),
        )
        return _record(record)

    @app.route("/api/asistencia/<int:employee_id>/recalc", methods=["POST"], endpoint="attendance_recalc")
    def attendance_recalc(employee_id: int):
        result = container.attendance_service.recalc_week(
            actor=current_actor(),
            employee_id=employee_id,
            week_of=arg_date("weekOf", default=date.today()),
        )
        return jsonify(result)

    @app.route("/api/asistencia/overtime/pending", methods=["GET"], endpoint="overtime_pending")
    def overtime_pending():
        items = container.overtime_service.list_pending()
        return jsonify([record_json(i["record"], i["employee"]) for i in items])

    @app.route(
        "/api/asistencia/<int:employee_id>/<date_s>/overtime/approve",
        methods=["POST"],
        endpoint="overtime_approve",
    )
    def overtime_approve(employee_id: int, date_s: str):
        actor = current_actor()
        data = json_body()
        record = container.overtime_service.approve(
            actor=actor,
            employee_id=employee_id,
            work_date=parse_iso_date(date_s),
            notes=data.get("notes"),
            minutes=body_int(data, "minutes", required=False),
        )
        return _record(record)

    @app.route(
        "/api/asistencia/<int:employee_id>/<date_s>/overtime/reject",
        methods=["POST"],
        endpoint="overtime_reject",
    )
    def overtime_reject(employee_id: int, date_s: str):
        actor = current_actor()
        data = json_body()
        record = container.overtime_service.reject(
            actor=actor,
            employee_id=employee_id,
            work_date=parse_iso_date(date_s),
            notes=data.get("notes"),
        )
        return _record(record)

    @app.route("/api/asistencia/import", methods=["POST"], endpoint="attendance_import")
    def attendance_import():
        actor = current_actor()
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            raise ValidationError("Upload a punch export in the 'file' field")
        result = container.import_reconciler.import_file(
            actor=actor,
            stream=upload.stream,
            filename=upload.filename,
            force_reimport=arg_bool(request.form.get("forceReimport")),
        )
        return jsonify(result.to_dict())

    @app.route("/api/asistencia/<int:employee_id>/monthly", methods=["GET"], endpoint="attendance_monthly")
    def attendance_monthly(employee_id: int):
        today = date.today()
        summary = container.report_service.monthly_summary(
            employee_id,
            arg_int("year", default=today.year),
            arg_int("month", default=today.month),
        )
        return jsonify(summary)

    @app.route("/api/asistencia/close-period", methods=["POST"], endpoint="attendance_close_period")
    def attendance_close_period():
        actor = current_actor()
        data = json_body()
        closed = container.attendance_service.close_period(
            actor=actor,
            start=body_date(data, "start"),
            end=body_date(data, "end"),
        )
        return jsonify({"success": True, "closed": closed})
