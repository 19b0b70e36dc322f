from __future__ import annotations

import csv
import io
from datetime import date

import pandas as pd
from flask import Flask, jsonify, request, send_file

from ..common.http import arg_date, arg_int, page_request, paginated, parse_enum
from ..core.enums import DayType, RecordStatus
from ..container import Container

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

DETAIL_CSV_FIELDS = [
    "date",
    "dni",
    "employee",
    "day_type",
    "status",
    "scheduled_minutes",
    "effective_minutes",
    "late_minutes",
    "overtime_raw_minutes",
    "overtime_status",
    "overtime_effective_minutes",
    "document_ref",
]


def register(app: Flask, container: Container) -> None:
    def _range() -> tuple[date, date]:
        today = date.today()
        return (
            arg_date("start", default=today.replace(day=1)),
            arg_date("end", default=today),
        )

    @app.route("/api/reportes/asistencia/detalle", methods=["GET"], endpoint="report_detail")
    def report_detail():
        start, end = _range()
        page = container.report_service.detail(
            start=start,
            end=end,
            employee_id=arg_int("employeeId"),
            status=parse_enum(RecordStatus, request.args.get("status"), "status"),
            day_type=parse_enum(DayType, request.args.get("dayType"), "dayType"),
            page=page_request(),
        )
        return paginated(page)

    @app.route("/api/reportes/asistencia/detalle.csv", methods=["GET"], endpoint="report_detail_csv")
    def report_detail_csv():
        start, end = _range()
        rows = container.report_service.detail_rows(
            start=start,
            end=end,
            employee_id=arg_int("employeeId"),
            status=parse_enum(RecordStatus, request.args.get("status"), "status"),
            day_type=parse_enum(DayType, request.args.get("dayType"), "dayType"),
        )

        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=DETAIL_CSV_FIELDS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)

        filename = f"attendance_{start.strftime('%Y%m%d')}_{end.strftime('%Y%m%d')}.csv"
        return app.response_class(
            out.getvalue().encode("utf-8-sig"),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/api/reportes/asistencia/detalle.xlsx", methods=["GET"], endpoint="report_detail_xlsx")
    def report_detail_xlsx():
        start, end = _range()
        rows = container.report_service.detail_rows(
            start=start,
            end=end,
            employee_id=arg_int("employeeId"),
            status=parse_enum(RecordStatus, request.args.get("status"), "status"),
            day_type=parse_enum(DayType, request.args.get("dayType"), "dayType"),
        )

        df = pd.DataFrame(rows, columns=DETAIL_CSV_FIELDS)
        output = io.BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Asistencia")
        output.seek(0)

        return send_file(
            output,
            download_name=f"attendance_{start.strftime('%Y%m%d')}_{end.strftime('%Y%m%d')}.xlsx",
            as_attachment=True,
            mimetype=XLSX_MIMETYPE,
        )

    @app.route("/api/reportes/asistencia/mensual", methods=["GET"], endpoint="report_monthly")
    def report_monthly():
        today = date.today()
        page = container.report_service.monthly(
            year=arg_int("year", default=today.year),
            month=arg_int("month", default=today.month),
            employee_id=arg_int("employeeId"),
            page=page_request(),
        )
        return paginated(page)

    @app.route("/api/reportes/asistencia/tardanzas", methods=["GET"], endpoint="report_tardiness")
    def report_tardiness():
        start, end = _range()
        page = container.report_service.tardiness(
            start=start,
            end=end,
            employee_id=arg_int("employeeId"),
            page=page_request(),
        )
        return paginated(page)

    @app.route("/api/reportes/asistencia/ausencias", methods=["GET"], endpoint="report_absences")
    def report_absences():
        start, end = _range()
        page = container.report_service.absences(
            start=start,
            end=end,
            day_type=parse_enum(DayType, request.args.get("dayType"), "dayType"),
            employee_id=arg_int("employeeId"),
            page=page_request(),
        )
        return paginated(page)

    @app.route("/api/dashboard/stats", methods=["GET"], endpoint="dashboard_stats")
    def dashboard_stats():
        stats = container.report_service.stats(today=date.today())
        return jsonify({"hours": stats.to_dict()})
