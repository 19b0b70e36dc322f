from __future__ import annotations

from datetime import date

from flask import Flask, jsonify

from ..common.datetime_utils import parse_hhmm, parse_iso_date
from ..common.http import arg_bool, arg_int, body_date, current_actor, json_body
from ..common.presenters import holiday_json, schedule_json
from ..core.exceptions import ValidationError
from ..container import Container
from .model import NewSchedule, NewScheduleDay


def _schedule_day(raw) -> NewScheduleDay:
    if not isinstance(raw, dict):
        raise ValidationError("Each schedule day must be an object")
    try:
        day_of_week = int(raw.get("dayOfWeek"))
    except (TypeError, ValueError):
        raise ValidationError("dayOfWeek must be an integer between 0 and 6")
    try:
        entry_grace = int(raw.get("entryGraceMins") or 0)
        exit_grace = int(raw.get("exitGraceMins") or 0)
    except (TypeError, ValueError):
        raise ValidationError("Grace minutes must be integers")
    return NewScheduleDay(
        day_of_week=day_of_week,
        is_work_day=arg_bool(raw.get("isWorkDay")),
        start_time=parse_hhmm(raw["startTime"]) if raw.get("startTime") else None,
        end_time=parse_hhmm(raw["endTime"]) if raw.get("endTime") else None,
        entry_grace_mins=entry_grace,
        exit_grace_mins=exit_grace,
    )


def register(app: Flask, container: Container) -> None:
    @app.route("/api/horario/actual", methods=["GET"], endpoint="schedule_current")
    def schedule_current():
        return jsonify(schedule_json(container.schedule_service.current(date.today())))

    @app.route("/api/horario/historial", methods=["GET"], endpoint="schedule_history")
    def schedule_history():
        return jsonify([schedule_json(s) for s in container.schedule_service.history()])

    @app.route("/api/horario/por-fecha/<date_s>", methods=["GET"], endpoint="schedule_for_date")
    def schedule_for_date(date_s: str):
        return jsonify(schedule_json(container.schedule_service.for_date(parse_iso_date(date_s))))

    @app.route("/api/horario", methods=["POST"], endpoint="schedule_create")
    def schedule_create():
        actor = current_actor()
        data = json_body()
        days = data.get("days")
        if not isinstance(days, list):
            raise ValidationError("days must be a list of seven weekday entries")

        schedule = container.schedule_service.create(
            actor=actor,
            schedule=NewSchedule(
                name=str(data.get("name") or ""),
                effective_from=body_date(data, "effectiveFrom"),
                days=tuple(_schedule_day(d) for d in days),
                notes=data.get("notes"),
            ),
        )
        return jsonify(schedule_json(schedule)), 201

    @app.route("/api/feriados", methods=["GET"], endpoint="holidays_list")
    def holidays_list():
        year = arg_int("year", default=date.today().year)
        items = container.holiday_service.list_for_year(year)
        return jsonify([holiday_json(i["holiday"], i["date"]) for i in items])

    @app.route("/api/feriados", methods=["POST"], endpoint="holidays_create")
    def holidays_create():
        actor = current_actor()
        data = json_body()
        holiday = container.holiday_service.create(
            actor=actor,
            holiday_date=body_date(data, "date"),
            name=str(data.get("name") or ""),
            is_national=arg_bool(data.get("isNational", True)),
            is_recurring=arg_bool(data.get("isRecurring", False)),
        )
        return jsonify(holiday_json(holiday)), 201

    @app.route("/api/feriados/<int:holiday_id>", methods=["DELETE"], endpoint="holidays_delete")
    def holidays_delete(holiday_id: int):
        container.holiday_service.delete(actor=current_actor(), holiday_id=holiday_id)
        return jsonify({"success": True, "message": "Holiday deleted"})
