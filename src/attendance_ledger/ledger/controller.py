from __future__ import annotations

from datetime import date

from flask import Flask, jsonify, request

from ..common.http import arg_date, body_date, current_actor, json_body, page_request, paginated
from ..common.presenters import iso, transaction_json
from ..core.exceptions import ValidationError
from ..container import Container


def _hour_bank_json(b) -> dict:
    return {
        "employeeId": b.employee_id,
        "totalMinutes": b.total_minutes,
        "isNegative": b.is_negative,
        "lastUpdated": iso(b.last_updated),
    }


def _vacation_json(b) -> dict:
    return {
        "employeeId": b.employee_id,
        "availableDays": float(b.available_days),
        "usedDays": float(b.used_days),
        "periodStart": iso(b.period_start),
        "isNegative": b.is_negative,
        "lastUpdated": iso(b.last_updated),
    }


def _amount(data: dict, name: str):
    value = data.get(name)
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(f"{name} is required")
    return value


def register(app: Flask, container: Container) -> None:
    # Hour bank (minutes)

    @app.route("/api/banco-horas/<int:employee_id>", methods=["GET"], endpoint="hour_bank_balance")
    def hour_bank_balance(employee_id: int):
        return jsonify(_hour_bank_json(container.hour_bank_service.balance(employee_id)))

    @app.route(
        "/api/banco-horas/<int:employee_id>/transactions",
        methods=["GET"],
        endpoint="hour_bank_transactions",
    )
    def hour_bank_transactions(employee_id: int):
        page = container.hour_bank_service.transactions(
            employee_id,
            tx_type=(request.args.get("type") or "").strip().upper() or None,
            start=arg_date("start", required=False),
            end=arg_date("end", required=False),
            page=page_request(),
        )
        return paginated(page, lambda tx: transaction_json(tx, "minutes"))

    @app.route("/api/banco-horas/<int:employee_id>/ajuste", methods=["POST"], endpoint="hour_bank_adjust")
    def hour_bank_adjust(employee_id: int):
        actor = current_actor()
        data = json_body()
        balance = container.hour_bank_service.adjust(
            actor=actor,
            employee_id=employee_id,
            minutes=_amount(data, "minutes"),
            notes=data.get("notes"),
        )
        return jsonify(_hour_bank_json(balance)), 201

    @app.route("/api/banco-horas/<int:employee_id>/descanso", methods=["POST"], endpoint="hour_bank_rest")
    def hour_bank_rest(employee_id: int):
        actor = current_actor()
        data = json_body()
        balance = container.hour_bank_service.compensatory_rest(
            actor=actor,
            employee_id=employee_id,
            minutes=_amount(data, "minutes"),
            notes=data.get("notes"),
        )
        return jsonify(_hour_bank_json(balance)), 201

    @app.route("/api/banco-horas/<int:employee_id>/permiso", methods=["POST"], endpoint="hour_bank_permit")
    def hour_bank_permit(employee_id: int):
        actor = current_actor()
        data = json_body()
        balance = container.hour_bank_service.permit(
            actor=actor,
            employee_id=employee_id,
            minutes=_amount(data, "minutes"),
            reason=data.get("reason"),
            notes=data.get("notes"),
        )
        return jsonify(_hour_bank_json(balance)), 201

    @app.route("/api/banco-horas/deudores", methods=["GET"], endpoint="hour_bank_debtors")
    def hour_bank_debtors():
        items = container.hour_bank_service.debtors()
        return jsonify([{**i, "lastUpdated": iso(i["lastUpdated"])} for i in items])

    @app.route("/api/banco-horas/<int:employee_id>/verify", methods=["GET"], endpoint="hour_bank_verify")
    def hour_bank_verify(employee_id: int):
        result = container.hour_bank_ledger.verify(employee_id)
        return jsonify(
            {
                "employeeId": result.employee_id,
                "ok": result.ok,
                "headBalance": int(result.head_balance),
                "replayedBalance": int(result.replayed_balance),
                "transactionCount": result.transaction_count,
                "firstBadTransactionId": result.first_bad_transaction_id,
            }
        )

    @app.route("/api/banco-horas/<int:employee_id>/unfreeze", methods=["POST"], endpoint="hour_bank_unfreeze")
    def hour_bank_unfreeze(employee_id: int):
        container.hour_bank_ledger.unfreeze(actor=current_actor(), employee_id=employee_id)
        return jsonify({"success": True, "message": "Hour bank unfrozen"})

    # Vacation (days)

    @app.route("/api/vacaciones/<int:employee_id>", methods=["GET"], endpoint="vacation_balance")
    def vacation_balance(employee_id: int):
        return jsonify(_vacation_json(container.vacation_service.balance(employee_id)))

    @app.route(
        "/api/vacaciones/<int:employee_id>/transactions",
        methods=["GET"],
        endpoint="vacation_transactions",
    )
    def vacation_transactions(employee_id: int):
        page = container.vacation_service.transactions(employee_id, page=page_request())
        return paginated(page, lambda tx: transaction_json(tx, "days"))

    @app.route("/api/vacaciones/<int:employee_id>/acreditar", methods=["POST"], endpoint="vacation_accrue")
    def vacation_accrue(employee_id: int):
        actor = current_actor()
        data = json_body()
        balance = container.vacation_service.accrue(
            actor=actor,
            employee_id=employee_id,
            days=_amount(data, "days"),
            period_start=body_date(data, "periodStart"),
            notes=data.get("notes"),
        )
        return jsonify(_vacation_json(balance)), 201

    @app.route("/api/vacaciones/<int:employee_id>/ajuste", methods=["POST"], endpoint="vacation_adjust")
    def vacation_adjust(employee_id: int):
        actor = current_actor()
        data = json_body()
        balance = container.vacation_service.adjust(
            actor=actor,
            employee_id=employee_id,
            days=_amount(data, "days"),
            notes=data.get("notes"),
        )
        return jsonify(_vacation_json(balance)), 201

    @app.route("/api/vacaciones/<int:employee_id>/uso", methods=["POST"], endpoint="vacation_use")
    def vacation_use(employee_id: int):
        actor = current_actor()
        data = json_body()
        balance = container.vacation_service.use(
            actor=actor,
            employee_id=employee_id,
            days=_amount(data, "days"),
            notes=data.get("notes"),
        )
        return jsonify(_vacation_json(balance)), 201

    @app.route("/api/vacaciones/acreditar-aniversarios", methods=["POST"], endpoint="vacation_accrual_run")
    def vacation_accrual_run():
        actor = current_actor()
        data = json_body()
        as_of = body_date(data, "asOf") if data.get("asOf") else date.today()
        run = container.vacation_service.accrue_anniversaries(actor=actor, as_of=as_of)
        return jsonify(
            {
                "asOf": iso(run.as_of),
                "accrued": [{**a, "periodStart": iso(a["periodStart"])} for a in run.accrued],
                "skipped": run.skipped,
                "errors": run.errors,
            }
        )
