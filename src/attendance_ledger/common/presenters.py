"""JSON shapes returned by the HTTP layer (camelCase, ISO dates)."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional


def iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def number(value: Decimal, unit: str):
    """Minutes are whole numbers, days keep their fraction."""
    if value is None:
        return None
    return int(value) if unit == "minutes" else float(value)


def punch_json(p) -> dict:
    return {
        "id": p.punch_id,
        "employeeId": p.employee_id,
        "punchedAt": iso(p.punched_at),
        "source": p.source.value,
        "notes": p.notes,
        "createdBy": p.created_by_username,
        "createdAt": iso(p.created_at),
    }


def record_json(r, employee: Optional[dict] = None) -> dict:
    return {
        "id": r.record_id,
        "employeeId": r.employee_id,
        "date": iso(r.work_date),
        "dayType": r.day_type.value,
        "computedDayType": r.computed_day_type.value,
        "status": r.status.value,
        "scheduledMinutes": r.scheduled_minutes,
        "effectiveMinutes": r.effective_minutes,
        "lateMinutes": r.late_minutes,
        "overtimeRawMinutes": r.overtime_raw_minutes,
        "overtimeEffectiveMinutes": r.overtime_effective_minutes,
        "overtimeMultiplier": r.overtime_multiplier,
        "overtimeStatus": r.overtime_status.value,
        "overtimeNotes": r.overtime_notes,
        "isHoliday": r.is_holiday,
        "isNightShift": r.is_night_shift,
        "overrideDayType": r.override_day_type.value if r.override_day_type else None,
        "documentRef": r.document_ref,
        "overrideNotes": r.override_notes,
        "overrideBy": r.override_by,
        "revision": r.revision,
        "employee": employee,
        "punches": [punch_json(p) for p in r.punches],
        "createdAt": iso(r.created_at),
        "updatedAt": iso(r.updated_at),
    }


def correction_json(c) -> dict:
    return {
        "id": c.correction_id,
        "action": c.action,
        "changes": c.changes,
        "notes": c.notes,
        "createdBy": c.created_by_username,
        "createdAt": iso(c.created_at),
    }


def transaction_json(tx, unit: str) -> dict:
    return {
        "id": tx.transaction_id,
        "employeeId": tx.employee_id,
        "type": tx.tx_type,
        "delta": number(tx.delta, unit),
        "balanceAfter": number(tx.balance_after, unit),
        "notes": tx.notes,
        "reason": tx.reason,
        "periodFrom": iso(tx.period_from),
        "periodTo": iso(tx.period_to),
        "sourceRef": tx.source_ref,
        "createdBy": tx.created_by_username,
        "createdAt": iso(tx.created_at),
    }


def schedule_json(s) -> dict:
    return {
        "id": s.schedule_id,
        "name": s.name,
        "effectiveFrom": iso(s.effective_from),
        "notes": s.notes,
        "createdBy": s.created_by_username,
        "createdAt": iso(s.created_at),
        "days": [
            {
                "dayOfWeek": d.day_of_week,
                "isWorkDay": d.is_work_day,
                "startTime": iso(d.start_time),
                "endTime": iso(d.end_time),
                "entryGraceMins": d.entry_grace_mins,
                "exitGraceMins": d.exit_grace_mins,
                "scheduledMinutes": d.scheduled_minutes,
            }
            for d in s.days
        ],
    }


def holiday_json(h, occurrence: Optional[date] = None) -> dict:
    return {
        "id": h.holiday_id,
        "date": iso(occurrence or h.holiday_date),
        "name": h.name,
        "isNational": h.is_national,
        "isRecurring": h.is_recurring,
    }


def mapping_json(m, employee: Optional[dict] = None) -> dict:
    return {
        "id": m.mapping_id,
        "biometricId": m.biometric_id,
        "employeeId": m.employee_id,
        "isActive": m.is_active,
        "notes": m.notes,
        "createdAt": iso(m.created_at),
        "employee": employee,
    }
