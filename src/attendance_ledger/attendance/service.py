from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Optional

from ..common.authz import SYSTEM_ACTOR, Actor, require_role
from ..common.datetime_utils import iter_dates, now_local, week_bounds
from ..common.locks import KeyedLock
from ..common.pagination import Page, PageRequest
from ..common.validators import optional_text, require_date_range, require_non_empty
from ..core.enums import DOCUMENTED_DAY_TYPES, DayType, OvertimeStatus, PunchSource, Role
from ..core.exceptions import (
    DocumentRefRequired,
    DomainError,
    EmployeeNotFound,
    RecordClosed,
    RecordNotFound,
    ValidationError,
)
from ..database.connection import TransactionManager
from ..employees.repository import EmployeeRepository
from ..ledger.hour_bank import HourBankService
from ..punches.repository import PunchRepository
from ..schedules.service import CalendarChange, ScheduleService
from .compiler import AttendanceCompiler
from .model import AttendanceRecord
from .repository import AttendanceRepository, RecordQuery

logger = logging.getLogger(__name__)


class AttendanceService:
    """Compiles employee-days and applies the manual actions allowed on them.

    Every mutation of one (employee, date) runs under the day's keyed lock and
    inside one transaction, and is saved through the record's revision check.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        punches: PunchRepository,
        employees: EmployeeRepository,
        schedules: ScheduleService,
        hour_bank: HourBankService,
        tx_manager: TransactionManager,
        *,
        compiler: AttendanceCompiler | None = None,
        day_locks: KeyedLock | None = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._attendance = attendance
        self._punches = punches
        self._employees = employees
        self._schedules = schedules
        self._hour_bank = hour_bank
        self._tx = tx_manager
        self._compiler = compiler or AttendanceCompiler()
        self._locks = day_locks or KeyedLock()
        self._clock = clock

    def _require_employee(self, employee_id: int) -> None:
        if self._employees.get_by_id(int(employee_id)) is None:
            raise EmployeeNotFound(f"Employee {employee_id} not found")

    # Compilation

    def _compile_locked(self, employee_id: int, work_date: date, *, actor: Actor) -> AttendanceRecord:
        """Recompile one day. Caller holds the day lock and an open transaction."""
        existing = self._attendance.get(employee_id, work_date, for_update=True)
        if existing is not None and existing.is_closed:
            raise RecordClosed(f"Record {work_date.isoformat()} of employee {employee_id} is closed")

        punches = self._punches.list_for_day(employee_id, work_date)
        resolved = self._schedules.resolve(employee_id, work_date)
        computation = self._compiler.compile(
            employee_id=employee_id,
            work_date=work_date,
            resolved=resolved,
            punches=punches,
            override=existing.override_day_type if existing else None,
        )

        if existing is None:
            record = AttendanceRecord.new(employee_id, work_date, computation)
        else:
            record = existing.copy()
            reversed_minutes = record.recompute(computation)
            if reversed_minutes:
                self._hour_bank.post_overtime(
                    actor=actor,
                    employee_id=employee_id,
                    work_date=work_date,
                    minutes=-reversed_minutes,
                    notes="Approved overtime reversed: the day was recompiled with different overtime",
                )
                logger.warning(
                    "Employee %s on %s: approved overtime of %s minutes reversed after recompilation",
                    employee_id,
                    work_date,
                    reversed_minutes,
                )

        saved = self._attendance.save(record)
        return replace(saved, punches=tuple(punches))

    def recompile(self, employee_id: int, work_date: date, *, actor: Actor = SYSTEM_ACTOR) -> AttendanceRecord:
        with self._locks.hold((int(employee_id), work_date)):
            with self._tx.transaction():
                return self._compile_locked(int(employee_id), work_date, actor=actor)

    def recalc_week(self, *, actor: Actor, employee_id: int, week_of: date) -> dict:
        """Recompile Monday..Sunday around `week_of`, up to today. Closed days are left alone."""
        require_role(actor, Role.SUPERVISOR)
        self._require_employee(employee_id)

        start, end = week_bounds(week_of)
        end = min(end, self._clock().date())
        result = {"recalculated": 0, "skipped": 0, "errors": []}
        for day in iter_dates(start, end):
            try:
                self.recompile(int(employee_id), day, actor=actor)
                result["recalculated"] += 1
            except RecordClosed:
                result["skipped"] += 1
            except DomainError as e:
                result["errors"].append({"date": day.isoformat(), "reason": str(e)})

        logger.info(
            "Week of %s recalculated for employee %s by %s: %s days, %s closed, %s errors",
            start,
            employee_id,
            actor.username or actor.user_id,
            result["recalculated"],
            result["skipped"],
            len(result["errors"]),
        )
        return result

    def on_calendar_change(self, change: CalendarChange) -> None:
        """Recompile open records affected by a schedule or holiday change."""
        query = RecordQuery(
            start=None if change.start == date.min else change.start,
            end=change.end,
            exclude_closed=True,
        )
        keys = [(e, d) for e, d in self._attendance.list_keys(query) if change.covers(d)]
        failed = 0
        for employee_id, work_date in keys:
            try:
                self.recompile(employee_id, work_date)
            except DomainError as e:
                failed += 1
                logger.warning("Recompiling employee %s on %s failed: %s", employee_id, work_date, e)
        logger.info("Calendar change %s: %s records recompiled, %s failed", change, len(keys) - failed, failed)

    # Punches

    def add_manual_punch(
        self,
        *,
        actor: Actor,
        employee_id: int,
        punched_at: datetime,
        notes: Optional[str] = None,
    ) -> AttendanceRecord:
        require_role(actor, Role.SUPERVISOR)
        notes = require_non_empty(notes, "Notes")
        self._require_employee(employee_id)
        if punched_at > self._clock():
            raise ValidationError("A punch cannot be in the future")
        punched_at = punched_at.replace(microsecond=0)

        work_date = punched_at.date()
        with self._locks.hold((int(employee_id), work_date)):
            with self._tx.transaction():
                existing = self._attendance.get(int(employee_id), work_date)
                if existing is not None and existing.is_closed:
                    raise RecordClosed(f"Record {work_date.isoformat()} is closed")
                self._punches.insert(
                    employee_id=int(employee_id),
                    punched_at=punched_at,
                    source=PunchSource.MANUAL,
                    notes=notes,
                    created_by=actor.user_id,
                    created_by_username=actor.username,
                )
                record = self._compile_locked(int(employee_id), work_date, actor=actor)

        logger.info(
            "Manual punch %s for employee %s added by %s",
            punched_at.isoformat(),
            employee_id,
            actor.username or actor.user_id,
        )
        return record

    # Queries

    def get_day(self, employee_id: int, work_date: date) -> AttendanceRecord:
        record = self._attendance.get(int(employee_id), work_date)
        if record is None:
            raise RecordNotFound(f"No attendance record for employee {employee_id} on {work_date.isoformat()}")
        return replace(record, punches=tuple(self._punches.list_for_day(int(employee_id), work_date)))

    def list_for_employee(
        self,
        employee_id: int,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        status=None,
        day_type=None,
        page: PageRequest | None = None,
    ) -> Page[AttendanceRecord]:
        self._require_employee(employee_id)
        if start is not None and end is not None:
            require_date_range(start, end)
        query = RecordQuery(
            start=start,
            end=end,
            employee_id=int(employee_id),
            status=status,
            day_types=(day_type,) if day_type else (),
        )
        return self._attendance.search(query, page or PageRequest())

    def corrections(self, employee_id: int, work_date: date):
        record = self.get_day(employee_id, work_date)
        return self._attendance.list_corrections(record.record_id)

    # Overrides

    def override(
        self,
        *,
        actor: Actor,
        employee_id: int,
        work_date: date,
        day_type: DayType,
        notes: Optional[str],
        document_ref: Optional[str] = None,
    ) -> AttendanceRecord:
        require_role(actor, Role.SUPERVISOR)
        notes = require_non_empty(notes, "Notes")
        document_ref = optional_text(document_ref)
        if day_type in DOCUMENTED_DAY_TYPES and not document_ref:
            raise DocumentRefRequired(f"A document reference is required for {day_type.value}")
        self._require_employee(employee_id)

        with self._locks.hold((int(employee_id), work_date)):
            with self._tx.transaction():
                record = self._compile_locked(int(employee_id), work_date, actor=actor)
                previous = record.day_type
                record.set_override(day_type, notes=notes, document_ref=document_ref, by=actor.username)
                record = self._save_recomputed(record, actor=actor)
                self._attendance.add_correction(
                    record_id=record.record_id,
                    action="OVERRIDE",
                    changes={"dayType": [previous.value, day_type.value], "documentRef": document_ref},
                    notes=notes,
                    created_by=actor.user_id,
                    created_by_username=actor.username,
                )

        logger.info(
            "Day %s of employee %s overridden to %s by %s",
            work_date,
            employee_id,
            day_type.value,
            actor.username or actor.user_id,
        )
        return record

    def revert_override(
        self,
        *,
        actor: Actor,
        employee_id: int,
        work_date: date,
        notes: Optional[str] = None,
    ) -> AttendanceRecord:
        require_role(actor, Role.ADMIN)

        with self._locks.hold((int(employee_id), work_date)):
            with self._tx.transaction():
                existing = self._attendance.get(int(employee_id), work_date, for_update=True)
                if existing is None:
                    raise RecordNotFound(f"No attendance record for employee {employee_id} on {work_date.isoformat()}")
                if existing.is_closed:
                    raise RecordClosed("Overrides can only be reverted while the pay period is open")
                if not existing.has_override:
                    raise ValidationError("This day has no override to revert")

                record = existing.copy()
                previous = record.override_day_type
                record.clear_override()
                record = self._save_recomputed(record, actor=actor)
                self._attendance.add_correction(
                    record_id=record.record_id,
                    action="REVERT_OVERRIDE",
                    changes={"dayType": [previous.value, record.day_type.value]},
                    notes=optional_text(notes) or "Override reverted",
                    created_by=actor.user_id,
                    created_by_username=actor.username,
                )

        logger.info(
            "Override on %s of employee %s reverted by %s",
            work_date,
            employee_id,
            actor.username or actor.user_id,
        )
        return record

    def _save_recomputed(self, record: AttendanceRecord, *, actor: Actor) -> AttendanceRecord:
        """Recompute `record` in place with its current override and save it."""
        punches = self._punches.list_for_day(record.employee_id, record.work_date)
        resolved = self._schedules.resolve(record.employee_id, record.work_date)
        computation = self._compiler.compile(
            employee_id=record.employee_id,
            work_date=record.work_date,
            resolved=resolved,
            punches=punches,
            override=record.override_day_type,
        )
        reversed_minutes = record.recompute(computation)
        if reversed_minutes:
            self._hour_bank.post_overtime(
                actor=actor,
                employee_id=record.employee_id,
                work_date=record.work_date,
                minutes=-reversed_minutes,
                notes=f"Approved overtime reversed: day reclassified as {record.day_type.value}",
            )
        saved = self._attendance.save(record)
        return replace(saved, punches=tuple(punches))

    # Superuser correction

    def patch(
        self,
        *,
        actor: Actor,
        employee_id: int,
        work_date: date,
        notes: Optional[str],
        effective_minutes: Optional[int] = None,
        overtime_effective_minutes: Optional[int] = None,
    ) -> AttendanceRecord:
        """Direct minute correction, also allowed on closed records. Audited."""
        require_role(actor, Role.SUPERUSER)
        notes = require_non_empty(notes, "Notes")

        with self._locks.hold((int(employee_id), work_date)):
            with self._tx.transaction():
                existing = self._attendance.get(int(employee_id), work_date, for_update=True)
                if existing is None:
                    raise RecordNotFound(f"No attendance record for employee {employee_id} on {work_date.isoformat()}")

                record = existing.copy()
                changes = record.patch(
                    effective_minutes=effective_minutes,
                    overtime_effective_minutes=overtime_effective_minutes,
                )
                if "overtimeEffectiveMinutes" in changes and record.overtime_status == OvertimeStatus.APPROVED:
                    old, new = changes["overtimeEffectiveMinutes"]
                    if new != old:
                        self._hour_bank.post_overtime(
                            actor=actor,
                            employee_id=record.employee_id,
                            work_date=work_date,
                            minutes=new - old,
                            notes=f"Overtime corrected: {notes}",
                        )

                saved = self._attendance.save(record)
                self._attendance.add_correction(
                    record_id=saved.record_id,
                    action="PATCH",
                    changes={k: list(v) for k, v in changes.items()},
                    notes=notes,
                    created_by=actor.user_id,
                    created_by_username=actor.username,
                )

        logger.warning(
            "Record %s of employee %s patched by %s: %s",
            work_date,
            employee_id,
            actor.username or actor.user_id,
            changes,
        )
        return replace(saved, punches=tuple(self._punches.list_for_day(int(employee_id), work_date)))

    # Pay period

    def close_period(self, *, actor: Actor, start: date, end: date) -> int:
        """Mark every open record in [start, end] CLOSED. Refused while overtime is still pending."""
        require_role(actor, Role.ADMIN)
        require_date_range(start, end)

        pending = self._attendance.count(
            RecordQuery(start=start, end=end, overtime_status=OvertimeStatus.PENDING, exclude_closed=True)
        )
        if pending:
            raise ValidationError(f"{pending} records in the period still have pending overtime")

        closed = 0
        with self._tx.transaction():
            for record in self._attendance.list_all(RecordQuery(start=start, end=end, exclude_closed=True)):
                with self._locks.hold((record.employee_id, record.work_date)):
                    current = self._attendance.get(record.employee_id, record.work_date, for_update=True)
                    if current is None or current.is_closed:
                        continue
                    current = current.copy()
                    current.close()
                    self._attendance.save(current)
                    closed += 1

        logger.info("Pay period %s..%s closed by %s: %s records", start, end, actor.username or actor.user_id, closed)
        return closed
