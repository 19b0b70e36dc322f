from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Optional

from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository, RecordQuery
from ..common.authz import Actor, require_role
from ..common.locks import KeyedLock
from ..common.validators import optional_text, require_non_empty
from ..core.enums import OvertimeStatus, Role
from ..core.exceptions import RecordNotFound
from ..database.connection import TransactionManager
from ..employees.repository import EmployeeRepository
from ..ledger.hour_bank import HourBankService
from ..punches.repository import PunchRepository

logger = logging.getLogger(__name__)


class OvertimeService:
    """NONE -> PENDING -> APPROVED | REJECTED.

    Approval and its OVERTIME_ACCRUAL posting commit together or not at all.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        punches: PunchRepository,
        employees: EmployeeRepository,
        hour_bank: HourBankService,
        tx_manager: TransactionManager,
        *,
        day_locks: KeyedLock | None = None,
    ):
        self._attendance = attendance
        self._punches = punches
        self._employees = employees
        self._hour_bank = hour_bank
        self._tx = tx_manager
        self._locks = day_locks or KeyedLock()

    def _load(self, employee_id: int, work_date: date) -> AttendanceRecord:
        record = self._attendance.get(int(employee_id), work_date, for_update=True)
        if record is None:
            raise RecordNotFound(f"No attendance record for employee {employee_id} on {work_date.isoformat()}")
        return record.copy()

    def approve(
        self,
        *,
        actor: Actor,
        employee_id: int,
        work_date: date,
        notes: Optional[str] = None,
        minutes: Optional[int] = None,
    ) -> AttendanceRecord:
        """Approve pending overtime; `minutes` may grant less than the raw overtime."""
        require_role(actor, Role.SUPERVISOR)
        notes = optional_text(notes)

        with self._locks.hold((int(employee_id), work_date)):
            with self._tx.transaction():
                record = self._load(employee_id, work_date)
                granted = record.approve_overtime(minutes=minutes, notes=notes)
                saved = self._attendance.save(record)
                self._hour_bank.post_overtime(
                    actor=actor,
                    employee_id=record.employee_id,
                    work_date=work_date,
                    minutes=granted,
                    notes=notes,
                )

        logger.info(
            "Overtime of employee %s on %s approved by %s: %s of %s minutes",
            employee_id,
            work_date,
            actor.username or actor.user_id,
            granted,
            saved.overtime_raw_minutes,
        )
        return self._with_punches(saved)

    def reject(self, *, actor: Actor, employee_id: int, work_date: date, notes: Optional[str]) -> AttendanceRecord:
        require_role(actor, Role.SUPERVISOR)
        notes = require_non_empty(notes, "Notes")

        with self._locks.hold((int(employee_id), work_date)):
            with self._tx.transaction():
                record = self._load(employee_id, work_date)
                record.reject_overtime(notes=notes)
                saved = self._attendance.save(record)

        logger.info(
            "Overtime of employee %s on %s rejected by %s",
            employee_id,
            work_date,
            actor.username or actor.user_id,
        )
        return self._with_punches(saved)

    def list_pending(self) -> list[dict]:
        """Pending overtime, oldest first, with the employee summary attached."""
        records = self._attendance.list_all(RecordQuery(overtime_status=OvertimeStatus.PENDING))
        employees = self._employees.get_many({r.employee_id for r in records})
        out = []
        for r in sorted(records, key=lambda r: (r.work_date, r.employee_id)):
            employee = employees.get(r.employee_id)
            out.append({"record": r, "employee": employee.summary() if employee else {"id": r.employee_id}})
        return out

    def _with_punches(self, record: AttendanceRecord) -> AttendanceRecord:
        return replace(record, punches=tuple(self._punches.list_for_day(record.employee_id, record.work_date)))
