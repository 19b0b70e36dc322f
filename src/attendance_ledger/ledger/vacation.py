from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from ..common.authz import Actor, require_role
from ..common.datetime_utils import add_years
from ..common.pagination import Page, PageRequest
from ..common.validators import optional_text, require_non_empty
from ..core.constants import VACATION_DAYS_PER_YEAR
from ..core.enums import Role, VacationTxType
from ..core.exceptions import ConflictError, DomainError, EmployeeNotFound, ValidationError
from ..employees.repository import EmployeeRepository
from .model import LedgerTransaction, NewTransaction, TransactionFilter
from .service import LedgerService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VacationBalance:
    employee_id: int
    available_days: Decimal
    used_days: Decimal
    period_start: Optional[date] = None
    is_negative: bool = False
    last_updated: Optional[datetime] = None


@dataclass
class AccrualRun:
    """Outcome of one anniversary accrual pass."""

    as_of: date
    accrued: list = field(default_factory=list)
    skipped: int = 0
    errors: list = field(default_factory=list)


class VacationService:
    """Vacation days: credited by yearly accrual, debited by usage, corrected by manual adjustment."""

    def __init__(
        self,
        ledger: LedgerService,
        employees: EmployeeRepository,
        *,
        days_per_year: int = VACATION_DAYS_PER_YEAR,
    ):
        self._ledger = ledger
        self._employees = employees
        self._days_per_year = int(days_per_year)

    def _require_employee(self, employee_id: int):
        employee = self._employees.get_by_id(int(employee_id))
        if employee is None:
            raise EmployeeNotFound(f"Employee {employee_id} not found")
        return employee

    def balance(self, employee_id: int) -> VacationBalance:
        self._require_employee(employee_id)
        b = self._ledger.get_balance(int(employee_id))
        used = -self._ledger.total_of(int(employee_id), VacationTxType.USAGE.value)

        period_start = None
        for tx in self._ledger.history(int(employee_id)):
            if tx.tx_type == VacationTxType.ACCRUAL.value and tx.period_from is not None:
                if period_start is None or tx.period_from > period_start:
                    period_start = tx.period_from

        return VacationBalance(
            employee_id=b.employee_id,
            available_days=b.balance,
            used_days=used,
            period_start=period_start,
            is_negative=b.is_negative,
            last_updated=b.last_updated,
        )

    def transactions(self, employee_id: int, *, page: PageRequest | None = None) -> Page[LedgerTransaction]:
        self._require_employee(employee_id)
        return self._ledger.list_transactions(int(employee_id), filters=TransactionFilter(), page=page)

    def accrue(
        self,
        *,
        actor: Actor,
        employee_id: int,
        days,
        period_start: date,
        notes: Optional[str] = None,
    ) -> VacationBalance:
        """Credit `days` for the service year starting at `period_start`. Once per period."""
        if period_start is None:
            raise ValidationError("periodStart is required")
        self._require_employee(employee_id)
        if self._period_accrued(int(employee_id), period_start):
            raise ConflictError(f"Vacation for the period starting {period_start.isoformat()} was already accrued")

        self._ledger.post(
            actor,
            NewTransaction(
                employee_id=int(employee_id),
                tx_type=VacationTxType.ACCRUAL.value,
                delta=self._ledger.kind.normalize(days),
                notes=optional_text(notes),
                period_from=period_start,
                period_to=add_years(period_start, 1) - timedelta(days=1),
            ),
        )
        return self.balance(employee_id)

    def adjust(self, *, actor: Actor, employee_id: int, days, notes: str) -> VacationBalance:
        self._require_employee(employee_id)
        self._ledger.post(
            actor,
            NewTransaction(
                employee_id=int(employee_id),
                tx_type=VacationTxType.MANUAL_ADJUSTMENT.value,
                delta=self._ledger.kind.normalize(days),
                notes=require_non_empty(notes, "Notes"),
            ),
        )
        return self.balance(employee_id)

    def use(self, *, actor: Actor, employee_id: int, days, notes: str) -> VacationBalance:
        self._require_employee(employee_id)
        amount = self._ledger.kind.normalize(days)
        if amount <= 0:
            raise ValidationError("days must be greater than zero")
        self._ledger.post(
            actor,
            NewTransaction(
                employee_id=int(employee_id),
                tx_type=VacationTxType.USAGE.value,
                delta=-amount,
                notes=require_non_empty(notes, "Notes"),
            ),
        )
        return self.balance(employee_id)

    def accrue_anniversaries(self, *, actor: Actor, as_of: date) -> AccrualRun:
        """Credit the most recently completed service year of every active employee.

        Years already accrued are skipped, so the run is safe to repeat.
        """
        require_role(actor, Role.ADMIN)
        run = AccrualRun(as_of=as_of)

        for employee in self._employees.list_active():
            period_start = self._last_completed_year_start(employee.hire_date, as_of)
            if period_start is None or self._period_accrued(employee.employee_id, period_start):
                run.skipped += 1
                continue
            try:
                self._ledger.post(
                    actor,
                    NewTransaction(
                        employee_id=employee.employee_id,
                        tx_type=VacationTxType.ACCRUAL.value,
                        delta=Decimal(self._days_per_year),
                        notes="Anniversary accrual",
                        period_from=period_start,
                        period_to=add_years(period_start, 1) - timedelta(days=1),
                    ),
                )
            except DomainError as e:
                logger.warning("Vacation accrual failed for employee %s: %s", employee.employee_id, e)
                run.errors.append({"employeeId": employee.employee_id, "reason": str(e)})
                continue
            run.accrued.append({"employeeId": employee.employee_id, "periodStart": period_start})

        logger.info(
            "Vacation accrual as of %s: %s accrued, %s skipped, %s failed",
            as_of,
            len(run.accrued),
            run.skipped,
            len(run.errors),
        )
        return run

    def _period_accrued(self, employee_id: int, period_start: date) -> bool:
        return any(
            tx.tx_type == VacationTxType.ACCRUAL.value and tx.period_from == period_start
            for tx in self._ledger.history(employee_id)
        )

    @staticmethod
    def _last_completed_year_start(hire_date: Optional[date], as_of: date) -> Optional[date]:
        if hire_date is None:
            return None
        years = as_of.year - hire_date.year
        if add_years(hire_date, years) > as_of:
            years -= 1
        if years < 1:
            return None
        return add_years(hire_date, years - 1)
