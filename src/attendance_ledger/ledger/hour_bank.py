from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..common.authz import Actor
from ..common.pagination import Page, PageRequest
from ..common.validators import optional_text, require_non_empty, require_non_zero, require_positive
from ..core.enums import HourBankTxType
from ..core.exceptions import EmployeeNotFound, ValidationError
from ..employees.repository import EmployeeRepository
from .model import LedgerTransaction, NewTransaction, TransactionFilter
from .service import LedgerService


@dataclass(frozen=True)
class HourBankBalance:
    employee_id: int
    total_minutes: int
    is_negative: bool
    last_updated: Optional[datetime] = None


def _minutes(value) -> int:
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        raise ValidationError("minutes must be an integer")
    if isinstance(value, float) and value != minutes:
        raise ValidationError("minutes must be a whole number")
    return minutes


class HourBankService:
    """Hour bank in minutes: credited by approved overtime, debited by compensatory rest and permits."""

    def __init__(self, ledger: LedgerService, employees: EmployeeRepository):
        self._ledger = ledger
        self._employees = employees

    def _require_employee(self, employee_id: int) -> None:
        if self._employees.get_by_id(int(employee_id)) is None:
            raise EmployeeNotFound(f"Employee {employee_id} not found")

    def balance(self, employee_id: int) -> HourBankBalance:
        self._require_employee(employee_id)
        b = self._ledger.get_balance(int(employee_id))
        return HourBankBalance(
            employee_id=b.employee_id,
            total_minutes=int(b.balance),
            is_negative=b.is_negative,
            last_updated=b.last_updated,
        )

    def transactions(
        self,
        employee_id: int,
        *,
        tx_type: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        page: PageRequest | None = None,
    ) -> Page[LedgerTransaction]:
        self._require_employee(employee_id)
        if start and end and end < start:
            raise ValidationError("End date must be on or after start date")
        return self._ledger.list_transactions(
            int(employee_id),
            filters=TransactionFilter(tx_type=tx_type or None, start=start, end=end),
            page=page,
        )

    def adjust(self, *, actor: Actor, employee_id: int, minutes, notes: str) -> HourBankBalance:
        minutes = require_non_zero(_minutes(minutes), "minutes")
        self._require_employee(employee_id)
        self._ledger.post(
            actor,
            NewTransaction(
                employee_id=int(employee_id),
                tx_type=HourBankTxType.MANUAL_ADJUSTMENT.value,
                delta=Decimal(minutes),
                notes=require_non_empty(notes, "Notes"),
            ),
        )
        return self.balance(employee_id)

    def compensatory_rest(self, *, actor: Actor, employee_id: int, minutes, notes: Optional[str] = None) -> HourBankBalance:
        minutes = require_positive(_minutes(minutes), "minutes")
        self._require_employee(employee_id)
        self._ledger.post(
            actor,
            NewTransaction(
                employee_id=int(employee_id),
                tx_type=HourBankTxType.COMPENSATORY_REST.value,
                delta=Decimal(-minutes),
                notes=optional_text(notes),
            ),
        )
        return self.balance(employee_id)

    def permit(
        self,
        *,
        actor: Actor,
        employee_id: int,
        minutes,
        reason: str,
        notes: Optional[str] = None,
    ) -> HourBankBalance:
        minutes = require_positive(_minutes(minutes), "minutes")
        self._require_employee(employee_id)
        self._ledger.post(
            actor,
            NewTransaction(
                employee_id=int(employee_id),
                tx_type=HourBankTxType.PERMIT.value,
                delta=Decimal(-minutes),
                reason=require_non_empty(reason, "Reason"),
                notes=optional_text(notes),
            ),
        )
        return self.balance(employee_id)

    def post_overtime(
        self,
        *,
        actor: Actor,
        employee_id: int,
        work_date: date,
        minutes: int,
        notes: Optional[str] = None,
    ) -> LedgerTransaction:
        """OVERTIME_ACCRUAL from the overtime workflow; negative minutes reverse an earlier approval."""
        return self._ledger.post(
            actor,
            NewTransaction(
                employee_id=int(employee_id),
                tx_type=HourBankTxType.OVERTIME_ACCRUAL.value,
                delta=Decimal(int(minutes)),
                notes=optional_text(notes),
                source_ref=f"attendance:{int(employee_id)}:{work_date.isoformat()}",
            ),
            system=True,
        )

    def debtors(self) -> list[dict]:
        """Employees whose balance is negative, most indebted first."""
        heads = self._ledger.negative_heads()
        employees = self._employees.get_many([h.employee_id for h in heads])
        out = []
        for h in heads:
            employee = employees.get(h.employee_id)
            out.append(
                {
                    "employee": employee.summary() if employee else {"id": h.employee_id},
                    "totalMinutes": int(h.balance),
                    "lastUpdated": h.updated_at,
                }
            )
        return out
