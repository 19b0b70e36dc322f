from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Mapping, Type

from ..core.enums import HourBankTxType, LedgerName, VacationTxType
from ..core.exceptions import ValidationError
from .model import NewTransaction

CREDIT = 1
DEBIT = -1
EITHER = 0


@dataclass(frozen=True)
class TxPolicy:
    """What a transaction kind demands before it may be posted."""

    sign: int = EITHER
    requires_notes: bool = False
    requires_reason: bool = False
    requires_period: bool = False
    # Posted by workflows (overtime approval), never directly through the ledger endpoints.
    system_only: bool = False


@dataclass(frozen=True)
class LedgerKind:
    """Parameterizes the generic ledger: name, unit, closed set of kinds and their policies."""

    name: LedgerName
    unit: str
    tx_types: Type[Enum]
    policies: Mapping[str, TxPolicy] = field(default_factory=dict)
    quantum: Decimal = Decimal("1")

    def type_value(self, tx_type) -> str:
        try:
            return self.tx_types(tx_type).value
        except ValueError:
            raise ValidationError(f"Unknown {self.name.value} transaction type {tx_type!r}")

    def policy_for(self, tx_type) -> TxPolicy:
        value = self.type_value(tx_type)
        if value not in self.policies:
            raise ValidationError(f"No policy for {self.name.value} transaction type {value}")
        return self.policies[value]

    def normalize(self, amount) -> Decimal:
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"Invalid amount {amount!r}")
        if not value.is_finite():
            raise ValidationError(f"Invalid amount {amount!r}")
        if value != value.quantize(self.quantum):
            raise ValidationError(f"{self.unit.capitalize()} must be a multiple of {self.quantum}")
        return value.quantize(self.quantum)

    def validate(self, tx: NewTransaction, *, system: bool = False) -> None:
        policy = self.policy_for(tx.tx_type)
        if policy.system_only and not system:
            raise ValidationError(f"{tx.tx_type} transactions are posted automatically")
        if tx.delta == 0:
            raise ValidationError("Transaction amount must not be zero")
        if policy.sign == CREDIT and tx.delta < 0:
            raise ValidationError(f"{tx.tx_type} must be a credit")
        if policy.sign == DEBIT and tx.delta > 0:
            raise ValidationError(f"{tx.tx_type} must be a debit")
        if policy.requires_notes and not (tx.notes or "").strip():
            raise ValidationError(f"Notes are required for {tx.tx_type}")
        if policy.requires_reason and not (tx.reason or "").strip():
            raise ValidationError(f"A reason is required for {tx.tx_type}")
        if policy.requires_period and tx.period_from is None:
            raise ValidationError(f"A period start is required for {tx.tx_type}")


HOUR_BANK = LedgerKind(
    name=LedgerName.HOUR_BANK,
    unit="minutes",
    tx_types=HourBankTxType,
    policies={
        HourBankTxType.OVERTIME_ACCRUAL.value: TxPolicy(system_only=True),
        HourBankTxType.COMPENSATORY_REST.value: TxPolicy(sign=DEBIT),
        HourBankTxType.PERMIT.value: TxPolicy(sign=DEBIT, requires_reason=True),
        HourBankTxType.MANUAL_ADJUSTMENT.value: TxPolicy(requires_notes=True),
    },
)

VACATION = LedgerKind(
    name=LedgerName.VACATION,
    unit="days",
    tx_types=VacationTxType,
    policies={
        VacationTxType.ACCRUAL.value: TxPolicy(sign=CREDIT, requires_period=True),
        VacationTxType.USAGE.value: TxPolicy(sign=DEBIT, requires_notes=True),
        VacationTxType.MANUAL_ADJUSTMENT.value: TxPolicy(requires_notes=True),
    },
    quantum=Decimal("0.01"),
)
