from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import LedgerName


@dataclass(frozen=True)
class LedgerTransaction:
    """Immutable ledger entry. `balance_after` is the running total once this entry applied."""

    transaction_id: int
    ledger: LedgerName
    employee_id: int
    tx_type: str
    delta: Decimal
    balance_after: Decimal
    created_at: datetime
    notes: Optional[str] = None
    reason: Optional[str] = None
    period_from: Optional[date] = None
    period_to: Optional[date] = None
    source_ref: Optional[str] = None
    created_by: Optional[int] = None
    created_by_username: Optional[str] = None


@dataclass(frozen=True)
class LedgerHead:
    """Materialized balance for one (ledger, employee). The row that gets locked around postings."""

    ledger: LedgerName
    employee_id: int
    balance: Decimal = Decimal("0")
    last_transaction_id: Optional[int] = None
    is_frozen: bool = False
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class NewTransaction:
    employee_id: int
    tx_type: str
    delta: Decimal
    notes: Optional[str] = None
    reason: Optional[str] = None
    period_from: Optional[date] = None
    period_to: Optional[date] = None
    source_ref: Optional[str] = None


@dataclass(frozen=True)
class Balance:
    employee_id: int
    balance: Decimal
    is_negative: bool
    last_updated: Optional[datetime] = None
    last_transaction_id: Optional[int] = None


@dataclass(frozen=True)
class TransactionFilter:
    tx_type: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None
