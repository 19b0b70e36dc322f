from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from ..common.pagination import Page, PageRequest
from ..core.enums import LedgerName
from .model import LedgerHead, LedgerTransaction, NewTransaction, TransactionFilter


class LedgerRepository(Protocol):
    """Storage for every ledger; rows are partitioned by `ledger`."""

    def lock_head(self, ledger: LedgerName, employee_id: int) -> LedgerHead:
        """Create the head if missing and lock it until the surrounding transaction ends."""

        raise NotImplementedError

    def get_head(self, ledger: LedgerName, employee_id: int) -> Optional[LedgerHead]:
        raise NotImplementedError

    def update_head(
        self,
        ledger: LedgerName,
        employee_id: int,
        *,
        balance: Decimal,
        last_transaction_id: int,
    ) -> None:
        raise NotImplementedError

    def set_frozen(self, ledger: LedgerName, employee_id: int, frozen: bool) -> None:
        raise NotImplementedError

    def append(
        self,
        ledger: LedgerName,
        tx: NewTransaction,
        *,
        balance_after: Decimal,
        created_at: datetime,
        created_by: Optional[int] = None,
        created_by_username: Optional[str] = None,
    ) -> LedgerTransaction:
        raise NotImplementedError

    def last_transaction(self, ledger: LedgerName, employee_id: int) -> Optional[LedgerTransaction]:
        raise NotImplementedError

    def replay(self, ledger: LedgerName, employee_id: int) -> Sequence[LedgerTransaction]:
        """Every transaction in creation order (created_at, transaction_id)."""

        raise NotImplementedError

    def search(
        self,
        ledger: LedgerName,
        employee_id: int,
        filters: TransactionFilter,
        page: PageRequest,
    ) -> Page[LedgerTransaction]:
        """Newest first."""

        raise NotImplementedError

    def list_heads(self, ledger: LedgerName, *, negative_only: bool = False) -> Sequence[LedgerHead]:
        raise NotImplementedError

    def period_exists(self, ledger: LedgerName, employee_id: int, tx_type: str, period_from: date) -> bool:
        raise NotImplementedError

    def sum_by_type(self, ledger: LedgerName, employee_id: int, tx_type: str) -> Decimal:
        raise NotImplementedError
