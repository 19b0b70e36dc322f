from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional, Sequence

from ..common.authz import Actor, require_role
from ..common.datetime_utils import now_local
from ..common.locks import KeyedLock
from ..common.pagination import Page, PageRequest
from ..core.enums import Role
from ..core.exceptions import LedgerConsistencyError
from ..database.connection import TransactionManager
from .model import Balance, LedgerHead, LedgerTransaction, NewTransaction, TransactionFilter
from .policy import LedgerKind
from .repository import LedgerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Verification:
    """Result of replaying one employee's ledger against its materialized head."""

    employee_id: int
    head_balance: Decimal
    replayed_balance: Decimal
    transaction_count: int
    first_bad_transaction_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.first_bad_transaction_id is None and self.head_balance == self.replayed_balance


class LedgerService:
    """One append-only ledger, parameterized by `LedgerKind`.

    Postings for one employee are serialized twice: by an in-process keyed lock
    and by the database row lock on the ledger head, held for the whole
    read-balance / compute / append / update-head sequence.
    """

    def __init__(
        self,
        kind: LedgerKind,
        repo: LedgerRepository,
        tx_manager: TransactionManager,
        *,
        locks: KeyedLock | None = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self.kind = kind
        self._repo = repo
        self._tx = tx_manager
        self._locks = locks or KeyedLock()
        self._clock = clock

    # Writes

    def post(self, actor: Actor, tx: NewTransaction, *, system: bool = False) -> LedgerTransaction:
        """Validate, then append `tx` with balance_after = previous balance + delta.

        `system=True` is for workflow postings (overtime approval) whose caller
        already authorized the actor; it also unlocks system-only kinds.
        Joins the caller's transaction when one is open.
        """
        if not system:
            require_role(actor, Role.ADMIN)
        tx = NewTransaction(
            employee_id=int(tx.employee_id),
            tx_type=self.kind.type_value(tx.tx_type),
            delta=self.kind.normalize(tx.delta),
            notes=(tx.notes or "").strip() or None,
            reason=(tx.reason or "").strip() or None,
            period_from=tx.period_from,
            period_to=tx.period_to,
            source_ref=tx.source_ref,
        )
        self.kind.validate(tx, system=system)

        try:
            with self._locks.hold((self.kind.name, tx.employee_id)):
                with self._tx.transaction():
                    head = self._repo.lock_head(self.kind.name, tx.employee_id)
                    self._check_head(head)

                    balance_after = head.balance + tx.delta
                    posted = self._repo.append(
                        self.kind.name,
                        tx,
                        balance_after=balance_after,
                        created_at=self._next_timestamp(tx.employee_id),
                        created_by=actor.user_id,
                        created_by_username=actor.username,
                    )
                    self._repo.update_head(
                        self.kind.name,
                        tx.employee_id,
                        balance=balance_after,
                        last_transaction_id=posted.transaction_id,
                    )
        except _HeadMismatch as e:
            if self._tx.in_transaction():
                # The caller's transaction holds the head row; the mismatch keeps blocking
                # postings until a standalone read or posting records the freeze.
                logger.error("%s", e)
            else:
                self._freeze(tx.employee_id, str(e))
            raise LedgerConsistencyError(str(e))

        logger.info(
            "%s %s %+s %s for employee %s by %s (balance %s)",
            self.kind.name.value,
            posted.tx_type,
            posted.delta,
            self.kind.unit,
            posted.employee_id,
            actor.username or actor.user_id,
            posted.balance_after,
        )
        if posted.balance_after < 0:
            logger.warning(
                "%s balance of employee %s is negative: %s %s",
                self.kind.name.value,
                posted.employee_id,
                posted.balance_after,
                self.kind.unit,
            )
        return posted

    def unfreeze(self, *, actor: Actor, employee_id: int) -> Verification:
        """Lift a freeze once the ledger has been repaired by hand. Refuses while it still disagrees."""
        require_role(actor, Role.SUPERUSER)
        result = self.verify(int(employee_id))
        if not result.ok:
            raise LedgerConsistencyError(self._describe(result))
        with self._tx.transaction():
            self._repo.set_frozen(self.kind.name, int(employee_id), False)
        logger.warning(
            "%s ledger of employee %s unfrozen by %s",
            self.kind.name.value,
            employee_id,
            actor.username or actor.user_id,
        )
        return result

    # Reads

    def get_balance(self, employee_id: int) -> Balance:
        """Materialized balance, cross-checked against a full replay. A mismatch freezes the ledger."""
        employee_id = int(employee_id)
        result = self.verify(employee_id)
        if not result.ok:
            # A posting may have landed between the head read and the replay; only a
            # mismatch that survives the head lock is real.
            with self._locks.hold((self.kind.name, employee_id)):
                with self._tx.transaction():
                    self._repo.lock_head(self.kind.name, employee_id)
                    result = self.verify(employee_id)
        if not result.ok:
            message = self._describe(result)
            self._freeze(employee_id, message)
            raise LedgerConsistencyError(message)

        head = self._repo.get_head(self.kind.name, employee_id)
        return Balance(
            employee_id=employee_id,
            balance=result.head_balance,
            is_negative=result.head_balance < 0,
            last_updated=head.updated_at if head else None,
            last_transaction_id=head.last_transaction_id if head else None,
        )

    def verify(self, employee_id: int) -> Verification:
        head = self._repo.get_head(self.kind.name, int(employee_id))
        head_balance = head.balance if head else Decimal("0")

        running = Decimal("0")
        first_bad = None
        transactions = self._repo.replay(self.kind.name, int(employee_id))
        for tx in transactions:
            running += tx.delta
            if first_bad is None and tx.balance_after != running:
                first_bad = tx.transaction_id
        if head is not None and transactions and head.last_transaction_id != transactions[-1].transaction_id:
            first_bad = first_bad or transactions[-1].transaction_id

        return Verification(
            employee_id=int(employee_id),
            head_balance=head_balance,
            replayed_balance=running,
            transaction_count=len(transactions),
            first_bad_transaction_id=first_bad,
        )

    def list_transactions(
        self,
        employee_id: int,
        *,
        filters: TransactionFilter | None = None,
        page: PageRequest | None = None,
    ) -> Page[LedgerTransaction]:
        filters = filters or TransactionFilter()
        if filters.tx_type:
            self.kind.policy_for(filters.tx_type)
        return self._repo.search(self.kind.name, int(employee_id), filters, page or PageRequest())

    def history(self, employee_id: int) -> Sequence[LedgerTransaction]:
        return self._repo.replay(self.kind.name, int(employee_id))

    def negative_heads(self) -> Sequence[LedgerHead]:
        return self._repo.list_heads(self.kind.name, negative_only=True)

    def heads(self) -> Sequence[LedgerHead]:
        return self._repo.list_heads(self.kind.name)

    def head_balance(self, employee_id: int) -> Decimal:
        """Materialized balance without the replay check, for bulk reads."""
        head = self._repo.get_head(self.kind.name, int(employee_id))
        return head.balance if head else Decimal("0")

    def total_of(self, employee_id: int, tx_type: str) -> Decimal:
        return self._repo.sum_by_type(self.kind.name, int(employee_id), self.kind.type_value(tx_type))

    # Internals

    def _check_head(self, head: LedgerHead) -> None:
        if head.is_frozen:
            raise LedgerConsistencyError(
                f"{self.kind.name.value} ledger of employee {head.employee_id} is frozen pending reconciliation"
            )
        last = self._repo.last_transaction(self.kind.name, head.employee_id)
        if last is None:
            if head.balance != 0 or head.last_transaction_id is not None:
                raise _HeadMismatch(
                    f"{self.kind.name.value} head of employee {head.employee_id} has balance "
                    f"{head.balance} but no transactions"
                )
            return
        if last.transaction_id != head.last_transaction_id or last.balance_after != head.balance:
            raise _HeadMismatch(
                f"{self.kind.name.value} head of employee {head.employee_id} ({head.balance}) disagrees "
                f"with transaction {last.transaction_id} ({last.balance_after})"
            )

    def _next_timestamp(self, employee_id: int) -> datetime:
        now = self._clock()
        last = self._repo.last_transaction(self.kind.name, employee_id)
        if last is not None and now < last.created_at:
            # Clock went backwards; creation order must still follow posting order.
            return last.created_at + timedelta(microseconds=1)
        return now

    def _freeze(self, employee_id: int, message: str) -> None:
        logger.error("Freezing %s ledger of employee %s: %s", self.kind.name.value, employee_id, message)
        with self._tx.transaction():
            self._repo.set_frozen(self.kind.name, employee_id, True)

    def _describe(self, result: Verification) -> str:
        return (
            f"{self.kind.name.value} ledger of employee {result.employee_id} is inconsistent: head "
            f"{result.head_balance}, replay {result.replayed_balance}"
            + (f", first bad transaction {result.first_bad_transaction_id}" if result.first_bad_transaction_id else "")
        )


class _HeadMismatch(Exception):
    pass
