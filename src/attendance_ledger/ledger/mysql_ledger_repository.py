from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from ..common.pagination import Page, PageRequest
from ..core.enums import LedgerName
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_where, db_cursor, fetchall, fetchone
from .model import LedgerHead, LedgerTransaction, NewTransaction, TransactionFilter
from .repository import LedgerRepository

_TX_COLUMNS = """
    transaction_id, ledger, employee_id, tx_type, delta, balance_after, notes, reason,
    period_from, period_to, source_ref, created_by, created_by_username, created_at
"""
_HEAD_COLUMNS = "ledger, employee_id, balance, last_transaction_id, is_frozen, updated_at"


def _to_tx(r: dict) -> LedgerTransaction:
    return LedgerTransaction(
        transaction_id=int(r["transaction_id"]),
        ledger=LedgerName(r["ledger"]),
        employee_id=int(r["employee_id"]),
        tx_type=r["tx_type"],
        delta=Decimal(r["delta"]),
        balance_after=Decimal(r["balance_after"]),
        created_at=r["created_at"],
        notes=r.get("notes"),
        reason=r.get("reason"),
        period_from=r.get("period_from"),
        period_to=r.get("period_to"),
        source_ref=r.get("source_ref"),
        created_by=r.get("created_by"),
        created_by_username=r.get("created_by_username"),
    )


def _to_head(r: dict) -> LedgerHead:
    return LedgerHead(
        ledger=LedgerName(r["ledger"]),
        employee_id=int(r["employee_id"]),
        balance=Decimal(r["balance"]),
        last_transaction_id=int(r["last_transaction_id"]) if r.get("last_transaction_id") is not None else None,
        is_frozen=bool(r["is_frozen"]),
        updated_at=r.get("updated_at"),
    )


class MySQLLedgerRepository(LedgerRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def lock_head(self, ledger: LedgerName, employee_id: int) -> LedgerHead:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT IGNORE INTO ledger_heads(ledger, employee_id, balance) VALUES(%s,%s,0)",
                (ledger.value, int(employee_id)),
            )
            cur.execute(
                f"SELECT {_HEAD_COLUMNS} FROM ledger_heads WHERE ledger=%s AND employee_id=%s FOR UPDATE",
                (ledger.value, int(employee_id)),
            )
            return _to_head(fetchone(cur))

    def get_head(self, ledger: LedgerName, employee_id: int) -> Optional[LedgerHead]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_HEAD_COLUMNS} FROM ledger_heads WHERE ledger=%s AND employee_id=%s",
                (ledger.value, int(employee_id)),
            )
            r = fetchone(cur)
            return _to_head(r) if r else None

    def update_head(
        self,
        ledger: LedgerName,
        employee_id: int,
        *,
        balance: Decimal,
        last_transaction_id: int,
    ) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE ledger_heads
                SET balance=%s, last_transaction_id=%s
                WHERE ledger=%s AND employee_id=%s
                """,
                (balance, int(last_transaction_id), ledger.value, int(employee_id)),
            )

    def set_frozen(self, ledger: LedgerName, employee_id: int, frozen: bool) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO ledger_heads(ledger, employee_id, balance, is_frozen)
                VALUES(%s,%s,0,%s)
                ON DUPLICATE KEY UPDATE is_frozen=VALUES(is_frozen)
                """,
                (ledger.value, int(employee_id), 1 if frozen else 0),
            )

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
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute(
                    """
                    INSERT INTO ledger_transactions(
                        ledger, employee_id, tx_type, delta, balance_after, notes, reason,
                        period_from, period_to, source_ref, created_by, created_by_username, created_at
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        ledger.value,
                        int(tx.employee_id),
                        tx.tx_type,
                        tx.delta,
                        balance_after,
                        tx.notes,
                        tx.reason,
                        tx.period_from,
                        tx.period_to,
                        tx.source_ref,
                        created_by,
                        created_by_username,
                        created_at,
                    ),
                )
            except IntegrityError as e:
                if e.errno == errorcode.ER_DUP_ENTRY:
                    raise ConflictError(f"{tx.tx_type} for period {tx.period_from} already posted")
                raise
            transaction_id = int(cur.lastrowid)
        return LedgerTransaction(
            transaction_id=transaction_id,
            ledger=ledger,
            employee_id=int(tx.employee_id),
            tx_type=tx.tx_type,
            delta=tx.delta,
            balance_after=balance_after,
            created_at=created_at,
            notes=tx.notes,
            reason=tx.reason,
            period_from=tx.period_from,
            period_to=tx.period_to,
            source_ref=tx.source_ref,
            created_by=created_by,
            created_by_username=created_by_username,
        )

    def last_transaction(self, ledger: LedgerName, employee_id: int) -> Optional[LedgerTransaction]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TX_COLUMNS}
                FROM ledger_transactions
                WHERE ledger=%s AND employee_id=%s
                ORDER BY created_at DESC, transaction_id DESC
                LIMIT 1
                """,
                (ledger.value, int(employee_id)),
            )
            r = fetchone(cur)
            return _to_tx(r) if r else None

    def replay(self, ledger: LedgerName, employee_id: int) -> Sequence[LedgerTransaction]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TX_COLUMNS}
                FROM ledger_transactions
                WHERE ledger=%s AND employee_id=%s
                ORDER BY created_at ASC, transaction_id ASC
                """,
                (ledger.value, int(employee_id)),
            )
            return [_to_tx(r) for r in fetchall(cur)]

    def search(
        self,
        ledger: LedgerName,
        employee_id: int,
        filters: TransactionFilter,
        page: PageRequest,
    ) -> Page[LedgerTransaction]:
        clauses = ["ledger = %s", "employee_id = %s"]
        params: list = [ledger.value, int(employee_id)]
        if filters.tx_type:
            clauses.append("tx_type = %s")
            params.append(filters.tx_type)
        if filters.start is not None:
            clauses.append("created_at >= %s")
            params.append(datetime.combine(filters.start, datetime.min.time()))
        if filters.end is not None:
            clauses.append("created_at < DATE_ADD(%s, INTERVAL 1 DAY)")
            params.append(filters.end)
        where = build_where(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM ledger_transactions WHERE {where}", tuple(params))
            total = int((fetchone(cur) or {}).get("total") or 0)
            cur.execute(
                f"""
                SELECT {_TX_COLUMNS}
                FROM ledger_transactions
                WHERE {where}
                ORDER BY created_at DESC, transaction_id DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params) + (page.page_size, page.offset),
            )
            items = [_to_tx(r) for r in fetchall(cur)]
        return Page(items=items, total=total, page=page.page, page_size=page.page_size)

    def list_heads(self, ledger: LedgerName, *, negative_only: bool = False) -> Sequence[LedgerHead]:
        clauses = ["ledger = %s"]
        if negative_only:
            clauses.append("balance < 0")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_HEAD_COLUMNS} FROM ledger_heads WHERE {build_where(clauses)} ORDER BY balance ASC, employee_id",
                (ledger.value,),
            )
            return [_to_head(r) for r in fetchall(cur)]

    def period_exists(self, ledger: LedgerName, employee_id: int, tx_type: str, period_from: date) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT 1 AS found
                FROM ledger_transactions
                WHERE ledger=%s AND employee_id=%s AND tx_type=%s AND period_from=%s
                LIMIT 1
                """,
                (ledger.value, int(employee_id), tx_type, period_from),
            )
            return fetchone(cur) is not None

    def sum_by_type(self, ledger: LedgerName, employee_id: int, tx_type: str) -> Decimal:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COALESCE(SUM(delta), 0) AS total
                FROM ledger_transactions
                WHERE ledger=%s AND employee_id=%s AND tx_type=%s
                """,
                (ledger.value, int(employee_id), tx_type),
            )
            return Decimal((fetchone(cur) or {}).get("total") or 0)
