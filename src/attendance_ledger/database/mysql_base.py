from __future__ import annotations

from contextlib import contextmanager
from datetime import time, timedelta
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .connection import DatabaseConnection

SECONDS_PER_DAY = 24 * 60 * 60


@contextmanager
def db_cursor(db: DatabaseConnection, *, dictionary: bool = True) -> Iterator[Tuple[Any, Any]]:
    """Yield ``(connection, cursor)`` for one unit of repository work.

    Inside ``DatabaseConnection.transaction()`` the shared connection is reused
    and left for the transaction owner to commit. Otherwise a short-lived
    connection is opened and committed when the block exits cleanly.
    """

    shared = db.active_connection()
    conn = shared if shared is not None else db.connect()
    cur = conn.cursor(dictionary=dictionary)
    try:
        yield conn, cur
        if shared is None:
            conn.commit()
    except Exception:
        if shared is None:
            conn.rollback()
        raise
    finally:
        cur.close()
        if shared is None:
            conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    return cur.fetchone() or None


def fetchall(cur) -> List[Dict[str, Any]]:
    return list(cur.fetchall() or ())


def build_where(clauses: List[str]) -> str:
    if not clauses:
        return "1=1"
    return " AND ".join(f"({c})" for c in clauses)


def to_time(value: Any) -> Optional[time]:
    """Convert a TIME column value into ``datetime.time``.

    The C extension hands back ``timedelta`` while the pure driver may give a
    ``time`` or an ``HH:MM[:SS]`` string.
    """

    if value is None or isinstance(value, time):
        return value
    if isinstance(value, timedelta):
        seconds = int(value.total_seconds()) % SECONDS_PER_DAY
        return time(seconds // 3600, seconds // 60 % 60, seconds % 60)
    if isinstance(value, str):
        try:
            return time.fromisoformat(value.strip())
        except ValueError:
            raise ValueError(f"Not a TIME value: {value!r}") from None
    raise TypeError(f"Cannot read {type(value).__name__} as TIME")
