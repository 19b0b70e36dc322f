from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from ..core.enums import PunchSource
from ..core.exceptions import DuplicatePunch
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendancePunch
from .repository import PunchRepository

_COLUMNS = "punch_id, employee_id, punched_at, source, notes, created_by, created_by_username, created_at"


def _to_punch(r: dict) -> AttendancePunch:
    return AttendancePunch(
        punch_id=int(r["punch_id"]),
        employee_id=int(r["employee_id"]),
        punched_at=r["punched_at"],
        source=PunchSource(r["source"]),
        notes=r.get("notes"),
        created_by=r.get("created_by"),
        created_by_username=r.get("created_by_username"),
        created_at=r.get("created_at"),
    )


class MySQLPunchRepository(PunchRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_for_day(self, employee_id: int, work_date: date) -> Sequence[AttendancePunch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_punches
                WHERE employee_id=%s AND work_date=%s
                ORDER BY punched_at ASC, punch_id ASC
                """,
                (int(employee_id), work_date),
            )
            return [_to_punch(r) for r in fetchall(cur)]

    def find(self, employee_id: int, punched_at: datetime) -> Optional[AttendancePunch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_punches WHERE employee_id=%s AND punched_at=%s",
                (int(employee_id), punched_at),
            )
            r = fetchone(cur)
            return _to_punch(r) if r else None

    def insert(
        self,
        *,
        employee_id: int,
        punched_at: datetime,
        source: PunchSource,
        notes: Optional[str] = None,
        created_by: Optional[int] = None,
        created_by_username: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute(
                    """
                    INSERT INTO attendance_punches(
                        employee_id, punched_at, work_date, source, notes, created_by, created_by_username
                    )
                    VALUES(%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        int(employee_id),
                        punched_at,
                        punched_at.date(),
                        source.value,
                        notes,
                        created_by,
                        created_by_username,
                    ),
                )
            except IntegrityError as e:
                if e.errno == errorcode.ER_DUP_ENTRY:
                    raise DuplicatePunch(f"Punch at {punched_at.isoformat()} already exists")
                raise
            return int(cur.lastrowid)

    def replace(self, *, punch_id: int, source: PunchSource, notes: Optional[str] = None) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance_punches SET source=%s, notes=%s WHERE punch_id=%s",
                (source.value, notes, int(punch_id)),
            )
            return cur.rowcount > 0
