from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Employee
from .repository import EmployeeRepository

_COLUMNS = "e.employee_id, e.first_names, e.last_names, e.dni, e.hire_date, e.is_active"


def _to_employee(r: dict) -> Employee:
    return Employee(
        employee_id=int(r["employee_id"]),
        first_names=r["first_names"],
        last_names=r["last_names"],
        dni=r["dni"],
        hire_date=r.get("hire_date"),
        is_active=bool(r.get("is_active", 1)),
    )


class MySQLEmployeeRepository(EmployeeRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, employee_id: int) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM employees e WHERE e.employee_id=%s", (int(employee_id),))
            r = fetchone(cur)
            return _to_employee(r) if r else None

    def get_many(self, employee_ids: Iterable[int]) -> dict[int, Employee]:
        ids = sorted({int(i) for i in employee_ids})
        if not ids:
            return {}
        placeholders = ",".join(["%s"] * len(ids))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM employees e WHERE e.employee_id IN ({placeholders})", tuple(ids))
            return {int(r["employee_id"]): _to_employee(r) for r in fetchall(cur)}

    def list_active(self) -> Sequence[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM employees e WHERE e.is_active=1 ORDER BY e.last_names, e.first_names")
            return [_to_employee(r) for r in fetchall(cur)]

    def search_unmapped(self, query: str, *, limit: int = 20) -> Sequence[Employee]:
        term = f"%{(query or '').strip()}%"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM employees e
                LEFT JOIN biometric_mappings m ON m.employee_id = e.employee_id AND m.is_active = 1
                WHERE e.is_active = 1
                  AND m.mapping_id IS NULL
                  AND (e.first_names LIKE %s OR e.last_names LIKE %s OR e.dni LIKE %s)
                ORDER BY e.last_names, e.first_names
                LIMIT %s
                """,
                (term, term, term, int(limit)),
            )
            return [_to_employee(r) for r in fetchall(cur)]
