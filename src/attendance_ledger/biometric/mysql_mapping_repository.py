from __future__ import annotations

from typing import Optional, Sequence

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import BiometricMapping
from .repository import BiometricMappingRepository

_COLUMNS = "mapping_id, biometric_id, employee_id, is_active, notes, created_at"


def _to_mapping(r: dict) -> BiometricMapping:
    return BiometricMapping(
        mapping_id=int(r["mapping_id"]),
        biometric_id=str(r["biometric_id"]),
        employee_id=int(r["employee_id"]),
        is_active=bool(r["is_active"]),
        notes=r.get("notes"),
        created_at=r.get("created_at"),
    )


class MySQLBiometricMappingRepository(BiometricMappingRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_all(self) -> Sequence[BiometricMapping]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM biometric_mappings ORDER BY biometric_id")
            return [_to_mapping(r) for r in fetchall(cur)]

    def get_by_id(self, mapping_id: int) -> Optional[BiometricMapping]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM biometric_mappings WHERE mapping_id=%s", (int(mapping_id),))
            r = fetchone(cur)
            return _to_mapping(r) if r else None

    def get_by_biometric_id(self, biometric_id: str) -> Optional[BiometricMapping]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM biometric_mappings WHERE biometric_id=%s", (biometric_id,))
            r = fetchone(cur)
            return _to_mapping(r) if r else None

    def get_active_for_employee(self, employee_id: int) -> Optional[BiometricMapping]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM biometric_mappings WHERE employee_id=%s AND is_active=1 LIMIT 1",
                (int(employee_id),),
            )
            r = fetchone(cur)
            return _to_mapping(r) if r else None

    def create(self, *, biometric_id: str, employee_id: int, notes: Optional[str] = None) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute(
                    "INSERT INTO biometric_mappings(biometric_id, employee_id, is_active, notes) VALUES(%s,%s,1,%s)",
                    (biometric_id, int(employee_id), notes),
                )
            except IntegrityError as e:
                if e.errno == errorcode.ER_DUP_ENTRY:
                    raise ConflictError(f"Biometric id {biometric_id} is already mapped")
                raise
            return int(cur.lastrowid)

    def update(self, *, mapping_id: int, is_active: bool, notes: Optional[str]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE biometric_mappings SET is_active=%s, notes=%s WHERE mapping_id=%s",
                (1 if is_active else 0, notes, int(mapping_id)),
            )
            return cur.rowcount > 0

    def delete(self, *, mapping_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM biometric_mappings WHERE mapping_id=%s", (int(mapping_id),))
            return cur.rowcount > 0
