from __future__ import annotations

import json
from dataclasses import replace
from datetime import date
from typing import Optional, Sequence

from mysql.connector import errorcode
from mysql.connector.errors import IntegrityError

from ..common.pagination import Page, PageRequest
from ..core.enums import DayType, OvertimeStatus, RecordStatus
from ..core.exceptions import StaleRecordError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_where, db_cursor, fetchall, fetchone
from .model import AttendanceRecord
from .repository import AttendanceRepository, Correction, RecordQuery

_COLUMNS = """
    record_id, employee_id, work_date, day_type, computed_day_type, status,
    scheduled_minutes, effective_minutes, late_minutes, overtime_raw_minutes,
    overtime_effective_minutes, overtime_multiplier, overtime_status, overtime_notes,
    is_holiday, is_night_shift, override_day_type, document_ref, override_notes,
    override_by, revision, created_at, updated_at
"""


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        record_id=int(r["record_id"]),
        employee_id=int(r["employee_id"]),
        work_date=r["work_date"],
        day_type=DayType(r["day_type"]),
        computed_day_type=DayType(r["computed_day_type"]),
        status=RecordStatus(r["status"]),
        scheduled_minutes=int(r["scheduled_minutes"]),
        effective_minutes=int(r["effective_minutes"]),
        late_minutes=int(r["late_minutes"]),
        overtime_raw_minutes=int(r["overtime_raw_minutes"]),
        overtime_effective_minutes=int(r["overtime_effective_minutes"]),
        overtime_multiplier=float(r["overtime_multiplier"]),
        overtime_status=OvertimeStatus(r["overtime_status"]),
        overtime_notes=r.get("overtime_notes"),
        is_holiday=bool(r["is_holiday"]),
        is_night_shift=bool(r["is_night_shift"]),
        override_day_type=DayType(r["override_day_type"]) if r.get("override_day_type") else None,
        document_ref=r.get("document_ref"),
        override_notes=r.get("override_notes"),
        override_by=r.get("override_by"),
        revision=int(r["revision"]),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


def _where(query: RecordQuery) -> tuple[str, list]:
    clauses: list[str] = []
    params: list = []
    if query.start is not None:
        clauses.append("work_date >= %s")
        params.append(query.start)
    if query.end is not None:
        clauses.append("work_date <= %s")
        params.append(query.end)
    if query.employee_id is not None:
        clauses.append("employee_id = %s")
        params.append(int(query.employee_id))
    if query.employee_ids is not None:
        ids = [int(i) for i in query.employee_ids]
        if not ids:
            clauses.append("1=0")
        else:
            clauses.append(f"employee_id IN ({','.join(['%s'] * len(ids))})")
            params.extend(ids)
    if query.status is not None:
        clauses.append("status = %s")
        params.append(query.status.value)
    if query.day_types:
        types = [t.value for t in query.day_types]
        clauses.append(f"day_type IN ({','.join(['%s'] * len(types))})")
        params.extend(types)
    if query.overtime_status is not None:
        clauses.append("overtime_status = %s")
        params.append(query.overtime_status.value)
    if query.late_only:
        clauses.append("late_minutes > 0")
    if query.exclude_closed:
        clauses.append("status <> %s")
        params.append(RecordStatus.CLOSED.value)
    return build_where(clauses), params


def _values(record: AttendanceRecord) -> tuple:
    return (
        record.day_type.value,
        record.computed_day_type.value,
        record.status.value,
        int(record.scheduled_minutes),
        int(record.effective_minutes),
        int(record.late_minutes),
        int(record.overtime_raw_minutes),
        int(record.overtime_effective_minutes),
        float(record.overtime_multiplier),
        record.overtime_status.value,
        record.overtime_notes,
        1 if record.is_holiday else 0,
        1 if record.is_night_shift else 0,
        record.override_day_type.value if record.override_day_type else None,
        record.document_ref,
        record.override_notes,
        record.override_by,
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, employee_id: int, work_date: date, *, for_update: bool = False) -> Optional[AttendanceRecord]:
        lock = " FOR UPDATE" if for_update else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE employee_id=%s AND work_date=%s{lock}",
                (int(employee_id), work_date),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def get_by_id(self, record_id: int, *, for_update: bool = False) -> Optional[AttendanceRecord]:
        lock = " FOR UPDATE" if for_update else ""
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE record_id=%s{lock}", (int(record_id),))
            r = fetchone(cur)
            return _to_record(r) if r else None

    def save(self, record: AttendanceRecord) -> AttendanceRecord:
        with db_cursor(self._conn_factory) as (_, cur):
            if record.record_id is None:
                try:
                    cur.execute(
                        """
                        INSERT INTO attendance_records(
                            day_type, computed_day_type, status, scheduled_minutes, effective_minutes,
                            late_minutes, overtime_raw_minutes, overtime_effective_minutes, overtime_multiplier,
                            overtime_status, overtime_notes, is_holiday, is_night_shift, override_day_type,
                            document_ref, override_notes, override_by, employee_id, work_date, revision
                        )
                        VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,1)
                        """,
                        _values(record) + (int(record.employee_id), record.work_date),
                    )
                except IntegrityError as e:
                    if e.errno == errorcode.ER_DUP_ENTRY:
                        raise StaleRecordError(
                            f"Record for employee {record.employee_id} on {record.work_date.isoformat()} "
                            "was created concurrently"
                        )
                    raise
                return replace(record, record_id=int(cur.lastrowid), revision=1)

            cur.execute(
                """
                UPDATE attendance_records
                SET day_type=%s, computed_day_type=%s, status=%s, scheduled_minutes=%s, effective_minutes=%s,
                    late_minutes=%s, overtime_raw_minutes=%s, overtime_effective_minutes=%s,
                    overtime_multiplier=%s, overtime_status=%s, overtime_notes=%s, is_holiday=%s,
                    is_night_shift=%s, override_day_type=%s, document_ref=%s, override_notes=%s,
                    override_by=%s, revision=revision + 1
                WHERE record_id=%s AND revision=%s
                """,
                _values(record) + (int(record.record_id), int(record.revision)),
            )
            if cur.rowcount == 0:
                raise StaleRecordError(f"Record {record.record_id} was modified by another operation")
            return replace(record, revision=record.revision + 1)

    def search(self, query: RecordQuery, page: PageRequest) -> Page[AttendanceRecord]:
        where, params = _where(query)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM attendance_records WHERE {where}", tuple(params))
            total = int((fetchone(cur) or {}).get("total") or 0)
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE {where}
                ORDER BY work_date DESC, employee_id ASC
                LIMIT %s OFFSET %s
                """,
                tuple(params) + (page.page_size, page.offset),
            )
            items = [_to_record(r) for r in fetchall(cur)]
        return Page(items=items, total=total, page=page.page, page_size=page.page_size)

    def list_all(self, query: RecordQuery) -> Sequence[AttendanceRecord]:
        where, params = _where(query)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE {where} ORDER BY employee_id, work_date",
                tuple(params),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def count(self, query: RecordQuery) -> int:
        where, params = _where(query)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM attendance_records WHERE {where}", tuple(params))
            return int((fetchone(cur) or {}).get("total") or 0)

    def list_keys(self, query: RecordQuery) -> Sequence[tuple[int, date]]:
        where, params = _where(query)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT employee_id, work_date FROM attendance_records WHERE {where} ORDER BY work_date, employee_id",
                tuple(params),
            )
            return [(int(r["employee_id"]), r["work_date"]) for r in fetchall(cur)]

    def add_correction(
        self,
        *,
        record_id: int,
        action: str,
        changes: dict,
        notes: str,
        created_by: Optional[int] = None,
        created_by_username: Optional[str] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_corrections(record_id, action, changes, notes, created_by, created_by_username)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (int(record_id), action, json.dumps(changes, default=str), notes, created_by, created_by_username),
            )
            return int(cur.lastrowid)

    def list_corrections(self, record_id: int) -> Sequence[Correction]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT correction_id, record_id, action, changes, notes, created_by, created_by_username, created_at
                FROM attendance_corrections
                WHERE record_id=%s
                ORDER BY created_at, correction_id
                """,
                (int(record_id),),
            )
            return [
                Correction(
                    correction_id=int(r["correction_id"]),
                    record_id=int(r["record_id"]),
                    action=r["action"],
                    changes=json.loads(r["changes"] or "{}"),
                    notes=r["notes"],
                    created_by=r.get("created_by"),
                    created_by_username=r.get("created_by_username"),
                    created_at=r.get("created_at"),
                )
                for r in fetchall(cur)
            ]
