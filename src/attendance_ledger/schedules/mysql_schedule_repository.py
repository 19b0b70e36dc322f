from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, to_time
from .model import Holiday, NewSchedule, ScheduleDay, WorkSchedule
from .repository import HolidayRepository, ScheduleRepository

_SCHEDULE_COLUMNS = "schedule_id, name, effective_from, notes, created_by, created_by_username, created_at"


class MySQLScheduleRepository(ScheduleRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _load_days(self, cur, schedule_ids: Sequence[int]) -> dict[int, list[ScheduleDay]]:
        if not schedule_ids:
            return {}
        placeholders = ",".join(["%s"] * len(schedule_ids))
        cur.execute(
            f"""
            SELECT schedule_id, day_of_week, is_work_day, start_time, end_time, entry_grace_mins, exit_grace_mins
            FROM work_schedule_days
            WHERE schedule_id IN ({placeholders})
            ORDER BY schedule_id, day_of_week
            """,
            tuple(schedule_ids),
        )
        out: dict[int, list[ScheduleDay]] = {}
        for r in fetchall(cur):
            out.setdefault(int(r["schedule_id"]), []).append(
                ScheduleDay(
                    day_of_week=int(r["day_of_week"]),
                    is_work_day=bool(r["is_work_day"]),
                    start_time=to_time(r.get("start_time")),
                    end_time=to_time(r.get("end_time")),
                    entry_grace_mins=int(r.get("entry_grace_mins") or 0),
                    exit_grace_mins=int(r.get("exit_grace_mins") or 0),
                )
            )
        return out

    def _build(self, cur, rows: Sequence[dict]) -> list[WorkSchedule]:
        days = self._load_days(cur, [int(r["schedule_id"]) for r in rows])
        return [
            WorkSchedule(
                schedule_id=int(r["schedule_id"]),
                name=r["name"],
                effective_from=r["effective_from"],
                days=tuple(days.get(int(r["schedule_id"]), [])),
                notes=r.get("notes"),
                created_by=r.get("created_by"),
                created_by_username=r.get("created_by_username"),
                created_at=r.get("created_at"),
            )
            for r in rows
        ]

    def get_effective(self, target_date: date) -> Optional[WorkSchedule]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_SCHEDULE_COLUMNS}
                FROM work_schedules
                WHERE effective_from <= %s
                ORDER BY effective_from DESC
                LIMIT 1
                """,
                (target_date,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return self._build(cur, [r])[0]

    def get_by_id(self, schedule_id: int) -> Optional[WorkSchedule]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_SCHEDULE_COLUMNS} FROM work_schedules WHERE schedule_id=%s", (int(schedule_id),))
            r = fetchone(cur)
            if not r:
                return None
            return self._build(cur, [r])[0]

    def list_history(self) -> Sequence[WorkSchedule]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_SCHEDULE_COLUMNS} FROM work_schedules ORDER BY effective_from DESC")
            return self._build(cur, fetchall(cur))

    def exists_effective_from(self, effective_from: date) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 AS found FROM work_schedules WHERE effective_from=%s", (effective_from,))
            return fetchone(cur) is not None

    def create(self, schedule: NewSchedule, *, created_by: Optional[int], created_by_username: Optional[str]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO work_schedules(name, effective_from, notes, created_by, created_by_username)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (schedule.name, schedule.effective_from, schedule.notes, created_by, created_by_username),
            )
            schedule_id = int(cur.lastrowid)
            cur.executemany(
                """
                INSERT INTO work_schedule_days(
                    schedule_id, day_of_week, is_work_day, start_time, end_time, entry_grace_mins, exit_grace_mins
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                [
                    (
                        schedule_id,
                        d.day_of_week,
                        int(d.is_work_day),
                        d.start_time,
                        d.end_time,
                        d.entry_grace_mins,
                        d.exit_grace_mins,
                    )
                    for d in schedule.days
                ],
            )
            return schedule_id


def _to_holiday(r: dict) -> Holiday:
    return Holiday(
        holiday_id=int(r["holiday_id"]),
        holiday_date=r["holiday_date"],
        name=r["name"],
        is_national=bool(r["is_national"]),
        is_recurring=bool(r["is_recurring"]),
    )


class MySQLHolidayRepository(HolidayRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_all(self) -> Sequence[Holiday]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT holiday_id, holiday_date, name, is_national, is_recurring FROM holidays ORDER BY holiday_date"
            )
            return [_to_holiday(r) for r in fetchall(cur)]

    def matching(self, day: date) -> Sequence[Holiday]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT holiday_id, holiday_date, name, is_national, is_recurring
                FROM holidays
                WHERE holiday_date=%s
                   OR (is_recurring=1 AND MONTH(holiday_date)=%s AND DAY(holiday_date)=%s)
                """,
                (day, day.month, day.day),
            )
            return [_to_holiday(r) for r in fetchall(cur)]

    def get_by_id(self, holiday_id: int) -> Optional[Holiday]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT holiday_id, holiday_date, name, is_national, is_recurring FROM holidays WHERE holiday_id=%s",
                (int(holiday_id),),
            )
            r = fetchone(cur)
            return _to_holiday(r) if r else None

    def create(self, *, holiday_date: date, name: str, is_national: bool, is_recurring: bool) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO holidays(holiday_date, name, is_national, is_recurring) VALUES(%s,%s,%s,%s)",
                (holiday_date, name, int(is_national), int(is_recurring)),
            )
            return int(cur.lastrowid)

    def delete(self, *, holiday_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM holidays WHERE holiday_id=%s", (int(holiday_id),))
            return cur.rowcount > 0
