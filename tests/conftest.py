from __future__ import annotations

import copy
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

import pytest

from attendance_ledger.attendance.repository import Correction, RecordQuery
from attendance_ledger.biometric.model import BiometricMapping
from attendance_ledger.common.authz import Actor
from attendance_ledger.common.pagination import Page
from attendance_ledger.container import Repositories, assemble_container
from attendance_ledger.core.enums import PunchSource, RecordStatus, Role
from attendance_ledger.core.exceptions import ConflictError, DuplicatePunch, StaleRecordError
from attendance_ledger.employees.model import Employee
from attendance_ledger.ledger.model import LedgerHead, LedgerTransaction
from attendance_ledger.punches.model import AttendancePunch
from attendance_ledger.schedules.model import Holiday, NewSchedule, NewScheduleDay, ScheduleDay, WorkSchedule

STAMP = datetime(2025, 1, 1, 0, 0, 0)


class _Store:
    """State that the fake transaction manager snapshots and restores."""

    _links: tuple = ()

    def snapshot(self) -> dict:
        return copy.deepcopy({k: v for k, v in self.__dict__.items() if k not in self._links})

    def restore(self, state: dict) -> None:
        self.__dict__.update(state)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeTransactionManager:
    def __init__(self, *stores: _Store):
        self._stores = stores
        self._depth = 0
        self.commits = 0
        self.rollbacks = 0

    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self):
        if self._depth:
            yield self
            return

        saved = [s.snapshot() for s in self._stores]
        self._depth = 1
        try:
            yield self
            self.commits += 1
        except Exception:
            for store, state in zip(self._stores, saved):
                store.restore(state)
            self.rollbacks += 1
            raise
        finally:
            self._depth = 0


class InMemoryEmployees(_Store):
    _links = ("mappings",)

    def __init__(self, employees=()):
        self.employees = {e.employee_id: e for e in employees}
        self.mappings: Optional["InMemoryMappings"] = None

    def get_by_id(self, employee_id: int) -> Optional[Employee]:
        return self.employees.get(int(employee_id))

    def get_many(self, employee_ids):
        return {i: self.employees[i] for i in employee_ids if i in self.employees}

    def list_active(self):
        return [e for _, e in sorted(self.employees.items()) if e.is_active]

    def search_unmapped(self, query: str, *, limit: int = 20):
        mapped = set()
        if self.mappings is not None:
            mapped = {m.employee_id for m in self.mappings.mappings.values() if m.is_active}
        query = (query or "").lower()
        out = [
            e
            for e in self.list_active()
            if e.employee_id not in mapped
            and (not query or query in f"{e.first_names} {e.last_names} {e.dni}".lower())
        ]
        return out[:limit]


class InMemorySchedules(_Store):
    def __init__(self):
        self.schedules: dict[int, WorkSchedule] = {}
        self._next_id = 1

    def get_effective(self, target_date: date) -> Optional[WorkSchedule]:
        candidates = [s for s in self.schedules.values() if s.effective_from <= target_date]
        return max(candidates, key=lambda s: s.effective_from) if candidates else None

    def list_history(self):
        return sorted(self.schedules.values(), key=lambda s: s.effective_from, reverse=True)

    def exists_effective_from(self, effective_from: date) -> bool:
        return any(s.effective_from == effective_from for s in self.schedules.values())

    def create(self, schedule: NewSchedule, *, created_by=None, created_by_username=None) -> int:
        schedule_id = self._next_id
        self._next_id += 1
        self.schedules[schedule_id] = WorkSchedule(
            schedule_id=schedule_id,
            name=schedule.name,
            effective_from=schedule.effective_from,
            days=tuple(
                ScheduleDay(
                    day_of_week=d.day_of_week,
                    is_work_day=d.is_work_day,
                    start_time=d.start_time,
                    end_time=d.end_time,
                    entry_grace_mins=d.entry_grace_mins,
                    exit_grace_mins=d.exit_grace_mins,
                )
                for d in schedule.days
            ),
            notes=schedule.notes,
            created_by=created_by,
            created_by_username=created_by_username,
            created_at=STAMP,
        )
        return schedule_id

    def get_by_id(self, schedule_id: int) -> Optional[WorkSchedule]:
        return self.schedules.get(int(schedule_id))


class InMemoryHolidays(_Store):
    def __init__(self):
        self.holidays: dict[int, Holiday] = {}
        self._next_id = 1

    def list_all(self):
        return sorted(self.holidays.values(), key=lambda h: h.holiday_date)

    def matching(self, day: date):
        return [h for h in self.holidays.values() if h.applies_to(day)]

    def get_by_id(self, holiday_id: int) -> Optional[Holiday]:
        return self.holidays.get(int(holiday_id))

    def create(self, *, holiday_date: date, name: str, is_national: bool, is_recurring: bool) -> int:
        holiday_id = self._next_id
        self._next_id += 1
        self.holidays[holiday_id] = Holiday(
            holiday_id=holiday_id,
            holiday_date=holiday_date,
            name=name,
            is_national=is_national,
            is_recurring=is_recurring,
        )
        return holiday_id

    def delete(self, *, holiday_id: int) -> bool:
        return self.holidays.pop(int(holiday_id), None) is not None


class InMemoryPunches(_Store):
    def __init__(self):
        self.punches: dict[int, AttendancePunch] = {}
        self._next_id = 1

    def list_for_day(self, employee_id: int, work_date: date):
        items = [p for p in self.punches.values() if p.employee_id == employee_id and p.work_date == work_date]
        return sorted(items, key=lambda p: p.punched_at)

    def find(self, employee_id: int, punched_at: datetime) -> Optional[AttendancePunch]:
        for p in self.punches.values():
            if p.employee_id == employee_id and p.punched_at == punched_at:
                return p
        return None

    def insert(self, *, employee_id, punched_at, source, notes=None, created_by=None, created_by_username=None) -> int:
        if self.find(employee_id, punched_at) is not None:
            raise DuplicatePunch(f"Punch {punched_at.isoformat()} already registered")
        punch_id = self._next_id
        self._next_id += 1
        self.punches[punch_id] = AttendancePunch(
            punch_id=punch_id,
            employee_id=employee_id,
            punched_at=punched_at,
            source=source,
            notes=notes,
            created_by=created_by,
            created_by_username=created_by_username,
            created_at=STAMP,
        )
        return punch_id

    def replace(self, *, punch_id: int, source, notes=None) -> bool:
        current = self.punches.get(int(punch_id))
        if current is None:
            return False
        self.punches[punch_id] = replace(current, source=source, notes=notes)
        return True


def _matches(r, q: RecordQuery) -> bool:
    if q.start is not None and r.work_date < q.start:
        return False
    if q.end is not None and r.work_date > q.end:
        return False
    if q.employee_id is not None and r.employee_id != q.employee_id:
        return False
    if q.employee_ids is not None and r.employee_id not in set(q.employee_ids):
        return False
    if q.status is not None and r.status != q.status:
        return False
    if q.day_types and r.day_type not in set(q.day_types):
        return False
    if q.overtime_status is not None and r.overtime_status != q.overtime_status:
        return False
    if q.late_only and r.late_minutes <= 0:
        return False
    if q.exclude_closed and r.status == RecordStatus.CLOSED:
        return False
    return True


class InMemoryAttendance(_Store):
    def __init__(self):
        self.records: dict[tuple[int, date], object] = {}
        self.corrections: list[Correction] = []
        self._next_id = 1
        self.saves = 0

    def get(self, employee_id: int, work_date: date, *, for_update: bool = False):
        record = self.records.get((int(employee_id), work_date))
        return replace(record) if record else None

    def get_by_id(self, record_id: int, *, for_update: bool = False):
        for r in self.records.values():
            if r.record_id == record_id:
                return replace(r)
        return None

    def save(self, record):
        self.saves += 1
        key = (record.employee_id, record.work_date)
        if record.record_id is None:
            if key in self.records:
                raise StaleRecordError("Record was created concurrently")
            stored = replace(record, record_id=self._next_id, revision=1, punches=(), created_at=STAMP, updated_at=STAMP)
            self._next_id += 1
        else:
            current = self.records.get(key)
            if current is None or current.revision != record.revision:
                raise StaleRecordError(f"Record {record.record_id} was modified by another operation")
            stored = replace(record, revision=record.revision + 1, punches=())
        self.records[key] = stored
        return replace(stored, punches=tuple(record.punches))

    def search(self, query: RecordQuery, page):
        items = sorted(
            (r for r in self.records.values() if _matches(r, query)),
            key=lambda r: (-r.work_date.toordinal(), r.employee_id),
        )
        return Page(
            items=items[page.offset : page.offset + page.page_size],
            total=len(items),
            page=page.page,
            page_size=page.page_size,
        )

    def list_all(self, query: RecordQuery):
        return sorted(
            (replace(r) for r in self.records.values() if _matches(r, query)),
            key=lambda r: (r.employee_id, r.work_date),
        )

    def count(self, query: RecordQuery) -> int:
        return sum(1 for r in self.records.values() if _matches(r, query))

    def list_keys(self, query: RecordQuery):
        return [(r.employee_id, r.work_date) for r in self.list_all(query)]

    def add_correction(self, *, record_id, action, changes, notes, created_by=None, created_by_username=None) -> int:
        correction_id = len(self.corrections) + 1
        self.corrections.append(
            Correction(
                correction_id=correction_id,
                record_id=record_id,
                action=action,
                changes=changes,
                notes=notes,
                created_by=created_by,
                created_by_username=created_by_username,
                created_at=STAMP,
            )
        )
        return correction_id

    def list_corrections(self, record_id: int):
        return [c for c in self.corrections if c.record_id == record_id]


class InMemoryLedger(_Store):
    def __init__(self):
        self.heads: dict[tuple, LedgerHead] = {}
        self.transactions: list[LedgerTransaction] = []
        self._next_id = 1

    def lock_head(self, ledger, employee_id):
        key = (ledger, employee_id)
        if key not in self.heads:
            self.heads[key] = LedgerHead(ledger=ledger, employee_id=employee_id, updated_at=STAMP)
        return self.heads[key]

    def get_head(self, ledger, employee_id):
        return self.heads.get((ledger, employee_id))

    def update_head(self, ledger, employee_id, *, balance, last_transaction_id):
        self.heads[(ledger, employee_id)] = replace(
            self.lock_head(ledger, employee_id),
            balance=balance,
            last_transaction_id=last_transaction_id,
        )

    def set_frozen(self, ledger, employee_id, frozen):
        self.heads[(ledger, employee_id)] = replace(self.lock_head(ledger, employee_id), is_frozen=frozen)

    def append(self, ledger, tx, *, balance_after, created_at, created_by=None, created_by_username=None):
        if tx.period_from is not None and self.period_exists(ledger, tx.employee_id, tx.tx_type, tx.period_from):
            raise ConflictError("Duplicate transaction for this period")
        posted = LedgerTransaction(
            transaction_id=self._next_id,
            ledger=ledger,
            employee_id=tx.employee_id,
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
        self._next_id += 1
        self.transactions.append(posted)
        return posted

    def _of(self, ledger, employee_id):
        return [t for t in self.transactions if t.ledger == ledger and t.employee_id == employee_id]

    def last_transaction(self, ledger, employee_id):
        items = self.replay(ledger, employee_id)
        return items[-1] if items else None

    def replay(self, ledger, employee_id):
        return sorted(self._of(ledger, employee_id), key=lambda t: (t.created_at, t.transaction_id))

    def search(self, ledger, employee_id, filters, page):
        items = [
            t
            for t in self._of(ledger, employee_id)
            if (not filters.tx_type or t.tx_type == filters.tx_type)
            and (filters.start is None or t.created_at.date() >= filters.start)
            and (filters.end is None or t.created_at.date() <= filters.end)
        ]
        items.sort(key=lambda t: (t.created_at, t.transaction_id), reverse=True)
        return Page(
            items=items[page.offset : page.offset + page.page_size],
            total=len(items),
            page=page.page,
            page_size=page.page_size,
        )

    def list_heads(self, ledger, *, negative_only=False):
        heads = [h for (name, _), h in self.heads.items() if name == ledger]
        if negative_only:
            heads = sorted((h for h in heads if h.balance < 0), key=lambda h: h.balance)
        return heads

    def period_exists(self, ledger, employee_id, tx_type, period_from):
        return any(t.tx_type == tx_type and t.period_from == period_from for t in self._of(ledger, employee_id))

    def sum_by_type(self, ledger, employee_id, tx_type):
        return sum((t.delta for t in self._of(ledger, employee_id) if t.tx_type == tx_type), Decimal("0"))


class InMemoryMappings(_Store):
    def __init__(self):
        self.mappings: dict[int, BiometricMapping] = {}
        self._next_id = 1

    def list_all(self):
        return [m for _, m in sorted(self.mappings.items())]

    def get_by_id(self, mapping_id: int):
        return self.mappings.get(int(mapping_id))

    def get_by_biometric_id(self, biometric_id: str):
        return next((m for m in self.mappings.values() if m.biometric_id == biometric_id), None)

    def get_active_for_employee(self, employee_id: int):
        return next((m for m in self.mappings.values() if m.employee_id == employee_id and m.is_active), None)

    def create(self, *, biometric_id: str, employee_id: int, notes=None) -> int:
        if self.get_by_biometric_id(biometric_id) is not None:
            raise ConflictError(f"Biometric id {biometric_id} is already mapped")
        mapping_id = self._next_id
        self._next_id += 1
        self.mappings[mapping_id] = BiometricMapping(
            mapping_id=mapping_id,
            biometric_id=biometric_id,
            employee_id=employee_id,
            notes=notes,
            created_at=STAMP,
        )
        return mapping_id

    def update(self, *, mapping_id: int, is_active: bool, notes) -> bool:
        current = self.mappings.get(int(mapping_id))
        if current is None:
            return False
        self.mappings[mapping_id] = replace(current, is_active=is_active, notes=notes)
        return True

    def delete(self, *, mapping_id: int) -> bool:
        return self.mappings.pop(int(mapping_id), None) is not None


# Fixtures

EMPLOYEES = (
    Employee(employee_id=1, first_names="Ana", last_names="Pérez", dni="12345678", hire_date=date(2020, 3, 1)),
    Employee(employee_id=2, first_names="Luis", last_names="Gómez", dni="87654321", hire_date=date(2024, 6, 15)),
    Employee(employee_id=3, first_names="Rosa", last_names="Díaz", dni="11223344", hire_date=None, is_active=False),
)

SUPERVISOR = Actor(user_id=10, role=Role.SUPERVISOR, username="supervisor")
ADMIN = Actor(user_id=20, role=Role.ADMIN, username="admin")
SUPERUSER = Actor(user_id=30, role=Role.SUPERUSER, username="root")
STAFF = Actor(user_id=40, role=Role.STAFF, username="staff")


def office_week(effective_from: date = date(2025, 1, 1), name: str = "Oficina") -> NewSchedule:
    """Mon-Fri 08:00-17:00 with a 5 minute entry grace; weekends off."""
    days = []
    for dow in range(7):
        if 1 <= dow <= 5:
            days.append(NewScheduleDay(dow, True, time(8, 0), time(17, 0), entry_grace_mins=5, exit_grace_mins=5))
        else:
            days.append(NewScheduleDay(dow, False))
    return NewSchedule(name=name, effective_from=effective_from, days=tuple(days))


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 9, 0, 0))


@pytest.fixture
def repos():
    mappings = InMemoryMappings()
    employees = InMemoryEmployees(EMPLOYEES)
    employees.mappings = mappings
    schedules = InMemorySchedules()
    schedules.create(office_week())
    return Repositories(
        employees=employees,
        schedules=schedules,
        holidays=InMemoryHolidays(),
        punches=InMemoryPunches(),
        attendance=InMemoryAttendance(),
        ledger=InMemoryLedger(),
        mappings=mappings,
    )


@pytest.fixture
def tx(repos):
    return FakeTransactionManager(
        repos.employees,
        repos.schedules,
        repos.holidays,
        repos.punches,
        repos.attendance,
        repos.ledger,
        repos.mappings,
    )


@pytest.fixture
def container(repos, tx, clock):
    return assemble_container(repos, tx, clock=clock)


@pytest.fixture
def punch(repos, container):
    """Insert device punches directly and recompile the day, like an import would."""

    def _punch(employee_id: int, *stamps: str):
        day = None
        for stamp in stamps:
            punched_at = datetime.fromisoformat(stamp)
            day = punched_at.date()
            repos.punches.insert(employee_id=employee_id, punched_at=punched_at, source=PunchSource.BIOMETRIC)
        return container.attendance_service.recompile(employee_id, day)

    return _punch
