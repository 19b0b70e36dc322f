from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Collection, Optional, Protocol, Sequence

from ..common.pagination import Page, PageRequest
from ..core.enums import DayType, OvertimeStatus, RecordStatus
from .model import AttendanceRecord


@dataclass(frozen=True)
class RecordQuery:
    """Filters shared by listings, reports and counters. Unset fields do not filter."""

    start: Optional[date] = None
    end: Optional[date] = None
    employee_id: Optional[int] = None
    employee_ids: Optional[Collection[int]] = None
    status: Optional[RecordStatus] = None
    day_types: Collection[DayType] = field(default_factory=tuple)
    overtime_status: Optional[OvertimeStatus] = None
    late_only: bool = False
    exclude_closed: bool = False


@dataclass(frozen=True)
class Correction:
    """Audit entry for a manual change to a record."""

    correction_id: int
    record_id: int
    action: str
    changes: dict
    notes: str
    created_by: Optional[int] = None
    created_by_username: Optional[str] = None
    created_at: Optional[object] = None


class AttendanceRepository(Protocol):
    def get(self, employee_id: int, work_date: date, *, for_update: bool = False) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_by_id(self, record_id: int, *, for_update: bool = False) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def save(self, record: AttendanceRecord) -> AttendanceRecord:
        """Insert (record_id None) or update guarded by `revision`.

        Returns the stored record with its new revision. Raises StaleRecordError
        when another writer got there first.
        """

        raise NotImplementedError

    def search(self, query: RecordQuery, page: PageRequest) -> Page[AttendanceRecord]:
        """Ordered by work_date DESC, employee_id ASC."""

        raise NotImplementedError

    def list_all(self, query: RecordQuery) -> Sequence[AttendanceRecord]:
        """Ordered by employee_id, work_date."""

        raise NotImplementedError

    def count(self, query: RecordQuery) -> int:
        raise NotImplementedError

    def list_keys(self, query: RecordQuery) -> Sequence[tuple[int, date]]:
        """(employee_id, work_date) pairs matching the query."""

        raise NotImplementedError

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
        raise NotImplementedError

    def list_corrections(self, record_id: int) -> Sequence[Correction]:
        raise NotImplementedError
