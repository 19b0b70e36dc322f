from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import PunchSource
from .model import AttendancePunch


class PunchRepository(Protocol):
    def list_for_day(self, employee_id: int, work_date: date) -> Sequence[AttendancePunch]:
        """Punches of one employee-day ordered by punched_at."""

        raise NotImplementedError

    def find(self, employee_id: int, punched_at: datetime) -> Optional[AttendancePunch]:
        raise NotImplementedError

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
        """Raises DuplicatePunch when (employee_id, punched_at) already exists."""

        raise NotImplementedError

    def replace(self, *, punch_id: int, source: PunchSource, notes: Optional[str] = None) -> bool:
        """Re-import an existing punch (source and notes refreshed)."""

        raise NotImplementedError
