from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import PunchSource


@dataclass(frozen=True)
class AttendancePunch:
    """Immutable clock event. Belongs to the calendar day of its local `punched_at`."""

    punch_id: int
    employee_id: int
    punched_at: datetime
    source: PunchSource
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_by_username: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def work_date(self) -> date:
        return self.punched_at.date()
