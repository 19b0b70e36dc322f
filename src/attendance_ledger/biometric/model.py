from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


@dataclass(frozen=True)
class BiometricMapping:
    """Device user id -> employee. Only active mappings resolve during import."""

    mapping_id: int
    biometric_id: str
    employee_id: int
    is_active: bool = True
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class RawPunchRow:
    """One parsed row of a device export. `error` is set when the row could not be parsed."""

    row_number: int
    biometric_id: str
    punched_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def day(self) -> Optional[date]:
        return self.punched_at.date() if self.punched_at else None


@dataclass
class ImportResult:
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    incomplete: int = 0
    errors: list = field(default_factory=list)

    def add_error(self, *, biometric_id: str, day: Optional[date], reason: str) -> None:
        self.errors.append(
            {
                "biometricId": biometric_id,
                "date": day.isoformat() if day else None,
                "reason": reason,
            }
        )

    def to_dict(self) -> dict:
        return {
            "imported": self.imported,
            "updated": self.updated,
            "skipped": self.skipped,
            "incomplete": self.incomplete,
            "errors": list(self.errors),
        }
