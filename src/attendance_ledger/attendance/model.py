from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Optional, Sequence

from ..core.enums import DayType, OvertimeStatus, RecordStatus
from ..core.exceptions import OvertimeAlreadyResolved, RecordClosed, ValidationError
from ..punches.model import AttendancePunch


@dataclass(frozen=True)
class DayComputation:
    """Output of the compiler for one employee-day. Replaces the computed part of a record wholesale."""

    day_type: DayType
    computed_day_type: DayType
    status: RecordStatus
    scheduled_minutes: int = 0
    effective_minutes: int = 0
    late_minutes: int = 0
    overtime_raw_minutes: int = 0
    overtime_multiplier: float = 1.0
    overtime_status: OvertimeStatus = OvertimeStatus.NONE
    is_holiday: bool = False
    is_night_shift: bool = False
    punch_count: int = 0


@dataclass
class AttendanceRecord:
    """Aggregate for one (employee, date).

    Every actor goes through a named mutation: the compiler (`recompute`), the
    override manager (`set_override` / `clear_override`), the overtime workflow
    (`approve_overtime` / `reject_overtime`), superuser correction (`patch`) and
    period closing (`close`). `revision` detects lost updates between them.
    """

    employee_id: int
    work_date: date
    day_type: DayType
    computed_day_type: DayType
    status: RecordStatus
    scheduled_minutes: int = 0
    effective_minutes: int = 0
    late_minutes: int = 0
    overtime_raw_minutes: int = 0
    overtime_effective_minutes: int = 0
    overtime_multiplier: float = 1.0
    overtime_status: OvertimeStatus = OvertimeStatus.NONE
    overtime_notes: Optional[str] = None
    is_holiday: bool = False
    is_night_shift: bool = False
    override_day_type: Optional[DayType] = None
    document_ref: Optional[str] = None
    override_notes: Optional[str] = None
    override_by: Optional[str] = None
    record_id: Optional[int] = None
    revision: int = 0
    punches: Sequence[AttendancePunch] = field(default_factory=tuple)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def new(cls, employee_id: int, work_date: date, computation: DayComputation) -> "AttendanceRecord":
        record = cls(
            employee_id=employee_id,
            work_date=work_date,
            day_type=computation.day_type,
            computed_day_type=computation.computed_day_type,
            status=computation.status,
        )
        record.recompute(computation)
        return record

    @property
    def is_closed(self) -> bool:
        return self.status == RecordStatus.CLOSED

    @property
    def has_override(self) -> bool:
        return self.override_day_type is not None

    def copy(self) -> "AttendanceRecord":
        return replace(self, punches=tuple(self.punches))

    def _ensure_open(self) -> None:
        if self.is_closed:
            raise RecordClosed(f"Record {self.work_date.isoformat()} belongs to a closed pay period")

    # Compiler

    def recompute(self, computation: DayComputation) -> int:
        """Replace computed fields; returns approved minutes that must be reversed from the hour bank.

        A resolved overtime decision survives when the recomputed raw overtime is unchanged.
        """
        self._ensure_open()

        previous_status = self.overtime_status
        previous_raw = self.overtime_raw_minutes
        previous_effective = self.overtime_effective_minutes

        self.day_type = computation.day_type
        self.computed_day_type = computation.computed_day_type
        self.scheduled_minutes = computation.scheduled_minutes
        self.effective_minutes = computation.effective_minutes
        self.late_minutes = computation.late_minutes
        self.overtime_raw_minutes = computation.overtime_raw_minutes
        self.overtime_multiplier = computation.overtime_multiplier
        self.is_holiday = computation.is_holiday
        self.is_night_shift = computation.is_night_shift
        self.status = computation.status
        self.overtime_status = computation.overtime_status
        self.overtime_effective_minutes = 0

        keep_decision = (
            previous_status in (OvertimeStatus.APPROVED, OvertimeStatus.REJECTED)
            and computation.overtime_status == OvertimeStatus.PENDING
            and computation.overtime_raw_minutes == previous_raw
        )
        if keep_decision:
            self.overtime_status = previous_status
            self.status = RecordStatus.COMPLETE
            if previous_status == OvertimeStatus.APPROVED:
                self.overtime_effective_minutes = previous_effective
            else:
                self.effective_minutes = min(self.effective_minutes, self.scheduled_minutes)
            return 0

        self.overtime_notes = None
        if previous_status == OvertimeStatus.APPROVED:
            return previous_effective
        return 0

    # Override manager

    def set_override(self, day_type: DayType, *, notes: str, document_ref: Optional[str], by: Optional[str]) -> None:
        self._ensure_open()
        self.override_day_type = day_type
        self.override_notes = notes
        self.document_ref = document_ref
        self.override_by = by

    def clear_override(self) -> None:
        self._ensure_open()
        self.override_day_type = None
        self.override_notes = None
        self.document_ref = None
        self.override_by = None

    # Overtime workflow

    def _ensure_pending(self) -> None:
        if self.overtime_status in (OvertimeStatus.APPROVED, OvertimeStatus.REJECTED):
            raise OvertimeAlreadyResolved(
                f"Overtime for {self.work_date.isoformat()} is already {self.overtime_status.value}"
            )
        if self.overtime_status != OvertimeStatus.PENDING:
            raise ValidationError(f"No pending overtime on {self.work_date.isoformat()}")

    def approve_overtime(self, *, minutes: Optional[int] = None, notes: Optional[str] = None) -> int:
        """PENDING -> APPROVED. Returns the minutes to credit to the hour bank."""
        self._ensure_open()
        self._ensure_pending()

        granted = self.overtime_raw_minutes if minutes is None else int(minutes)
        if not 0 < granted <= self.overtime_raw_minutes:
            raise ValidationError(f"Approved minutes must be between 1 and {self.overtime_raw_minutes}")

        self.overtime_status = OvertimeStatus.APPROVED
        self.overtime_effective_minutes = granted
        self.overtime_notes = notes
        # Only the approved share of the extra time counts as effective.
        self.effective_minutes = min(self.effective_minutes, self.scheduled_minutes + granted)
        self.status = RecordStatus.COMPLETE
        return granted

    def reject_overtime(self, *, notes: str) -> None:
        self._ensure_open()
        self._ensure_pending()

        self.overtime_status = OvertimeStatus.REJECTED
        self.overtime_effective_minutes = 0
        self.overtime_notes = notes
        self.effective_minutes = min(self.effective_minutes, self.scheduled_minutes)
        self.status = RecordStatus.COMPLETE

    # Superuser correction

    def patch(self, *, effective_minutes: Optional[int] = None, overtime_effective_minutes: Optional[int] = None) -> dict:
        """Direct correction, allowed on closed records. Returns {field: (old, new)}."""
        changes: dict = {}
        if overtime_effective_minutes is not None:
            if self.overtime_status != OvertimeStatus.APPROVED:
                raise ValidationError("Overtime minutes can only be corrected on approved overtime")
            if overtime_effective_minutes < 0:
                raise ValidationError("Overtime minutes cannot be negative")
            changes["overtimeEffectiveMinutes"] = (self.overtime_effective_minutes, int(overtime_effective_minutes))
            self.overtime_effective_minutes = int(overtime_effective_minutes)
        if effective_minutes is not None:
            if effective_minutes < 0:
                raise ValidationError("Effective minutes cannot be negative")
            changes["effectiveMinutes"] = (self.effective_minutes, int(effective_minutes))
            self.effective_minutes = int(effective_minutes)
        if not changes:
            raise ValidationError("Nothing to correct")

        problem = self.invariant_violation()
        if problem:
            raise ValidationError(problem)
        return changes

    def close(self) -> None:
        if self.overtime_status == OvertimeStatus.PENDING:
            raise ValidationError(f"Overtime on {self.work_date.isoformat()} is still pending")
        self.status = RecordStatus.CLOSED

    # Invariants

    def invariant_violation(self) -> Optional[str]:
        if self.late_minutes < 0 or self.scheduled_minutes < 0 or self.effective_minutes < 0:
            return "Minute fields cannot be negative"
        if self.status == RecordStatus.INCOMPLETE:
            return None
        extra = (
            self.overtime_raw_minutes
            if self.overtime_status == OvertimeStatus.PENDING
            else self.overtime_effective_minutes
        )
        if self.effective_minutes > self.scheduled_minutes + extra:
            return (
                f"Effective minutes ({self.effective_minutes}) exceed scheduled plus overtime "
                f"({self.scheduled_minutes} + {extra})"
            )
        return None
