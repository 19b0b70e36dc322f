from __future__ import annotations

import logging
from datetime import date
from typing import BinaryIO, Iterable

from ..attendance.repository import AttendanceRepository
from ..attendance.service import AttendanceService
from ..common.authz import Actor, require_role
from ..common.locks import KeyedLock
from ..core.enums import PunchSource, RecordStatus, Role
from ..core.exceptions import DomainError, DuplicatePunch
from ..punches.repository import PunchRepository
from .model import ImportResult, RawPunchRow
from .reader import PunchFileReader
from .service import BiometricMappingService

logger = logging.getLogger(__name__)


class ImportReconciler:
    """Folds a device export into punches, then recompiles every touched employee-day.

    One bad row never aborts the batch: it becomes an entry in `errors`.
    Re-running the same file is the recovery mechanism.
    """

    def __init__(
        self,
        mappings: BiometricMappingService,
        punches: PunchRepository,
        attendance_records: AttendanceRepository,
        attendance: AttendanceService,
        *,
        reader: PunchFileReader | None = None,
        day_locks: KeyedLock | None = None,
    ):
        self._mappings = mappings
        self._punches = punches
        self._records = attendance_records
        self._attendance = attendance
        self._reader = reader or PunchFileReader()
        self._locks = day_locks or KeyedLock()

    def import_file(self, *, actor: Actor, stream: BinaryIO, filename: str, force_reimport: bool = False) -> ImportResult:
        require_role(actor, Role.SUPERVISOR)
        rows = self._reader.read(stream, filename)
        return self.import_rows(actor=actor, rows=rows, force_reimport=force_reimport, source_name=filename)

    def import_rows(
        self,
        *,
        actor: Actor,
        rows: Iterable[RawPunchRow],
        force_reimport: bool = False,
        source_name: str = "batch",
    ) -> ImportResult:
        require_role(actor, Role.SUPERVISOR)
        result = ImportResult()
        resolver = self._mappings.resolver()
        closed_days: dict[tuple[int, date], bool] = {}
        # (employee_id, day) -> first biometric id seen, for error reporting.
        affected: dict[tuple[int, date], str] = {}

        for row in rows:
            if row.error:
                result.add_error(biometric_id=row.biometric_id, day=row.day, reason=row.error)
                continue

            mapping = resolver.get(row.biometric_id)
            if mapping is None:
                result.add_error(biometric_id=row.biometric_id, day=row.day, reason="Unmapped biometric id")
                continue
            if not mapping.is_active:
                result.add_error(biometric_id=row.biometric_id, day=row.day, reason="Biometric mapping is inactive")
                continue

            key = (mapping.employee_id, row.day)
            if key not in closed_days:
                record = self._records.get(mapping.employee_id, row.day)
                closed_days[key] = bool(record and record.status == RecordStatus.CLOSED)
            if closed_days[key]:
                result.add_error(biometric_id=row.biometric_id, day=row.day, reason="Pay period is closed for this day")
                continue

            try:
                outcome = self._store(row, mapping.employee_id, force_reimport=force_reimport, actor=actor)
            except DomainError as e:
                result.add_error(biometric_id=row.biometric_id, day=row.day, reason=str(e))
                continue

            if outcome == "skipped":
                result.skipped += 1
                continue
            if outcome == "updated":
                result.updated += 1
            else:
                result.imported += 1
            affected.setdefault(key, row.biometric_id)

        for (employee_id, day), biometric_id in sorted(affected.items()):
            try:
                record = self._attendance.recompile(employee_id, day, actor=actor)
            except DomainError as e:
                result.add_error(biometric_id=biometric_id, day=day, reason=str(e))
                continue
            if record.status == RecordStatus.INCOMPLETE:
                result.incomplete += 1

        logger.info(
            "Import of %s by %s: %s imported, %s updated, %s skipped, %s incomplete days, %s errors",
            source_name,
            actor.username or actor.user_id,
            result.imported,
            result.updated,
            result.skipped,
            result.incomplete,
            len(result.errors),
        )
        return result

    def _store(self, row: RawPunchRow, employee_id: int, *, force_reimport: bool, actor: Actor) -> str:
        notes = f"Imported from device id {row.biometric_id}"
        with self._locks.hold((employee_id, row.day)):
            existing = self._punches.find(employee_id, row.punched_at)
            if existing is None:
                try:
                    self._punches.insert(
                        employee_id=employee_id,
                        punched_at=row.punched_at,
                        source=PunchSource.BIOMETRIC,
                        notes=notes,
                        created_by=actor.user_id,
                        created_by_username=actor.username,
                    )
                    return "imported"
                except DuplicatePunch:
                    existing = self._punches.find(employee_id, row.punched_at)
                    if existing is None:
                        raise

            # Manual punches carry a justification; the device never overwrites them.
            if not force_reimport or existing.source != PunchSource.BIOMETRIC:
                return "skipped"
            self._punches.replace(punch_id=existing.punch_id, source=PunchSource.BIOMETRIC, notes=notes)
            return "updated"
