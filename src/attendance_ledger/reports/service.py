from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository, RecordQuery
from ..common.datetime_utils import month_bounds
from ..common.pagination import Page, PageRequest
from ..common.validators import require_date_range
from ..core.enums import ABSENCE_DAY_TYPES, DayType, OvertimeStatus, RecordStatus
from ..core.exceptions import EmployeeNotFound, ValidationError
from ..employees.model import Employee
from ..employees.repository import EmployeeRepository
from ..ledger.service import LedgerService


@dataclass(frozen=True)
class HoursStats:
    pending_overtime_count: int
    incomplete_records_count: int
    debtor_count: int
    absence_alerts_count: int
    total_positive_minutes: int
    total_negative_minutes: int

    def to_dict(self) -> dict:
        return {
            "pendingOvertimeCount": self.pending_overtime_count,
            "incompleteRecordsCount": self.incomplete_records_count,
            "debtorCount": self.debtor_count,
            "absenceAlertsCount": self.absence_alerts_count,
            "totalPositiveMinutes": self.total_positive_minutes,
            "totalNegativeMinutes": self.total_negative_minutes,
        }


def _employee_json(employees: dict[int, Employee], employee_id: int) -> dict:
    employee = employees.get(employee_id)
    return employee.summary() if employee else {"id": employee_id}


class ReportService:
    """Read-only aggregates over compiled attendance and ledger balances."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        employees: EmployeeRepository,
        hour_bank: LedgerService,
        vacation: LedgerService,
    ):
        self._attendance = attendance
        self._employees = employees
        self._hour_bank = hour_bank
        self._vacation = vacation

    def _page_rows(self, page: Page[AttendanceRecord], build) -> Page[dict]:
        employees = self._employees.get_many({r.employee_id for r in page.items})
        return Page(
            items=[build(r, employees) for r in page.items],
            total=page.total,
            page=page.page,
            page_size=page.page_size,
        )

    def detail(
        self,
        *,
        start: date,
        end: date,
        employee_id: Optional[int] = None,
        status: Optional[RecordStatus] = None,
        day_type: Optional[DayType] = None,
        page: PageRequest | None = None,
    ) -> Page[dict]:
        require_date_range(start, end)
        query = RecordQuery(
            start=start,
            end=end,
            employee_id=employee_id,
            status=status,
            day_types=(day_type,) if day_type else (),
        )
        return self._page_rows(
            self._attendance.search(query, page or PageRequest()),
            lambda r, employees: {
                "recordId": r.record_id,
                "date": r.work_date.isoformat(),
                "dayType": r.day_type.value,
                "status": r.status.value,
                "scheduledMinutes": r.scheduled_minutes,
                "effectiveMinutes": r.effective_minutes,
                "lateMinutes": r.late_minutes,
                "overtimeEffectiveMinutes": r.overtime_effective_minutes,
                "employee": _employee_json(employees, r.employee_id),
            },
        )

    def detail_rows(
        self,
        *,
        start: date,
        end: date,
        employee_id: Optional[int] = None,
        status: Optional[RecordStatus] = None,
        day_type: Optional[DayType] = None,
    ) -> list[dict]:
        """Flat, unpaginated rows for file export."""
        require_date_range(start, end)
        records = self._attendance.list_all(
            RecordQuery(
                start=start,
                end=end,
                employee_id=employee_id,
                status=status,
                day_types=(day_type,) if day_type else (),
            )
        )
        employees = self._employees.get_many({r.employee_id for r in records})
        rows = []
        for r in records:
            employee = employees.get(r.employee_id)
            rows.append(
                {
                    "date": r.work_date.isoformat(),
                    "dni": employee.dni if employee else "",
                    "employee": f"{employee.first_names} {employee.last_names}" if employee else str(r.employee_id),
                    "day_type": r.day_type.value,
                    "status": r.status.value,
                    "scheduled_minutes": r.scheduled_minutes,
                    "effective_minutes": r.effective_minutes,
                    "late_minutes": r.late_minutes,
                    "overtime_raw_minutes": r.overtime_raw_minutes,
                    "overtime_status": r.overtime_status.value,
                    "overtime_effective_minutes": r.overtime_effective_minutes,
                    "document_ref": r.document_ref or "",
                }
            )
        return rows

    def monthly_summary(self, employee_id: int, year: int, month: int) -> dict:
        employee = self._employees.get_by_id(int(employee_id))
        if employee is None:
            raise EmployeeNotFound(f"Employee {employee_id} not found")
        start, end = month_bounds(year, month)
        records = self._attendance.list_all(RecordQuery(start=start, end=end, employee_id=int(employee_id)))
        return self._summarize(employee, records, int(year), int(month))

    def monthly(
        self,
        *,
        year: int,
        month: int,
        employee_id: Optional[int] = None,
        page: PageRequest | None = None,
    ) -> Page[dict]:
        page = page or PageRequest()
        start, end = month_bounds(year, month)

        if employee_id is not None:
            employee = self._employees.get_by_id(int(employee_id))
            if employee is None:
                raise EmployeeNotFound(f"Employee {employee_id} not found")
            employees: Sequence[Employee] = [employee]
        else:
            employees = self._employees.list_active()

        chunk = Page.slice(list(employees), page)
        records = self._attendance.list_all(
            RecordQuery(start=start, end=end, employee_ids=[e.employee_id for e in chunk.items])
        )
        by_employee: dict[int, list[AttendanceRecord]] = {}
        for r in records:
            by_employee.setdefault(r.employee_id, []).append(r)

        items = [
            self._summarize(e, by_employee.get(e.employee_id, []), int(year), int(month))
            for e in chunk.items
        ]
        return Page(items=items, total=chunk.total, page=chunk.page, page_size=chunk.page_size)

    def tardiness(
        self,
        *,
        start: date,
        end: date,
        employee_id: Optional[int] = None,
        page: PageRequest | None = None,
    ) -> Page[dict]:
        require_date_range(start, end)
        query = RecordQuery(start=start, end=end, employee_id=employee_id, late_only=True)
        return self._page_rows(
            self._attendance.search(query, page or PageRequest()),
            lambda r, employees: {
                "recordId": r.record_id,
                "date": r.work_date.isoformat(),
                "lateMinutes": r.late_minutes,
                "scheduledMinutes": r.scheduled_minutes,
                "effectiveMinutes": r.effective_minutes,
                "employee": _employee_json(employees, r.employee_id),
            },
        )

    def absences(
        self,
        *,
        start: date,
        end: date,
        day_type: Optional[DayType] = None,
        employee_id: Optional[int] = None,
        page: PageRequest | None = None,
    ) -> Page[dict]:
        require_date_range(start, end)
        if day_type is not None and day_type not in ABSENCE_DAY_TYPES:
            raise ValidationError(f"{day_type.value} is not an absence type")
        query = RecordQuery(
            start=start,
            end=end,
            employee_id=employee_id,
            day_types=(day_type,) if day_type else tuple(sorted(ABSENCE_DAY_TYPES, key=lambda t: t.value)),
        )
        return self._page_rows(
            self._attendance.search(query, page or PageRequest()),
            lambda r, employees: {
                "recordId": r.record_id,
                "date": r.work_date.isoformat(),
                "dayType": r.day_type.value,
                "documentRef": r.document_ref,
                "notes": r.override_notes,
                "registeredBy": r.override_by,
                "employee": _employee_json(employees, r.employee_id),
            },
        )

    def stats(self, *, today: date) -> HoursStats:
        """Dashboard counters. Absence alerts: unjustified ABSENT days of the current month."""
        month_start, _ = month_bounds(today.year, today.month)
        heads = self._hour_bank.heads()
        return HoursStats(
            pending_overtime_count=self._attendance.count(RecordQuery(overtime_status=OvertimeStatus.PENDING)),
            incomplete_records_count=self._attendance.count(RecordQuery(status=RecordStatus.INCOMPLETE)),
            debtor_count=sum(1 for h in heads if h.balance < 0),
            absence_alerts_count=self._attendance.count(
                RecordQuery(start=month_start, end=today, day_types=(DayType.ABSENT,))
            ),
            total_positive_minutes=int(sum(h.balance for h in heads if h.balance > 0)),
            total_negative_minutes=int(sum(h.balance for h in heads if h.balance < 0)),
        )

    def _summarize(self, employee: Employee, records: Sequence[AttendanceRecord], year: int, month: int) -> dict:
        day_types = Counter(r.day_type.value for r in records)
        return {
            "employeeId": employee.employee_id,
            "employee": {
                "nombres": employee.first_names,
                "apellidos": employee.last_names,
                "dni": employee.dni,
            },
            "year": year,
            "month": month,
            "workedDays": sum(1 for r in records if r.effective_minutes > 0),
            "effectiveMinutes": sum(r.effective_minutes for r in records),
            "lateMinutes": sum(r.late_minutes for r in records),
            "approvedOvertimeMinutes": sum(
                r.overtime_effective_minutes for r in records if r.overtime_status == OvertimeStatus.APPROVED
            ),
            "hourBankBalance": int(self._hour_bank.head_balance(employee.employee_id)),
            "vacationBalance": float(self._vacation.head_balance(employee.employee_id)),
            "dayTypeSummary": dict(day_types),
        }
