from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Callable

from .attendance.compiler import AttendanceCompiler
from .attendance.factory import DayStrategyFactory
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .biometric.importer import ImportReconciler
from .biometric.mysql_mapping_repository import MySQLBiometricMappingRepository
from .biometric.reader import PunchFileReader
from .biometric.repository import BiometricMappingRepository
from .biometric.service import BiometricMappingService
from .common.datetime_utils import now_local, parse_hhmm
from .common.locks import KeyedLock
from .core import constants
from .database.connection import DBConfig, DatabaseConnection, TransactionManager
from .employees.mysql_employee_repository import MySQLEmployeeRepository
from .employees.repository import EmployeeRepository
from .ledger.hour_bank import HourBankService
from .ledger.mysql_ledger_repository import MySQLLedgerRepository
from .ledger.policy import HOUR_BANK, VACATION
from .ledger.repository import LedgerRepository
from .ledger.service import LedgerService
from .ledger.vacation import VacationService
from .overtime.service import OvertimeService
from .punches.mysql_punch_repository import MySQLPunchRepository
from .punches.repository import PunchRepository
from .reports.service import ReportService
from .schedules.mysql_schedule_repository import MySQLHolidayRepository, MySQLScheduleRepository
from .schedules.repository import HolidayRepository, ScheduleRepository
from .schedules.service import HolidayService, ScheduleService


@dataclass(frozen=True)
class Repositories:
    employees: EmployeeRepository
    schedules: ScheduleRepository
    holidays: HolidayRepository
    punches: PunchRepository
    attendance: AttendanceRepository
    ledger: LedgerRepository
    mappings: BiometricMappingRepository


@dataclass(frozen=True)
class Container:
    conn: TransactionManager

    employees_repo: EmployeeRepository
    attendance_repo: AttendanceRepository
    punches_repo: PunchRepository
    ledger_repo: LedgerRepository

    schedule_service: ScheduleService
    holiday_service: HolidayService
    attendance_service: AttendanceService
    overtime_service: OvertimeService
    hour_bank_ledger: LedgerService
    vacation_ledger: LedgerService
    hour_bank_service: HourBankService
    vacation_service: VacationService
    mapping_service: BiometricMappingService
    import_reconciler: ImportReconciler
    report_service: ReportService

    day_locks: KeyedLock
    ledger_locks: KeyedLock


def _as_time(value, default: time) -> time:
    if value is None:
        return default
    if isinstance(value, time):
        return value
    return parse_hhmm(str(value))


def assemble_container(
    repos: Repositories,
    tx_manager: TransactionManager,
    *,
    settings: Any = None,
    clock: Callable[[], datetime] = now_local,
) -> Container:
    """Wire services over any set of repositories (MySQL in production, in-memory in tests)."""
    # One lock space per concern: every writer of an employee-day shares `day_locks`.
    day_locks = KeyedLock()
    ledger_locks = KeyedLock()

    schedule_service = ScheduleService(repos.schedules, repos.holidays)
    holiday_service = HolidayService(repos.holidays, schedule_service)

    hour_bank_ledger = LedgerService(HOUR_BANK, repos.ledger, tx_manager, locks=ledger_locks, clock=clock)
    vacation_ledger = LedgerService(VACATION, repos.ledger, tx_manager, locks=ledger_locks, clock=clock)
    hour_bank_service = HourBankService(hour_bank_ledger, repos.employees)
    vacation_service = VacationService(
        vacation_ledger,
        repos.employees,
        days_per_year=getattr(settings, "VACATION_DAYS_PER_YEAR", constants.VACATION_DAYS_PER_YEAR),
    )

    compiler = AttendanceCompiler(
        strategy_factory=DayStrategyFactory(),
        multipliers=getattr(settings, "OVERTIME_MULTIPLIERS", constants.OVERTIME_MULTIPLIERS),
        max_daily_minutes=getattr(settings, "MAX_DAILY_MINUTES", constants.MAX_DAILY_MINUTES),
        night_start=_as_time(getattr(settings, "NIGHT_START", None), constants.NIGHT_START),
        night_end=_as_time(getattr(settings, "NIGHT_END", None), constants.NIGHT_END),
    )
    attendance_service = AttendanceService(
        repos.attendance,
        repos.punches,
        repos.employees,
        schedule_service,
        hour_bank_service,
        tx_manager,
        compiler=compiler,
        day_locks=day_locks,
        clock=clock,
    )
    schedule_service.subscribe(attendance_service.on_calendar_change)

    overtime_service = OvertimeService(
        repos.attendance,
        repos.punches,
        repos.employees,
        hour_bank_service,
        tx_manager,
        day_locks=day_locks,
    )

    mapping_service = BiometricMappingService(repos.mappings, repos.employees)
    import_reconciler = ImportReconciler(
        mapping_service,
        repos.punches,
        repos.attendance,
        attendance_service,
        reader=PunchFileReader(max_rows=getattr(settings, "IMPORT_MAX_ROWS", constants.IMPORT_MAX_ROWS)),
        day_locks=day_locks,
    )
    report_service = ReportService(repos.attendance, repos.employees, hour_bank_ledger, vacation_ledger)

    return Container(
        conn=tx_manager,
        employees_repo=repos.employees,
        attendance_repo=repos.attendance,
        punches_repo=repos.punches,
        ledger_repo=repos.ledger,
        schedule_service=schedule_service,
        holiday_service=holiday_service,
        attendance_service=attendance_service,
        overtime_service=overtime_service,
        hour_bank_ledger=hour_bank_ledger,
        vacation_ledger=vacation_ledger,
        hour_bank_service=hour_bank_service,
        vacation_service=vacation_service,
        mapping_service=mapping_service,
        import_reconciler=import_reconciler,
        report_service=report_service,
        day_locks=day_locks,
        ledger_locks=ledger_locks,
    )


def build_container(*, db_config: dict, settings: Any = None) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))

    repos = Repositories(
        employees=MySQLEmployeeRepository(conn),
        schedules=MySQLScheduleRepository(conn),
        holidays=MySQLHolidayRepository(conn),
        punches=MySQLPunchRepository(conn),
        attendance=MySQLAttendanceRepository(conn),
        ledger=MySQLLedgerRepository(conn),
        mappings=MySQLBiometricMappingRepository(conn),
    )
    return assemble_container(repos, conn, settings=settings)
