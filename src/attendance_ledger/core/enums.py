from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Actor roles, ordered by privilege."""

    STAFF = "staff"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"
    SUPERUSER = "superuser"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def at_least(self, other: "Role") -> bool:
        return self.rank >= other.rank


_ROLE_RANK = {
    Role.STAFF: 0,
    Role.SUPERVISOR: 1,
    Role.ADMIN: 2,
    Role.SUPERUSER: 3,
}


class DayType(str, Enum):
    """Classification of one calendar day for one employee."""

    WORKED = "WORKED"
    REST = "REST"
    HOLIDAY = "HOLIDAY"
    VACATION = "VACATION"
    ABSENT = "ABSENT"
    PERMIT = "PERMIT"
    MEDICAL_LEAVE = "MEDICAL_LEAVE"
    TRAINING = "TRAINING"
    SUSPENSION = "SUSPENSION"
    COMPENSATORY_REST = "COMPENSATORY_REST"


# Formal leave: an override to one of these needs a supporting document.
DOCUMENTED_DAY_TYPES = frozenset(
    {
        DayType.VACATION,
        DayType.PERMIT,
        DayType.MEDICAL_LEAVE,
        DayType.TRAINING,
        DayType.SUSPENSION,
        DayType.COMPENSATORY_REST,
    }
)

# Overrides that keep schedule and punch derived minutes.
WORKED_DAY_TYPES = frozenset({DayType.WORKED})

ABSENCE_DAY_TYPES = frozenset(
    {
        DayType.ABSENT,
        DayType.VACATION,
        DayType.PERMIT,
        DayType.MEDICAL_LEAVE,
        DayType.TRAINING,
        DayType.SUSPENSION,
        DayType.COMPENSATORY_REST,
    }
)


class RecordStatus(str, Enum):
    COMPLETE = "COMPLETE"
    INCOMPLETE = "INCOMPLETE"
    PENDING_OVERTIME = "PENDING_OVERTIME"
    CLOSED = "CLOSED"


class OvertimeStatus(str, Enum):
    """Overtime approval workflow states."""

    NONE = "NONE"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PunchSource(str, Enum):
    BIOMETRIC = "BIOMETRIC"
    MANUAL = "MANUAL"
    SYSTEM = "SYSTEM"


class LedgerName(str, Enum):
    HOUR_BANK = "HOUR_BANK"
    VACATION = "VACATION"


class HourBankTxType(str, Enum):
    OVERTIME_ACCRUAL = "OVERTIME_ACCRUAL"
    COMPENSATORY_REST = "COMPENSATORY_REST"
    PERMIT = "PERMIT"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"


class VacationTxType(str, Enum):
    ACCRUAL = "ACCRUAL"
    USAGE = "USAGE"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"
