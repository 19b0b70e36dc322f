from attendance_ledger.attendance.factory import DayStrategyFactory
from attendance_ledger.attendance.strategies.absent_strategy import AbsentStrategy
from attendance_ledger.attendance.strategies.off_day_strategy import OffDayStrategy
from attendance_ledger.attendance.strategies.override_strategy import NonWorkedOverrideStrategy
from attendance_ledger.attendance.strategies.worked_strategy import WorkedDayStrategy
from attendance_ledger.core.enums import DayType


def test_factory_worked_day():
    strategy = DayStrategyFactory().for_day(day_type=DayType.WORKED, override=None)

    assert isinstance(strategy, WorkedDayStrategy)


def test_factory_worked_override_keeps_worked_strategy():
    strategy = DayStrategyFactory().for_day(day_type=DayType.WORKED, override=DayType.WORKED)

    assert isinstance(strategy, WorkedDayStrategy)


def test_factory_holiday_and_rest_are_off_days():
    factory = DayStrategyFactory()

    assert isinstance(factory.for_day(day_type=DayType.HOLIDAY, override=None), OffDayStrategy)
    assert isinstance(factory.for_day(day_type=DayType.REST, override=None), OffDayStrategy)


def test_factory_absent_without_punches():
    strategy = DayStrategyFactory().for_day(day_type=DayType.ABSENT, override=None)

    assert isinstance(strategy, AbsentStrategy)


def test_factory_non_worked_override_wins():
    factory = DayStrategyFactory()

    for day_type in (DayType.VACATION, DayType.ABSENT, DayType.REST, DayType.MEDICAL_LEAVE):
        assert isinstance(factory.for_day(day_type=day_type, override=day_type), NonWorkedOverrideStrategy)
