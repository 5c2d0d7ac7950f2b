from datetime import date, datetime

import pytest
import pytz

from src.calendars.business_hours import BusinessHoursCalendar, BusinessHoursRule
from src.calendars.holiday_calendar import HolidayCalendar, HolidayRecord
from src.calendars.snapshot import CalendarSnapshot

JAKARTA = pytz.timezone("Asia/Jakarta")

IT_DEPARTMENT = 1
SUPPORT_DEPARTMENT = 2
CLOSED_DEPARTMENT = 3
BRANCH_UNIT = 10


def jkt(year, month, day, hour, minute=0):
    """Wall-clock time in Jakarta as an aware datetime."""
    return JAKARTA.localize(datetime(year, month, day, hour, minute))


def weekday_rules(department_id=IT_DEPARTMENT, start="08:00", end="16:00"):
    # Monday (1) to Friday (5).
    return [
        BusinessHoursRule(day, start, end, "Asia/Jakarta", department_id=department_id)
        for day in range(1, 6)
    ]


@pytest.fixture
def it_rules():
    return weekday_rules()


@pytest.fixture
def snapshot(it_rules):
    return CalendarSnapshot(
        business_hours=BusinessHoursCalendar(it_rules),
        holidays=HolidayCalendar([]),
        departments=[IT_DEPARTMENT, CLOSED_DEPARTMENT],
        missing_rules_policy="closed",
    )


@pytest.fixture
def monday_holiday():
    # 2025-07-07 is a Monday.
    return HolidayRecord(date=date(2025, 7, 7), name="Company Day")


@pytest.fixture
def holiday_snapshot(it_rules, monday_holiday):
    return CalendarSnapshot(
        business_hours=BusinessHoursCalendar(it_rules),
        holidays=HolidayCalendar([monday_holiday]),
        departments=[IT_DEPARTMENT],
        missing_rules_policy="closed",
    )


@pytest.fixture
def split_shift_snapshot(it_rules):
    # The branch unit works Monday 08:00-12:00 and 13:00-17:00.
    unit_rules = [
        BusinessHoursRule(1, "08:00", "12:00", "Asia/Jakarta", unit_id=BRANCH_UNIT),
        BusinessHoursRule(1, "13:00", "17:00", "Asia/Jakarta", unit_id=BRANCH_UNIT),
    ]
    return CalendarSnapshot(
        business_hours=BusinessHoursCalendar(it_rules + unit_rules),
        holidays=HolidayCalendar([]),
        units={BRANCH_UNIT: IT_DEPARTMENT},
        missing_rules_policy="closed",
    )
