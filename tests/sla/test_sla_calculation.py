from datetime import date, datetime, timedelta

import pytest
import pytz

from conftest import BRANCH_UNIT, CLOSED_DEPARTMENT, IT_DEPARTMENT, jkt
from src.calendars.business_hours import BusinessHoursCalendar, BusinessHoursRule
from src.calendars.holiday_calendar import HolidayCalendar
from src.calendars.snapshot import CalendarSnapshot, Scope
from src.sla.errors import InvalidDuration, UnknownScope, UnresolvableSchedule
from src.sla.sla_calculation import (
    calculate_business_minutes_between,
    calculate_sla_due_date,
    evaluate_sla_status,
    get_expected_sla_minutes,
    get_next_business_hour_start,
    get_sla_status,
    is_currently_in_business_hours,
    project,
)

IT = Scope(department_id=IT_DEPARTMENT)


def test_same_day_fit(snapshot):
    result = calculate_sla_due_date(jkt(2025, 7, 7, 10), 240, snapshot, department_id=IT_DEPARTMENT)

    assert result.due_date == jkt(2025, 7, 7, 14)
    assert result.started_in_business_hours is True
    assert result.is_currently_in_business_hours is True
    assert result.holidays_skipped == ()


def test_weekend_start_rolls_to_monday(snapshot):
    result = calculate_sla_due_date(jkt(2025, 7, 5, 15), 240, snapshot, department_id=IT_DEPARTMENT)

    assert result.due_date == jkt(2025, 7, 7, 12)
    assert result.started_in_business_hours is False
    assert result.holidays_skipped == ()


def test_spans_monday_holiday(holiday_snapshot):
    result = calculate_sla_due_date(
        jkt(2025, 7, 4, 15), 480, holiday_snapshot, department_id=IT_DEPARTMENT
    )

    assert result.due_date == jkt(2025, 7, 8, 15)
    assert result.started_in_business_hours is True
    assert result.holidays_skipped == (date(2025, 7, 7),)


def test_fully_closed_calendar_raises(snapshot):
    with pytest.raises(UnresolvableSchedule):
        project(jkt(2025, 7, 7, 10), 60, Scope(department_id=CLOSED_DEPARTMENT), snapshot)


@pytest.mark.parametrize("duration", [0, -30, 1.5, True, "60"])
def test_invalid_duration(snapshot, duration):
    with pytest.raises(InvalidDuration):
        project(jkt(2025, 7, 7, 10), duration, IT, snapshot)


def test_duration_spanning_several_days(snapshot):
    # 6h on Monday, 8h on Tuesday, 2h on Wednesday.
    result = project(jkt(2025, 7, 7, 10), 960, IT, snapshot)

    assert result.due_date == jkt(2025, 7, 9, 10)


def test_due_date_can_land_on_window_end(snapshot):
    result = project(jkt(2025, 7, 7, 10), 360, IT, snapshot)

    assert result.due_date == jkt(2025, 7, 7, 16)


def test_start_before_opening_waits_for_window(snapshot):
    result = project(jkt(2025, 7, 7, 6), 60, IT, snapshot)

    assert result.due_date == jkt(2025, 7, 7, 9)
    assert result.started_in_business_hours is False


def test_start_exactly_at_closing_moves_to_next_day(snapshot):
    result = project(jkt(2025, 7, 7, 16), 30, IT, snapshot)

    assert result.due_date == jkt(2025, 7, 8, 8, 30)
    assert result.started_in_business_hours is False


def test_ticket_created_on_holiday_reports_it(holiday_snapshot):
    result = project(jkt(2025, 7, 7, 10), 60, IT, holiday_snapshot)

    assert result.due_date == jkt(2025, 7, 8, 9)
    assert result.started_in_business_hours is False
    assert result.holidays_skipped == (date(2025, 7, 7),)


def test_unit_split_shift_skips_lunch_break(split_shift_snapshot):
    result = calculate_sla_due_date(
        jkt(2025, 7, 7, 11), 120, split_shift_snapshot, unit_id=BRANCH_UNIT
    )

    assert result.due_date == jkt(2025, 7, 7, 14)


def test_adjacent_windows_are_walked_without_gap():
    rules = [
        BusinessHoursRule(1, "08:00", "12:00", "Asia/Jakarta", department_id=IT_DEPARTMENT),
        BusinessHoursRule(1, "12:00", "16:00", "Asia/Jakarta", department_id=IT_DEPARTMENT),
    ]
    snapshot = CalendarSnapshot(business_hours=BusinessHoursCalendar(rules))

    result = project(jkt(2025, 7, 7, 11), 120, IT, snapshot)

    assert result.due_date == jkt(2025, 7, 7, 13)


def test_calendar_mode_ignores_business_hours(holiday_snapshot):
    start = jkt(2025, 7, 4, 15)
    result = project(
        start, 4 * 24 * 60, Scope(IT_DEPARTMENT, business_hours_only=False), holiday_snapshot
    )

    assert result.due_date == start + timedelta(days=4)
    assert result.started_in_business_hours is True
    assert result.holidays_skipped == (date(2025, 7, 7),)


def test_calendar_mode_works_for_closed_scope(snapshot):
    start = jkt(2025, 7, 5, 15)
    result = project(start, 90, Scope(CLOSED_DEPARTMENT, business_hours_only=False), snapshot)

    assert result.due_date == start + timedelta(minutes=90)
    assert result.started_in_business_hours is False


def test_projection_is_deterministic(holiday_snapshot):
    first = project(jkt(2025, 7, 4, 9, 17), 1234, IT, holiday_snapshot)
    second = project(jkt(2025, 7, 4, 9, 17), 1234, IT, holiday_snapshot)

    assert first == second
    assert hash(first) == hash(second)


def test_due_date_is_monotonic_in_duration(holiday_snapshot):
    start = jkt(2025, 7, 3, 14, 45)
    due_dates = [
        project(start, minutes, IT, holiday_snapshot).due_date
        for minutes in (1, 30, 75, 480, 481, 2000, 5000)
    ]

    assert due_dates == sorted(due_dates)


def test_results_are_utc(snapshot):
    result = project(jkt(2025, 7, 7, 10), 15, IT, snapshot)

    assert result.due_date.utcoffset() == timedelta(0)
    assert result.due_date == datetime(2025, 7, 7, 3, 15, tzinfo=pytz.utc)


def test_naive_start_is_treated_as_utc(snapshot):
    # 03:00 UTC is 10:00 in Jakarta.
    result = project(datetime(2025, 7, 7, 3, 0), 60, IT, snapshot)

    assert result.due_date == jkt(2025, 7, 7, 11)


def test_iteration_bound_stops_long_walks(snapshot):
    with pytest.raises(UnresolvableSchedule):
        project(jkt(2025, 7, 7, 8), 480 * 5, IT, snapshot, max_iterations=2)


def test_unknown_scope(snapshot):
    with pytest.raises(UnknownScope):
        calculate_sla_due_date(jkt(2025, 7, 7, 10), 60, snapshot, department_id=99)
    with pytest.raises(UnknownScope):
        calculate_sla_due_date(jkt(2025, 7, 7, 10), 60, snapshot)


def test_global_default_policy_uses_unscoped_rules():
    default_rules = [BusinessHoursRule(day, "09:00", "17:00", "Asia/Jakarta") for day in range(1, 6)]
    kwargs = dict(
        business_hours=BusinessHoursCalendar(default_rules),
        holidays=HolidayCalendar([]),
        departments=[CLOSED_DEPARTMENT],
    )
    fallback = CalendarSnapshot(missing_rules_policy="global_default", **kwargs)
    closed = CalendarSnapshot(missing_rules_policy="closed", **kwargs)
    scope = Scope(department_id=CLOSED_DEPARTMENT)

    assert project(jkt(2025, 7, 7, 10), 60, scope, fallback).due_date == jkt(2025, 7, 7, 11)
    with pytest.raises(UnresolvableSchedule):
        project(jkt(2025, 7, 7, 10), 60, scope, closed)


def test_daylight_saving_transition_keeps_local_hours():
    new_york = pytz.timezone("America/New_York")
    rules = [BusinessHoursRule(day, "09:00", "17:00", "America/New_York", department_id=5)
             for day in range(1, 6)]
    snapshot = CalendarSnapshot(business_hours=BusinessHoursCalendar(rules))

    # Clocks go forward on Sunday 2025-03-09.
    start = new_york.localize(datetime(2025, 3, 7, 16))
    result = project(start, 240, Scope(department_id=5), snapshot)

    assert result.due_date == new_york.localize(datetime(2025, 3, 10, 12))


def test_window_lost_to_dst_gap_is_skipped():
    new_york = pytz.timezone("America/New_York")
    rules = [
        # 02:00-03:00 does not exist on 2025-03-09.
        BusinessHoursRule(0, "02:00", "03:00", "America/New_York", department_id=5),
        BusinessHoursRule(1, "08:00", "16:00", "America/New_York", department_id=5),
    ]
    snapshot = CalendarSnapshot(business_hours=BusinessHoursCalendar(rules))
    start = new_york.localize(datetime(2025, 3, 8, 12))
    monday_open = new_york.localize(datetime(2025, 3, 10, 8))

    next_start = get_next_business_hour_start(start, snapshot, department_id=5)
    result = project(start, 60, Scope(department_id=5), snapshot)

    assert next_start == monday_open
    assert is_currently_in_business_hours(next_start, snapshot, department_id=5)
    assert result.due_date == monday_open + timedelta(hours=1)


def test_is_currently_in_business_hours(holiday_snapshot):
    assert is_currently_in_business_hours(jkt(2025, 7, 8, 10), holiday_snapshot, IT_DEPARTMENT)
    assert not is_currently_in_business_hours(jkt(2025, 7, 7, 10), holiday_snapshot, IT_DEPARTMENT)


def test_get_next_business_hour_start(holiday_snapshot):
    assert get_next_business_hour_start(jkt(2025, 7, 8, 10), holiday_snapshot, IT_DEPARTMENT) is None
    assert get_next_business_hour_start(
        jkt(2025, 7, 4, 17), holiday_snapshot, IT_DEPARTMENT
    ) == jkt(2025, 7, 8, 8)


def test_business_minutes_between_skips_closed_time(holiday_snapshot):
    minutes = calculate_business_minutes_between(
        jkt(2025, 7, 4, 15), jkt(2025, 7, 8, 10), holiday_snapshot, IT_DEPARTMENT
    )

    assert minutes == 180


def test_business_minutes_between_edge_cases(snapshot):
    start, end = jkt(2025, 7, 7, 10), jkt(2025, 7, 7, 9)

    assert calculate_business_minutes_between(start, end, snapshot, IT_DEPARTMENT) == 0
    assert calculate_business_minutes_between(
        jkt(2025, 7, 5, 10), jkt(2025, 7, 5, 12), snapshot, IT_DEPARTMENT, business_hours_only=False
    ) == 120


def test_business_minutes_match_projection(holiday_snapshot):
    start = jkt(2025, 7, 3, 13, 20)
    projection = project(start, 1000, IT, holiday_snapshot)

    assert calculate_business_minutes_between(
        start, projection.due_date, holiday_snapshot, IT_DEPARTMENT
    ) == 1000


def test_evaluate_sla_status_before_due(snapshot):
    status = evaluate_sla_status(jkt(2025, 7, 7, 14), jkt(2025, 7, 7, 10), IT, snapshot)

    assert status.business_minutes_remaining == 240
    assert status.total_minutes_remaining == 240
    assert status.is_overdue is False
    assert status.is_currently_in_business_hours is True
    assert status.next_business_hour_start is None


def test_evaluate_sla_status_overdue_after_hours(snapshot):
    status = evaluate_sla_status(jkt(2025, 7, 7, 14), jkt(2025, 7, 7, 18), IT, snapshot)

    assert status.business_minutes_remaining == 0
    assert status.total_minutes_remaining == 0
    assert status.is_overdue is True
    assert status.is_currently_in_business_hours is False
    assert status.next_business_hour_start == jkt(2025, 7, 8, 8)


@pytest.mark.parametrize(
    "priority, minutes",
    [("urgent", 240), ("High", 480), ("medium", 1440), ("low", 2880), ("unknown", 1440), (None, 1440)],
)
def test_get_expected_sla_minutes(priority, minutes):
    assert get_expected_sla_minutes(priority) == minutes


def test_get_sla_status():
    due = jkt(2025, 7, 7, 14)

    assert get_sla_status(jkt(2025, 7, 7, 14), due) == "met"
    assert get_sla_status(jkt(2025, 7, 7, 14, 1), due) == "violated"
    assert get_sla_status(None, due) == "open"
