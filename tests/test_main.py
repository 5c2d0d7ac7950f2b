from conftest import CLOSED_DEPARTMENT, IT_DEPARTMENT, jkt
from src.main import parse_args, report_status


def test_report_status_open(snapshot):
    assert report_status(snapshot, jkt(2025, 7, 7, 9), IT_DEPARTMENT, None).endswith(": open")


def test_report_status_closed(holiday_snapshot):
    message = report_status(holiday_snapshot, jkt(2025, 7, 5, 9), IT_DEPARTMENT, None)

    assert message.endswith("next window opens 2025-07-08T01:00:00+00:00")


def test_parse_args_collects_holiday_years():
    args = parse_args(["--public-holiday-year", "2025", "--public-holiday-year", "2026",
                       "--status-at", "2025-07-07T10:00:00+07:00", "--department", "1"])

    assert args.public_holiday_year == [2025, 2026]
    assert args.status_at == jkt(2025, 7, 7, 10)
    assert args.department == 1


def test_report_status_for_scope_without_hours(snapshot):
    message = report_status(snapshot, jkt(2025, 7, 7, 9), CLOSED_DEPARTMENT, None)

    assert message.endswith("No active business hours for department=3 unit=None.")


def test_report_status_for_unknown_department(snapshot):
    message = report_status(snapshot, jkt(2025, 7, 7, 9), 99, None)

    assert message.endswith("Department 99 is not configured.")
