"""Main orchestration for the SLA deadline pipeline."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from src.calendars.loader import load_snapshot, public_holiday_records
from src.calendars.snapshot import CalendarSnapshot
from src.gold.sla_report import run_sla_report
from src.ingestion.ingest_calendar_raw import ingest_calendar_exports
from src.sla.errors import SLAError
from src.sla.sla_calculation import (
    get_next_business_hour_start,
    is_currently_in_business_hours,
)
from src.utils.config import (
    BUSINESS_HOURS_FILENAME,
    HOLIDAYS_FILENAME,
    RAW_DIR,
    TICKETS_INPUT_PATH,
    UNITS_FILENAME,
)
from src.utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def build_snapshot(public_holiday_years: Sequence[int] = ()) -> CalendarSnapshot:
    """Ingest calendar exports and load them into a snapshot."""
    ingest_calendar_exports()
    extra = public_holiday_records(public_holiday_years) if public_holiday_years else []
    return load_snapshot(
        RAW_DIR / BUSINESS_HOURS_FILENAME,
        RAW_DIR / HOLIDAYS_FILENAME,
        RAW_DIR / UNITS_FILENAME,
        extra_holidays=extra,
    )


def run_pipeline(
    tickets_path: Path = TICKETS_INPUT_PATH,
    public_holiday_years: Sequence[int] = (),
) -> Path:
    """Run the end-to-end pipeline."""
    snapshot = build_snapshot(public_holiday_years)
    output_path = run_sla_report(tickets_path, snapshot)
    logger.info("SLA report written to %s", output_path)
    return output_path


def report_status(
    snapshot: CalendarSnapshot,
    at: datetime,
    department_id: Optional[int],
    unit_id: Optional[int],
) -> str:
    """Describe whether a scope is open at ``at`` and when it next opens."""
    try:
        if is_currently_in_business_hours(at, snapshot, department_id, unit_id):
            return f"{at.isoformat()}: open"
        next_start = get_next_business_hour_start(at, snapshot, department_id, unit_id)
    except SLAError as exc:
        logger.warning("Status check failed: %s", exc)
        return f"{at.isoformat()}: {exc}"
    return f"{at.isoformat()}: closed, next window opens {next_start.isoformat()}"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Project SLA due dates for helpdesk tickets.")
    parser.add_argument("--tickets", type=Path, default=TICKETS_INPUT_PATH)
    parser.add_argument(
        "--public-holiday-year",
        type=int,
        action="append",
        default=[],
        help="Add national public holidays for this year (repeatable).",
    )
    parser.add_argument("--status-at", type=datetime.fromisoformat, default=None,
                        help="Only report business-hours status at this ISO instant.")
    parser.add_argument("--department", type=int, default=None)
    parser.add_argument("--unit", type=int, default=None)
    parser.add_argument("--log-level", default=None)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    if args.status_at is not None:
        snapshot = build_snapshot(args.public_holiday_year)
        print(report_status(snapshot, args.status_at, args.department, args.unit))
        return
    run_pipeline(args.tickets, args.public_holiday_year)


if __name__ == "__main__":
    main()
