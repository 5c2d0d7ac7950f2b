"""Gold layer: project SLA due dates for tickets and summarise compliance."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from src.calendars.snapshot import CalendarSnapshot, Scope
from src.sla.errors import SLAError
from src.sla.sla_calculation import (
    business_minutes_between,
    get_expected_sla_minutes,
    get_sla_status,
    project,
)
from src.utils.config import GOLD_DIR

logger = logging.getLogger(__name__)

REQUIRED_TICKET_COLUMNS = {"ticket_id", "created_at"}


def read_tickets(tickets_path: Path) -> pd.DataFrame:
    """Read the ticket table from CSV or Parquet."""
    if tickets_path.suffix.lower() == ".parquet":
        df = pd.read_parquet(tickets_path)
    else:
        df = pd.read_csv(tickets_path)
    return prepare_tickets(df)


def prepare_tickets(df: pd.DataFrame) -> pd.DataFrame:
    """Validate columns and coerce ticket fields to engine-ready types."""
    missing = REQUIRED_TICKET_COLUMNS - set(df.columns)
    if missing:
        missing_list = ", ".join(sorted(missing))
        raise ValueError(f"Ticket data is missing required columns: {missing_list}")

    df = df.copy()
    # Timestamps without an offset are treated as UTC.
    df["created_at"] = pd.to_datetime(df["created_at"], errors="coerce", utc=True)
    if "resolved_at" in df.columns:
        df["resolved_at"] = pd.to_datetime(df["resolved_at"], errors="coerce", utc=True)
    else:
        df["resolved_at"] = pd.NaT
    for col in ["department_id", "unit_id", "duration_minutes"]:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").astype("Int64")
        else:
            df[col] = pd.Series(pd.NA, index=df.index, dtype="Int64")
    if "priority" not in df.columns:
        df["priority"] = pd.NA
    if "business_hours_only" in df.columns:
        flags = df["business_hours_only"].astype("string").str.strip().str.lower()
        df["business_hours_only"] = ~flags.isin(["false", "0", "no"])
    else:
        df["business_hours_only"] = True
    return df


def _optional_int(value: object) -> Optional[int]:
    return None if pd.isna(value) else int(value)


def _project_row(row: pd.Series, snapshot: CalendarSnapshot) -> Dict[str, object]:
    duration = _optional_int(row["duration_minutes"])
    if duration is None:
        duration = get_expected_sla_minutes(
            None if pd.isna(row["priority"]) else str(row["priority"])
        )
    scope = Scope(
        department_id=_optional_int(row["department_id"]),
        unit_id=_optional_int(row["unit_id"]),
        business_hours_only=bool(row["business_hours_only"]),
    )
    result: Dict[str, object] = {
        "duration_minutes": duration,
        "due_date": pd.NaT,
        "started_in_business_hours": pd.NA,
        "holidays_skipped": "",
        "resolution_business_minutes": pd.NA,
        "sla_status": "error",
        "sla_error": pd.NA,
    }
    if pd.isna(row["created_at"]):
        result["sla_error"] = "missing created_at"
        return result

    created_at = row["created_at"].to_pydatetime()
    resolved_at = None if pd.isna(row["resolved_at"]) else row["resolved_at"].to_pydatetime()
    try:
        projection = project(created_at, duration, scope, snapshot)
        if resolved_at is not None:
            result["resolution_business_minutes"] = business_minutes_between(
                created_at, resolved_at, scope, snapshot
            )
    except SLAError as exc:
        logger.warning("SLA projection failed for ticket %s: %s", row["ticket_id"], exc)
        result["sla_error"] = f"{type(exc).__name__}: {exc}"
        return result

    result.update(
        {
            "due_date": projection.due_date,
            "started_in_business_hours": projection.started_in_business_hours,
            "holidays_skipped": ",".join(day.isoformat() for day in projection.holidays_skipped),
            "sla_status": get_sla_status(resolved_at, projection.due_date),
        }
    )
    return result


def calculate_sla_metrics(df: pd.DataFrame, snapshot: CalendarSnapshot) -> pd.DataFrame:
    """Calculate due dates and SLA status for every ticket."""
    df = df.copy()
    if df.empty:
        for col in ["due_date", "started_in_business_hours", "holidays_skipped",
                    "resolution_business_minutes", "sla_status", "sla_error"]:
            df[col] = pd.Series(dtype="object")
        return df

    metrics = df.apply(lambda row: _project_row(row, snapshot), axis=1, result_type="expand")
    for col in metrics.columns:
        df[col] = metrics[col]
    df["due_date"] = pd.to_datetime(df["due_date"], utc=True)
    df["duration_minutes"] = df["duration_minutes"].astype("Int64")
    df["started_in_business_hours"] = df["started_in_business_hours"].astype("boolean")
    df["resolution_business_minutes"] = pd.to_numeric(
        df["resolution_business_minutes"], errors="coerce"
    )
    df["sla_error"] = df["sla_error"].astype("string")
    failed = int((df["sla_status"] == "error").sum())
    logger.info("Projected SLA for %d tickets (%d failed)", len(df) - failed, failed)
    return df


def write_gold(df: pd.DataFrame, output_path: Path) -> Path:
    """Write Gold data to disk."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(output_path, index=False)
    return output_path


def _summarise(df: pd.DataFrame, key: str) -> pd.DataFrame:
    grouped = (
        df.assign(
            met=df["sla_status"].eq("met"),
            violated=df["sla_status"].eq("violated"),
            open=df["sla_status"].eq("open"),
            failed=df["sla_status"].eq("error"),
        )
        .groupby(key, dropna=False)
        .agg(
            ticket_count=("ticket_id", "count"),
            met_count=("met", "sum"),
            violated_count=("violated", "sum"),
            open_count=("open", "sum"),
            error_count=("failed", "sum"),
        )
        .reset_index()
    )
    closed = grouped["met_count"] + grouped["violated_count"]
    grouped["met_pct"] = (grouped["met_count"] / closed.where(closed > 0) * 100).round(2)
    return grouped


def build_sla_reports(df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """Build aggregated SLA reports from Gold data."""
    required_cols = {"ticket_id", "department_id", "priority", "sla_status"}
    missing = required_cols - set(df.columns)
    if missing:
        missing_list = ", ".join(sorted(missing))
        raise ValueError(f"Gold data is missing required columns: {missing_list}")

    return {
        "sla_by_department.csv": _summarise(df, "department_id"),
        "sla_by_priority.csv": _summarise(df, "priority"),
    }


def write_sla_reports(df: pd.DataFrame, output_dir: Path = GOLD_DIR / "reports") -> Dict[str, Path]:
    """Write aggregated SLA reports to disk."""
    output_dir.mkdir(parents=True, exist_ok=True)
    reports = build_sla_reports(df)
    output_paths: Dict[str, Path] = {}
    for filename, report_df in reports.items():
        output_path = output_dir / filename
        report_df.to_csv(output_path, index=False)
        output_paths[filename] = output_path
    return output_paths


def run_sla_report(
    tickets_path: Path,
    snapshot: CalendarSnapshot,
    output_dir: Path = GOLD_DIR,
    output_filename: str = "tickets_sla.parquet",
) -> Path:
    """Execute the SLA report."""
    tickets = read_tickets(tickets_path)
    with_sla = calculate_sla_metrics(tickets, snapshot)
    output_path = write_gold(with_sla, output_dir / output_filename)
    write_sla_reports(with_sla, output_dir / "reports")
    return output_path
