"""Load calendar exports (business hours, holidays, units) into a snapshot."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from src.calendars.business_hours import BusinessHoursCalendar, BusinessHoursRule
from src.calendars.holiday_calendar import HolidayCalendar, HolidayRecord, HolidayScope
from src.calendars.snapshot import CalendarSnapshot
from src.sla.errors import CalendarConfigError
from src.utils.config import (
    CALENDAR_REJECTS_DIR,
    SLA_DEFAULT_TIMEZONE,
    SLA_MISSING_RULES_POLICY,
)
from src.utils.date_utils import fetch_public_holidays, parse_time_of_day

logger = logging.getLogger(__name__)

# Admin exports use camelCase column names.
BUSINESS_HOURS_COLUMNS = {
    "departmentId": "department_id",
    "unitId": "unit_id",
    "dayOfWeek": "day_of_week",
    "startTime": "start_time",
    "endTime": "end_time",
    "timezone": "timezone",
    "isActive": "active",
}
HOLIDAY_COLUMNS = {
    "date": "date",
    "name": "name",
    "description": "description",
    "departmentId": "department_id",
    "unitId": "unit_id",
    "isActive": "active",
}
UNIT_COLUMNS = {"id": "unit_id", "unitId": "unit_id", "departmentId": "department_id"}


def read_calendar_table(path: Path) -> pd.DataFrame:
    """Read a CSV or Parquet export from disk."""
    if path.suffix.lower() == ".parquet":
        return pd.read_parquet(path)
    return pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])


def validate_columns(df: pd.DataFrame, required: Iterable[str], label: str) -> None:
    """Raise when a table is missing required columns."""
    missing = set(required) - set(df.columns)
    if missing:
        missing_list = ", ".join(sorted(missing))
        raise ValueError(f"{label} data is missing required columns: {missing_list}")


def _rename(df: pd.DataFrame, mapping: Dict[str, str]) -> pd.DataFrame:
    renamed = df.rename(columns={k: v for k, v in mapping.items() if k in df.columns})
    return renamed.loc[:, ~renamed.columns.duplicated()]


def _to_optional_int(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").astype("Int64")


def _to_bool(series: pd.Series) -> pd.Series:
    # Missing flags default to active.
    text = series.astype("string").str.strip().str.lower().fillna("true")
    return ~text.isin(["false", "0", "no", "n", "f"])


def _is_valid_time(value: object) -> bool:
    try:
        parse_time_of_day(str(value))
    except CalendarConfigError:
        return False
    return True


def _optional(value: object) -> Optional[int]:
    return None if pd.isna(value) else int(value)


def normalize_business_hours(df: pd.DataFrame) -> pd.DataFrame:
    """Standardize column names and types for business-hours rows."""
    df = _rename(df.copy(), BUSINESS_HOURS_COLUMNS)
    validate_columns(df, ["day_of_week", "start_time", "end_time"], "Business hours")
    for col in ["department_id", "unit_id"]:
        df[col] = _to_optional_int(df[col]) if col in df.columns else pd.Series(pd.NA, index=df.index, dtype="Int64")
    df["day_of_week"] = _to_optional_int(df["day_of_week"])
    df["start_time"] = df["start_time"].astype("string").str.strip()
    df["end_time"] = df["end_time"].astype("string").str.strip()
    df["timezone"] = (
        df["timezone"].astype("string").str.strip().fillna(SLA_DEFAULT_TIMEZONE)
        if "timezone" in df.columns
        else SLA_DEFAULT_TIMEZONE
    )
    df["active"] = _to_bool(df["active"]) if "active" in df.columns else True
    return df


def split_business_hours_quality(df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split rule rows into valid and rejected sets with a reject_reason column.

    Overlapping windows are not a row-level problem; they fail when the
    calendar is built.
    """
    df = df.copy()
    bad_day = ~df["day_of_week"].isin(range(7)) | df["day_of_week"].isna()
    bad_time = ~(
        df["start_time"].map(_is_valid_time).astype(bool)
        & df["end_time"].map(_is_valid_time).astype(bool)
    )
    not_ordered = pd.Series(
        [
            not bad and parse_time_of_day(str(start)) >= parse_time_of_day(str(end))
            for bad, start, end in zip(bad_time, df["start_time"], df["end_time"])
        ],
        index=df.index,
    )
    both_scopes = df["department_id"].notna() & df["unit_id"].notna()

    reject_reason = pd.Series(pd.NA, index=df.index, dtype="string")
    reject_reason = reject_reason.mask(both_scopes, "department_and_unit")
    reject_reason = reject_reason.mask(not_ordered, "start_not_before_end")
    reject_reason = reject_reason.mask(bad_time, "invalid_time").mask(bad_day, "invalid_day_of_week")

    rejects = df[reject_reason.notna()].copy()
    rejects["reject_reason"] = reject_reason[reject_reason.notna()]
    valid = df[reject_reason.isna()].copy()
    return valid, rejects


def build_business_hours(df: pd.DataFrame) -> BusinessHoursCalendar:
    """Turn validated rows into a calendar; raises on overlaps or bad timezones."""
    rules: List[BusinessHoursRule] = []
    for row in df.itertuples(index=False):
        rules.append(
            BusinessHoursRule(
                day_of_week=int(row.day_of_week),
                start_time=str(row.start_time),
                end_time=str(row.end_time),
                timezone=str(row.timezone),
                department_id=_optional(row.department_id),
                unit_id=_optional(row.unit_id),
                active=bool(row.active),
            )
        )
    return BusinessHoursCalendar(rules)


def normalize_holidays(df: pd.DataFrame) -> pd.DataFrame:
    """Standardize column names and types for holiday rows."""
    df = _rename(df.copy(), HOLIDAY_COLUMNS)
    validate_columns(df, ["date", "name"], "Holiday")
    for col in ["department_id", "unit_id"]:
        df[col] = _to_optional_int(df[col]) if col in df.columns else pd.Series(pd.NA, index=df.index, dtype="Int64")
    # Dates are calendar days; any time component in the export is dropped.
    df["date"] = pd.to_datetime(df["date"], errors="coerce").dt.date
    df["name"] = df["name"].astype("string").str.strip()
    df["description"] = (
        df["description"].astype("string").fillna("") if "description" in df.columns else ""
    )
    df["active"] = _to_bool(df["active"]) if "active" in df.columns else True
    return df


def split_holiday_quality(df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split holiday rows into valid and rejected sets."""
    df = df.copy()
    missing_date = df["date"].isna()
    both_scopes = df["department_id"].notna() & df["unit_id"].notna()

    reject_reason = pd.Series(pd.NA, index=df.index, dtype="string")
    reject_reason = reject_reason.mask(both_scopes, "department_and_unit")
    reject_reason = reject_reason.mask(missing_date, "invalid_date")

    rejects = df[reject_reason.notna()].copy()
    rejects["reject_reason"] = reject_reason[reject_reason.notna()]
    valid = df[reject_reason.isna()].copy()
    return valid, rejects


def build_holiday_records(df: pd.DataFrame) -> List[HolidayRecord]:
    return [
        HolidayRecord(
            date=row.date,
            name=str(row.name) if not pd.isna(row.name) else "",
            scope=HolidayScope(_optional(row.department_id), _optional(row.unit_id)),
            active=bool(row.active),
            description=str(row.description),
        )
        for row in df.itertuples(index=False)
    ]


def public_holiday_records(
    years: Sequence[int], country_code: str | None = None
) -> List[HolidayRecord]:
    """Fetch national public holidays as global holiday records."""
    records: List[HolidayRecord] = []
    for year in sorted(set(years)):
        for day, name in sorted(fetch_public_holidays(year, country_code=country_code).items()):
            records.append(HolidayRecord(date=day, name=name, description="Public holiday"))
    return records


def read_units(path: Path) -> Dict[int, Optional[int]]:
    """Map unit id to parent department id."""
    df = _rename(read_calendar_table(path), UNIT_COLUMNS)
    validate_columns(df, ["unit_id"], "Unit")
    unit_ids = _to_optional_int(df["unit_id"])
    departments = (
        _to_optional_int(df["department_id"])
        if "department_id" in df.columns
        else pd.Series(pd.NA, index=df.index, dtype="Int64")
    )
    return {
        int(unit): _optional(dept)
        for unit, dept in zip(unit_ids, departments)
        if not pd.isna(unit)
    }


def write_rejects(df: pd.DataFrame, output_path: Path) -> Path:
    """Write rejected rows to disk."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.astype("string").to_parquet(output_path, index=False)
    return output_path


def load_snapshot(
    business_hours_path: Path,
    holidays_path: Path | None = None,
    units_path: Path | None = None,
    extra_holidays: Iterable[HolidayRecord] = (),
    missing_rules_policy: str = SLA_MISSING_RULES_POLICY,
    rejects_dir: Path | None = CALENDAR_REJECTS_DIR,
) -> CalendarSnapshot:
    """
    Build a calendar snapshot from exported tables.

    Row-level problems are split off (and written to ``rejects_dir`` when
    given); configuration conflicts such as overlapping windows raise
    ``CalendarConfigError``.
    """
    if not business_hours_path.exists():
        raise ValueError(f"Business-hours export not found: {business_hours_path}")
    hours_df = normalize_business_hours(read_calendar_table(business_hours_path))
    valid_hours, rejected_hours = split_business_hours_quality(hours_df)
    if not rejected_hours.empty:
        logger.warning("Rejected %d business-hours rows", len(rejected_hours))
        if rejects_dir is not None:
            write_rejects(rejected_hours, rejects_dir / "business_hours_rejects.parquet")

    holiday_records: List[HolidayRecord] = list(extra_holidays)
    if holidays_path is not None and holidays_path.exists():
        holiday_df = normalize_holidays(read_calendar_table(holidays_path))
        valid_holidays, rejected_holidays = split_holiday_quality(holiday_df)
        if not rejected_holidays.empty:
            logger.warning("Rejected %d holiday rows", len(rejected_holidays))
            if rejects_dir is not None:
                write_rejects(rejected_holidays, rejects_dir / "holiday_rejects.parquet")
        holiday_records.extend(build_holiday_records(valid_holidays))

    units = read_units(units_path) if units_path is not None and units_path.exists() else {}

    business_hours = build_business_hours(valid_hours)
    holidays = HolidayCalendar(holiday_records)
    logger.info(
        "Loaded calendar snapshot: %d rules, %d holidays, %d units",
        len(business_hours.rules),
        len(holidays.records),
        len(units),
    )
    return CalendarSnapshot(
        business_hours=business_hours,
        holidays=holidays,
        units=units,
        missing_rules_policy=missing_rules_policy,
    )
