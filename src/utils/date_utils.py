"""Date utilities for time windows, timezones and holiday handling."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
import json
import re
from typing import Dict, Iterator
from urllib.request import urlopen

import pytz

from src.sla.errors import CalendarConfigError
from src.utils.config import (
    DEFAULT_HOLIDAY_YEAR,
    HOLIDAY_API_URL,
    HOLIDAY_COUNTRY_CODE,
    REFERENCE_DIR,
)

_TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_time_of_day(value: str | time) -> time:
    """Parse a 24-hour ``HH:mm`` string into a ``time``."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    match = _TIME_PATTERN.match(str(value).strip())
    if not match:
        raise CalendarConfigError(
            f"Time {value!r} must use the HH:mm 24-hour format."
        )
    return time(int(match.group(1)), int(match.group(2)))


def get_timezone(name: str) -> pytz.BaseTzInfo:
    """Resolve an IANA timezone name."""
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError as exc:
        raise CalendarConfigError(f"Unknown timezone {name!r}.") from exc


def to_utc(instant: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if instant.tzinfo is None:
        return pytz.utc.localize(instant)
    return instant.astimezone(pytz.utc)


def to_local(instant: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Convert an instant to wall-clock time in ``tz``."""
    return to_utc(instant).astimezone(tz)


def local_instant(day: date, at: time, tz: pytz.BaseTzInfo) -> datetime:
    """Combine a local date and time-of-day in ``tz`` into a UTC instant."""
    # pytz needs localize() rather than tzinfo= to pick the right offset.
    localized = tz.localize(datetime.combine(day, at), is_dst=False)
    return tz.normalize(localized).astimezone(pytz.utc)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield each date from ``start`` up to and including ``end``."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def minutes_between(start: datetime, end: datetime) -> float:
    """Return elapsed minutes between two instants."""
    return (end - start).total_seconds() / 60


def fetch_public_holidays(
    year: int | None = None,
    country_code: str | None = None,
    api_url: str | None = None,
) -> Dict[date, str]:
    """
    Fetch national public holidays for a given year and country.

    Returns a mapping of holiday date to its local name.
    """
    # Build URL for the Nager public holidays API.
    base_url = api_url or HOLIDAY_API_URL
    country = country_code or HOLIDAY_COUNTRY_CODE
    holiday_year = year if year is not None else DEFAULT_HOLIDAY_YEAR
    url = f"{base_url}/{holiday_year}/{country}"

    cache_path = REFERENCE_DIR / f"holidays_{country}_{holiday_year}.json"
    if cache_path.exists():
        payload = cache_path.read_text(encoding="utf-8")
    else:
        with urlopen(url, timeout=30) as response:
            payload = response.read().decode("utf-8")
        REFERENCE_DIR.mkdir(parents=True, exist_ok=True)
        cache_path.write_text(payload, encoding="utf-8")

    holidays = json.loads(payload)

    filtered = [
        item
        for item in holidays
        if item.get("counties") is None and "Public" in (item.get("types") or [])
    ]

    return {
        date.fromisoformat(item["date"]): item.get("localName") or item.get("name", "")
        for item in filtered
    }


def day_of_week(day: date) -> int:
    """Return the weekday numbered 0 (Sunday) to 6 (Saturday)."""
    return (day.weekday() + 1) % 7
