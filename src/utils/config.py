"""Configuration utilities and environment variables."""

from __future__ import annotations

import os
from pathlib import Path


def _get_project_root() -> Path:
    """Return the project root directory based on this file location."""
    # Keep project-relative paths stable regardless of CWD.
    return Path(__file__).resolve().parents[2]


PROJECT_ROOT = _get_project_root()

def _load_env_file(env_path: Path) -> None:
    """Load key=value pairs from a .env file using stdlib only."""
    if not env_path.exists():
        return
    # Only set env vars that are not already defined.
    for line in env_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        os.environ.setdefault(key, value)


# Load environment variables from local .env if present (never committed).
_load_env_file(PROJECT_ROOT / ".env")

DATA_DIR = PROJECT_ROOT / "data"
RAW_DIR = DATA_DIR / "raw"
CALENDAR_DIR = DATA_DIR / "calendars"
CALENDAR_REJECTS_DIR = CALENDAR_DIR / "rejects"
GOLD_DIR = DATA_DIR / "gold"
REFERENCE_DIR = DATA_DIR / "reference"

BUSINESS_HOURS_FILENAME = os.getenv("CALENDAR_BUSINESS_HOURS_FILENAME", "business_hours.csv")
HOLIDAYS_FILENAME = os.getenv("CALENDAR_HOLIDAYS_FILENAME", "holidays.csv")
UNITS_FILENAME = os.getenv("CALENDAR_UNITS_FILENAME", "units.csv")
TICKETS_INPUT_FILENAME = os.getenv("TICKETS_INPUT_FILENAME", "tickets.csv")
RAW_INPUT_PATHS = [
    PROJECT_ROOT / BUSINESS_HOURS_FILENAME,
    PROJECT_ROOT / HOLIDAYS_FILENAME,
    PROJECT_ROOT / UNITS_FILENAME,
]
TICKETS_INPUT_PATH = PROJECT_ROOT / TICKETS_INPUT_FILENAME

SLA_DEFAULT_TIMEZONE = os.getenv("SLA_DEFAULT_TIMEZONE", "Asia/Jakarta")
# "closed": a scope without rules never opens; "global_default": use unscoped rules.
SLA_MISSING_RULES_POLICY = os.getenv("SLA_MISSING_RULES_POLICY", "closed")
SLA_SCAN_LIMIT_DAYS = int(os.getenv("SLA_SCAN_LIMIT_DAYS", "366"))
SLA_MAX_ITERATIONS = int(os.getenv("SLA_MAX_ITERATIONS", "366"))

# Resolution targets in minutes per ticket priority.
SLA_PRIORITY_MINUTES = {
    "urgent": 240,
    "high": 480,
    "medium": 1440,
    "low": 2880,
}
SLA_DEFAULT_PRIORITY = "medium"

HOLIDAY_API_URL = os.getenv("HOLIDAY_API_URL", "https://date.nager.at/api/v3/PublicHolidays")
HOLIDAY_COUNTRY_CODE = os.getenv("HOLIDAY_COUNTRY_CODE", "ID")
DEFAULT_HOLIDAY_YEAR = int(os.getenv("DEFAULT_HOLIDAY_YEAR", "2026"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AZURE_TENANT_ID = os.getenv("AZURE_TENANT_ID", "")
AZURE_CLIENT_ID = os.getenv("AZURE_CLIENT_ID", "")
AZURE_CLIENT_SECRET = os.getenv("AZURE_CLIENT_SECRET", "")
AZURE_ACCOUNT_URL = os.getenv("AZURE_ACCOUNT_URL", "")

AZURE_CONTAINER_NAME = os.getenv("AZURE_CONTAINER_NAME", "")
AZURE_BLOB_PREFIX = os.getenv("AZURE_BLOB_PREFIX", "")
