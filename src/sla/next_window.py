"""Next-window finder: when does the next operating window open?"""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import Optional

from src.calendars.snapshot import CalendarSnapshot, ResolvedScope, Scope
from src.sla.errors import UnresolvableSchedule
from src.sla.oracle import instant_is_open, window_intervals
from src.utils.config import SLA_SCAN_LIMIT_DAYS
from src.utils.date_utils import to_local, to_utc

logger = logging.getLogger(__name__)


def find_next_window_start(
    instant: datetime,
    resolved: ResolvedScope,
    scan_limit_days: int = SLA_SCAN_LIMIT_DAYS,
) -> datetime:
    """
    Return the earliest window start strictly after ``instant``.

    Days are scanned in order starting with the local date of ``instant``;
    holidays and closed weekdays contribute no windows. Raises
    ``UnresolvableSchedule`` when nothing opens within ``scan_limit_days``.
    """
    moment = to_utc(instant)
    if not resolved.has_rules:
        raise UnresolvableSchedule(
            f"No active business hours for department={resolved.department_id} "
            f"unit={resolved.unit_id}."
        )

    first_day = to_local(moment, resolved.tz).date()
    for offset in range(scan_limit_days + 1):
        day = first_day + timedelta(days=offset)
        for start, _ in window_intervals(resolved, day):
            if start > moment:
                return start

    logger.warning(
        "No business window within %d days of %s for department=%s unit=%s",
        scan_limit_days,
        moment.isoformat(),
        resolved.department_id,
        resolved.unit_id,
    )
    raise UnresolvableSchedule(
        f"No business-hours window opens within {scan_limit_days} days of "
        f"{moment.isoformat()}."
    )


def advance_to_open(instant: datetime, resolved: ResolvedScope) -> datetime:
    """Return ``instant`` itself when open, otherwise the next window start."""
    moment = to_utc(instant)
    if instant_is_open(moment, resolved):
        return moment
    return find_next_window_start(moment, resolved)


def next_window_start(
    instant: datetime, scope: Scope, snapshot: CalendarSnapshot
) -> Optional[datetime]:
    """
    Next instant a window opens for ``scope``.

    Returns ``None`` when ``instant`` is already inside a window.
    """
    resolved = snapshot.resolve(scope)
    if instant_is_open(instant, resolved):
        return None
    return find_next_window_start(instant, resolved)
