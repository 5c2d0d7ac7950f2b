"""Business-hours oracle: is an instant inside an operating window?"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Tuple

from src.calendars.snapshot import CalendarSnapshot, ResolvedScope, Scope
from src.utils.date_utils import local_instant, to_local, to_utc

Interval = Tuple[datetime, datetime]


def window_intervals(resolved: ResolvedScope, day: date) -> List[Interval]:
    """
    Operating windows on a local date as UTC ``[start, end)`` intervals.

    A window that falls entirely inside a DST gap collapses to nothing and
    is left out.
    """
    intervals: List[Interval] = []
    for start, end in resolved.windows_for(day):
        interval = (local_instant(day, start, resolved.tz), local_instant(day, end, resolved.tz))
        if interval[0] < interval[1]:
            intervals.append(interval)
    return intervals


def current_window(instant: datetime, resolved: ResolvedScope) -> Optional[Interval]:
    """Return the window containing ``instant``, if any."""
    moment = to_utc(instant)
    local_day = to_local(moment, resolved.tz).date()
    for start, end in window_intervals(resolved, local_day):
        # Half-open: the start instant is open, the end instant is not.
        if start <= moment < end:
            return start, end
    return None


def instant_is_open(instant: datetime, resolved: ResolvedScope) -> bool:
    return current_window(instant, resolved) is not None


def is_open(instant: datetime, scope: Scope, snapshot: CalendarSnapshot) -> bool:
    """True when ``instant`` falls inside an operating window of ``scope``."""
    return instant_is_open(instant, snapshot.resolve(scope))
