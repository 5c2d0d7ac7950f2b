"""SLA calculation utilities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
import logging
import numbers
from typing import List, Optional, Tuple

from src.calendars.snapshot import CalendarSnapshot, ResolvedScope, Scope
from src.sla.errors import InvalidDuration, UnresolvableSchedule
from src.sla.next_window import advance_to_open, find_next_window_start
from src.sla.oracle import current_window, instant_is_open, window_intervals
from src.utils.config import SLA_DEFAULT_PRIORITY, SLA_MAX_ITERATIONS, SLA_PRIORITY_MINUTES
from src.utils.date_utils import iter_dates, minutes_between, to_local, to_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SLAProjection:
    """Due date for a ticket plus diagnostics about how it was reached."""

    due_date: datetime
    started_in_business_hours: bool
    holidays_skipped: Tuple[date, ...] = ()

    @property
    def is_currently_in_business_hours(self) -> bool:
        return self.started_in_business_hours


@dataclass(frozen=True)
class SLAStatus:
    business_minutes_remaining: float
    total_minutes_remaining: float
    is_overdue: bool
    is_currently_in_business_hours: bool
    next_business_hour_start: Optional[datetime] = None


def _validate_duration(duration_minutes: object) -> int:
    if (
        isinstance(duration_minutes, bool)
        or not isinstance(duration_minutes, numbers.Integral)
        or duration_minutes <= 0
    ):
        raise InvalidDuration(
            f"Duration must be a positive whole number of minutes, got {duration_minutes!r}."
        )
    return int(duration_minutes)


def _advance_recording_holidays(
    instant: datetime, resolved: ResolvedScope, skipped: List[date]
) -> datetime:
    """Move to the next open instant, noting holidays on the dates jumped over."""
    target = advance_to_open(instant, resolved)
    if target > instant:
        first_day = to_local(instant, resolved.tz).date()
        # The landing date is open, so it can never be a holiday itself.
        last_day = to_local(target, resolved.tz).date() - timedelta(days=1)
        for day in resolved.holidays_between(first_day, last_day):
            if day not in skipped:
                skipped.append(day)
    return target


def project(
    start: datetime,
    duration_minutes: int,
    scope: Scope,
    snapshot: CalendarSnapshot,
    max_iterations: int = SLA_MAX_ITERATIONS,
) -> SLAProjection:
    """
    Project the due date ``duration_minutes`` after ``start`` for ``scope``.

    In business-hours mode the clock only runs inside operating windows: the
    walk jumps to the next window whenever the current one is used up and
    fails with ``UnresolvableSchedule`` after ``max_iterations`` windows. In
    calendar mode the due date is plain wall-clock arithmetic and the
    diagnostics are informational only.
    """
    minutes = _validate_duration(duration_minutes)
    resolved = snapshot.resolve(scope)
    moment = to_utc(start)
    started_open = instant_is_open(moment, resolved)

    if not scope.business_hours_only:
        due_date = moment + timedelta(minutes=minutes)
        holidays = resolved.holidays_between(
            to_local(moment, resolved.tz).date(),
            to_local(due_date, resolved.tz).date(),
        )
        return SLAProjection(due_date, started_open, tuple(holidays))

    if not resolved.has_rules:
        raise UnresolvableSchedule(
            f"No active business hours for department={resolved.department_id} "
            f"unit={resolved.unit_id}."
        )

    skipped: List[date] = []
    remaining = timedelta(minutes=minutes)
    cursor = _advance_recording_holidays(moment, resolved, skipped)

    for _ in range(max_iterations):
        window = current_window(cursor, resolved)
        if window is None:
            raise UnresolvableSchedule(f"Advanced to {cursor.isoformat()} outside any window.")
        _, window_end = window
        available = window_end - cursor
        if available >= remaining:
            due_date = cursor + remaining
            logger.debug(
                "Projected %d business minutes from %s to %s",
                minutes,
                moment.isoformat(),
                due_date.isoformat(),
            )
            return SLAProjection(due_date, started_open, tuple(skipped))
        remaining -= available
        cursor = _advance_recording_holidays(window_end, resolved, skipped)

    logger.warning(
        "SLA walk exceeded %d windows for department=%s unit=%s",
        max_iterations,
        resolved.department_id,
        resolved.unit_id,
    )
    raise UnresolvableSchedule(
        f"Could not place {minutes} business minutes within {max_iterations} windows."
    )


def business_minutes_between(
    start: datetime,
    end: datetime,
    scope: Scope,
    snapshot: CalendarSnapshot,
) -> float:
    """
    Count minutes between two instants that fall inside operating windows.

    Holidays and closed days contribute nothing; calendar-mode scopes count
    plain elapsed minutes.
    """
    start_utc, end_utc = to_utc(start), to_utc(end)
    if end_utc <= start_utc:
        return 0.0
    if not scope.business_hours_only:
        return round(minutes_between(start_utc, end_utc), 2)

    resolved = snapshot.resolve(scope)
    total = 0.0
    # Iterate day by day, clipping each window to the requested range.
    for day in iter_dates(
        to_local(start_utc, resolved.tz).date(), to_local(end_utc, resolved.tz).date()
    ):
        for window_start, window_end in window_intervals(resolved, day):
            interval_start = max(start_utc, window_start)
            interval_end = min(end_utc, window_end)
            if interval_end > interval_start:
                total += minutes_between(interval_start, interval_end)
    return round(total, 2)


def evaluate_sla_status(
    due_date: datetime,
    now: datetime,
    scope: Scope,
    snapshot: CalendarSnapshot,
) -> SLAStatus:
    """Summarise where a ticket stands against its due date at ``now``."""
    resolved = snapshot.resolve(scope)
    now_utc, due_utc = to_utc(now), to_utc(due_date)
    open_now = instant_is_open(now_utc, resolved)
    next_start = None
    if resolved.has_rules and not open_now:
        next_start = find_next_window_start(now_utc, resolved)
    return SLAStatus(
        business_minutes_remaining=business_minutes_between(now_utc, due_utc, scope, snapshot),
        total_minutes_remaining=round(max(0.0, minutes_between(now_utc, due_utc)), 2),
        is_overdue=now_utc > due_utc,
        is_currently_in_business_hours=open_now,
        next_business_hour_start=next_start,
    )


def is_currently_in_business_hours(
    instant: datetime,
    snapshot: CalendarSnapshot,
    department_id: Optional[int] = None,
    unit_id: Optional[int] = None,
) -> bool:
    return instant_is_open(instant, snapshot.resolve(Scope(department_id, unit_id)))


def calculate_sla_due_date(
    start: datetime,
    duration_minutes: int,
    snapshot: CalendarSnapshot,
    department_id: Optional[int] = None,
    unit_id: Optional[int] = None,
    business_hours_only: bool = True,
) -> SLAProjection:
    return project(
        start,
        duration_minutes,
        Scope(department_id, unit_id, business_hours_only),
        snapshot,
    )


def get_next_business_hour_start(
    instant: datetime,
    snapshot: CalendarSnapshot,
    department_id: Optional[int] = None,
    unit_id: Optional[int] = None,
) -> Optional[datetime]:
    """Next window start, or ``None`` while a window is already open."""
    resolved = snapshot.resolve(Scope(department_id, unit_id))
    if instant_is_open(instant, resolved):
        return None
    return find_next_window_start(instant, resolved)


def calculate_business_minutes_between(
    start: datetime,
    end: datetime,
    snapshot: CalendarSnapshot,
    department_id: Optional[int] = None,
    unit_id: Optional[int] = None,
    business_hours_only: bool = True,
) -> float:
    return business_minutes_between(
        start, end, Scope(department_id, unit_id, business_hours_only), snapshot
    )


def get_expected_sla_minutes(priority: str | None) -> int:
    """
    Return the resolution target in minutes for a ticket priority.
    """
    key = (priority or SLA_DEFAULT_PRIORITY).strip().lower()
    return SLA_PRIORITY_MINUTES.get(key, SLA_PRIORITY_MINUTES[SLA_DEFAULT_PRIORITY])


def get_sla_status(resolved_at: datetime | None, due_date: datetime) -> str:
    """Return SLA status (met/violated), or open for unresolved tickets."""
    if resolved_at is None:
        return "open"
    return "met" if to_utc(resolved_at) <= to_utc(due_date) else "violated"
