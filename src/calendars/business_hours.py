"""Business-hours calendar: weekly operating windows per department or unit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from src.sla.errors import CalendarConfigError
from src.utils.config import SLA_DEFAULT_TIMEZONE
from src.utils.date_utils import get_timezone, parse_time_of_day

logger = logging.getLogger(__name__)

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# (department_id, unit_id); (None, None) is the unscoped default.
ScopeKey = Tuple[Optional[int], Optional[int]]
Window = Tuple[time, time]


@dataclass(frozen=True)
class BusinessHoursRule:
    """
    One operating window on one weekday.

    ``day_of_week`` runs 0 (Sunday) to 6 (Saturday). ``start_time`` and
    ``end_time`` accept ``time`` objects or ``HH:mm`` strings; windows never
    cross midnight.
    """

    day_of_week: int
    start_time: time
    end_time: time
    timezone: str = SLA_DEFAULT_TIMEZONE
    department_id: Optional[int] = None
    unit_id: Optional[int] = None
    active: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.day_of_week, bool) or self.day_of_week not in range(7):
            raise CalendarConfigError(
                "Day of week must be between 0 (Sunday) and 6 (Saturday), "
                f"got {self.day_of_week!r}."
            )
        start = parse_time_of_day(self.start_time)
        end = parse_time_of_day(self.end_time)
        if start >= end:
            raise CalendarConfigError(
                f"Start time {start:%H:%M} must be before end time {end:%H:%M}."
            )
        if self.department_id is not None and self.unit_id is not None:
            raise CalendarConfigError(
                "A business-hours rule belongs to a department or a unit, not both."
            )
        get_timezone(self.timezone)
        object.__setattr__(self, "start_time", start)
        object.__setattr__(self, "end_time", end)

    @property
    def scope_key(self) -> ScopeKey:
        return (self.department_id, self.unit_id)

    def describe(self) -> str:
        return (
            f"{DAY_NAMES[self.day_of_week]}: {self.start_time:%H:%M} - "
            f"{self.end_time:%H:%M} ({self.timezone})"
        )


@dataclass
class BusinessHoursCalendar:
    """
    Validated, read-only index of active rules.

    Rejects a scope that mixes timezones and any pair of overlapping windows
    on the same weekday. Windows that only touch (12:00 end, 12:00 start) are
    accepted.
    """

    rules: Iterable[BusinessHoursRule] = field(default_factory=list)

    def __post_init__(self) -> None:
        all_rules = tuple(self.rules)
        # Inactive rules still mark their scope as set up, just closed.
        self._configured = frozenset(rule.scope_key for rule in all_rules)
        self.rules = tuple(rule for rule in all_rules if rule.active)
        windows: Dict[ScopeKey, Dict[int, List[Window]]] = {}
        timezones: Dict[ScopeKey, str] = {}

        for rule in self.rules:
            key = rule.scope_key
            known_tz = timezones.setdefault(key, rule.timezone)
            if known_tz != rule.timezone:
                raise CalendarConfigError(
                    f"Scope {key} mixes timezones {known_tz!r} and {rule.timezone!r}."
                )
            windows.setdefault(key, {}).setdefault(rule.day_of_week, []).append(
                (rule.start_time, rule.end_time)
            )

        for key, by_day in windows.items():
            for day, day_windows in by_day.items():
                day_windows.sort()
                for (_, previous_end), (start, _) in zip(day_windows, day_windows[1:]):
                    if start < previous_end:
                        raise CalendarConfigError(
                            f"Overlapping business-hours windows for scope {key} "
                            f"on {DAY_NAMES[day]}."
                        )

        self._windows = windows
        self._timezones = timezones
        logger.debug("Loaded %d business-hours rules for %d scopes", len(self.rules), len(windows))

    def has_rules(self, key: ScopeKey) -> bool:
        return key in self._windows

    def windows(self, key: ScopeKey, day_of_week: int) -> List[Window]:
        """Sorted windows for a scope and weekday; empty when closed."""
        return list(self._windows.get(key, {}).get(day_of_week, []))

    def timezone_for(self, key: ScopeKey) -> Optional[str]:
        return self._timezones.get(key)

    def scopes(self) -> Set[ScopeKey]:
        return set(self._windows)

    def configured_scopes(self) -> Set[ScopeKey]:
        """Scopes with any rule, active or not."""
        return set(self._configured)

    def rules_for(self, key: ScopeKey) -> List[BusinessHoursRule]:
        return sorted(
            (rule for rule in self.rules if rule.scope_key == key),
            key=lambda rule: (rule.day_of_week, rule.start_time),
        )
