"""Read-only calendar snapshot handed to the SLA engine on every call."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import logging
from typing import Dict, Iterable, List, Optional, Set

import pytz

from src.calendars.business_hours import BusinessHoursCalendar, ScopeKey, Window
from src.calendars.holiday_calendar import HolidayCalendar, HolidayRecord
from src.sla.errors import CalendarConfigError, UnknownScope
from src.utils.config import SLA_DEFAULT_TIMEZONE, SLA_MISSING_RULES_POLICY
from src.utils.date_utils import day_of_week, get_timezone

logger = logging.getLogger(__name__)

MISSING_RULES_POLICIES = ("closed", "global_default")


@dataclass(frozen=True)
class Scope:
    """Department and/or unit a calculation runs for."""

    department_id: Optional[int] = None
    unit_id: Optional[int] = None
    business_hours_only: bool = True


@dataclass(frozen=True)
class ResolvedScope:
    """A scope bound to the calendars that govern it."""

    department_id: Optional[int]
    unit_id: Optional[int]
    rules_key: Optional[ScopeKey]
    tz: pytz.BaseTzInfo
    business_hours: BusinessHoursCalendar
    holidays: HolidayCalendar

    @property
    def has_rules(self) -> bool:
        return self.rules_key is not None

    def holiday_on(self, day: date) -> Optional[HolidayRecord]:
        return self.holidays.applicable(day, self.department_id, self.unit_id)

    def is_holiday(self, day: date) -> bool:
        return self.holiday_on(day) is not None

    def holidays_between(self, start: date, end: date) -> List[date]:
        return self.holidays.holidays_between(start, end, self.department_id, self.unit_id)

    def windows_for(self, day: date) -> List[Window]:
        """Local windows open on ``day``; empty on holidays and closed days."""
        if self.rules_key is None or self.is_holiday(day):
            return []
        return self.business_hours.windows(self.rules_key, day_of_week(day))


@dataclass
class CalendarSnapshot:
    """
    Calendars plus the known departments and units.

    ``units`` maps each unit id to its parent department id. When
    ``departments`` is omitted, every department referenced by a rule, a
    holiday or a unit counts as known.
    """

    business_hours: BusinessHoursCalendar = field(default_factory=BusinessHoursCalendar)
    holidays: HolidayCalendar = field(default_factory=HolidayCalendar)
    departments: Optional[Iterable[int]] = None
    units: Dict[int, Optional[int]] = field(default_factory=dict)
    missing_rules_policy: str = SLA_MISSING_RULES_POLICY
    default_timezone: str = SLA_DEFAULT_TIMEZONE

    def __post_init__(self) -> None:
        if self.missing_rules_policy not in MISSING_RULES_POLICIES:
            raise CalendarConfigError(
                f"Missing-rules policy must be one of {MISSING_RULES_POLICIES}, "
                f"got {self.missing_rules_policy!r}."
            )
        get_timezone(self.default_timezone)

        known_units: Set[int] = set(self.units)
        known_departments: Set[int] = {
            dept for dept in self.units.values() if dept is not None
        }
        for dept, unit in self.business_hours.configured_scopes():
            if dept is not None:
                known_departments.add(dept)
            if unit is not None:
                known_units.add(unit)
        for scope in self.holidays.referenced_scopes():
            if scope.department_id is not None:
                known_departments.add(scope.department_id)
            if scope.unit_id is not None:
                known_units.add(scope.unit_id)

        if self.departments is not None:
            self.departments = frozenset(self.departments)
            known_departments = set(self.departments)
        self._known_departments = frozenset(known_departments)
        self._known_units = frozenset(known_units)

    def resolve(self, scope: Scope) -> ResolvedScope:
        """
        Bind a scope to its calendars.

        Unit rules win over department rules when the unit has any; the
        unscoped default only applies under the ``global_default`` policy.
        """
        department_id, unit_id = scope.department_id, scope.unit_id
        if department_id is None and unit_id is None:
            raise UnknownScope("A department or unit identifier is required.")
        if unit_id is not None:
            if unit_id not in self._known_units:
                raise UnknownScope(f"Unit {unit_id} is not configured.")
            if department_id is None:
                department_id = self.units.get(unit_id)
        if department_id is not None and department_id not in self._known_departments:
            raise UnknownScope(f"Department {department_id} is not configured.")

        rules_key: Optional[ScopeKey] = None
        candidates: List[ScopeKey] = []
        if unit_id is not None:
            candidates.append((None, unit_id))
        if department_id is not None:
            candidates.append((department_id, None))
        if self.missing_rules_policy == "global_default":
            candidates.append((None, None))
        for key in candidates:
            if self.business_hours.has_rules(key):
                rules_key = key
                break

        if rules_key is None:
            logger.debug(
                "No business-hours rules for department=%s unit=%s; scope is closed",
                department_id,
                unit_id,
            )
            tz_name = self.default_timezone
        else:
            tz_name = self.business_hours.timezone_for(rules_key) or self.default_timezone

        return ResolvedScope(
            department_id=department_id,
            unit_id=unit_id,
            rules_key=rules_key,
            tz=get_timezone(tz_name),
            business_hours=self.business_hours,
            holidays=self.holidays,
        )
