"""Holiday calendar: dated exclusions scoped globally, per department or per unit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from src.sla.errors import CalendarConfigError
from src.utils.date_utils import iter_dates


@dataclass(frozen=True)
class HolidayScope:
    """Global when both ids are empty; otherwise exactly one id is set."""

    department_id: Optional[int] = None
    unit_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.department_id is not None and self.unit_id is not None:
            raise CalendarConfigError(
                "A holiday applies to a department or a unit, not both."
            )

    @property
    def level(self) -> str:
        if self.unit_id is not None:
            return "unit"
        if self.department_id is not None:
            return "department"
        return "global"

    @property
    def specificity(self) -> int:
        """Higher wins when several records cover the same date."""
        return {"global": 0, "department": 1, "unit": 2}[self.level]

    def applies_to(self, department_id: Optional[int], unit_id: Optional[int]) -> bool:
        if self.unit_id is not None:
            return self.unit_id == unit_id
        if self.department_id is not None:
            return self.department_id == department_id
        return True


GLOBAL = HolidayScope()


@dataclass(frozen=True)
class HolidayRecord:
    date: date
    name: str
    scope: HolidayScope = GLOBAL
    active: bool = True
    description: str = ""


@dataclass
class HolidayCalendar:
    """Read-only lookup over active holiday records."""

    records: Iterable[HolidayRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        # Inactive records are dropped up front so lookups never see them.
        self.records = tuple(record for record in self.records if record.active)
        by_date: Dict[date, List[HolidayRecord]] = {}
        for record in self.records:
            by_date.setdefault(record.date, []).append(record)
        self._by_date = by_date

    def applicable(
        self,
        day: date,
        department_id: Optional[int] = None,
        unit_id: Optional[int] = None,
    ) -> Optional[HolidayRecord]:
        """Return the most specific active holiday covering ``day`` for the scope."""
        candidates = [
            record
            for record in self._by_date.get(day, [])
            if record.scope.applies_to(department_id, unit_id)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda record: record.scope.specificity)

    def is_holiday(
        self,
        day: date,
        department_id: Optional[int] = None,
        unit_id: Optional[int] = None,
    ) -> bool:
        return self.applicable(day, department_id, unit_id) is not None

    def holidays_between(
        self,
        start: date,
        end: date,
        department_id: Optional[int] = None,
        unit_id: Optional[int] = None,
    ) -> List[date]:
        """Holiday dates from ``start`` to ``end`` inclusive, in order."""
        return [
            day
            for day in iter_dates(start, end)
            if self.is_holiday(day, department_id, unit_id)
        ]

    def referenced_scopes(self) -> List[HolidayScope]:
        return sorted(
            {record.scope for record in self.records},
            key=lambda scope: (scope.specificity, scope.department_id or 0, scope.unit_id or 0),
        )
