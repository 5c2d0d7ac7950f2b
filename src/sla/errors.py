"""Errors raised by the SLA deadline engine."""

from __future__ import annotations


class SLAError(Exception):
    """Base class for SLA engine failures."""


class InvalidDuration(SLAError, ValueError):
    """The requested duration is not a positive whole number of minutes."""


class UnresolvableSchedule(SLAError):
    """No operating window could be found within the scan bound."""


class UnknownScope(SLAError, LookupError):
    """The department or unit is not present in the calendar configuration."""


class CalendarConfigError(SLAError, ValueError):
    """Business-hours or holiday configuration is invalid."""
