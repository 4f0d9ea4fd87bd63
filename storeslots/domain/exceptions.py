"""
Domain-specific exception hierarchy for the scheduling core.
"""

from __future__ import annotations


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class InvalidDateFormat(SchedulingError):
    """Raised when a local date or date-time string cannot be parsed."""


class UnknownTimeZone(SchedulingError):
    """Raised when a timezone identifier is not in the timezone database."""

    def __init__(self, zone_id: str):
        super().__init__(f"Unknown timezone identifier: '{zone_id}'")
        self.zone_id = zone_id


class InvalidReference(SchedulingError):
    """Raised when a store or staff reference cannot be resolved."""


class SlotConflict(SchedulingError):
    """
    Raised when a requested time range collides with an existing appointment.

    ``available_minutes`` is set when the caller asked to grow an appointment
    and only part of the extra time still fits.
    """

    def __init__(self, message: str, available_minutes: int | None = None):
        super().__init__(message)
        self.available_minutes = available_minutes


class GatewayError(SchedulingError):
    """Raised when the scheduling backend cannot be reached or answers badly."""
