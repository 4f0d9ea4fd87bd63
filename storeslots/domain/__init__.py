"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityEngine, AvailabilityQuery, SlotGrid
from .converter import LocalTimeConverter
from .exceptions import (
    GatewayError,
    InvalidDateFormat,
    InvalidReference,
    SchedulingError,
    SlotConflict,
    UnknownTimeZone,
)
from .models import (
    AllStaff,
    Appointment,
    AppointmentDraft,
    BookingRequest,
    OnlyStaff,
    OperatingWindow,
    Slot,
    StaffMember,
    StoreProfile,
    TimeRange,
)
from .zone_resolver import ZoneResolver

__all__ = [
    "AvailabilityEngine",
    "AvailabilityQuery",
    "SlotGrid",
    "LocalTimeConverter",
    "ZoneResolver",
    "GatewayError",
    "InvalidDateFormat",
    "InvalidReference",
    "SchedulingError",
    "SlotConflict",
    "UnknownTimeZone",
    "AllStaff",
    "Appointment",
    "AppointmentDraft",
    "BookingRequest",
    "OnlyStaff",
    "OperatingWindow",
    "Slot",
    "StaffMember",
    "StoreProfile",
    "TimeRange",
]
