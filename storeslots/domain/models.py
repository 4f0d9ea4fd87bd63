"""
Domain models for stores, staff hours, appointments and bookable slots.

Instants are aware ``pendulum.DateTime`` objects normalised to UTC. Local
date-times are naive ``pendulum.DateTime`` objects that only carry meaning
together with a store's timezone identifier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from typing import Any, Dict, Iterable, List, Union

import pendulum
from pendulum import DateTime

from .exceptions import InvalidDateFormat

CANCELLED_STATUS = "cancelled"

# Window end meaning "until the next local midnight" (written as 24:00).
END_OF_DAY = time.max

WEEKDAY_NAMES = {
    0: "Monday",
    1: "Tuesday",
    2: "Wednesday",
    3: "Thursday",
    4: "Friday",
    5: "Saturday",
    6: "Sunday",
}


def ensure_instant(value: datetime) -> DateTime:
    """
    Normalise an aware datetime to a UTC ``pendulum.DateTime``.

    Raises:
        InvalidDateFormat: If the value carries no UTC offset
    """
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidDateFormat(
            f"Expected an absolute instant, got naive datetime {value.isoformat()}"
        )

    utc = value.astimezone(timezone.utc)
    return pendulum.datetime(
        utc.year,
        utc.month,
        utc.day,
        utc.hour,
        utc.minute,
        utc.second,
        utc.microsecond,
        tz="UTC",
    )


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open range ``[start, end)`` of instants.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if another range lies fully inside this one."""
        return self.start <= other.start and other.end <= self.end

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        return TimeRange(start=max(self.start, other.start), end=min(self.end, other.end))

    def __str__(self) -> str:
        return f"{self.start.to_iso8601_string()} - {self.end.to_iso8601_string()}"


@dataclass(frozen=True)
class OperatingWindow:
    """
    Recurring local opening hours for one weekday.

    ``weekday`` follows the Python convention: 0=Monday, 6=Sunday. Times are
    naive wall-clock times; an ``end`` of ``END_OF_DAY`` runs to the next
    local midnight.
    """
    weekday: int
    start: time
    end: time

    def __post_init__(self):
        if self.weekday not in WEEKDAY_NAMES:
            raise ValueError(f"Weekday must be between 0 and 6, got {self.weekday}")
        if self.start.tzinfo is not None or self.end.tzinfo is not None:
            raise ValueError("Window times must be local wall-clock times without tzinfo")
        if self.start >= self.end:
            raise ValueError(f"Window start {self.start} must be before end {self.end}")

    def intersect(self, other: "OperatingWindow") -> "OperatingWindow | None":
        """Clip this window to another window on the same weekday."""
        if self.weekday != other.weekday:
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start >= end:
            return None

        return OperatingWindow(weekday=self.weekday, start=start, end=end)

    @property
    def ends_at_midnight(self) -> bool:
        return self.end == END_OF_DAY

    def __str__(self) -> str:
        end = "24:00" if self.ends_at_midnight else self.end.strftime("%H:%M")
        return f"{WEEKDAY_NAMES[self.weekday]} {self.start.strftime('%H:%M')}-{end}"


def _windows_for(windows: Iterable[OperatingWindow], weekday: int) -> List[OperatingWindow]:
    return sorted(
        (w for w in windows if w.weekday == weekday),
        key=lambda w: w.start,
    )


@dataclass
class StoreProfile:
    """A store's timezone and opening hours."""
    store_id: int
    windows: List[OperatingWindow]
    timezone: str | None = None
    name: str = ""

    def windows_for(self, weekday: int) -> List[OperatingWindow]:
        """Opening windows on the given weekday, earliest first."""
        return _windows_for(self.windows, weekday)

    def is_open_on(self, weekday: int) -> bool:
        return bool(self.windows_for(weekday))


@dataclass
class StaffMember:
    """
    A bookable staff member.

    An empty ``windows`` list means the member works whenever the store is open.
    """
    staff_id: int
    name: str
    store_id: int
    windows: List[OperatingWindow] = field(default_factory=list)

    def effective_windows(self, store: StoreProfile, weekday: int) -> List[OperatingWindow]:
        """
        Working windows for a weekday, clipped to the store's opening hours.
        """
        store_windows = store.windows_for(weekday)
        if not self.windows:
            return store_windows

        clipped: List[OperatingWindow] = []
        for own in _windows_for(self.windows, weekday):
            for opening in store_windows:
                window = own.intersect(opening)
                if window:
                    clipped.append(window)

        return sorted(clipped, key=lambda w: w.start)


@dataclass(frozen=True)
class Appointment:
    """
    An existing booking as reported by the scheduling backend.

    Cancelled appointments and appointments without a staff member never
    block availability.
    """
    start: DateTime
    end: DateTime
    staff_id: int | None
    appointment_id: int | None = None
    status: str = "confirmed"

    def __post_init__(self):
        object.__setattr__(self, "start", ensure_instant(self.start))
        object.__setattr__(self, "end", ensure_instant(self.end))
        if self.start >= self.end:
            raise ValueError(f"Appointment start {self.start} must be before end {self.end}")

    @classmethod
    def from_duration(
        cls,
        start: datetime,
        duration_minutes: int,
        staff_id: int | None,
        **kwargs: Any,
    ) -> "Appointment":
        """Build an appointment from its start instant and length in minutes."""
        begin = ensure_instant(start)
        return cls(start=begin, end=begin.add(minutes=duration_minutes), staff_id=staff_id, **kwargs)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    @property
    def is_active(self) -> bool:
        return (self.status or "").lower() != CANCELLED_STATUS

    def blocks(self, staff_id: int) -> bool:
        """True if this appointment occupies the given staff member."""
        return self.is_active and self.staff_id is not None and self.staff_id == staff_id

    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()


@dataclass(frozen=True)
class Slot:
    """
    A candidate bookable start time for one staff member.

    ``local_start`` is the store-local wall-clock time shown to people;
    ``start`` is the instant that gets sent back when the slot is booked.
    """
    local_start: DateTime
    start: DateTime
    staff_id: int
    staff_name: str

    def local_start_iso(self) -> str:
        return self.local_start.strftime("%Y-%m-%dT%H:%M:%S")

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation used by availability responses."""
        return {
            "time": self.local_start_iso(),
            "staffId": self.staff_id,
            "staffName": self.staff_name,
        }


@dataclass(frozen=True)
class AllStaff:
    """Consider every staff member of the store."""

    def select(self, staff: Iterable[StaffMember]) -> List[StaffMember]:
        return sorted(staff, key=lambda member: member.staff_id)


@dataclass(frozen=True)
class OnlyStaff:
    """Consider a single staff member."""
    staff_id: int

    def select(self, staff: Iterable[StaffMember]) -> List[StaffMember]:
        return [member for member in staff if member.staff_id == self.staff_id]


StaffFilter = Union[AllStaff, OnlyStaff]


def staff_filter_for(staff_id: int | None) -> StaffFilter:
    """Map an optional staff id coming from a request to a filter variant."""
    if staff_id is None:
        return AllStaff()
    return OnlyStaff(staff_id=staff_id)


@dataclass(frozen=True)
class BookingRequest:
    """A slot chosen by a caller, still expressed in store-local time."""
    store_id: int
    staff_id: int
    local_start: str
    duration_minutes: int
    service_id: int | None = None
    customer_id: int | None = None
    notes: str = ""


@dataclass(frozen=True)
class AppointmentDraft:
    """A booking converted to UTC, ready to be committed by the gateway."""
    store_id: int
    staff_id: int
    start: DateTime
    duration_minutes: int
    service_id: int | None = None
    customer_id: int | None = None
    notes: str = ""

    @property
    def end(self) -> DateTime:
        return self.start.add(minutes=self.duration_minutes)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)
