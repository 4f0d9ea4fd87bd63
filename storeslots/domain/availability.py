"""
Core business logic for calculating bookable appointment slots.

Pure domain logic without external dependencies (no API calls, no database,
no I/O). Every computation works on UTC instants; local time only enters when
the store's opening hours are placed on a calendar date and leaves again when
slots are handed back for display.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Sequence

import pendulum
from pendulum import DateTime

from .converter import LocalTimeConverter, as_date, to_epoch_ms
from .exceptions import InvalidReference, SlotConflict
from .models import (
    AllStaff,
    Appointment,
    Slot,
    StaffFilter,
    StaffMember,
    StoreProfile,
    TimeRange,
)

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityQuery:
    """Everything one slot computation needs, as an immutable snapshot."""
    store: StoreProfile
    staff: Sequence[StaffMember]
    date: str | date
    duration_minutes: int
    appointments: Sequence[Appointment] = field(default_factory=list)
    staff_filter: StaffFilter = field(default_factory=AllStaff)
    service_id: int | None = None


class SlotGrid:
    """
    Candidate start instants across a working window.

    Iterating starts over from the window start each time; the sequence is
    finite, bounded by window length divided by the interval.
    """

    def __init__(self, window: TimeRange, interval_minutes: int):
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be greater than zero")
        self.window = window
        self.interval_minutes = interval_minutes

    def __iter__(self) -> Iterator[DateTime]:
        current = self.window.start
        while current < self.window.end:
            yield current
            current = current.add(minutes=self.interval_minutes)


class AvailabilityEngine:
    """
    Calculates bookable start times for a store-local calendar date.

    Algorithm:
    1. Resolve the store's timezone (or the configured default)
    2. Turn the requested local date into a UTC range
    3. For each eligible staff member, place their working windows on that date
    4. Walk a fixed grid of candidate starts through each window
    5. Drop candidates that overflow the window, collide with an appointment
       of the same staff member, or start in the past
    6. Return slots in local time, ordered by local start then staff id
    """

    def __init__(
        self,
        converter: LocalTimeConverter | None = None,
        *,
        grid_interval_minutes: int = 15,
        allow_past_slots_for_today: bool = False,
        default_timezone: str | None = None,
        clock: Callable[[], DateTime] | None = None,
    ):
        if grid_interval_minutes <= 0:
            raise ValueError("grid_interval_minutes must be greater than zero")

        self.converter = converter or LocalTimeConverter()
        self.grid_interval_minutes = grid_interval_minutes
        self.allow_past_slots_for_today = allow_past_slots_for_today
        self.default_timezone = default_timezone
        self._clock = clock or (lambda: pendulum.now("UTC"))

    def resolve_zone(self, store: StoreProfile) -> str:
        """
        Timezone identifier used for a store.

        Raises:
            InvalidReference: If neither the store nor the config has a zone
            UnknownTimeZone: If the chosen identifier is not in the database
        """
        zone_id = store.timezone or self.default_timezone
        if not zone_id:
            raise InvalidReference(
                f"Store {store.store_id} has no timezone and no default timezone is configured"
            )

        # An explicitly configured but broken zone must surface, not fall back.
        self.converter.resolver.timezone(zone_id)
        return zone_id

    def find_slots(self, query: AvailabilityQuery) -> List[Slot]:
        """
        Find all bookable slots for the query.

        Returns:
            Slots ordered by local start time, then staff id. For one staff
            member the two occurrences of a repeated fall-back time keep their
            instant order.
            An empty list means no availability.
        """
        if query.duration_minutes <= 0:
            raise ValueError("duration_minutes must be greater than zero")

        zone_id = self.resolve_zone(query.store)
        day = as_date(query.date)
        day_range = self.converter.local_day_range(day, zone_id)
        busy = busy_ranges_by_staff(query.appointments, day_range)
        now = self._clock()

        slots: List[Slot] = []
        for member in query.staff_filter.select(query.staff):
            if member.store_id != query.store.store_id:
                logger.debug(
                    "Skipping staff %s: belongs to store %s, not %s",
                    member.staff_id, member.store_id, query.store.store_id,
                )
                continue

            slots.extend(
                self._slots_for_member(
                    member=member,
                    store=query.store,
                    day=day,
                    zone_id=zone_id,
                    duration_minutes=query.duration_minutes,
                    busy=busy.get(member.staff_id, []),
                    now=now,
                )
            )

        slots.sort(key=lambda slot: (slot.local_start, slot.staff_id, slot.start))

        logger.debug(
            "Found %d slots for store %s on %s (%s, %d min)",
            len(slots), query.store.store_id, day, zone_id, query.duration_minutes,
        )
        return slots

    def _slots_for_member(
        self,
        *,
        member: StaffMember,
        store: StoreProfile,
        day: date,
        zone_id: str,
        duration_minutes: int,
        busy: List[TimeRange],
        now: DateTime,
    ) -> Iterator[Slot]:
        """Generate-and-filter candidates for a single staff member."""
        for window in member.effective_windows(store, day.weekday()):
            working = self.converter.window_range(day, window, zone_id)
            if working is None:
                continue

            for start in SlotGrid(working, self.grid_interval_minutes):
                candidate = TimeRange(start=start, end=start.add(minutes=duration_minutes))

                if not working.contains(candidate):
                    continue
                if any(existing.overlaps(candidate) for existing in busy):
                    continue
                if not self.allow_past_slots_for_today and start < now:
                    continue

                yield Slot(
                    local_start=self.converter.to_local(start, zone_id),
                    start=start,
                    staff_id=member.staff_id,
                    staff_name=member.name,
                )


def busy_ranges_by_staff(
    appointments: Iterable[Appointment],
    within: TimeRange | None = None,
) -> Dict[int, List[TimeRange]]:
    """Group active appointments by staff member, optionally limited to a range."""
    busy: Dict[int, List[TimeRange]] = {}

    for appointment in appointments:
        if not appointment.is_active or appointment.staff_id is None:
            continue
        if within is not None and not within.overlaps(appointment.time_range):
            continue
        busy.setdefault(appointment.staff_id, []).append(appointment.time_range)

    for ranges in busy.values():
        ranges.sort(key=lambda r: r.start)

    return busy


def last_booked_by_staff(appointments: Iterable[Appointment]) -> Dict[int, DateTime]:
    """Latest active appointment start per staff member."""
    latest: Dict[int, DateTime] = {}

    for appointment in appointments:
        if not appointment.is_active or appointment.staff_id is None:
            continue
        current = latest.get(appointment.staff_id)
        if current is None or appointment.start > current:
            latest[appointment.staff_id] = appointment.start

    return latest


def assign_least_recent(
    slots: Sequence[Slot],
    last_booked: Mapping[int, DateTime],
) -> List[Slot]:
    """
    Keep one slot per start time, spreading bookings across staff.

    Staff who were never booked win; otherwise the member whose latest
    appointment is oldest. Remaining ties go to the lower staff id.
    """
    def preference(slot: Slot):
        booked = last_booked.get(slot.staff_id)
        if booked is None:
            return (0, 0, slot.staff_id)
        return (1, to_epoch_ms(booked), slot.staff_id)

    chosen: Dict[DateTime, Slot] = {}
    for slot in slots:
        current = chosen.get(slot.start)
        if current is None or preference(slot) < preference(current):
            chosen[slot.start] = slot

    return sorted(chosen.values(), key=lambda slot: slot.start)


def check_extension(
    appointment: Appointment,
    new_duration_minutes: int,
    snapshot: Iterable[Appointment],
) -> TimeRange:
    """
    Validate growing an appointment (e.g. when add-ons are attached).

    Returns:
        The extended time range

    Raises:
        SlotConflict: If the longer appointment would collide with another
            booking of the same staff member. ``available_minutes`` tells how
            many extra minutes would still fit.
    """
    if new_duration_minutes <= 0:
        raise ValueError("new_duration_minutes must be greater than zero")

    extended = TimeRange(
        start=appointment.start,
        end=appointment.start.add(minutes=new_duration_minutes),
    )
    if appointment.staff_id is None:
        return extended

    base_minutes = appointment.duration_minutes()
    others = sorted(snapshot, key=lambda a: a.start)

    for other in others:
        if other is appointment:
            continue
        if (
            appointment.appointment_id is not None
            and other.appointment_id == appointment.appointment_id
        ):
            continue
        if not other.blocks(appointment.staff_id):
            continue

        if extended.overlaps(other.time_range):
            gap_minutes = int((other.start - appointment.start).total_seconds() // 60)
            available = max(0, gap_minutes - base_minutes)
            raise SlotConflict(
                f"Staff member {appointment.staff_id} has another appointment at "
                f"{other.start.to_iso8601_string()}. Not enough time for the extension.",
                available_minutes=available,
            )

    return extended
