"""
Application service for finding and booking appointment slots.

The service fetches the appointment snapshot through a scheduling gateway and
delegates the availability calculation to the domain-level
``AvailabilityEngine``. The gateway dependency is a simple protocol, so the
REST adapter and the in-memory implementation are interchangeable.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Protocol, Sequence

from pendulum import DateTime

from ..domain.availability import (
    AvailabilityEngine,
    AvailabilityQuery,
    assign_least_recent,
    check_extension,
    last_booked_by_staff,
)
from ..domain.exceptions import InvalidReference
from ..domain.models import (
    Appointment,
    AppointmentDraft,
    BookingRequest,
    Slot,
    StaffMember,
    StoreProfile,
    TimeRange,
    staff_filter_for,
)

logger = logging.getLogger(__name__)


class SchedulingGatewayProtocol(Protocol):
    """Protocol describing the backend behaviour needed by the service."""

    def list_appointments(
        self,
        store_id: int,
        start: DateTime | None = None,
        end: DateTime | None = None,
    ) -> List[Appointment]:
        """
        Return appointments of a store overlapping ``[start, end)``.

        A missing bound leaves that side open; without both the whole store
        history is returned.
        """

    def create_appointment(self, draft: AppointmentDraft) -> Appointment:
        """Persist a booking; raise ``SlotConflict`` if it no longer fits."""


class BookingService:
    """
    Orchestrates snapshot retrieval, slot calculation and booking.

    The engine only proposes availability from a snapshot that may be stale
    by the time a booking arrives; the gateway re-validates on commit.
    """

    def __init__(
        self,
        gateway: SchedulingGatewayProtocol,
        engine: AvailabilityEngine,
        stores: Sequence[StoreProfile],
        staff: Sequence[StaffMember],
    ) -> None:
        self._gateway = gateway
        self._engine = engine
        self._stores: Dict[int, StoreProfile] = {store.store_id: store for store in stores}
        self._staff: List[StaffMember] = list(staff)

    def get_store(self, store_id: int) -> StoreProfile:
        store = self._stores.get(store_id)
        if store is None:
            raise InvalidReference(f"Unknown store id: {store_id}")
        return store

    def staff_for_store(self, store_id: int) -> List[StaffMember]:
        return [member for member in self._staff if member.store_id == store_id]

    def fetch_appointments(self, store: StoreProfile, day: str | date) -> List[Appointment]:
        """Appointment snapshot covering one store-local day."""
        zone_id = self._engine.resolve_zone(store)
        day_range = self._engine.converter.local_day_range(day, zone_id)

        appointments = self._gateway.list_appointments(
            store_id=store.store_id,
            start=day_range.start,
            end=day_range.end,
        )
        logger.debug(
            "Fetched %d appointments for store %s between %s and %s",
            len(appointments), store.store_id, day_range.start, day_range.end,
        )
        return appointments

    def fetch_history(self, store: StoreProfile) -> List[Appointment]:
        """All appointments of a store, used to rank staff by their latest booking."""
        appointments = self._gateway.list_appointments(store_id=store.store_id)
        logger.debug(
            "Fetched %d appointments of store %s history", len(appointments), store.store_id,
        )
        return appointments

    def find_slots(
        self,
        *,
        store_id: int,
        date: str | date,
        duration_minutes: int,
        staff_id: int | None = None,
        service_id: int | None = None,
        one_per_time: bool = False,
    ) -> List[Slot]:
        """
        Retrieve the appointment snapshot and compute available slots.

        With ``one_per_time`` each start time is offered once, assigned to the
        staff member who has waited longest since their last booking in the
        store, on any day.
        """
        store = self.get_store(store_id)
        snapshot = self.fetch_appointments(store, date)

        slots = self._engine.find_slots(
            AvailabilityQuery(
                store=store,
                staff=self.staff_for_store(store_id),
                date=date,
                duration_minutes=duration_minutes,
                appointments=snapshot,
                staff_filter=staff_filter_for(staff_id),
                service_id=service_id,
            )
        )

        if one_per_time:
            history = self.fetch_history(store)
            slots = assign_least_recent(slots, last_booked_by_staff(history))

        return slots

    def book(self, request: BookingRequest) -> Appointment:
        """
        Convert a chosen local slot to UTC and hand it to the gateway.

        Raises:
            InvalidReference: If the store or staff member is unknown
            InvalidDateFormat: If the local start cannot be parsed
            SlotConflict: If the gateway rejects the booking
        """
        if request.duration_minutes <= 0:
            raise ValueError("duration_minutes must be greater than zero")

        store = self.get_store(request.store_id)
        if not any(m.staff_id == request.staff_id for m in self.staff_for_store(store.store_id)):
            raise InvalidReference(
                f"Staff member {request.staff_id} does not work at store {store.store_id}"
            )

        zone_id = self._engine.resolve_zone(store)
        start = self._engine.converter.to_instant(request.local_start, zone_id)

        draft = AppointmentDraft(
            store_id=store.store_id,
            staff_id=request.staff_id,
            start=start,
            duration_minutes=request.duration_minutes,
            service_id=request.service_id,
            customer_id=request.customer_id,
            notes=request.notes,
        )

        logger.info(
            "Booking staff %s at %s (%s local, %s)",
            draft.staff_id, draft.start.to_iso8601_string(), request.local_start, zone_id,
        )
        return self._gateway.create_appointment(draft)

    def extend_appointment(
        self,
        store_id: int,
        appointment: Appointment,
        new_duration_minutes: int,
    ) -> TimeRange:
        """Check that an appointment can grow to ``new_duration_minutes``."""
        store = self.get_store(store_id)
        zone_id = self._engine.resolve_zone(store)
        local_day = self._engine.converter.to_local(appointment.start, zone_id).date()

        snapshot = self.fetch_appointments(store, local_day)
        return check_extension(appointment, new_duration_minutes, snapshot)
