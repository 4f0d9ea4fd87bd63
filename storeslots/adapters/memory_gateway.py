"""
In-memory scheduling gateway for offline use and tests.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List

from pendulum import DateTime

from ..domain.converter import format_instant, parse_instant
from ..domain.exceptions import SchedulingError, SlotConflict
from ..domain.models import Appointment, AppointmentDraft

logger = logging.getLogger(__name__)


class InMemorySchedulingGateway:
    """
    Gateway that keeps appointments in memory.

    Appointments can be loaded from a JSON file holding a list of
    ``{"id", "storeId", "staffId", "date", "duration", "status"}`` rows, the
    same shape the REST backend returns. Commits re-validate against the
    current state and raise ``SlotConflict`` for double bookings.
    """

    def __init__(self, data_file: Path | None = None):
        self.data_file = data_file
        self._appointments: Dict[int, List[Appointment]] = {}
        self._next_id = 1
        self._lock = threading.Lock()

        if data_file is not None:
            self._load(data_file)

    def _load(self, data_file: Path) -> None:
        """Load appointments from a JSON file, skipping invalid rows."""
        if not data_file.exists():
            logger.info("Appointment file %s does not exist yet, starting empty", data_file)
            return

        with open(data_file, "r", encoding="utf-8") as f:
            rows = json.load(f)

        for row in rows:
            try:
                appointment = Appointment.from_duration(
                    parse_instant(row["date"]),
                    int(row["duration"]),
                    staff_id=row.get("staffId"),
                    appointment_id=row.get("id"),
                    status=row.get("status") or "confirmed",
                )
                self.add(int(row["storeId"]), appointment)
            except (KeyError, TypeError, ValueError, SchedulingError) as e:
                logger.warning("Skipping invalid appointment row %s: %s", row, e)

    def add(self, store_id: int, appointment: Appointment) -> Appointment:
        """Register an existing appointment without conflict checks."""
        with self._lock:
            if appointment.appointment_id is None:
                appointment = Appointment(
                    start=appointment.start,
                    end=appointment.end,
                    staff_id=appointment.staff_id,
                    appointment_id=self._next_id,
                    status=appointment.status,
                )
            self._next_id = max(self._next_id, appointment.appointment_id + 1)
            self._appointments.setdefault(store_id, []).append(appointment)
        return appointment

    def extend(self, store_id: int, appointments: Iterable[Appointment]) -> None:
        for appointment in appointments:
            self.add(store_id, appointment)

    def list_appointments(
        self,
        store_id: int,
        start: DateTime | None = None,
        end: DateTime | None = None,
    ) -> List[Appointment]:
        with self._lock:
            stored = list(self._appointments.get(store_id, []))

        return sorted(
            (
                a for a in stored
                if (start is None or a.end > start) and (end is None or a.start < end)
            ),
            key=lambda a: (a.start, a.appointment_id or 0),
        )

    def create_appointment(self, draft: AppointmentDraft) -> Appointment:
        """
        Commit a booking.

        Raises:
            SlotConflict: If the staff member is already booked in that range
        """
        requested = draft.time_range

        with self._lock:
            for existing in self._appointments.get(draft.store_id, []):
                if existing.blocks(draft.staff_id) and existing.time_range.overlaps(requested):
                    raise SlotConflict(
                        f"Staff member {draft.staff_id} already has an appointment at "
                        f"{format_instant(existing.start)}."
                    )

            appointment = Appointment(
                start=draft.start,
                end=draft.end,
                staff_id=draft.staff_id,
                appointment_id=self._next_id,
                status="confirmed",
            )
            self._next_id += 1
            self._appointments.setdefault(draft.store_id, []).append(appointment)

        logger.debug("Stored appointment %s for store %s", appointment.appointment_id, draft.store_id)
        return appointment

    def to_rows(self) -> List[Dict[str, Any]]:
        """Export all appointments in the backend's JSON shape."""
        with self._lock:
            items = [
                (store_id, appointment)
                for store_id, appointments in self._appointments.items()
                for appointment in appointments
            ]

        return [
            {
                "id": appointment.appointment_id,
                "storeId": store_id,
                "staffId": appointment.staff_id,
                "date": format_instant(appointment.start),
                "duration": appointment.duration_minutes(),
                "status": appointment.status,
            }
            for store_id, appointment in sorted(items, key=lambda item: item[1].appointment_id)
        ]

    def save(self, data_file: Path | None = None) -> Path:
        """Write all appointments back to the JSON file."""
        target = data_file or self.data_file
        if target is None:
            raise ValueError("No data file configured for saving appointments")

        with open(target, "w", encoding="utf-8") as f:
            json.dump(self.to_rows(), f, indent=2)
        return target
