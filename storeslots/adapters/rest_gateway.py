"""
REST client for the scheduling backend's appointment endpoints.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import requests
from pendulum import DateTime

from ..domain.converter import format_instant, parse_instant
from ..domain.exceptions import GatewayError, SchedulingError, SlotConflict
from ..domain.models import Appointment, AppointmentDraft

logger = logging.getLogger(__name__)


class RestSchedulingGateway:
    """
    Scheduling gateway backed by the application's REST API.

    Appointments are exchanged as ``{"date": <UTC ISO-8601>, "duration":
    <minutes>, "staffId": ..., "status": ...}``.
    """

    APPOINTMENTS_PATH = "/api/appointments"

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: float = 30,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: Backend root URL, e.g. ``https://salon.example.com``
            session: Optional pre-configured requests session
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    @property
    def appointments_url(self) -> str:
        return f"{self.base_url}{self.APPOINTMENTS_PATH}"

    def list_appointments(
        self,
        store_id: int,
        start: DateTime | None = None,
        end: DateTime | None = None,
    ) -> List[Appointment]:
        """
        Get appointments of a store, optionally limited to a time window.

        Raises:
            GatewayError: If the API call fails
        """
        params: Dict[str, Any] = {"storeId": store_id}
        if start is not None:
            params["from"] = format_instant(start)
        if end is not None:
            params["to"] = format_instant(end)

        try:
            response = self.session.get(
                self.appointments_url,
                params=params,
                headers=self.headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise GatewayError(f"Failed to fetch appointments: {e}") from e
        except ValueError as e:
            raise GatewayError(f"Backend returned invalid JSON: {e}") from e

        return self._parse_appointments(data)

    def create_appointment(self, draft: AppointmentDraft) -> Appointment:
        """
        Persist a booking.

        Raises:
            SlotConflict: If the backend reports the slot as taken (HTTP 409)
            GatewayError: For any other failure
        """
        payload = {
            "date": format_instant(draft.start),
            "duration": draft.duration_minutes,
            "staffId": draft.staff_id,
            "storeId": draft.store_id,
            "serviceId": draft.service_id,
            "customerId": draft.customer_id,
            "notes": draft.notes or None,
            "status": "confirmed",
        }

        try:
            response = self.session.post(
                self.appointments_url,
                json=payload,
                headers=self.headers,
                timeout=self.timeout,
            )
            if response.status_code == 409:
                body = self._safe_json(response)
                raise SlotConflict(
                    body.get("message") or "The requested slot is no longer available.",
                    available_minutes=body.get("availableMinutes"),
                )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise GatewayError(f"Failed to create appointment: {e}") from e
        except ValueError as e:
            raise GatewayError(f"Backend returned invalid JSON: {e}") from e

        try:
            return self._parse_appointment(data)
        except (KeyError, TypeError, ValueError, SchedulingError) as e:
            raise GatewayError(f"Could not parse created appointment: {e}") from e

    def _parse_appointments(self, data: Any) -> List[Appointment]:
        """
        Parse the appointment list response into domain objects.

        Rows that cannot be parsed are skipped with a warning.
        """
        if not isinstance(data, list):
            raise GatewayError("Expected a list of appointments from the backend")

        appointments: List[Appointment] = []
        for row in data:
            try:
                appointments.append(self._parse_appointment(row))
            except (KeyError, TypeError, ValueError, SchedulingError) as e:
                row_id = row.get("id") if isinstance(row, dict) else None
                logger.warning("Skipping appointment %s: %s", row_id, e)

        return appointments

    def _parse_appointment(self, row: Dict[str, Any]) -> Appointment:
        return Appointment.from_duration(
            parse_instant(row["date"]),
            int(row["duration"]),
            staff_id=row.get("staffId"),
            appointment_id=row.get("id"),
            status=row.get("status") or "pending",
        )

    @staticmethod
    def _safe_json(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
