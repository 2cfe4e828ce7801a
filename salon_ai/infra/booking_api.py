"""
HTTP client for the booking backend.

The booking backend owns appointments and tenant configuration and
exposes REST endpoints for:
- Listing appointments in a date range
- Cancelling and restoring appointments hit by a closure
- Reading a tenant's business profile (hours, working days, services)
"""

import logging
from datetime import date
from typing import Optional

import httpx

from salon_ai.config import get_settings
from salon_ai.core.closures.types import BookedAppointment
from salon_ai.core.conversation.prompt import TenantProfile
from salon_ai.core.errors import CollaboratorError, NotFoundError

logger = logging.getLogger(__name__)


class BookingApiClient:
    """
    HTTP client for the booking backend API.

    Booking backend exposes:
    - GET /api/appointments?from=YYYY-MM-DD&to=YYYY-MM-DD - Appointments in range
    - POST /api/appointments/{id}/cancel - Cancel for a closure
    - POST /api/appointments/{id}/restore - Undo a closure cancellation
    - GET /api/tenants/{tenant_id}/profile - Tenant business profile
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize client.

        Args:
            base_url: Booking backend base URL (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
        """
        settings = get_settings()
        self.base_url = base_url or settings.booking_api_url
        self.timeout = timeout or settings.booking_api_timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # === Appointments ===

    async def find_appointments(
        self, tenant_id: str, start: date, end: date
    ) -> list[BookedAppointment]:
        """List appointments booked between start and end (inclusive).

        Raises:
            CollaboratorError: Backend unreachable or returned an error
        """
        client = await self._get_client()

        try:
            response = await client.get(
                "/api/appointments",
                params={"from": start.isoformat(), "to": end.isoformat()},
                headers={"X-Tenant-ID": tenant_id},
            )
            response.raise_for_status()

            data = response.json()
            if isinstance(data, list):
                items = data
            else:
                items = data.get("appointments", data.get("items", []))
            return [BookedAppointment.from_dict(item) for item in items]

        except httpx.HTTPError as e:
            logger.error(f"Failed to list appointments for tenant {tenant_id}: {e}")
            raise CollaboratorError(f"Appointment lookup failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed appointment payload for tenant {tenant_id}: {e}")
            raise CollaboratorError(f"Malformed appointment payload: {e}") from e

    async def cancel_appointment(
        self, tenant_id: str, appointment_id: str, closure_id: str, reason: Optional[str]
    ) -> None:
        """Cancel an appointment because of a closure.

        The backend tags the appointment with closure_id so it can be
        found again when the closure is deleted.

        Raises:
            CollaboratorError: Backend unreachable or returned an error
        """
        client = await self._get_client()

        try:
            response = await client.post(
                f"/api/appointments/{appointment_id}/cancel",
                json={"closure_id": closure_id, "reason": reason},
                headers={"X-Tenant-ID": tenant_id},
            )
            response.raise_for_status()
            logger.info(f"Appointment {appointment_id} cancelled for closure {closure_id}")

        except httpx.HTTPError as e:
            logger.error(f"Failed to cancel appointment {appointment_id} for tenant {tenant_id}: {e}")
            raise CollaboratorError(f"Appointment cancel failed: {e}") from e

    async def restore_appointment(
        self, tenant_id: str, appointment_id: str, restored_by: str
    ) -> None:
        """Confirm again an appointment cancelled by a deleted closure.

        Raises:
            CollaboratorError: Backend unreachable or returned an error
        """
        client = await self._get_client()

        try:
            response = await client.post(
                f"/api/appointments/{appointment_id}/restore",
                json={"restored_by": restored_by},
                headers={"X-Tenant-ID": tenant_id},
            )
            response.raise_for_status()
            logger.info(f"Appointment {appointment_id} restored by {restored_by}")

        except httpx.HTTPError as e:
            logger.error(f"Failed to restore appointment {appointment_id} for tenant {tenant_id}: {e}")
            raise CollaboratorError(f"Appointment restore failed: {e}") from e

    # === Tenant profile ===

    async def get_tenant_profile(self, tenant_id: str) -> TenantProfile:
        """Get a tenant's business profile.

        Raises:
            NotFoundError: Unknown tenant
            CollaboratorError: Backend unreachable or returned an error
        """
        client = await self._get_client()

        try:
            response = await client.get(
                f"/api/tenants/{tenant_id}/profile",
                headers={"X-Tenant-ID": tenant_id},
            )
            if response.status_code == 404:
                raise NotFoundError(f"Tenant {tenant_id} not found")
            response.raise_for_status()
            return TenantProfile.from_dict(tenant_id, response.json())

        except httpx.HTTPError as e:
            logger.error(f"Failed to get profile for tenant {tenant_id}: {e}")
            raise CollaboratorError(f"Tenant profile lookup failed: {e}") from e


# Singleton
_client: Optional[BookingApiClient] = None


def get_booking_client() -> BookingApiClient:
    """Get singleton BookingApiClient."""
    global _client
    if _client is None:
        _client = BookingApiClient()
    return _client
