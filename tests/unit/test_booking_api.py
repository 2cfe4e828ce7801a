"""Tests for the booking backend HTTP client."""

import pytest
from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock

import httpx

from salon_ai.core.closures.types import BookedAppointment
from salon_ai.core.errors import CollaboratorError, NotFoundError
from salon_ai.infra.booking_api import BookingApiClient


class TestBookedAppointment:
    """Test BookedAppointment dataclass."""

    def test_from_dict(self):
        """Test creating from dict."""
        data = {
            "id": "apt-1",
            "customer_name": "Lucía",
            "customer_phone": "+34600000001",
            "service_name": "Corte",
            "starts_at": "2025-07-01T10:00:00",
            "status": "CONFIRMED",
        }

        appointment = BookedAppointment.from_dict(data)

        assert appointment.id == "apt-1"
        assert appointment.starts_at == datetime(2025, 7, 1, 10, 0)
        assert appointment.customer_phone == "+34600000001"

    def test_from_dict_with_alternate_keys(self):
        """Test with camelCase and legacy key names."""
        data = {
            "id": 42,
            "customerName": "Ana",
            "customerPhone": "+34600000002",
            "serviceName": "Tinte",
            "fechaHora": "2025-07-02T17:30:00",
        }

        appointment = BookedAppointment.from_dict(data)

        assert appointment.id == "42"
        assert appointment.customer_name == "Ana"
        assert appointment.service_name == "Tinte"
        assert appointment.starts_at == datetime(2025, 7, 2, 17, 30)
        assert appointment.status == "CONFIRMED"

    def test_from_dict_without_start_time(self):
        """A payload with no date-time is rejected instead of yielding starts_at=None."""
        with pytest.raises(ValueError):
            BookedAppointment.from_dict({"id": "a1", "customerPhone": "+34600000001"})

    def test_from_dict_closure_tag(self):
        """Appointments cancelled by a closure carry its id."""
        appointment = BookedAppointment.from_dict(
            {"id": "a1", "dateTime": "2025-07-01T10:00:00", "status": "CANCELADA", "closureId": 7}
        )

        assert appointment.closure_id == "7"
        assert appointment.status == "CANCELADA"

    def test_to_summary(self):
        appointment = BookedAppointment(
            id="apt-1",
            customer_name="Lucía",
            customer_phone=None,
            service_name="Corte",
            starts_at=datetime(2025, 7, 1, 10, 0),
            status="CONFIRMED",
        )

        summary = appointment.to_summary()

        assert summary["starts_at"] == "2025-07-01T10:00:00"
        assert summary["customer_phone"] is None


class TestBookingApiClient:
    """Test BookingApiClient."""

    @pytest.fixture
    def client(self):
        """Create client pointing at a test backend."""
        return BookingApiClient(base_url="http://test:8080", timeout=5.0)

    @pytest.fixture
    def mock_httpx_client(self):
        """Create mock httpx client."""
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_find_appointments(self, client, mock_httpx_client):
        """Test listing appointments in a range."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {
            "appointments": [
                {"id": "apt-1", "customerName": "Lucía", "dateTime": "2025-07-01T10:00:00"},
                {"id": "apt-2", "customerName": "Ana", "dateTime": "2025-07-03T12:00:00"},
            ]
        }
        mock_response.raise_for_status = MagicMock()

        mock_httpx_client.get = AsyncMock(return_value=mock_response)
        client._client = mock_httpx_client

        appointments = await client.find_appointments("salon-A", date(2025, 7, 1), date(2025, 7, 3))

        assert [a.id for a in appointments] == ["apt-1", "apt-2"]
        call = mock_httpx_client.get.await_args
        assert call.args[0] == "/api/appointments"
        assert call.kwargs["params"] == {"from": "2025-07-01", "to": "2025-07-03"}
        assert call.kwargs["headers"] == {"X-Tenant-ID": "salon-A"}

    @pytest.mark.asyncio
    async def test_find_appointments_list_payload(self, client, mock_httpx_client):
        """Test a bare list response."""
        mock_response = MagicMock()
        mock_response.json.return_value = [
            {"id": "apt-1", "starts_at": "2025-07-01T10:00:00"},
        ]
        mock_response.raise_for_status = MagicMock()

        mock_httpx_client.get = AsyncMock(return_value=mock_response)
        client._client = mock_httpx_client

        appointments = await client.find_appointments("salon-A", date(2025, 7, 1), date(2025, 7, 1))

        assert len(appointments) == 1

    @pytest.mark.asyncio
    async def test_find_appointments_http_error(self, client, mock_httpx_client):
        """Backend failures surface as CollaboratorError."""
        mock_httpx_client.get = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        client._client = mock_httpx_client

        with pytest.raises(CollaboratorError):
            await client.find_appointments("salon-A", date(2025, 7, 1), date(2025, 7, 1))

    @pytest.mark.asyncio
    async def test_find_appointments_malformed_payload(self, client, mock_httpx_client):
        mock_response = MagicMock()
        mock_response.json.return_value = {"appointments": [{"id": "apt-1", "starts_at": "tomorrow"}]}
        mock_response.raise_for_status = MagicMock()

        mock_httpx_client.get = AsyncMock(return_value=mock_response)
        client._client = mock_httpx_client

        with pytest.raises(CollaboratorError):
            await client.find_appointments("salon-A", date(2025, 7, 1), date(2025, 7, 1))

    @pytest.mark.asyncio
    async def test_find_appointments_missing_start_time(self, client, mock_httpx_client):
        """An undated appointment fails the lookup before any caller acts on it."""
        mock_response = MagicMock()
        mock_response.json.return_value = [{"id": "a1", "customerPhone": "+34600000001"}]
        mock_response.raise_for_status = MagicMock()

        mock_httpx_client.get = AsyncMock(return_value=mock_response)
        client._client = mock_httpx_client

        with pytest.raises(CollaboratorError) as exc_info:
            await client.find_appointments("salon-A", date(2025, 7, 1), date(2025, 7, 1))

        assert "start date-time" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cancel_appointment(self, client, mock_httpx_client):
        """Cancelling tags the appointment with the closure id."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.raise_for_status = MagicMock()

        mock_httpx_client.post = AsyncMock(return_value=mock_response)
        client._client = mock_httpx_client

        await client.cancel_appointment("salon-A", "apt-1", "closure-9", "Flood")

        call = mock_httpx_client.post.await_args
        assert call.args[0] == "/api/appointments/apt-1/cancel"
        assert call.kwargs["json"] == {"closure_id": "closure-9", "reason": "Flood"}
        assert call.kwargs["headers"] == {"X-Tenant-ID": "salon-A"}

    @pytest.mark.asyncio
    async def test_restore_appointment(self, client, mock_httpx_client):
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.raise_for_status = MagicMock()

        mock_httpx_client.post = AsyncMock(return_value=mock_response)
        client._client = mock_httpx_client

        await client.restore_appointment("salon-A", "apt-1", "manager")

        call = mock_httpx_client.post.await_args
        assert call.args[0] == "/api/appointments/apt-1/restore"
        assert call.kwargs["json"] == {"restored_by": "manager"}
        assert call.kwargs["headers"] == {"X-Tenant-ID": "salon-A"}

    @pytest.mark.asyncio
    async def test_cancel_appointment_http_error(self, client, mock_httpx_client):
        """Backend failures surface as CollaboratorError."""
        mock_httpx_client.post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        client._client = mock_httpx_client

        with pytest.raises(CollaboratorError):
            await client.cancel_appointment("salon-A", "apt-1", "closure-9", None)

        mock_httpx_client.post = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))
        with pytest.raises(CollaboratorError):
            await client.restore_appointment("salon-A", "apt-1", "manager")

    @pytest.mark.asyncio
    async def test_get_tenant_profile(self, client, mock_httpx_client):
        """Test reading a tenant profile."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {
            "business_name": "Peluquería Lucía",
            "open_time": "10:00",
            "close_time": "19:00",
            "services": [{"name": "Corte", "duration_minutes": 30}],
            "locale": "es",
        }
        mock_response.raise_for_status = MagicMock()

        mock_httpx_client.get = AsyncMock(return_value=mock_response)
        client._client = mock_httpx_client

        profile = await client.get_tenant_profile("salon-A")

        assert profile.tenant_id == "salon-A"
        assert profile.business_name == "Peluquería Lucía"
        assert profile.services[0].name == "Corte"
        assert mock_httpx_client.get.await_args.args[0] == "/api/tenants/salon-A/profile"

    @pytest.mark.asyncio
    async def test_get_tenant_profile_not_found(self, client, mock_httpx_client):
        mock_response = MagicMock()
        mock_response.status_code = 404

        mock_httpx_client.get = AsyncMock(return_value=mock_response)
        client._client = mock_httpx_client

        with pytest.raises(NotFoundError):
            await client.get_tenant_profile("missing")

    @pytest.mark.asyncio
    async def test_close(self, client, mock_httpx_client):
        client._client = mock_httpx_client

        await client.close()

        mock_httpx_client.aclose.assert_awaited_once()
        assert client._client is None
