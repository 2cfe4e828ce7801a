"""Tests for SMS notifications."""

import pytest
from unittest.mock import AsyncMock, MagicMock

import httpx

from salon_ai.core.errors import CollaboratorError
from salon_ai.infra.notifications import TWILIO_API_BASE, SmsNotifier


class TestSmsNotifier:
    """Test SmsNotifier."""

    @pytest.fixture
    def mock_httpx_client(self):
        """Create mock httpx client."""
        return AsyncMock()

    @pytest.fixture
    def notifier(self, mock_httpx_client):
        return SmsNotifier(
            account_sid="AC123",
            auth_token="secret",
            from_number="+15550001111",
            client=mock_httpx_client,
        )

    @pytest.mark.asyncio
    async def test_notify_posts_to_twilio(self, notifier, mock_httpx_client):
        """Test sending one SMS."""
        mock_response = MagicMock()
        mock_response.status_code = 201
        mock_response.json.return_value = {"sid": "SM1"}
        mock_response.raise_for_status = MagicMock()
        mock_httpx_client.post = AsyncMock(return_value=mock_response)

        await notifier.notify("+34600000001", "Tu cita queda afectada")

        call = mock_httpx_client.post.await_args
        assert call.args[0] == f"{TWILIO_API_BASE}/Accounts/AC123/Messages.json"
        assert call.kwargs["auth"] == ("AC123", "secret")
        assert call.kwargs["data"] == {
            "To": "+34600000001",
            "From": "+15550001111",
            "Body": "Tu cita queda afectada",
        }

    @pytest.mark.asyncio
    async def test_notify_http_error(self, notifier, mock_httpx_client):
        """Twilio failures surface as CollaboratorError."""
        mock_httpx_client.post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))

        with pytest.raises(CollaboratorError) as exc_info:
            await notifier.notify("+34600000001", "Hola")

        assert exc_info.value.code == "notification_failure"

    @pytest.mark.asyncio
    async def test_notify_without_phone(self, notifier, mock_httpx_client):
        with pytest.raises(CollaboratorError):
            await notifier.notify("", "Hola")

        mock_httpx_client.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfigured_only_logs(self, mock_httpx_client):
        """Without credentials nothing is sent."""
        notifier = SmsNotifier(client=mock_httpx_client)
        notifier.account_sid = None

        assert notifier.configured is False
        await notifier.notify("+34600000001", "Hola")

        mock_httpx_client.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close(self, notifier, mock_httpx_client):
        await notifier.close()

        mock_httpx_client.aclose.assert_awaited_once()
