"""
Notification Service

SMS delivery through the Twilio REST API. Used by ClosureRegistry to
tell customers that a closure affects their appointment.

When Twilio credentials are not configured, messages are only logged.
"""

import logging
from typing import Optional

import httpx

from salon_ai.config import get_settings
from salon_ai.core.errors import CollaboratorError

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class SmsNotifier:
    """Sends SMS via Twilio, or logs them when unconfigured."""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize notifier.

        Args:
            account_sid: Twilio account SID (defaults to settings)
            auth_token: Twilio auth token (defaults to settings)
            from_number: Sender number in E.164 format (defaults to settings)
            timeout: Request timeout in seconds
            client: Pre-built HTTP client (tests)
        """
        settings = get_settings()
        self.account_sid = account_sid or settings.twilio_account_sid
        self.auth_token = auth_token or settings.twilio_auth_token
        self.from_number = from_number or settings.twilio_from_number
        self.timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def notify(self, phone: str, message: str) -> None:
        """Send one SMS.

        Args:
            phone: Recipient phone number (E.164)
            message: SMS text

        Raises:
            CollaboratorError: Twilio rejected the message or was unreachable
        """
        if not phone:
            raise CollaboratorError("No phone number provided", code="notification_failure")

        if not self.configured:
            logger.info(f"SMS (simulated) to {phone}: {message}")
            return

        client = await self._get_client()
        try:
            response = await client.post(
                f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json",
                auth=(self.account_sid, self.auth_token),
                data={"To": phone, "From": self.from_number, "Body": message},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to send SMS to {phone}: {e}")
            raise CollaboratorError(f"SMS delivery failed: {e}", code="notification_failure") from e

        sid = response.json().get("sid")
        logger.info(f"SMS sent to {phone} (sid={sid})")

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
