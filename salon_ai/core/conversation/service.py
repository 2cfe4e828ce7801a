"""
Conversation Service - message pipeline.

Inbound customer message -> tenant system prompt -> LLM -> parse (or
keyword fallback) -> booking reconciliation -> reply. Every step
degrades instead of failing so the customer always gets a reply.
"""

import logging
from datetime import date
from typing import Callable, Optional, Protocol

from salon_ai.config import get_settings
from salon_ai.core.conversation.parser import IntentResponseParser
from salon_ai.core.conversation.prompt import TenantProfile, build_system_prompt
from salon_ai.core.conversation.reconciler import ConversationReconciler
from salon_ai.core.conversation.types import ConversationIntent
from salon_ai.core.errors import ValidationError

logger = logging.getLogger(__name__)


class LanguageModel(Protocol):
    """LLM invocation capability."""

    async def complete(self, system_prompt: str, user_message: str) -> str: ...


class TenantProfileLookup(Protocol):
    """Tenant configuration lookup capability."""

    async def get_tenant_profile(self, tenant_id: str) -> TenantProfile: ...


class ConversationService:
    """
    Turns one customer message into a reconciled ConversationIntent.

    Without an LLM (no API key configured) every message is answered by
    the parser's keyword fallback.
    """

    def __init__(
        self,
        reconciler: ConversationReconciler,
        llm: Optional[LanguageModel] = None,
        profile_lookup: Optional[TenantProfileLookup] = None,
        parser: Optional[IntentResponseParser] = None,
        today: Optional[Callable[[], date]] = None,
        default_locale: Optional[str] = None,
    ):
        """Initialize service.

        Args:
            reconciler: Booking reconciler
            llm: LLM capability (None selects degraded mode)
            profile_lookup: Tenant profile source (minimal profile if None)
            parser: Reply parser
            today: Clock returning the current local date
            default_locale: Locale when the tenant sets none (defaults to settings)
        """
        self.reconciler = reconciler
        self.llm = llm
        self.profile_lookup = profile_lookup
        self.parser = parser or IntentResponseParser()
        self._today = today or date.today
        self.default_locale = default_locale or get_settings().default_locale

    async def process_message(
        self,
        tenant_id: str,
        message: str,
        locale: Optional[str] = None,
    ) -> ConversationIntent:
        """Process a customer message.

        Args:
            tenant_id: Tenant identifier
            message: Customer's message
            locale: Reply locale (tenant or default locale if None)

        Returns:
            ConversationIntent with a non-empty reply message

        Raises:
            ValidationError: Missing tenant id
        """
        if not tenant_id or not tenant_id.strip():
            raise ValidationError("tenant_id is required")

        text = (message or "").strip()
        profile = await self._load_profile(tenant_id)
        locale = locale or profile.locale or self.default_locale

        if self.llm is None or not text:
            if self.llm is None:
                logger.warning(f"LLM not configured, using fallback reply for tenant {tenant_id}")
            intent = self.parser.fallback(text, locale)
        else:
            system_prompt = build_system_prompt(profile, self._today(), self.default_locale)
            try:
                raw = await self.llm.complete(system_prompt, text)
            except Exception as e:
                logger.error(f"LLM call failed for tenant {tenant_id}: {e}", exc_info=True)
                intent = self.parser.fallback(text, locale)
            else:
                intent = self.parser.parse(raw, locale)

        logger.debug(
            f"Tenant {tenant_id}: intent={intent.intent.value} action={intent.action.value} "
            f"confidence={intent.confidence:.2f}"
        )
        return await self.reconciler.reconcile_booking(intent, tenant_id, locale)

    async def _load_profile(self, tenant_id: str) -> TenantProfile:
        if self.profile_lookup is None:
            return TenantProfile.minimal(tenant_id)
        try:
            return await self.profile_lookup.get_tenant_profile(tenant_id)
        except Exception as e:
            logger.warning(f"Tenant profile unavailable for {tenant_id}, using minimal profile: {e}")
            return TenantProfile.minimal(tenant_id)
