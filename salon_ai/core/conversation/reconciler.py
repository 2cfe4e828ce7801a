"""
Booking reconciliation.

Cross-checks a BOOK_APPOINTMENT intent proposed by the LLM against the
tenant's closure rules. When the requested slot is blocked the reply is
rewritten into a question offering the next open dates. Reconciliation
is best effort: unparseable slots or any failure leave the original
intent untouched.
"""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from salon_ai.config import get_settings
from salon_ai.core.closures.availability import AvailabilityEngine
from salon_ai.core.closures.types import AvailabilityDecision, AvailabilityQuery
from salon_ai.core.conversation.messages import MessageCatalog, get_message_catalog
from salon_ai.core.conversation.types import ActionKind, ConversationIntent, IntentKind
from salon_ai.core.errors import ParseError

logger = logging.getLogger(__name__)

TODAY_TOKENS = frozenset({"today", "hoy"})
TOMORROW_TOKENS = frozenset({"tomorrow", "mañana", "manana"})

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HH_MM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def resolve_requested_datetime(
    date_text: Optional[str],
    time_text: Optional[str],
    today: date,
    default_time: time,
) -> datetime:
    """Turn extracted date/time slot text into a concrete datetime.

    Accepts today/tomorrow tokens (English and Spanish) or a strict ISO
    date, and a strict HH:MM time; a missing time uses default_time.

    Raises:
        ParseError: Date or time text not in an accepted form
    """
    if not date_text or not date_text.strip():
        raise ParseError("No date in booking slots")

    token = date_text.strip().lower()
    if token in TODAY_TOKENS:
        day = today
    elif token in TOMORROW_TOKENS:
        day = today + timedelta(days=1)
    elif _ISO_DATE.match(token):
        try:
            day = date.fromisoformat(token)
        except ValueError as e:
            raise ParseError(f"Invalid date '{date_text}'") from e
    else:
        raise ParseError(f"Unrecognized date '{date_text}'")

    if time_text is None or not time_text.strip():
        return datetime.combine(day, default_time)

    match = _HH_MM.match(time_text.strip())
    if not match:
        raise ParseError(f"Unrecognized time '{time_text}'")
    return datetime.combine(day, time(int(match.group(1)), int(match.group(2))))


class ConversationReconciler:
    """Re-verifies LLM-proposed bookings against closure rules."""

    def __init__(
        self,
        engine: AvailabilityEngine,
        catalog: Optional[MessageCatalog] = None,
        today: Optional[Callable[[], date]] = None,
        default_time: Optional[time] = None,
    ):
        """Initialize reconciler.

        Args:
            engine: Availability engine
            catalog: Message templates (shared catalog if omitted)
            today: Clock returning the current local date
            default_time: Time used when the customer gave none (defaults to settings)
        """
        self.engine = engine
        self.catalog = catalog or get_message_catalog()
        self._today = today or date.today
        self.default_time = default_time or get_settings().reconcile_default_time

    async def reconcile_booking(
        self,
        intent: ConversationIntent,
        tenant_id: str,
        locale: Optional[str] = None,
    ) -> ConversationIntent:
        """Check a booking intent and adapt the reply if the slot is blocked.

        Returns:
            The same intent object when nothing needs to change, otherwise a
            new QUERY_INFO intent offering alternative dates
        """
        try:
            if intent.intent is not IntentKind.BOOK_APPOINTMENT or not intent.slots.date_text:
                return intent

            try:
                requested_at = resolve_requested_datetime(
                    intent.slots.date_text,
                    intent.slots.time_text,
                    today=self._today(),
                    default_time=self.default_time,
                )
            except ParseError as e:
                logger.warning(f"Skipping reconciliation for tenant {tenant_id}: {e}")
                return intent

            decision = await self.engine.check_availability(
                AvailabilityQuery(tenant_id=tenant_id, requested_at=requested_at)
            )
            if decision.available:
                return intent

            logger.info(
                f"Booking for {requested_at.isoformat()} (tenant {tenant_id}) is blocked by "
                f"{decision.conflict_kind.value if decision.conflict_kind else 'unknown'}, adapting reply"
            )
            return self._adapt(intent, decision, locale)

        except Exception as e:
            logger.error(f"Reconciliation failed for tenant {tenant_id}: {e}", exc_info=True)
            return intent

    def _adapt(
        self,
        intent: ConversationIntent,
        decision: AvailabilityDecision,
        locale: Optional[str],
    ) -> ConversationIntent:
        reason = (decision.message or "").strip().rstrip(".")
        dates = [self.catalog.format_date(d, locale) for d in decision.alternative_dates]
        key = "alternatives_offer" if dates else "alternatives_none"
        message = self.catalog.get(
            key,
            locale,
            reason=reason,
            dates=self.catalog.join_choices(dates, locale),
        )

        return ConversationIntent(
            message=message,
            intent=IntentKind.QUERY_INFO,
            requires_action=False,
            action=ActionKind.NONE,
            slots=intent.slots,
            confidence=intent.confidence,
            raw_message=intent.raw_message,
            fallback_used=intent.fallback_used,
        )
