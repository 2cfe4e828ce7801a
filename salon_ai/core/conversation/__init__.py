"""
Conversation Module

Turns LLM replies into structured booking intents and reconciles
proposed bookings with the tenant's closure rules.

Usage:
    from salon_ai.core.conversation import (
        ConversationService,
        IntentResponseParser,
        ConversationReconciler,
    )

    intent = await service.process_message(
        tenant_id="salon-A",
        message="Quiero un corte mañana a las 10:00",
    )
    print(intent.message)  # Reply for the customer
    print(intent.intent)   # IntentKind
"""

# Types
from salon_ai.core.conversation.types import (
    ActionKind,
    BookingSlots,
    ConversationIntent,
    IntentKind,
)

# Messages
from salon_ai.core.conversation.messages import (
    MessageCatalog,
    get_message_catalog,
)

# Parser
from salon_ai.core.conversation.parser import IntentResponseParser

# Prompt
from salon_ai.core.conversation.prompt import (
    ServiceInfo,
    TenantProfile,
    build_system_prompt,
)

# Reconciler
from salon_ai.core.conversation.reconciler import (
    ConversationReconciler,
    resolve_requested_datetime,
)

# Service
from salon_ai.core.conversation.service import (
    ConversationService,
    LanguageModel,
    TenantProfileLookup,
)

__all__ = [
    # Types
    "ActionKind",
    "BookingSlots",
    "ConversationIntent",
    "IntentKind",
    # Messages
    "MessageCatalog",
    "get_message_catalog",
    # Parser
    "IntentResponseParser",
    # Prompt
    "ServiceInfo",
    "TenantProfile",
    "build_system_prompt",
    # Reconciler
    "ConversationReconciler",
    "resolve_requested_datetime",
    # Service
    "ConversationService",
    "LanguageModel",
    "TenantProfileLookup",
]
