"""Intent types for conversational booking."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional


class IntentKind(str, Enum):
    """Customer intent categories."""

    BOOK_APPOINTMENT = "BOOK_APPOINTMENT"      # Wants a new appointment
    CANCEL_APPOINTMENT = "CANCEL_APPOINTMENT"  # Wants to cancel one
    QUERY_INFO = "QUERY_INFO"                  # Hours, prices, availability questions
    OTHER = "OTHER"                            # Anything else

    # Fallback
    ERROR = "ERROR"


class ActionKind(str, Enum):
    """Action the booking layer should take after the reply."""

    NONE = "NONE"
    CREATE_APPOINTMENT = "CREATE_APPOINTMENT"
    SEARCH_AVAILABILITY = "SEARCH_AVAILABILITY"
    CANCEL_APPOINTMENT = "CANCEL_APPOINTMENT"


@dataclass
class BookingSlots:
    """Free-text slots extracted by the LLM. Any of them may be missing or malformed."""

    service: Optional[str] = None
    date_text: Optional[str] = None     # "mañana", "2025-12-26"
    time_text: Optional[str] = None     # "10:30"
    customer_name: Optional[str] = None
    phone: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(asdict(self).values())

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ConversationIntent:
    """Structured reply for one customer message."""

    message: str
    intent: IntentKind
    requires_action: bool = False
    action: ActionKind = ActionKind.NONE
    slots: BookingSlots = field(default_factory=BookingSlots)
    confidence: float = 0.8

    # Raw LLM output (or the customer message in fallback mode) for debugging
    raw_message: Optional[str] = None

    # Whether the deterministic fallback produced this intent
    fallback_used: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "message": self.message,
            "intent": self.intent.value,
            "requires_action": self.requires_action,
            "action": self.action.value,
            "slots": self.slots.to_dict(),
            "confidence": self.confidence,
            "fallback_used": self.fallback_used,
        }
