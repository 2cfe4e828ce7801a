"""
LLM reply parsing with a deterministic keyword fallback.

parse() turns the model's JSON reply into a ConversationIntent and never
raises: anything it cannot interpret becomes an ERROR intent carrying a
safe apology. fallback() answers from keyword families when the LLM is
unconfigured or unreachable.
"""

import json
import logging
from typing import Any, Optional

from salon_ai.core.conversation.messages import MessageCatalog, get_message_catalog
from salon_ai.core.conversation.types import (
    ActionKind,
    BookingSlots,
    ConversationIntent,
    IntentKind,
)
from salon_ai.core.errors import ParseError

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.5

_INTENT_TAGS = {
    "RESERVAR_CITA": IntentKind.BOOK_APPOINTMENT,
    "AGENDAR_CITA": IntentKind.BOOK_APPOINTMENT,
    "CANCELAR_CITA": IntentKind.CANCEL_APPOINTMENT,
    "CONSULTAR_INFO": IntentKind.QUERY_INFO,
    "CONSULTA": IntentKind.QUERY_INFO,
    "OTRO": IntentKind.OTHER,
}

_ACTION_TAGS = {
    "CREAR_CITA": ActionKind.CREATE_APPOINTMENT,
    "BUSCAR_DISPONIBILIDAD": ActionKind.SEARCH_AVAILABILITY,
    "CANCELAR_CITA": ActionKind.CANCEL_APPOINTMENT,
    "NINGUNA": ActionKind.NONE,
}

_TRUE_STRINGS = {"true", "1", "yes", "si", "sí"}

# Accepted key spellings, first match wins.
_MESSAGE_KEYS = ("mensaje", "message", "respuesta", "response")
_INTENT_KEYS = ("intencion", "intención", "intent")
_REQUIRES_ACTION_KEYS = ("requiereAccion", "requiere_accion", "requiresAction", "requires_action")
_ACTION_KEYS = ("accion", "acción", "action")
_SLOTS_KEYS = ("datosCita", "datos_cita", "datos_extraidos", "datosExtraidos", "slots", "extracted_slots")
_CONFIDENCE_KEYS = ("confianza", "confidence")

_SLOT_KEYS = {
    "service": ("servicio", "service"),
    "date_text": ("fecha", "date"),
    "time_text": ("hora", "time"),
    "customer_name": ("nombreCliente", "nombre_cliente", "nombre", "customerName", "customer_name", "name"),
    "phone": ("telefono", "teléfono", "phone"),
}

# Fallback family -> intent
_FAMILY_INTENTS = {
    "availability": IntentKind.QUERY_INFO,
    "error": IntentKind.OTHER,
    "cancel": IntentKind.CANCEL_APPOINTMENT,
    "client": IntentKind.OTHER,
}

_LAST_RESORT_MESSAGE = "..."


def _first(data: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _tag(value: Any) -> str:
    return str(value).strip().upper().replace(" ", "_").replace("-", "_")


def strip_code_fences(content: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```), if any."""
    content = content.strip()
    if content.startswith("```"):
        lines = content.split("\n")
        # Drop the opening fence line (``` or ```json)
        lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        content = "\n".join(lines)
    return content.strip()


class IntentResponseParser:
    """Parses LLM replies into ConversationIntent."""

    def __init__(self, catalog: Optional[MessageCatalog] = None):
        """Initialize parser.

        Args:
            catalog: Message templates (shared catalog if omitted)
        """
        self.catalog = catalog or get_message_catalog()

    def parse(self, content: Optional[str], locale: Optional[str] = None) -> ConversationIntent:
        """Parse a raw LLM reply.

        Args:
            content: Raw model output, expected to be a JSON object
            locale: Locale for any synthesized message

        Returns:
            ConversationIntent; an ERROR intent if the content is unusable
        """
        try:
            return self._parse(content, locale)
        except Exception as e:
            logger.warning(f"Failed to parse LLM reply: {e}\nReply: {content!r}")
            return self.error_intent(content, locale)

    def _parse(self, content: Optional[str], locale: Optional[str]) -> ConversationIntent:
        if not isinstance(content, str) or not content.strip():
            raise ParseError("Empty LLM reply")

        cleaned = strip_code_fences(content)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ParseError(f"Expected a JSON object, got {type(data).__name__}")

        intent = self._parse_intent(_first(data, _INTENT_KEYS))
        message = _clean_text(_first(data, _MESSAGE_KEYS))
        if message is None:
            logger.warning("LLM reply had no message, using default acknowledgment")
            message = self._safe_message("fallback_default", locale)

        return ConversationIntent(
            message=message,
            intent=intent,
            requires_action=self._parse_bool(_first(data, _REQUIRES_ACTION_KEYS)),
            action=self._parse_action(_first(data, _ACTION_KEYS)),
            slots=self._parse_slots(_first(data, _SLOTS_KEYS)),
            confidence=self._parse_confidence(_first(data, _CONFIDENCE_KEYS)),
            raw_message=content,
        )

    @staticmethod
    def _parse_intent(value: Any) -> IntentKind:
        if value is None:
            return IntentKind.OTHER
        tag = _tag(value)
        try:
            return IntentKind(tag)
        except ValueError:
            return _INTENT_TAGS.get(tag, IntentKind.OTHER)

    @staticmethod
    def _parse_action(value: Any) -> ActionKind:
        if value is None:
            return ActionKind.NONE
        tag = _tag(value)
        try:
            return ActionKind(tag)
        except ValueError:
            return _ACTION_TAGS.get(tag, ActionKind.NONE)

    @staticmethod
    def _parse_bool(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return False

    @staticmethod
    def _parse_confidence(value: Any) -> float:
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return DEFAULT_CONFIDENCE
        return min(max(confidence, 0.0), 1.0)

    @staticmethod
    def _parse_slots(value: Any) -> BookingSlots:
        if not isinstance(value, dict):
            return BookingSlots()
        return BookingSlots(**{
            name: _clean_text(_first(value, keys)) for name, keys in _SLOT_KEYS.items()
        })

    def error_intent(self, raw: Optional[str] = None, locale: Optional[str] = None) -> ConversationIntent:
        """Generic ERROR intent with a safe apology."""
        return ConversationIntent(
            message=self._safe_message("apology", locale),
            intent=IntentKind.ERROR,
            requires_action=False,
            action=ActionKind.NONE,
            confidence=0.0,
            raw_message=raw,
        )

    def fallback(self, user_message: Optional[str], locale: Optional[str] = None) -> ConversationIntent:
        """Canned reply chosen by keyword family. Never raises."""
        family = None
        try:
            family = self.catalog.classify(user_message or "")
        except Exception as e:
            logger.warning(f"Keyword classification failed: {e}")

        key = f"fallback_{family}" if family else "fallback_default"
        logger.info(f"Using fallback reply '{key}'")

        return ConversationIntent(
            message=self._safe_message(key, locale),
            intent=_FAMILY_INTENTS.get(family, IntentKind.OTHER),
            requires_action=False,
            action=ActionKind.NONE,
            confidence=FALLBACK_CONFIDENCE,
            raw_message=user_message,
            fallback_used=True,
        )

    def _safe_message(self, key: str, locale: Optional[str]) -> str:
        for candidate in (key, "fallback_default", "apology"):
            try:
                message = self.catalog.get(candidate, locale)
            except Exception as e:
                logger.warning(f"Message template '{candidate}' unavailable: {e}")
                continue
            if message and message.strip():
                return message
        return _LAST_RESORT_MESSAGE
