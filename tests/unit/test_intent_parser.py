"""
Unit tests for IntentResponseParser.

Tests JSON parsing, key spelling tolerance, tag mapping and the keyword
fallback used when the LLM is unavailable.
"""

import pytest

from salon_ai.core.conversation.messages import MessageCatalog
from salon_ai.core.conversation.parser import (
    FALLBACK_CONFIDENCE,
    IntentResponseParser,
    strip_code_fences,
)
from salon_ai.core.conversation.types import ActionKind, IntentKind


class TestParse:
    """Test parsing of LLM replies."""

    @pytest.fixture
    def parser(self):
        return IntentResponseParser(MessageCatalog(default_locale="es"))

    def test_not_json_returns_error_intent(self, parser):
        """Garbage input gives an ERROR intent with an apology."""
        intent = parser.parse("not json at all")

        assert intent.intent == IntentKind.ERROR
        assert intent.message.strip()
        assert intent.requires_action is False
        assert intent.action == ActionKind.NONE
        assert intent.raw_message == "not json at all"

    @pytest.mark.parametrize(
        "content",
        [
            "",
            "   ",
            None,
            "{",
            '{"mensaje": "Hola", "intencion": ',
            "[1, 2, 3]",
            '"just a string"',
            "42",
            "null",
            "```json\n{broken\n```",
            '{"mensaje": {"nested": true}}',
        ],
    )
    def test_never_raises_and_always_has_message(self, parser, content):
        """Any input yields a well-formed intent with a non-empty message."""
        intent = parser.parse(content)

        assert isinstance(intent.message, str)
        assert intent.message.strip()
        assert isinstance(intent.intent, IntentKind)

    def test_parse_spanish_keys(self, parser):
        """Canonical reply contract with Spanish keys and legacy tags."""
        content = """{
            "mensaje": "¡Perfecto! Te reservo un corte mañana a las 10:00.",
            "intencion": "RESERVAR_CITA",
            "requiereAccion": true,
            "accion": "CREAR_CITA",
            "datosCita": {
                "servicio": "Corte",
                "fecha": "mañana",
                "hora": "10:00",
                "nombreCliente": "Lucía",
                "telefono": "+34600000001"
            },
            "confianza": 0.92
        }"""

        intent = parser.parse(content)

        assert intent.intent == IntentKind.BOOK_APPOINTMENT
        assert intent.action == ActionKind.CREATE_APPOINTMENT
        assert intent.requires_action is True
        assert intent.confidence == 0.92
        assert intent.slots.service == "Corte"
        assert intent.slots.date_text == "mañana"
        assert intent.slots.time_text == "10:00"
        assert intent.slots.customer_name == "Lucía"
        assert intent.slots.phone == "+34600000001"
        assert intent.fallback_used is False

    def test_parse_english_snake_case_keys(self, parser):
        content = (
            '{"message": "Sure, checking.", "intent": "query_info", '
            '"requires_action": "true", "action": "search availability", '
            '"slots": {"service": "Color", "date": "2025-12-26"}}'
        )

        intent = parser.parse(content)

        assert intent.message == "Sure, checking."
        assert intent.intent == IntentKind.QUERY_INFO
        assert intent.action == ActionKind.SEARCH_AVAILABILITY
        assert intent.requires_action is True
        assert intent.slots.service == "Color"
        assert intent.slots.date_text == "2025-12-26"
        assert intent.slots.time_text is None

    def test_strips_markdown_fences(self, parser):
        content = '```json\n{"mensaje": "Hola", "intencion": "OTRO"}\n```'

        intent = parser.parse(content)

        assert intent.message == "Hola"
        assert intent.intent == IntentKind.OTHER

    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("RESERVAR_CITA", IntentKind.BOOK_APPOINTMENT),
            ("AGENDAR_CITA", IntentKind.BOOK_APPOINTMENT),
            ("CANCELAR_CITA", IntentKind.CANCEL_APPOINTMENT),
            ("CONSULTAR_INFO", IntentKind.QUERY_INFO),
            ("BOOK_APPOINTMENT", IntentKind.BOOK_APPOINTMENT),
            ("something new", IntentKind.OTHER),
        ],
    )
    def test_intent_tag_mapping(self, parser, tag, expected):
        intent = parser.parse(f'{{"mensaje": "ok", "intencion": "{tag}"}}')

        assert intent.intent == expected

    def test_missing_fields_get_defaults(self, parser):
        """Only a message present: OTHER, no action, default confidence."""
        intent = parser.parse('{"mensaje": "Hola"}')

        assert intent.intent == IntentKind.OTHER
        assert intent.action == ActionKind.NONE
        assert intent.requires_action is False
        assert intent.confidence == 0.8
        assert intent.slots.is_empty()

    def test_missing_message_uses_default_acknowledgment(self, parser):
        intent = parser.parse('{"intencion": "CONSULTAR_INFO"}')

        assert intent.intent == IntentKind.QUERY_INFO
        assert intent.message == "Gracias por tu mensaje. ¿En qué más puedo ayudarte?"

    @pytest.mark.parametrize("raw,expected", [(1.7, 1.0), (-0.2, 0.0), ("0.4", 0.4), ("high", 0.8)])
    def test_confidence_clamped(self, parser, raw, expected):
        value = f'"{raw}"' if isinstance(raw, str) else raw
        intent = parser.parse(f'{{"mensaje": "ok", "confianza": {value}}}')

        assert intent.confidence == pytest.approx(expected)

    def test_non_dict_slots_ignored(self, parser):
        intent = parser.parse('{"mensaje": "ok", "datosCita": "mañana"}')

        assert intent.slots.is_empty()

    def test_error_intent_uses_locale(self, parser):
        intent = parser.parse("not json", locale="en")

        assert intent.intent == IntentKind.ERROR
        assert intent.message.startswith("Sorry")
        assert intent.confidence == 0.0


class TestFallback:
    """Test keyword fallback replies."""

    @pytest.fixture
    def parser(self):
        return IntentResponseParser(MessageCatalog(default_locale="es"))

    @pytest.mark.parametrize(
        "text,expected_intent",
        [
            ("¿Tenéis disponibilidad el viernes?", IntentKind.QUERY_INFO),
            ("Is Friday available?", IntentKind.QUERY_INFO),
            ("Quiero cancelar mi cita", IntentKind.CANCEL_APPOINTMENT),
            ("Hubo un problema con el pago", IntentKind.OTHER),
            ("Hola", IntentKind.OTHER),
        ],
    )
    def test_family_intents(self, parser, text, expected_intent):
        intent = parser.fallback(text)

        assert intent.intent == expected_intent
        assert intent.fallback_used is True
        assert intent.confidence == FALLBACK_CONFIDENCE
        assert intent.requires_action is False
        assert intent.message.strip()

    def test_family_messages(self, parser):
        catalog = parser.catalog

        assert parser.fallback("cancelar").message == catalog.get("fallback_cancel")
        assert parser.fallback("ocupado").message == catalog.get("fallback_availability")
        assert parser.fallback("soy cliente nuevo").message == catalog.get("fallback_client")
        assert parser.fallback("buenas").message == catalog.get("fallback_default")

    def test_availability_checked_before_cancel(self, parser):
        """Families are checked in declaration order."""
        intent = parser.fallback("Si no hay disponibilidad, cancelo")

        assert intent.intent == IntentKind.QUERY_INFO

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty_input(self, parser, text):
        intent = parser.fallback(text)

        assert intent.message.strip()
        assert intent.intent == IntentKind.OTHER

    def test_missing_template_falls_back_to_default(self):
        """A catalog lacking a family template still yields a message."""
        catalog = MessageCatalog(
            default_locale="es",
            templates={"es": {"fallback_default": "Hola", "apology": "Perdón"}},
        )
        parser = IntentResponseParser(catalog)

        assert parser.fallback("cancelar").message == "Hola"


class TestStripCodeFences:
    """Test markdown fence removal."""

    def test_plain_json_untouched(self):
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'
