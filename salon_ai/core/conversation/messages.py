"""
Customer-facing message templates.

All business copy lives here as locale-keyed template tables that can be
overridden per deployment (or per tenant) by passing a different
``templates`` mapping. Nothing else in the core embeds customer-facing
sentences.
"""

from datetime import date
from typing import Iterable, Mapping, Optional

from salon_ai.config import get_settings


DEFAULT_TEMPLATES: dict[str, dict[str, str]] = {
    "es": {
        "apology": "Disculpa, estoy teniendo problemas técnicos. ¿Podrías repetir tu solicitud?",
        "fallback_availability": (
            "Ese horario no está disponible. ¿Te vendría bien un poco más temprano, "
            "más tarde o al día siguiente?"
        ),
        "fallback_error": (
            "Lo siento, ha ocurrido un problema. Por favor, inténtalo de nuevo en unos minutos."
        ),
        "fallback_cancel": "Tu solicitud de cancelación ha sido procesada.",
        "fallback_client": "¡Gracias por confiar en nosotros! Estaremos encantados de atenderte.",
        "fallback_default": "Gracias por tu mensaje. ¿En qué más puedo ayudarte?",
        "alternatives_offer": "{reason}. ¿Te vendría bien {dates}?",
        "alternatives_none": "{reason}. ¿Qué otra fecha te vendría bien?",
        "closure_notice": (
            "Hola {customer_name}, tu cita de {service} del {when} queda afectada por un "
            "cierre del salón ({reason}). Te contactaremos para reprogramarla."
        ),
        "cancellation_notice": (
            "Hola {customer_name}, tu cita de {service} del {when} ha sido cancelada por un "
            "cierre del salón ({reason}). Te contactaremos para reprogramarla."
        ),
        "restore_notice": (
            "Hola {customer_name}, el cierre del salón se ha anulado y tu cita de {service} "
            "del {when} vuelve a estar confirmada."
        ),
        "impact_warning": (
            "ATENCIÓN: Hay {count} cita(s) programada(s) en el período seleccionado. "
            "Confirma el cierre para continuar y avisar a los clientes."
        ),
        "customer": "cliente",
        "service": "servicio",
        "conjunction": "o",
        "date_format": "%d/%m/%Y",
    },
    "en": {
        "apology": "Sorry, I'm having technical difficulties. Could you repeat your request?",
        "fallback_availability": (
            "That time isn't available. Would a bit earlier, later, or the next day work?"
        ),
        "fallback_error": "Sorry, something went wrong. Please try again in a few minutes.",
        "fallback_cancel": "Your cancellation request has been processed.",
        "fallback_client": "Thank you for trusting us! We look forward to seeing you.",
        "fallback_default": "Thanks for your message. How else can I help you?",
        "alternatives_offer": "{reason}. Would {dates} work for you?",
        "alternatives_none": "{reason}. What other date works for you?",
        "closure_notice": (
            "Hi {customer_name}, your {service} appointment on {when} is affected by a "
            "salon closure ({reason}). We will contact you to reschedule."
        ),
        "cancellation_notice": (
            "Hi {customer_name}, your {service} appointment on {when} has been cancelled due "
            "to a salon closure ({reason}). We will contact you to reschedule."
        ),
        "restore_notice": (
            "Hi {customer_name}, the salon closure was withdrawn and your {service} "
            "appointment on {when} is confirmed again."
        ),
        "impact_warning": (
            "WARNING: There are {count} appointment(s) booked in the selected period. "
            "Confirm the closure to continue and notify the customers."
        ),
        "customer": "customer",
        "service": "service",
        "conjunction": "or",
        "date_format": "%Y-%m-%d",
    },
}

# Keyword families for degraded-mode classification, checked in order.
DEFAULT_KEYWORD_FAMILIES: dict[str, tuple[str, ...]] = {
    "availability": (
        "disponib", "conflict", "ocupad", "lleno",
        "available", "availability", "busy", "fully booked",
    ),
    "error": ("error", "problema", "falla", "fallo", "problem", "fail", "broken"),
    "cancel": ("cancel", "anular"),
    "client": ("cliente", "recomend", "client", "customer", "recommend"),
}


class MessageCatalog:
    """
    Lookup of message templates by locale and key.

    Unknown locales fall back to the default locale; unknown keys in a
    locale fall back to the default locale's table.
    """

    def __init__(
        self,
        default_locale: str = "es",
        templates: Optional[Mapping[str, Mapping[str, str]]] = None,
        keyword_families: Optional[Mapping[str, Iterable[str]]] = None,
    ):
        self.templates = templates or DEFAULT_TEMPLATES
        if default_locale not in self.templates:
            raise ValueError(f"No templates for default locale '{default_locale}'")
        self.default_locale = default_locale
        families = keyword_families or DEFAULT_KEYWORD_FAMILIES
        self.keyword_families = {name: tuple(words) for name, words in families.items()}

    def _table(self, locale: Optional[str]) -> Mapping[str, str]:
        return self.templates.get(locale or self.default_locale) or self.templates[self.default_locale]

    def get(self, key: str, locale: Optional[str] = None, **values) -> str:
        """Render a template.

        Args:
            key: Template key
            locale: Locale code (default locale if None or unknown)
            **values: Placeholder values

        Returns:
            Rendered text
        """
        template = self._table(locale).get(key)
        if template is None:
            template = self.templates[self.default_locale].get(key)
        if template is None:
            raise KeyError(f"Unknown message template '{key}'")
        return template.format(**values) if values else template

    def classify(self, text: str) -> Optional[str]:
        """Return the first keyword family present in text, if any."""
        lowered = (text or "").lower()
        for family, words in self.keyword_families.items():
            if any(word in lowered for word in words):
                return family
        return None

    def format_date(self, day: date, locale: Optional[str] = None) -> str:
        return day.strftime(self.get("date_format", locale))

    def join_choices(self, items: list[str], locale: Optional[str] = None) -> str:
        """Join items as 'a, b or c' in the locale's conjunction."""
        if not items:
            return ""
        if len(items) == 1:
            return items[0]
        conjunction = self.get("conjunction", locale)
        return f"{', '.join(items[:-1])} {conjunction} {items[-1]}"


_catalog: Optional[MessageCatalog] = None


def get_message_catalog() -> MessageCatalog:
    """Get the shared catalog built from settings."""
    global _catalog
    if _catalog is None:
        _catalog = MessageCatalog(default_locale=get_settings().default_locale)
    return _catalog
