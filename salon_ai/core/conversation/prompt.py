"""System prompt construction from a tenant's business profile."""

from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, Optional

DEFAULT_WORK_DAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]


SYSTEM_PROMPT = """You are the virtual receptionist of the hair salon "{business_name}".

Answer customers briefly and warmly, in the customer's language (default: {locale}).
Today is {today}.

## Business hours

- Opening hours: {open_time} - {close_time}
- Working days: {work_days}
- Default appointment length: {slot_minutes} minutes

{services_section}## Response format

Respond with ONLY valid JSON, no additional text:
{{
    "mensaje": "<reply to show the customer>",
    "intencion": "RESERVAR_CITA | CANCELAR_CITA | CONSULTAR_INFO | OTRO",
    "requiereAccion": <true/false>,
    "accion": "CREAR_CITA | BUSCAR_DISPONIBILIDAD | CANCELAR_CITA | NINGUNA",
    "datosCita": {{
        "servicio": "<service name if mentioned>",
        "fecha": "<YYYY-MM-DD, 'hoy' or 'mañana' if mentioned>",
        "hora": "<HH:MM if mentioned>",
        "nombreCliente": "<name if given>",
        "telefono": "<phone if given>"
    }},
    "confianza": <0.0-1.0>
}}
{custom_section}"""


@dataclass
class ServiceInfo:
    """A service offered by the tenant."""

    name: str
    duration_minutes: Optional[int] = None
    price: Optional[float] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceInfo":
        """Create from API response dict."""
        return cls(
            name=data.get("name", data.get("nombre", "")),
            duration_minutes=data.get("duration_minutes", data.get("durationMinutes", data.get("duracion"))),
            price=data.get("price", data.get("precio")),
            description=data.get("description", data.get("descripcion")),
        )

    def to_prompt_line(self) -> str:
        line = f"- {self.name}"
        if self.duration_minutes:
            line += f" ({self.duration_minutes} min)"
        if self.price is not None:
            line += f" - {self.price}"
        if self.description:
            line += f" - {self.description}"
        return line


def _parse_time(value: Any, default: time) -> time:
    if isinstance(value, time):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return time.fromisoformat(value.strip())
        except ValueError:
            return default
    return default


def _parse_days(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, list):
        days = [str(d).strip().lower() for d in value if str(d).strip()]
        if days:
            return days
    return list(DEFAULT_WORK_DAYS)


@dataclass
class TenantProfile:
    """Business configuration of one tenant, used to build prompts."""

    tenant_id: str
    business_name: str
    open_time: time = time(9, 0)
    close_time: time = time(20, 0)
    work_days: list[str] = field(default_factory=lambda: list(DEFAULT_WORK_DAYS))
    default_slot_minutes: int = 30
    services: list[ServiceInfo] = field(default_factory=list)
    custom_instructions: Optional[str] = None
    locale: Optional[str] = None

    @classmethod
    def from_dict(cls, tenant_id: str, data: dict) -> "TenantProfile":
        """Create from API response dict."""
        defaults = cls(tenant_id=tenant_id, business_name=tenant_id)
        return cls(
            tenant_id=tenant_id,
            business_name=data.get("business_name", data.get("businessName", data.get("nombre_peluqueria")))
            or tenant_id,
            open_time=_parse_time(data.get("open_time", data.get("openTime")), defaults.open_time),
            close_time=_parse_time(data.get("close_time", data.get("closeTime")), defaults.close_time),
            work_days=_parse_days(data.get("work_days", data.get("workDays"))),
            default_slot_minutes=int(
                data.get("default_slot_minutes", data.get("defaultSlotMinutes")) or defaults.default_slot_minutes
            ),
            services=[ServiceInfo.from_dict(s) for s in data.get("services", []) if isinstance(s, dict)],
            custom_instructions=data.get("custom_instructions", data.get("customInstructions")),
            locale=data.get("locale"),
        )

    @classmethod
    def minimal(cls, tenant_id: str) -> "TenantProfile":
        """Profile used when the booking backend cannot be reached."""
        return cls(tenant_id=tenant_id, business_name=tenant_id)


def build_system_prompt(profile: TenantProfile, today: date, default_locale: str = "es") -> str:
    """Render the system prompt for a tenant."""
    services_section = ""
    if profile.services:
        lines = "\n".join(service.to_prompt_line() for service in profile.services)
        services_section = f"## Services\n\n{lines}\n\n"

    custom_section = ""
    if profile.custom_instructions and profile.custom_instructions.strip():
        custom_section = f"\n## Additional instructions\n\n{profile.custom_instructions.strip()}\n"

    return SYSTEM_PROMPT.format(
        business_name=profile.business_name,
        locale=profile.locale or default_locale,
        today=today.isoformat(),
        open_time=profile.open_time.strftime("%H:%M"),
        close_time=profile.close_time.strftime("%H:%M"),
        work_days=", ".join(profile.work_days),
        slot_minutes=profile.default_slot_minutes,
        services_section=services_section,
        custom_section=custom_section,
    )
