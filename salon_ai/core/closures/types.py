"""Closure rule and availability types."""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Optional

from salon_ai.core.errors import ValidationError


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class ClosureKind(str, Enum):
    """Kinds of exceptions to normal operating hours."""

    FULL_CLOSURE = "FULL_CLOSURE"                   # Closed all day
    REDUCED_HOURS = "REDUCED_HOURS"                 # Open only inside a window
    EMERGENCY_ONLY = "EMERGENCY_ONLY"               # Emergencies only
    EMPLOYEE_UNAVAILABLE = "EMPLOYEE_UNAVAILABLE"   # Specific staff absent
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"     # Specific services off

    @property
    def requires_hours(self) -> bool:
        return self is ClosureKind.REDUCED_HOURS

    @property
    def requires_employees(self) -> bool:
        return self is ClosureKind.EMPLOYEE_UNAVAILABLE

    @property
    def requires_services(self) -> bool:
        return self is ClosureKind.SERVICE_UNAVAILABLE

    @property
    def blocks_whole_day(self) -> bool:
        return self is ClosureKind.FULL_CLOSURE

    @property
    def priority(self) -> int:
        """Evaluation order; lower runs first."""
        return _KIND_PRIORITY[self]

    @property
    def color(self) -> str:
        """Calendar colour code."""
        return _KIND_COLORS[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ClosureKind"]:
        """Parse a kind tag, tolerating case and legacy tag names.

        Returns None for empty or unknown values.
        """
        if value is None or not value.strip():
            return None
        tag = value.strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls(tag)
        except ValueError:
            return _LEGACY_TAGS.get(tag)


_KIND_PRIORITY = {
    ClosureKind.FULL_CLOSURE: 0,
    ClosureKind.EMERGENCY_ONLY: 1,
    ClosureKind.EMPLOYEE_UNAVAILABLE: 2,
    ClosureKind.SERVICE_UNAVAILABLE: 3,
    ClosureKind.REDUCED_HOURS: 4,
}

_KIND_COLORS = {
    ClosureKind.FULL_CLOSURE: "#dc3545",
    ClosureKind.REDUCED_HOURS: "#ffc107",
    ClosureKind.EMPLOYEE_UNAVAILABLE: "#fd7e14",
    ClosureKind.SERVICE_UNAVAILABLE: "#6c757d",
    ClosureKind.EMERGENCY_ONLY: "#e83e8c",
}

_LEGACY_TAGS = {
    "CERRADO_COMPLETO": ClosureKind.FULL_CLOSURE,
    "HORARIO_REDUCIDO": ClosureKind.REDUCED_HOURS,
    "SOLO_EMERGENCIAS": ClosureKind.EMERGENCY_ONLY,
    "EMPLEADO_AUSENTE": ClosureKind.EMPLOYEE_UNAVAILABLE,
    "SERVICIO_NO_DISPONIBLE": ClosureKind.SERVICE_UNAVAILABLE,
}


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive time-of-day window."""

    start: time
    end: time

    def contains(self, moment: time) -> bool:
        """Check if a time falls inside the window (both ends inclusive)."""
        return self.start <= moment <= self.end

    def to_dict(self) -> dict:
        return {"start": self.start.strftime("%H:%M"), "end": self.end.strftime("%H:%M")}


@dataclass
class ClosureRule:
    """One declared exception to normal operating hours for a tenant."""

    tenant_id: str
    start_date: date
    end_date: date
    kind: ClosureKind
    reason: Optional[str] = None
    reduced_hours: Optional[TimeWindow] = None
    customer_message: Optional[str] = None
    affected_employee_ids: frozenset[str] = frozenset()
    affected_service_ids: frozenset[str] = frozenset()
    notify_existing_customers: bool = True
    active: bool = True
    created_by: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def covers(self, day: date) -> bool:
        """Check if the rule's date range contains a day (inclusive)."""
        return self.start_date <= day <= self.end_date

    def overlaps(self, start: date, end: date) -> bool:
        """Check if the rule's date range intersects [start, end]."""
        return self.start_date <= end and start <= self.end_date

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "kind": self.kind.value,
            "reason": self.reason,
            "reduced_hours": self.reduced_hours.to_dict() if self.reduced_hours else None,
            "customer_message": self.customer_message,
            "affected_employee_ids": sorted(self.affected_employee_ids),
            "affected_service_ids": sorted(self.affected_service_ids),
            "notify_existing_customers": self.notify_existing_customers,
            "active": self.active,
            "created_by": self.created_by,
        }


@dataclass
class ClosureRequest:
    """Full specification of a closure to create."""

    start_date: date
    end_date: date
    kind: ClosureKind
    reason: Optional[str] = None
    hours_start: Optional[time] = None
    hours_end: Optional[time] = None
    customer_message: Optional[str] = None
    affected_employee_ids: list[str] = field(default_factory=list)
    affected_service_ids: list[str] = field(default_factory=list)
    notify_existing_customers: bool = True


@dataclass(frozen=True)
class AvailabilityQuery:
    """A requested slot to check against closure rules."""

    tenant_id: str
    requested_at: datetime
    employee_id: Optional[str] = None
    service_id: Optional[str] = None
    emergency: bool = False

    def __post_init__(self) -> None:
        if not self.tenant_id or not str(self.tenant_id).strip():
            raise ValidationError("tenant_id is required")
        if self.requested_at is None:
            raise ValidationError("requested_at is required")

    @property
    def day(self) -> date:
        return self.requested_at.date()

    @property
    def moment(self) -> time:
        return self.requested_at.time()


@dataclass
class AvailabilityDecision:
    """Outcome of checking a slot against closure rules."""

    available: bool
    message: Optional[str] = None
    alternative_dates: list[date] = field(default_factory=list)
    restricted_window: Optional[TimeWindow] = None
    conflict_kind: Optional[ClosureKind] = None
    rule_id: Optional[str] = None

    @classmethod
    def open(cls, restricted_window: Optional[TimeWindow] = None) -> "AvailabilityDecision":
        return cls(available=True, restricted_window=restricted_window)

    @classmethod
    def blocked(cls, message: str, kind: ClosureKind, rule_id: Optional[str] = None) -> "AvailabilityDecision":
        return cls(available=False, message=message, conflict_kind=kind, rule_id=rule_id)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        result: dict = {"available": self.available}
        if self.message:
            result["message"] = self.message
        if self.alternative_dates:
            result["alternative_dates"] = [d.isoformat() for d in self.alternative_dates]
        if self.restricted_window:
            result["restricted_window"] = self.restricted_window.to_dict()
        if self.conflict_kind:
            result["conflict_kind"] = self.conflict_kind.value
        return result


@dataclass
class BookedAppointment:
    """Appointment returned by the appointment lookup collaborator.

    closure_id is set by the booking backend on appointments cancelled
    because of a closure, so deleting that closure can restore them.
    """

    id: str
    customer_name: Optional[str]
    customer_phone: Optional[str]
    service_name: Optional[str]
    starts_at: datetime
    status: str
    closure_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "BookedAppointment":
        """Create from API response dict.

        Raises:
            ValueError: The payload carries no usable start date-time
        """
        starts_at = data.get("starts_at", data.get("dateTime", data.get("fechaHora")))
        if isinstance(starts_at, str):
            starts_at = datetime.fromisoformat(starts_at)
        if not isinstance(starts_at, datetime):
            raise ValueError(f"Appointment {data.get('id')!r} has no start date-time")
        closure_id = data.get("closure_id", data.get("closureId"))
        return cls(
            id=str(data.get("id", "")),
            customer_name=data.get("customer_name", data.get("customerName")),
            customer_phone=data.get("customer_phone", data.get("customerPhone")),
            service_name=data.get("service_name", data.get("serviceName")),
            starts_at=starts_at,
            status=data.get("status", "CONFIRMED"),
            closure_id=str(closure_id) if closure_id is not None else None,
        )

    def to_summary(self) -> dict:
        """Minimal per-appointment summary for impact reports."""
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "service_name": self.service_name,
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "status": self.status,
        }


@dataclass
class ImpactedAppointmentsReport:
    """Returned instead of a rule when a closure would hit booked appointments."""

    count: int
    appointments: list[dict]
    warning_message: str
    requires_confirmation: bool = True

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "appointments": self.appointments,
            "warning_message": self.warning_message,
            "requires_confirmation": self.requires_confirmation,
        }


@dataclass
class CalendarEntry:
    """Lightweight view of one rule on a calendar day."""

    id: str
    kind: ClosureKind
    short_description: str
    color: str
    spans_range: bool


@dataclass
class CalendarDay:
    """All active rules covering one day."""

    day: date
    entries: list[CalendarEntry] = field(default_factory=list)

    @property
    def fully_closed(self) -> bool:
        return any(entry.kind.blocks_whole_day for entry in self.entries)


@dataclass
class ClosureStatistics:
    """Aggregate counts of a tenant's closure rules."""

    total: int = 0
    by_kind: dict[ClosureKind, int] = field(default_factory=dict)
    most_frequent_kind: Optional[ClosureKind] = None
    most_frequent_reason: Optional[str] = None
    closed_days_this_month: int = 0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "by_kind": {kind.value: count for kind, count in self.by_kind.items()},
            "most_frequent_kind": self.most_frequent_kind.value if self.most_frequent_kind else None,
            "most_frequent_reason": self.most_frequent_reason,
            "closed_days_this_month": self.closed_days_this_month,
        }
