"""
Closures Module

Closure rules (special hours), availability checks against them, and
their administration.

Usage:
    from salon_ai.core.closures import (
        AvailabilityEngine,
        AvailabilityQuery,
        ClosureRegistry,
    )

    decision = await engine.check_availability(
        AvailabilityQuery(tenant_id="salon-A", requested_at=requested_at)
    )
"""

# Types
from salon_ai.core.closures.types import (
    AvailabilityDecision,
    AvailabilityQuery,
    BookedAppointment,
    CalendarDay,
    CalendarEntry,
    ClosureKind,
    ClosureRequest,
    ClosureRule,
    ClosureStatistics,
    ImpactedAppointmentsReport,
    TimeWindow,
)

# Evaluation
from salon_ai.core.closures.evaluation import (
    RuleOutcome,
    evaluate_rule,
    evaluation_order,
    resolve_message,
)

# Storage
from salon_ai.core.closures.repository import (
    ClosureRepository,
    InMemoryClosureRepository,
    SqlClosureRepository,
)

# Availability
from salon_ai.core.closures.availability import (
    AlternativeDateFinder,
    AvailabilityEngine,
)

# Administration
from salon_ai.core.closures.registry import (
    AppointmentLookup,
    AppointmentStatusUpdater,
    ClosureRegistry,
    Notifier,
)

__all__ = [
    # Types
    "AvailabilityDecision",
    "AvailabilityQuery",
    "BookedAppointment",
    "CalendarDay",
    "CalendarEntry",
    "ClosureKind",
    "ClosureRequest",
    "ClosureRule",
    "ClosureStatistics",
    "ImpactedAppointmentsReport",
    "TimeWindow",
    # Evaluation
    "RuleOutcome",
    "evaluate_rule",
    "evaluation_order",
    "resolve_message",
    # Storage
    "ClosureRepository",
    "InMemoryClosureRepository",
    "SqlClosureRepository",
    # Availability
    "AlternativeDateFinder",
    "AvailabilityEngine",
    # Administration
    "AppointmentLookup",
    "AppointmentStatusUpdater",
    "ClosureRegistry",
    "Notifier",
]
