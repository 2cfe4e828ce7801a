"""
Pure evaluation of closure rules against a requested slot.

Each ClosureKind maps to one evaluator. Evaluators never touch storage;
they only look at the rule and the query.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from salon_ai.core.closures.types import (
    AvailabilityQuery,
    ClosureKind,
    ClosureRule,
    TimeWindow,
)

UNAVAILABLE_PLACEHOLDER = "not available"


@dataclass(frozen=True)
class RuleOutcome:
    """Result of evaluating one rule."""

    blocks: bool
    message: Optional[str] = None
    window: Optional[TimeWindow] = None


_PASS = RuleOutcome(blocks=False)


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    return text or None


def resolve_message(rule: ClosureRule) -> str:
    """Customer message, else reason, else a placeholder. Never empty."""
    return _clean(rule.customer_message) or _clean(rule.reason) or UNAVAILABLE_PLACEHOLDER


def reduced_hours_message(rule: ClosureRule) -> str:
    """Blocking message for a slot outside a reduced-hours window."""
    custom = _clean(rule.customer_message)
    if custom:
        return custom

    parts = []
    if rule.reduced_hours is not None:
        window = rule.reduced_hours
        parts.append(
            f"restricted to {window.start.strftime('%H:%M')}-{window.end.strftime('%H:%M')}"
        )
    reason = _clean(rule.reason)
    if reason:
        parts.append(reason)
    return " - ".join(parts) or UNAVAILABLE_PLACEHOLDER


def _full_closure(rule: ClosureRule, query: AvailabilityQuery) -> RuleOutcome:
    return RuleOutcome(blocks=True, message=resolve_message(rule))


def _reduced_hours(rule: ClosureRule, query: AvailabilityQuery) -> RuleOutcome:
    window = rule.reduced_hours
    if window is None:
        # Stored without a window; nothing to restrict against.
        return _PASS
    if window.contains(query.moment):
        return RuleOutcome(blocks=False, window=window)
    return RuleOutcome(blocks=True, message=reduced_hours_message(rule), window=window)


def _emergency_only(rule: ClosureRule, query: AvailabilityQuery) -> RuleOutcome:
    if query.emergency:
        return _PASS
    return RuleOutcome(blocks=True, message=resolve_message(rule))


def _employee_unavailable(rule: ClosureRule, query: AvailabilityQuery) -> RuleOutcome:
    if query.employee_id is not None and query.employee_id in rule.affected_employee_ids:
        return RuleOutcome(blocks=True, message=resolve_message(rule))
    return _PASS


def _service_unavailable(rule: ClosureRule, query: AvailabilityQuery) -> RuleOutcome:
    if query.service_id is not None and query.service_id in rule.affected_service_ids:
        return RuleOutcome(blocks=True, message=resolve_message(rule))
    return _PASS


EVALUATORS: dict[ClosureKind, Callable[[ClosureRule, AvailabilityQuery], RuleOutcome]] = {
    ClosureKind.FULL_CLOSURE: _full_closure,
    ClosureKind.REDUCED_HOURS: _reduced_hours,
    ClosureKind.EMERGENCY_ONLY: _emergency_only,
    ClosureKind.EMPLOYEE_UNAVAILABLE: _employee_unavailable,
    ClosureKind.SERVICE_UNAVAILABLE: _service_unavailable,
}


def evaluate_rule(rule: ClosureRule, query: AvailabilityQuery) -> RuleOutcome:
    """Evaluate a single rule against a query."""
    return EVALUATORS[rule.kind](rule, query)


def evaluation_order(rules: Iterable[ClosureRule]) -> list[ClosureRule]:
    """Sort rules so whole-day kinds run before partial restrictions."""
    return sorted(rules, key=lambda r: (r.kind.priority, r.start_date, r.id))
