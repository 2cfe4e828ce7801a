"""Tests for closure kinds and per-rule evaluation."""

from datetime import date, datetime, time

import pytest

from salon_ai.core.closures.evaluation import (
    UNAVAILABLE_PLACEHOLDER,
    evaluate_rule,
    evaluation_order,
    reduced_hours_message,
    resolve_message,
)
from salon_ai.core.closures.types import (
    AvailabilityQuery,
    ClosureKind,
    ClosureRule,
    TimeWindow,
)
from salon_ai.core.errors import ValidationError


DAY = date(2025, 6, 1)


def make_rule(kind: ClosureKind, **kwargs) -> ClosureRule:
    return ClosureRule(tenant_id="salon-A", start_date=DAY, end_date=DAY, kind=kind, **kwargs)


def make_query(hour: int = 11, minute: int = 0, **kwargs) -> AvailabilityQuery:
    return AvailabilityQuery(
        tenant_id="salon-A",
        requested_at=datetime(2025, 6, 1, hour, minute),
        **kwargs,
    )


class TestClosureKind:
    """Test ClosureKind metadata and parsing."""

    def test_required_fields_per_kind(self):
        """Each kind declares which extra fields it needs."""
        assert ClosureKind.REDUCED_HOURS.requires_hours
        assert not ClosureKind.FULL_CLOSURE.requires_hours
        assert ClosureKind.EMPLOYEE_UNAVAILABLE.requires_employees
        assert ClosureKind.SERVICE_UNAVAILABLE.requires_services
        assert ClosureKind.FULL_CLOSURE.blocks_whole_day
        assert not ClosureKind.EMERGENCY_ONLY.blocks_whole_day

    def test_full_closure_runs_first(self):
        """Full closures have the lowest priority number."""
        priorities = {kind: kind.priority for kind in ClosureKind}
        assert min(priorities, key=priorities.get) is ClosureKind.FULL_CLOSURE
        assert max(priorities, key=priorities.get) is ClosureKind.REDUCED_HOURS

    def test_colors(self):
        """Every kind has a calendar colour."""
        assert ClosureKind.FULL_CLOSURE.color == "#dc3545"
        assert all(kind.color.startswith("#") for kind in ClosureKind)

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("FULL_CLOSURE", ClosureKind.FULL_CLOSURE),
            ("reduced hours", ClosureKind.REDUCED_HOURS),
            ("employee-unavailable", ClosureKind.EMPLOYEE_UNAVAILABLE),
            ("CERRADO_COMPLETO", ClosureKind.FULL_CLOSURE),
            ("horario_reducido", ClosureKind.REDUCED_HOURS),
            ("SOLO_EMERGENCIAS", ClosureKind.EMERGENCY_ONLY),
            ("SERVICIO_NO_DISPONIBLE", ClosureKind.SERVICE_UNAVAILABLE),
        ],
    )
    def test_parse(self, value, expected):
        """Test parsing English and legacy tags."""
        assert ClosureKind.parse(value) is expected

    @pytest.mark.parametrize("value", [None, "", "   ", "HOLIDAY"])
    def test_parse_unknown(self, value):
        """Unknown or empty tags parse to None."""
        assert ClosureKind.parse(value) is None


class TestAvailabilityQuery:
    """Test AvailabilityQuery validation."""

    def test_requires_tenant(self):
        """Empty tenant is rejected before reaching the engine."""
        with pytest.raises(ValidationError):
            AvailabilityQuery(tenant_id="", requested_at=datetime(2025, 6, 1, 10, 0))

    def test_requires_datetime(self):
        """Missing requested_at is rejected."""
        with pytest.raises(ValidationError):
            AvailabilityQuery(tenant_id="salon-A", requested_at=None)


class TestMessageResolution:
    """Test message resolution for blocking rules."""

    def test_customer_message_preferred(self):
        rule = make_rule(ClosureKind.FULL_CLOSURE, reason="Holiday", customer_message="Closed today")
        assert resolve_message(rule) == "Closed today"

    def test_reason_when_no_customer_message(self):
        rule = make_rule(ClosureKind.FULL_CLOSURE, reason="Holiday", customer_message="  ")
        assert resolve_message(rule) == "Holiday"

    def test_placeholder_never_empty(self):
        rule = make_rule(ClosureKind.FULL_CLOSURE)
        assert resolve_message(rule) == UNAVAILABLE_PLACEHOLDER

    def test_reduced_hours_message_composes_window_and_reason(self):
        rule = make_rule(
            ClosureKind.REDUCED_HOURS,
            reason="staff training",
            reduced_hours=TimeWindow(time(9, 0), time(14, 0)),
        )
        assert reduced_hours_message(rule) == "restricted to 09:00-14:00 - staff training"


class TestEvaluateRule:
    """Test evaluation keyed by kind."""

    def test_full_closure_always_blocks(self):
        outcome = evaluate_rule(make_rule(ClosureKind.FULL_CLOSURE, reason="Christmas"), make_query())
        assert outcome.blocks
        assert outcome.message == "Christmas"

    def test_reduced_hours_inside_window_passes_with_window(self):
        window = TimeWindow(time(10, 0), time(18, 0))
        outcome = evaluate_rule(make_rule(ClosureKind.REDUCED_HOURS, reduced_hours=window), make_query(12))
        assert not outcome.blocks
        assert outcome.window == window

    def test_reduced_hours_outside_window_blocks(self):
        window = TimeWindow(time(10, 0), time(18, 0))
        outcome = evaluate_rule(make_rule(ClosureKind.REDUCED_HOURS, reduced_hours=window), make_query(9, 59))
        assert outcome.blocks
        assert "10:00" in outcome.message

    def test_employee_rule_only_blocks_listed_employee(self):
        rule = make_rule(ClosureKind.EMPLOYEE_UNAVAILABLE, affected_employee_ids=frozenset({"emp-1"}))
        assert evaluate_rule(rule, make_query(employee_id="emp-1")).blocks
        assert not evaluate_rule(rule, make_query(employee_id="emp-2")).blocks
        assert not evaluate_rule(rule, make_query()).blocks

    def test_service_rule_only_blocks_listed_service(self):
        rule = make_rule(ClosureKind.SERVICE_UNAVAILABLE, affected_service_ids=frozenset({"svc-1"}))
        assert evaluate_rule(rule, make_query(service_id="svc-1")).blocks
        assert not evaluate_rule(rule, make_query(service_id="svc-2")).blocks
        assert not evaluate_rule(rule, make_query()).blocks

    def test_emergency_only_blocks_unless_emergency(self):
        rule = make_rule(ClosureKind.EMERGENCY_ONLY, reason="Emergencies only")
        assert evaluate_rule(rule, make_query()).blocks
        assert not evaluate_rule(rule, make_query(emergency=True)).blocks

    def test_evaluation_order(self):
        """Whole-day kinds sort before partial restrictions."""
        reduced = make_rule(ClosureKind.REDUCED_HOURS, reduced_hours=TimeWindow(time(9), time(14)))
        service = make_rule(ClosureKind.SERVICE_UNAVAILABLE, affected_service_ids=frozenset({"s"}))
        full = make_rule(ClosureKind.FULL_CLOSURE)

        ordered = evaluation_order([reduced, service, full])

        assert [r.kind for r in ordered] == [
            ClosureKind.FULL_CLOSURE,
            ClosureKind.SERVICE_UNAVAILABLE,
            ClosureKind.REDUCED_HOURS,
        ]
