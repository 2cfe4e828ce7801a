"""
Closure Registry

Validated administration of closure rules: quick same-day closures,
fully specified closures with the impacted-appointment confirmation
step, soft deletion and the read-side views (calendar, upcoming,
statistics).

Closure creation runs through three outcomes:
    REQUESTED -> VALIDATION_FAILED   (ValidationError raised)
    REQUESTED -> NEEDS_CONFIRMATION  (ImpactedAppointmentsReport returned)
    REQUESTED -> CREATED             (ClosureRule returned)
A NEEDS_CONFIRMATION outcome becomes CREATED when the caller resubmits
with force=True.
"""

import calendar
import logging
import re
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Protocol, Union

from salon_ai.config import get_settings
from salon_ai.core.closures.evaluation import resolve_message
from salon_ai.core.closures.repository import ClosureRepository
from salon_ai.core.closures.types import (
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
from salon_ai.core.conversation.messages import MessageCatalog, get_message_catalog
from salon_ai.core.errors import CollaboratorError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
_CANCELLED_STATUSES = frozenset({"CANCELLED", "CANCELED", "CANCELADA"})
_SHORT_DESCRIPTION_LENGTH = 50


class AppointmentLookup(Protocol):
    """Supplies appointments already booked in a date range."""

    async def find_appointments(
        self, tenant_id: str, start: date, end: date
    ) -> list[BookedAppointment]: ...


class Notifier(Protocol):
    """Delivers a message to a customer phone."""

    async def notify(self, phone: str, message: str) -> None: ...


class AppointmentStatusUpdater(Protocol):
    """Cancels appointments hit by a closure and restores them when it is deleted."""

    async def cancel_appointment(
        self, tenant_id: str, appointment_id: str, closure_id: str, reason: Optional[str]
    ) -> None: ...

    async def restore_appointment(
        self, tenant_id: str, appointment_id: str, restored_by: str
    ) -> None: ...


ClosureOutcome = Union[ClosureRule, ImpactedAppointmentsReport]


def _require_tenant(tenant_id: str) -> None:
    if not tenant_id or not tenant_id.strip():
        raise ValidationError("tenant_id is required")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _starts_after(appointment: BookedAppointment, now: datetime) -> bool:
    starts_at = appointment.starts_at
    if starts_at.tzinfo is None and now.tzinfo is not None:
        starts_at = starts_at.astimezone()
    elif starts_at.tzinfo is not None and now.tzinfo is None:
        now = now.astimezone()
    return starts_at > now


class ClosureRegistry:
    """
    Creates, deletes and reports on closure rules for tenants.

    Collaborators:
    - repository: tenant-partitioned rule storage
    - appointment_lookup: booked appointments in a date range
    - notifier: customer notification dispatch
    - status_updater: optional appointment cancel/restore; without it
      impacted appointments are only notified
    """

    def __init__(
        self,
        repository: ClosureRepository,
        appointment_lookup: AppointmentLookup,
        notifier: Notifier,
        catalog: Optional[MessageCatalog] = None,
        today: Optional[Callable[[], date]] = None,
        status_updater: Optional[AppointmentStatusUpdater] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize registry.

        Args:
            repository: Closure rule storage
            appointment_lookup: Appointment lookup collaborator
            notifier: Notification collaborator
            catalog: Message templates (shared catalog if omitted)
            today: Clock returning the current local date
            status_updater: Appointment cancel/restore collaborator
            now: Clock returning the current local date-time
        """
        self.repository = repository
        self.appointment_lookup = appointment_lookup
        self.notifier = notifier
        self.status_updater = status_updater
        self.catalog = catalog or get_message_catalog()
        self._today = today or date.today
        self._now = now or datetime.now

    # === Creation ===

    async def create_quick_closure(
        self,
        tenant_id: str,
        day: date,
        reason: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> ClosureRule:
        """Close the salon for a whole day.

        An existing single-day rule for that date is converted to a full
        closure in place instead of adding a duplicate. The converted rule
        drops its old customer message and always notifies customers.
        Booked appointments that day are cancelled when a status updater
        is configured.

        Args:
            tenant_id: Tenant identifier
            day: Date to close (today or later)
            reason: Free-text reason
            created_by: User creating the closure

        Returns:
            The created or updated rule

        Raises:
            ValidationError: Missing tenant/date or a past date
            CollaboratorError: Appointment lookup failed (nothing saved)
        """
        _require_tenant(tenant_id)
        if day is None:
            raise ValidationError("Closure date is required")
        if day < self._today():
            raise ValidationError(f"Closure date {day.isoformat()} is in the past")

        logger.info(f"Quick closure requested for tenant {tenant_id} on {day} by {created_by}")

        appointments = await self._find_impacted(tenant_id, day, day)

        same_day = [
            r for r in await self.repository.find_for_date(tenant_id, day)
            if r.start_date == day and r.end_date == day
        ]
        if same_day:
            rule = min(same_day, key=lambda r: (r.kind.priority, r.id))
            rule.kind = ClosureKind.FULL_CLOSURE
            rule.reduced_hours = None
            rule.affected_employee_ids = frozenset()
            rule.affected_service_ids = frozenset()
            rule.customer_message = None
            rule.notify_existing_customers = True
            rule.reason = f"{reason} (UPDATED)" if reason else "(UPDATED)"
            rule.updated_at = _utcnow()
            saved = await self.repository.update(rule)
            logger.warning(f"Closure for {day} already existed (tenant {tenant_id}), updated rule {saved.id}")
        else:
            saved = await self.repository.add(
                ClosureRule(
                    tenant_id=tenant_id,
                    start_date=day,
                    end_date=day,
                    kind=ClosureKind.FULL_CLOSURE,
                    reason=reason,
                    created_by=created_by or "system",
                )
            )
            logger.info(f"Quick closure {saved.id} created for tenant {tenant_id} on {day}")

        await self._handle_impacted(saved, appointments)
        return saved

    async def create_closure(
        self,
        tenant_id: str,
        request: ClosureRequest,
        force: bool = False,
        created_by: Optional[str] = None,
    ) -> ClosureOutcome:
        """Create a fully specified closure.

        If appointments are already booked inside the range and force is
        False, nothing is saved and an ImpactedAppointmentsReport is
        returned instead. Resubmitting with force=True saves the rule,
        cancels the impacted appointments (when a status updater is
        configured) and notifies each customer when
        notify_existing_customers is set.

        Raises:
            ValidationError: Malformed range, past start, or missing kind fields
            CollaboratorError: Appointment lookup failed (nothing saved)
        """
        _require_tenant(tenant_id)
        rule = self._build_rule(tenant_id, request, created_by)

        overlaps = await self.repository.find_in_range(tenant_id, rule.start_date, rule.end_date)
        if overlaps:
            logger.warning(
                f"Closure {rule.start_date}..{rule.end_date} for tenant {tenant_id} overlaps "
                f"{len(overlaps)} existing rule(s): {[r.id for r in overlaps]}"
            )

        appointments = await self._find_impacted(tenant_id, rule.start_date, rule.end_date)

        if appointments and not force:
            logger.info(
                f"Closure for tenant {tenant_id} needs confirmation: "
                f"{len(appointments)} appointment(s) impacted"
            )
            return ImpactedAppointmentsReport(
                count=len(appointments),
                appointments=[a.to_summary() for a in appointments],
                warning_message=self.catalog.get("impact_warning", count=len(appointments)),
            )

        saved = await self.repository.add(rule)
        logger.info(
            f"Closure {saved.id} ({saved.kind.value}) created for tenant {tenant_id}: "
            f"{saved.start_date}..{saved.end_date}, forced={force}"
        )

        await self._handle_impacted(saved, appointments)
        return saved

    def _build_rule(
        self, tenant_id: str, request: ClosureRequest, created_by: Optional[str]
    ) -> ClosureRule:
        if request.start_date is None or request.end_date is None:
            raise ValidationError("Start and end dates are required")
        if request.start_date > request.end_date:
            raise ValidationError("Start date must be on or before end date")
        if request.start_date < self._today():
            raise ValidationError(f"Closure start {request.start_date.isoformat()} is in the past")

        kind = request.kind if isinstance(request.kind, ClosureKind) else ClosureKind.parse(request.kind)
        if kind is None:
            raise ValidationError(f"Unknown closure kind: {request.kind!r}")

        window = None
        if kind.requires_hours:
            if request.hours_start is None or request.hours_end is None:
                raise ValidationError("Reduced hours require both start and end times")
            if request.hours_start >= request.hours_end:
                raise ValidationError("Reduced hours start must be before end")
            window = TimeWindow(start=request.hours_start, end=request.hours_end)

        employees = frozenset(e for e in request.affected_employee_ids if e)
        services = frozenset(s for s in request.affected_service_ids if s)
        if kind.requires_employees and not employees:
            raise ValidationError("At least one affected employee is required")
        if kind.requires_services and not services:
            raise ValidationError("At least one affected service is required")

        return ClosureRule(
            tenant_id=tenant_id,
            start_date=request.start_date,
            end_date=request.end_date,
            kind=kind,
            reason=request.reason,
            reduced_hours=window,
            customer_message=request.customer_message,
            affected_employee_ids=employees if kind.requires_employees else frozenset(),
            affected_service_ids=services if kind.requires_services else frozenset(),
            notify_existing_customers=request.notify_existing_customers,
            created_by=created_by,
        )

    # === Deletion ===

    async def delete_closure(
        self, tenant_id: str, closure_id: str, deleted_by: Optional[str] = None
    ) -> ClosureRule:
        """Soft-delete a closure.

        Appointments this closure cancelled that have not started yet are
        restored when a status updater is configured. Restore failures are
        logged and never undo the deletion.

        Raises:
            NotFoundError: Unknown id, already deleted, or owned by another tenant
        """
        _require_tenant(tenant_id)
        rule = await self.repository.get(tenant_id, closure_id)
        if rule is None:
            raise NotFoundError(f"Closure {closure_id} not found")

        marker = f"[deleted by: {deleted_by or 'system'}]"
        rule.active = False
        rule.reason = f"{rule.reason} {marker}" if rule.reason else marker
        rule.updated_at = _utcnow()

        saved = await self.repository.update(rule)
        logger.info(f"Closure {closure_id} deleted for tenant {tenant_id} by {deleted_by}")

        if self.status_updater is not None:
            await self._restore_cancelled(saved, deleted_by or "system")
        return saved

    # === Read paths ===

    async def find_overlaps(
        self,
        tenant_id: str,
        start: date,
        end: date,
        exclude_id: Optional[str] = None,
    ) -> list[ClosureRule]:
        """Active rules whose range intersects [start, end]."""
        _require_tenant(tenant_id)
        if start > end:
            raise ValidationError("Start date must be on or before end date")
        return await self.repository.find_in_range(tenant_id, start, end, exclude_id=exclude_id)

    async def month_calendar(self, tenant_id: str, month: str) -> list[CalendarDay]:
        """Per-day summary of active rules for a "YYYY-MM" month.

        Only days covered by at least one rule are returned, in date order.
        """
        _require_tenant(tenant_id)
        match = _MONTH_PATTERN.match(month or "")
        if not match or not 1 <= int(match.group(2)) <= 12:
            raise ValidationError(f"Invalid month '{month}', expected YYYY-MM")

        year, month_number = int(match.group(1)), int(match.group(2))
        first = date(year, month_number, 1)
        last = date(year, month_number, calendar.monthrange(year, month_number)[1])

        rules = await self.repository.find_in_range(tenant_id, first, last)

        days: list[CalendarDay] = []
        current = first
        while current <= last:
            covering = sorted(
                (r for r in rules if r.covers(current)),
                key=lambda r: (r.kind.priority, r.id),
            )
            if covering:
                days.append(
                    CalendarDay(day=current, entries=[self._calendar_entry(r) for r in covering])
                )
            current += timedelta(days=1)
        return days

    @staticmethod
    def _calendar_entry(rule: ClosureRule) -> CalendarEntry:
        description = (rule.reason or "").strip() or rule.kind.value.replace("_", " ").capitalize()
        if len(description) > _SHORT_DESCRIPTION_LENGTH:
            description = description[: _SHORT_DESCRIPTION_LENGTH - 3] + "..."
        return CalendarEntry(
            id=rule.id,
            kind=rule.kind,
            short_description=description,
            color=rule.kind.color,
            spans_range=rule.start_date != rule.end_date,
        )

    async def upcoming_closures(self, tenant_id: str, days: int = 7) -> list[ClosureRule]:
        """Active rules intersecting [today, today + days], by start date."""
        _require_tenant(tenant_id)
        if days < 0:
            raise ValidationError("days must be non-negative")
        today = self._today()
        rules = await self.repository.find_in_range(tenant_id, today, today + timedelta(days=days))
        return sorted(rules, key=lambda r: (r.start_date, r.id))

    async def statistics(
        self, tenant_id: str, period_days: Optional[int] = None
    ) -> ClosureStatistics:
        """Aggregate a tenant's active rules.

        Args:
            tenant_id: Tenant identifier
            period_days: Trailing window for per-kind counts (default from settings)
        """
        _require_tenant(tenant_id)
        if period_days is None:
            period_days = get_settings().statistics_period_days
        if period_days < 0:
            raise ValidationError("period_days must be non-negative")

        today = self._today()
        since = today - timedelta(days=period_days)
        rules = await self.repository.list_active(tenant_id)
        recent = [r for r in rules if r.start_date >= since]

        by_kind = Counter(r.kind for r in recent)
        reasons = Counter(r.reason.strip() for r in recent if r.reason and r.reason.strip())

        most_frequent_kind = None
        if by_kind:
            most_frequent_kind = min(by_kind, key=lambda k: (-by_kind[k], k.priority))

        month_start = today.replace(day=1)
        closed_days = 0
        current = month_start
        while current <= today:
            if any(r.kind.blocks_whole_day and r.covers(current) for r in rules):
                closed_days += 1
            current += timedelta(days=1)

        return ClosureStatistics(
            total=len(recent),
            by_kind=dict(by_kind),
            most_frequent_kind=most_frequent_kind,
            most_frequent_reason=reasons.most_common(1)[0][0] if reasons else None,
            closed_days_this_month=closed_days,
        )

    # === Collaborators ===

    async def _find_impacted(self, tenant_id: str, start: date, end: date) -> list[BookedAppointment]:
        try:
            appointments = await self.appointment_lookup.find_appointments(tenant_id, start, end)
        except CollaboratorError:
            logger.error(f"Appointment lookup failed for tenant {tenant_id}", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Appointment lookup failed for tenant {tenant_id}: {e}", exc_info=True)
            raise CollaboratorError(f"Appointment lookup failed for tenant {tenant_id}") from e

        undated = [a.id for a in appointments if not isinstance(a.starts_at, datetime)]
        if undated:
            logger.error(f"Appointment lookup for tenant {tenant_id} returned undated appointments: {undated}")
            raise CollaboratorError(f"Appointment lookup returned appointments without a start time: {undated}")

        return [a for a in appointments if (a.status or "").upper() not in _CANCELLED_STATUSES]

    async def _handle_impacted(self, rule: ClosureRule, appointments: list[BookedAppointment]) -> None:
        """Cancel, then notify, the appointments hit by a saved closure."""
        if not appointments:
            return
        cancelled = await self._cancel_impacted(rule, appointments)
        if rule.notify_existing_customers:
            await self._notify_impacted(rule, appointments, cancelled)

    async def _cancel_impacted(self, rule: ClosureRule, appointments: list[BookedAppointment]) -> set[str]:
        """Cancel each impacted appointment; failures are logged and skipped.

        Returns:
            Ids of the appointments actually cancelled
        """
        if self.status_updater is None:
            return set()

        cancelled: set[str] = set()
        for appointment in appointments:
            try:
                await self.status_updater.cancel_appointment(
                    rule.tenant_id, appointment.id, rule.id, rule.reason
                )
                cancelled.add(appointment.id)
            except Exception as e:
                logger.warning(f"Cancelling appointment {appointment.id} for closure {rule.id} failed: {e}")

        logger.info(f"Closure {rule.id}: {len(cancelled)}/{len(appointments)} appointment(s) cancelled")
        return cancelled

    async def _restore_cancelled(self, rule: ClosureRule, restored_by: str) -> int:
        """Restore future appointments cancelled by this closure; failures are logged and skipped."""
        try:
            appointments = await self.appointment_lookup.find_appointments(
                rule.tenant_id, rule.start_date, rule.end_date
            )
        except Exception as e:
            logger.error(f"Could not list appointments to restore for closure {rule.id}: {e}")
            return 0

        now = self._now()
        restorable = [
            a for a in appointments
            if a.closure_id == rule.id
            and (a.status or "").upper() in _CANCELLED_STATUSES
            and isinstance(a.starts_at, datetime)
            and _starts_after(a, now)
        ]

        restored: list[BookedAppointment] = []
        for appointment in restorable:
            try:
                await self.status_updater.restore_appointment(rule.tenant_id, appointment.id, restored_by)
                restored.append(appointment)
            except Exception as e:
                logger.warning(f"Restoring appointment {appointment.id} for closure {rule.id} failed: {e}")

        logger.info(f"Closure {rule.id}: {len(restored)}/{len(restorable)} appointment(s) restored")
        if restored and rule.notify_existing_customers:
            for appointment in restored:
                await self._send_notice(appointment, "restore_notice")
        return len(restored)

    async def _notify_impacted(
        self,
        rule: ClosureRule,
        appointments: list[BookedAppointment],
        cancelled: Optional[set[str]] = None,
    ) -> int:
        """Notify each impacted customer; failures are logged and skipped."""
        cancelled = cancelled or set()
        reason = resolve_message(rule)
        sent = 0
        for appointment in appointments:
            template = "cancellation_notice" if appointment.id in cancelled else "closure_notice"
            if await self._send_notice(appointment, template, reason=reason):
                sent += 1

        logger.info(f"Closure {rule.id}: {sent}/{len(appointments)} customer notification(s) sent")
        return sent

    async def _send_notice(self, appointment: BookedAppointment, template: str, **values) -> bool:
        if not appointment.customer_phone:
            logger.warning(f"Appointment {appointment.id} has no phone, notification skipped")
            return False

        try:
            when = (
                f"{self.catalog.format_date(appointment.starts_at.date())} "
                f"{appointment.starts_at.strftime('%H:%M')}"
            )
            message = self.catalog.get(
                template,
                customer_name=appointment.customer_name or self.catalog.get("customer"),
                service=appointment.service_name or self.catalog.get("service"),
                when=when,
                **values,
            )
            await self.notifier.notify(appointment.customer_phone, message)
            return True
        except Exception as e:
            logger.warning(f"Notification for appointment {appointment.id} skipped: {e}")
            return False
