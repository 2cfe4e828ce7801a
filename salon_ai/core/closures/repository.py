"""
Closure rule storage.

ClosureRepository is the storage contract consulted by the availability
engine and mutated by the registry. Every query is tenant-scoped and,
unless stated otherwise, sees active rules only.
"""

import logging
from dataclasses import replace
from datetime import date
from typing import Callable, Optional, Protocol

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from salon_ai.core.closures.types import ClosureKind, ClosureRule, TimeWindow
from salon_ai.core.errors import ConflictError, NotFoundError
from salon_ai.models.database import ClosureRuleRecord

logger = logging.getLogger(__name__)


class ClosureRepository(Protocol):
    """Tenant-partitioned closure rule storage."""

    async def add(self, rule: ClosureRule) -> ClosureRule: ...

    async def update(self, rule: ClosureRule) -> ClosureRule: ...

    async def get(
        self, tenant_id: str, rule_id: str, include_inactive: bool = False
    ) -> Optional[ClosureRule]: ...

    async def find_for_date(self, tenant_id: str, day: date) -> list[ClosureRule]: ...

    async def find_in_range(
        self,
        tenant_id: str,
        start: date,
        end: date,
        exclude_id: Optional[str] = None,
    ) -> list[ClosureRule]: ...

    async def has_full_closure(self, tenant_id: str, day: date) -> bool: ...

    async def list_active(self, tenant_id: str) -> list[ClosureRule]: ...


class InMemoryClosureRepository:
    """Dict-backed repository for development and tests.

    Stores copies so callers cannot mutate stored rules in place.
    """

    def __init__(self) -> None:
        self._rules: dict[str, ClosureRule] = {}

    async def add(self, rule: ClosureRule) -> ClosureRule:
        if rule.id in self._rules:
            raise ConflictError(f"Closure {rule.id} already exists")
        self._rules[rule.id] = replace(rule)
        return replace(rule)

    async def update(self, rule: ClosureRule) -> ClosureRule:
        stored = self._rules.get(rule.id)
        if stored is None or stored.tenant_id != rule.tenant_id:
            raise NotFoundError(f"Closure {rule.id} not found")
        self._rules[rule.id] = replace(rule)
        return replace(rule)

    async def get(
        self, tenant_id: str, rule_id: str, include_inactive: bool = False
    ) -> Optional[ClosureRule]:
        rule = self._rules.get(rule_id)
        if rule is None or rule.tenant_id != tenant_id:
            return None
        if not rule.active and not include_inactive:
            return None
        return replace(rule)

    def _active(self, tenant_id: str) -> list[ClosureRule]:
        return [r for r in self._rules.values() if r.tenant_id == tenant_id and r.active]

    async def find_for_date(self, tenant_id: str, day: date) -> list[ClosureRule]:
        return [replace(r) for r in self._active(tenant_id) if r.covers(day)]

    async def find_in_range(
        self,
        tenant_id: str,
        start: date,
        end: date,
        exclude_id: Optional[str] = None,
    ) -> list[ClosureRule]:
        rules = [
            replace(r)
            for r in self._active(tenant_id)
            if r.overlaps(start, end) and r.id != exclude_id
        ]
        return sorted(rules, key=lambda r: (r.start_date, r.kind.priority))

    async def has_full_closure(self, tenant_id: str, day: date) -> bool:
        return any(
            r.kind is ClosureKind.FULL_CLOSURE and r.covers(day)
            for r in self._active(tenant_id)
        )

    async def list_active(self, tenant_id: str) -> list[ClosureRule]:
        return sorted(
            (replace(r) for r in self._active(tenant_id)),
            key=lambda r: r.start_date,
        )


def _to_domain(record: ClosureRuleRecord) -> ClosureRule:
    window = None
    if record.hours_start is not None and record.hours_end is not None:
        window = TimeWindow(start=record.hours_start, end=record.hours_end)
    return ClosureRule(
        id=record.id,
        tenant_id=record.tenant_id,
        start_date=record.start_date,
        end_date=record.end_date,
        kind=ClosureKind(record.kind),
        reason=record.reason,
        reduced_hours=window,
        customer_message=record.customer_message,
        affected_employee_ids=frozenset(record.affected_employee_ids or ()),
        affected_service_ids=frozenset(record.affected_service_ids or ()),
        notify_existing_customers=record.notify_existing_customers,
        active=record.active,
        created_by=record.created_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _apply(record: ClosureRuleRecord, rule: ClosureRule) -> None:
    record.tenant_id = rule.tenant_id
    record.start_date = rule.start_date
    record.end_date = rule.end_date
    record.kind = rule.kind.value
    record.reason = rule.reason
    record.hours_start = rule.reduced_hours.start if rule.reduced_hours else None
    record.hours_end = rule.reduced_hours.end if rule.reduced_hours else None
    record.customer_message = rule.customer_message
    record.affected_employee_ids = sorted(rule.affected_employee_ids)
    record.affected_service_ids = sorted(rule.affected_service_ids)
    record.notify_existing_customers = rule.notify_existing_customers
    record.active = rule.active
    record.created_by = rule.created_by
    record.created_at = rule.created_at
    record.updated_at = rule.updated_at


class SqlClosureRepository:
    """
    SQLAlchemy-backed repository.

    Each call opens its own session from the factory and commits before
    returning, so the repository is safe to share across requests.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        """Initialize repository.

        Args:
            session_factory: async_sessionmaker (or compatible callable)
        """
        self._session_factory = session_factory

    async def add(self, rule: ClosureRule) -> ClosureRule:
        record = ClosureRuleRecord()
        record.id = rule.id
        _apply(record, rule)

        async with self._session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.warning(f"Closure insert rejected for tenant {rule.tenant_id}: {e}")
                raise ConflictError(
                    f"A conflicting closure already exists for tenant {rule.tenant_id}"
                ) from e
            return _to_domain(record)

    async def update(self, rule: ClosureRule) -> ClosureRule:
        async with self._session_factory() as session:
            record = await session.get(ClosureRuleRecord, rule.id)
            if record is None or record.tenant_id != rule.tenant_id:
                raise NotFoundError(f"Closure {rule.id} not found")
            _apply(record, rule)
            await session.commit()
            return _to_domain(record)

    async def get(
        self, tenant_id: str, rule_id: str, include_inactive: bool = False
    ) -> Optional[ClosureRule]:
        conditions = [
            ClosureRuleRecord.tenant_id == tenant_id,
            ClosureRuleRecord.id == rule_id,
        ]
        if not include_inactive:
            conditions.append(ClosureRuleRecord.active.is_(True))

        async with self._session_factory() as session:
            result = await session.execute(select(ClosureRuleRecord).where(and_(*conditions)))
            record = result.scalar_one_or_none()
            return _to_domain(record) if record else None

    async def find_for_date(self, tenant_id: str, day: date) -> list[ClosureRule]:
        stmt = select(ClosureRuleRecord).where(
            ClosureRuleRecord.tenant_id == tenant_id,
            ClosureRuleRecord.active.is_(True),
            ClosureRuleRecord.start_date <= day,
            ClosureRuleRecord.end_date >= day,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_domain(r) for r in result.scalars().all()]

    async def find_in_range(
        self,
        tenant_id: str,
        start: date,
        end: date,
        exclude_id: Optional[str] = None,
    ) -> list[ClosureRule]:
        stmt = select(ClosureRuleRecord).where(
            ClosureRuleRecord.tenant_id == tenant_id,
            ClosureRuleRecord.active.is_(True),
            ClosureRuleRecord.start_date <= end,
            ClosureRuleRecord.end_date >= start,
        )
        if exclude_id is not None:
            stmt = stmt.where(ClosureRuleRecord.id != exclude_id)
        stmt = stmt.order_by(ClosureRuleRecord.start_date)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rules = [_to_domain(r) for r in result.scalars().all()]
        return sorted(rules, key=lambda r: (r.start_date, r.kind.priority))

    async def has_full_closure(self, tenant_id: str, day: date) -> bool:
        stmt = (
            select(ClosureRuleRecord.id)
            .where(
                ClosureRuleRecord.tenant_id == tenant_id,
                ClosureRuleRecord.active.is_(True),
                ClosureRuleRecord.kind == ClosureKind.FULL_CLOSURE.value,
                ClosureRuleRecord.start_date <= day,
                ClosureRuleRecord.end_date >= day,
            )
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.first() is not None

    async def list_active(self, tenant_id: str) -> list[ClosureRule]:
        stmt = (
            select(ClosureRuleRecord)
            .where(
                ClosureRuleRecord.tenant_id == tenant_id,
                ClosureRuleRecord.active.is_(True),
            )
            .order_by(ClosureRuleRecord.start_date)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_domain(r) for r in result.scalars().all()]
