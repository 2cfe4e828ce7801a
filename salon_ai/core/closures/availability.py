"""
Availability Engine

Checks a requested slot against a tenant's active closure rules and,
when the slot is blocked, suggests the next open dates.

Usage:
    engine = AvailabilityEngine(repository)
    decision = await engine.check_availability(
        AvailabilityQuery(tenant_id="salon-A", requested_at=datetime(2025, 12, 25, 11, 0))
    )
    if not decision.available:
        print(decision.message, decision.alternative_dates)
"""

import logging
from datetime import date, timedelta
from typing import Optional

from salon_ai.config import get_settings
from salon_ai.core.closures.evaluation import evaluate_rule, evaluation_order
from salon_ai.core.closures.repository import ClosureRepository
from salon_ai.core.closures.types import AvailabilityDecision, AvailabilityQuery, TimeWindow
from salon_ai.core.errors import ValidationError

logger = logging.getLogger(__name__)


class AlternativeDateFinder:
    """
    Walks forward from a blocked date looking for open days.

    A day counts as open when no active FULL_CLOSURE rule covers it;
    partial restrictions are left for the booking step to resolve.
    """

    def __init__(
        self,
        repository: ClosureRepository,
        max_results: Optional[int] = None,
        max_lookahead_days: Optional[int] = None,
    ):
        settings = get_settings()
        self.repository = repository
        self.max_results = max_results if max_results is not None else settings.alternative_max_results
        self.max_lookahead_days = (
            max_lookahead_days if max_lookahead_days is not None else settings.alternative_lookahead_days
        )

    async def find_alternatives(
        self,
        tenant_id: str,
        from_date: date,
        max_results: Optional[int] = None,
        max_lookahead_days: Optional[int] = None,
    ) -> list[date]:
        """Find open dates after from_date.

        Args:
            tenant_id: Tenant identifier
            from_date: Exclusive start of the search
            max_results: Cap on returned dates (default from settings)
            max_lookahead_days: Days after from_date to inspect (default from settings)

        Returns:
            Ascending list of open dates, possibly empty
        """
        limit = self.max_results if max_results is None else max_results
        lookahead = self.max_lookahead_days if max_lookahead_days is None else max_lookahead_days
        if limit < 0 or lookahead < 0:
            raise ValidationError("max_results and max_lookahead_days must be non-negative")

        found: list[date] = []
        for offset in range(1, lookahead + 1):
            if len(found) >= limit:
                break
            candidate = from_date + timedelta(days=offset)
            if not await self.repository.has_full_closure(tenant_id, candidate):
                found.append(candidate)

        if len(found) < limit:
            logger.debug(
                f"Only {len(found)} open day(s) within {lookahead} days after {from_date} "
                f"for tenant {tenant_id}"
            )
        return found


class AvailabilityEngine:
    """
    Evaluates a slot against every active rule covering its date.

    Rules run in a fixed kind order and the first blocking rule wins.
    A REDUCED_HOURS rule whose window contains the requested time does
    not stop evaluation; its window is carried on the final decision.
    """

    def __init__(
        self,
        repository: ClosureRepository,
        date_finder: Optional[AlternativeDateFinder] = None,
    ):
        """Initialize engine.

        Args:
            repository: Closure rule storage
            date_finder: Alternative date finder (built from repository if omitted)
        """
        self.repository = repository
        self.date_finder = date_finder or AlternativeDateFinder(repository)

    async def check_availability(self, query: AvailabilityQuery) -> AvailabilityDecision:
        """Check whether a requested slot is open.

        Args:
            query: Tenant, requested date-time and optional employee/service

        Returns:
            AvailabilityDecision; a blocked decision always carries a message
        """
        rules = await self.repository.find_for_date(query.tenant_id, query.day)
        if not rules:
            return AvailabilityDecision.open()

        restricted_window: Optional[TimeWindow] = None

        for rule in evaluation_order(rules):
            outcome = evaluate_rule(rule, query)
            logger.debug(
                f"Rule {rule.id} ({rule.kind.value}) for tenant {query.tenant_id}: "
                f"{'blocks' if outcome.blocks else 'passes'}"
            )

            if outcome.blocks:
                decision = AvailabilityDecision.blocked(
                    message=outcome.message,
                    kind=rule.kind,
                    rule_id=rule.id,
                )
                decision.alternative_dates = await self.date_finder.find_alternatives(
                    query.tenant_id, query.day
                )
                logger.info(
                    f"Slot {query.requested_at.isoformat()} blocked for tenant {query.tenant_id} "
                    f"by {rule.kind.value} rule {rule.id}"
                )
                return decision

            if outcome.window is not None and restricted_window is None:
                restricted_window = outcome.window

        return AvailabilityDecision.open(restricted_window=restricted_window)
