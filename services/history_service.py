from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select

from database import get_db_session
from db_models import BudgetEventRow, PolicyTransitionRow
from engine.budget.events import BudgetConsumptionEvent
from engine.enums import BudgetStatus, PolicyLevel, Severity
from engine.policy.machine import PolicyTransition

log = logging.getLogger(__name__)


def _event_from_row(row: BudgetEventRow) -> BudgetConsumptionEvent:
    return BudgetConsumptionEvent(
        event_id=row.event_id,
        slo_id=row.slo_id,
        start=row.start,
        duration=row.duration,
        cause=row.cause,
        severity=Severity(row.severity),
    )


def _transition_from_row(row: PolicyTransitionRow) -> PolicyTransition:
    return PolicyTransition(
        service_id=row.service_id,
        from_level=PolicyLevel(row.from_level),
        to_level=PolicyLevel(row.to_level),
        trigger_status=BudgetStatus(row.trigger_status),
        reason=row.reason,
        at=row.at,
        approval_ref=row.approval_ref,
        approved_by=row.approved_by,
    )


class HistoryService:
    """Durable history of consumption events and policy transitions in SQL."""

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id

    async def record_events(self, events: Iterable[BudgetConsumptionEvent]) -> None:
        batch = list(events)
        if batch:
            await asyncio.to_thread(self._record_events_sync, batch)

    def _record_events_sync(self, events: List[BudgetConsumptionEvent]) -> None:
        with get_db_session() as db:
            for event in events:
                # merge on the primary key keeps re-recording idempotent
                db.merge(
                    BudgetEventRow(
                        event_id=event.event_id,
                        tenant_id=self.tenant_id,
                        slo_id=event.slo_id,
                        start=event.start,
                        duration=event.duration,
                        severity=event.severity.value,
                        cause=event.cause,
                    )
                )

    async def record_transition(self, transition: PolicyTransition) -> None:
        await asyncio.to_thread(self._record_transition_sync, transition)

    def _record_transition_sync(self, transition: PolicyTransition) -> None:
        with get_db_session() as db:
            db.add(
                PolicyTransitionRow(
                    tenant_id=self.tenant_id,
                    service_id=transition.service_id,
                    from_level=transition.from_level.value,
                    to_level=transition.to_level.value,
                    trigger_status=transition.trigger_status.value,
                    reason=transition.reason,
                    at=transition.at,
                    approval_ref=transition.approval_ref,
                    approved_by=transition.approved_by,
                )
            )

    async def load_events(self, since: Optional[float] = None) -> List[BudgetConsumptionEvent]:
        return await asyncio.to_thread(self._load_events_sync, since)

    def _load_events_sync(self, since: Optional[float]) -> List[BudgetConsumptionEvent]:
        with get_db_session() as db:
            stmt = select(BudgetEventRow).where(BudgetEventRow.tenant_id == self.tenant_id)
            if since is not None:
                stmt = stmt.where(BudgetEventRow.start + BudgetEventRow.duration > since)
            rows = db.scalars(stmt.order_by(BudgetEventRow.start)).all()
            return [_event_from_row(r) for r in rows]

    async def load_transitions(self) -> List[PolicyTransition]:
        return await asyncio.to_thread(self._load_transitions_sync)

    def _load_transitions_sync(self) -> List[PolicyTransition]:
        with get_db_session() as db:
            rows = db.scalars(
                select(PolicyTransitionRow)
                .where(PolicyTransitionRow.tenant_id == self.tenant_id)
                .order_by(PolicyTransitionRow.at, PolicyTransitionRow.id)
            ).all()
            return [_transition_from_row(r) for r in rows]
