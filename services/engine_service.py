from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Tuple

from datasources.data_config import DataSourceSettings
from datasources.provider import DataSourceProvider
from engine.alerting.engine import AlertingEngine, AlertState
from engine.budget.events import BudgetConsumptionEvent
from engine.budget.tracker import ErrorBudget, ErrorBudgetTracker
from engine.errors import NotFound
from engine.fetcher import MetricsSourceAdapter
from engine.orchestrator import CommitRecord, Orchestrator, ServiceTick, TickResult
from engine.policy.machine import PolicyDecision, PolicyEngine, PolicyState, PolicyTransition
from engine.registry import SloRegistry
from engine.report import SloHealthReport, generate_report
from engine.scheduler import Scheduler
from engine.series import TimeRange
from engine.sli.evaluator import SliEvaluator
from engine.slo.definitions import SliDefinition, SloDefinition
from services.config_loader import LoadedConfig, load_config_file
from services.history_service import HistoryService
from store import state as state_store
from config import settings

log = logging.getLogger(__name__)


class EngineService:
    """Wires the engine components together and writes their committed state through to storage."""

    def __init__(
        self,
        tenant_id: Optional[str] = None,
        provider: Optional[DataSourceProvider] = None,
        history: Optional[HistoryService] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.tenant_id = tenant_id or settings.default_tenant_id
        self.provider = provider or DataSourceProvider(tenant_id=self.tenant_id, settings=DataSourceSettings())
        self.history = history
        self.clock = clock
        self.registry = SloRegistry()
        self.tracker = ErrorBudgetTracker(self.registry)
        self.alerting = AlertingEngine(self.tracker)
        self.policy = PolicyEngine(self.registry, self.tracker)
        self.evaluator = SliEvaluator(MetricsSourceAdapter(self.provider), clock=clock)
        self.orchestrator = Orchestrator(
            self.registry,
            self.evaluator,
            self.tracker,
            self.alerting,
            self.policy,
            notifier=getattr(self.provider, "notifier", None),
            gate=getattr(self.provider, "gate", None),
            persistence=self,
            clock=clock,
        )
        self.scheduler = Scheduler(self.orchestrator)

    async def startup(self, config_path: Optional[str] = None) -> Optional[LoadedConfig]:
        loaded = None
        path = config_path or settings.slo_config_path
        if path:
            loaded = load_config_file(path, self.registry)
        await self.restore()
        return loaded

    async def restore(self) -> None:
        for alert in await state_store.load_alerts(self.tenant_id):
            if self.registry.is_active(alert.slo_id):
                self.alerting.restore(alert)
        for policy in await state_store.load_policies(self.tenant_id):
            self.policy.restore(policy)
        for slo in self.registry.active():
            watermark = await state_store.load_watermark(self.tenant_id, slo.slo_id)
            if watermark is not None:
                self.orchestrator.runtime(slo.slo_id).watermark = watermark
        if self.history is not None:
            for event in await self.history.load_events():
                if event.slo_id in self.registry.snapshot().slos:
                    self.tracker.record_consumption(event.slo_id, event)
            self.policy.restore_transitions(await self.history.load_transitions())
        log.info("restored engine state for tenant %s", self.tenant_id)

    # persistence hooks called by the orchestrator after each commit

    async def save_tick(self, record: CommitRecord) -> None:
        for decision in record.alerts:
            await state_store.save_alert(self.tenant_id, decision.state)
        await state_store.save_watermark(self.tenant_id, record.slo.slo_id, record.watermark)
        if self.history is not None:
            await self.history.record_events(record.events)

    async def save_policy(self, decision: PolicyDecision) -> None:
        await state_store.save_policy(self.tenant_id, decision.state)
        if self.history is not None and decision.transition is not None:
            await self.history.record_transition(decision.transition)

    # registry

    def register_sli(self, sli: SliDefinition) -> SliDefinition:
        return self.registry.get_sli(self.registry.register_sli(sli))

    def register_slo(self, slo: SloDefinition) -> SloDefinition:
        return self.registry.get(self.registry.register(slo))

    async def supersede(self, slo_id: str, slo: SloDefinition) -> SloDefinition:
        rules = [r.name for r in self.registry.get(slo_id).alert_rules]
        replacement = await self.orchestrator.supersede(slo_id, slo)
        await state_store.forget_slo(self.tenant_id, slo_id, rules)
        return replacement

    async def retire(self, slo_id: str) -> SloDefinition:
        rules = [r.name for r in self.registry.get(slo_id).alert_rules]
        retired = await self.orchestrator.retire(slo_id)
        await state_store.forget_slo(self.tenant_id, slo_id, rules)
        return retired

    def list_slos(self, service_id: str, include_archived: bool = False) -> List[SloDefinition]:
        return self.registry.list_by_service(service_id, include_archived)

    # budget, alerts and policy

    def budget(self, slo_id: str, as_of: Optional[float] = None) -> ErrorBudget:
        return self.tracker.get_budget(slo_id, self.clock() if as_of is None else as_of)

    def events(self, slo_id: str) -> List[BudgetConsumptionEvent]:
        self.registry.get(slo_id)
        return self.tracker.events(slo_id)

    async def record_consumption(self, event: BudgetConsumptionEvent) -> bool:
        slo = self.registry.get(event.slo_id)
        if not slo.active:
            raise NotFound(f"slo {event.slo_id!r} is archived")
        added = self.tracker.record_consumption(slo.slo_id, event)
        if added and self.history is not None:
            await self.history.record_events([event])
        return added

    def alerts(self, slo_id: str) -> List[AlertState]:
        slo = self.registry.get(slo_id)
        return [self.alerting.state(slo_id, rule.name) for rule in slo.alert_rules]

    def policy_state(self, service_id: str) -> Tuple[PolicyState, List[PolicyTransition]]:
        if not self.registry.list_by_service(service_id, include_archived=True):
            raise NotFound(f"service {service_id!r} has no SLOs")
        return self.policy.state(service_id), self.policy.transitions(service_id)

    async def approve_unfreeze(
        self,
        service_id: str,
        approval_ref: str,
        approver_role: str,
        approved_by: Optional[str] = None,
    ) -> PolicyDecision:
        decision = self.policy.approve_unfreeze(
            service_id, approval_ref, approver_role, self.clock(), approved_by=approved_by,
        )
        await self.save_policy(decision)
        await self.orchestrator.publish(decision)
        return decision

    def report(self, service_id: str, start: float, end: float, buckets: Optional[int] = None) -> SloHealthReport:
        return generate_report(self.orchestrator, service_id, TimeRange(start=start, end=end), buckets=buckets)

    # evaluation

    async def tick_slo(self, slo_id: str) -> TickResult:
        self.registry.get(slo_id)
        return await self.orchestrator.tick(slo_id)

    async def tick_service(self, service_id: str) -> ServiceTick:
        if not self.registry.list_by_service(service_id):
            raise NotFound(f"no active SLOs for service {service_id!r}")
        return await self.orchestrator.tick_service(service_id)


_engine_service: Optional[EngineService] = None


def get_engine_service() -> EngineService:
    global _engine_service
    if _engine_service is None:
        _engine_service = EngineService()
    return _engine_service


def set_engine_service(service: Optional[EngineService]) -> None:
    global _engine_service
    _engine_service = service
