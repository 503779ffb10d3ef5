"""
Per-SLO evaluation pipeline: SLI evaluation, budget update, burn-rate alerting and, per
service, the release policy tick.

Every tick computes its full outcome first and applies it in one synchronous
step, so a cancelled or failed tick never leaves partial state behind.
Persistence and outbound notifications happen only after that step.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from datasources.base import DeploymentGate, Notifier
from datasources.exceptions import InvalidQuery, SourceUnavailable
from datasources.retry import retry
from engine.alerting.engine import AlertDecision, AlertingEngine
from engine.budget.events import BudgetConsumptionEvent, Measurement, classify_severity, event_id_for
from engine.budget.tracker import ErrorBudget, ErrorBudgetTracker
from engine.enums import TickOutcome
from engine.errors import InvariantViolation, NotFound
from engine.policy.machine import PolicyDecision, PolicyEngine
from engine.registry import SloRegistry
from engine.series import TimeRange
from engine.sli.evaluator import SliEvaluator, SliResult
from engine.slo.definitions import SliDefinition, SloDefinition
from config import settings

log = logging.getLogger(__name__)

# outcomes that must hold back the service's policy tick for this round
_BLOCKING = {
    TickOutcome.insufficient_evidence,
    TickOutcome.stale,
    TickOutcome.config_error,
    TickOutcome.invariant_violation,
}


@dataclass
class SloRuntime:
    watermark: Optional[float] = None
    stale: bool = False
    stale_since: Optional[float] = None
    config_error: Optional[str] = None
    last_outcome: Optional[TickOutcome] = None
    last_result: Optional[SliResult] = None
    last_committed_at: Optional[float] = None


@dataclass(frozen=True)
class TickResult:
    slo_id: str
    outcome: TickOutcome
    as_of: float
    budget: Optional[ErrorBudget] = None
    alerts: Tuple[AlertDecision, ...] = ()
    result: Optional[SliResult] = None
    detail: str = ""


@dataclass(frozen=True)
class CommitRecord:
    slo: SloDefinition
    measurement: Measurement
    events: Tuple[BudgetConsumptionEvent, ...]
    alerts: Tuple[AlertDecision, ...]
    watermark: float


@dataclass
class ServiceTick:
    service_id: str
    results: List[TickResult] = field(default_factory=list)
    policy: Optional[PolicyDecision] = None


class Orchestrator:
    def __init__(
        self,
        registry: SloRegistry,
        evaluator: SliEvaluator,
        tracker: ErrorBudgetTracker,
        alerting: AlertingEngine,
        policy: PolicyEngine,
        notifier: Optional[Notifier] = None,
        gate: Optional[DeploymentGate] = None,
        persistence: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.evaluator = evaluator
        self.tracker = tracker
        self.alerting = alerting
        self.policy = policy
        self.notifier = notifier
        self.gate = gate
        self.persistence = persistence
        self.clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._policy_locks: Dict[str, asyncio.Lock] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._runtime: Dict[str, SloRuntime] = {}
        self._semaphore = asyncio.Semaphore(max(1, int(settings.max_parallel_slo_ticks)))

    def runtime(self, slo_id: str) -> SloRuntime:
        return self._runtime.setdefault(slo_id, SloRuntime())

    def in_flight(self, slo_id: str) -> bool:
        task = self._tasks.get(slo_id)
        return task is not None and not task.done()

    async def tick(self, slo_id: str, now: Optional[float] = None) -> TickResult:
        now = self.clock() if now is None else now
        lock = self._locks.setdefault(slo_id, asyncio.Lock())
        if lock.locked():
            log.debug("slo %s tick coalesced into the running one", slo_id)
            return TickResult(slo_id=slo_id, outcome=TickOutcome.coalesced, as_of=now)

        async with lock:
            task = asyncio.create_task(self._run(slo_id, now))
            self._tasks[slo_id] = task
            try:
                result = await task
            except asyncio.CancelledError:
                if task.cancelled() and not self.registry.is_active(slo_id):
                    log.info("slo %s tick cancelled after retirement; nothing committed", slo_id)
                    result = TickResult(slo_id=slo_id, outcome=TickOutcome.cancelled, as_of=now)
                else:
                    raise
            finally:
                self._tasks.pop(slo_id, None)
        self.runtime(slo_id).last_outcome = result.outcome
        return result

    async def _evaluate(self, sli: SliDefinition, time_range: TimeRange, now: float) -> SliResult:
        @retry(
            attempts=max(1, int(settings.retry_attempts)),
            delay=float(settings.retry_delay_seconds),
            backoff=float(settings.retry_backoff),
            exceptions=(SourceUnavailable,),
        )
        async def _attempt() -> SliResult:
            return await self.evaluator.evaluate(sli, time_range, now=now)

        return await _attempt()

    def _interval(self, slo_id: str, now: float) -> TimeRange:
        rt = self.runtime(slo_id)
        start = rt.watermark if rt.watermark is not None else now - float(settings.tick_interval_seconds)
        start = max(start, now - float(settings.max_backfill_seconds))
        return TimeRange(start=start, end=now)

    async def _run(self, slo_id: str, now: float) -> TickResult:
        snapshot = self.registry.snapshot()
        try:
            slo = snapshot.get(slo_id)
            sli = snapshot.sli_for(slo)
        except NotFound as exc:
            return TickResult(slo_id=slo_id, outcome=TickOutcome.skipped, as_of=now, detail=str(exc))
        if not slo.active:
            return TickResult(slo_id=slo_id, outcome=TickOutcome.skipped, as_of=now, detail="slo archived")

        rt = self.runtime(slo_id)
        if rt.config_error:
            return TickResult(slo_id=slo_id, outcome=TickOutcome.config_error, as_of=now, detail=rt.config_error)

        time_range = self._interval(slo_id, now)
        if time_range.duration <= 0:
            return TickResult(slo_id=slo_id, outcome=TickOutcome.skipped, as_of=now, detail="no new interval")

        async with self._semaphore:
            try:
                result = await self._evaluate(sli, time_range, now)
            except InvalidQuery as exc:
                rt.config_error = str(exc)
                log.error("slo %s query rejected, evaluation disabled until redefined: %s", slo_id, exc)
                return TickResult(slo_id=slo_id, outcome=TickOutcome.config_error, as_of=now, detail=str(exc))
            except SourceUnavailable as exc:
                rt.stale = True
                rt.stale_since = rt.stale_since or now
                log.warning("slo %s marked stale, keeping last known state: %s", slo_id, exc)
                return TickResult(slo_id=slo_id, outcome=TickOutcome.stale, as_of=now, detail=str(exc))

        if not self.registry.is_active(slo_id):
            return TickResult(slo_id=slo_id, outcome=TickOutcome.cancelled, as_of=now, detail="retired mid-evaluation")

        rt.stale = False
        rt.stale_since = None
        rt.last_result = result
        if result.insufficient_evidence:
            # watermark stays put so late data for this interval is picked up next time
            return TickResult(
                slo_id=slo_id,
                outcome=TickOutcome.insufficient_evidence,
                as_of=now,
                result=result,
                detail=f"coverage {result.coverage:.2f}",
            )

        compliant = result.compliant(slo)
        measurement = Measurement(
            slo_id=slo_id,
            start=time_range.start,
            end=time_range.end,
            value=result.value,
            sample_count=result.sample_count,
            coverage=result.coverage,
            compliant=compliant,
        )
        events: Tuple[BudgetConsumptionEvent, ...] = ()
        if compliant is False:
            events = (
                BudgetConsumptionEvent(
                    event_id=event_id_for(slo_id, time_range.start, time_range.duration),
                    slo_id=slo_id,
                    start=time_range.start,
                    duration=time_range.duration,
                    cause=f"{sli.sli_id}={result.value:.6g} violates {slo.comparator.value} {slo.target:g}",
                    severity=classify_severity(slo, float(result.value), sli.ratio_based),
                ),
            )

        budget = self.tracker.compute(slo, now, events)
        try:
            budget.check()
            decisions = tuple(
                self.alerting.decide(slo, rule, now, budget, events, (measurement,))
                for rule in slo.alert_rules
            )
        except InvariantViolation as exc:
            log.critical("slo %s tick discarded: %s", slo_id, exc)
            return TickResult(slo_id=slo_id, outcome=TickOutcome.invariant_violation, as_of=now, detail=str(exc))

        record = CommitRecord(slo=slo, measurement=measurement, events=events, alerts=decisions, watermark=now)
        self._apply(record)
        try:
            await self._persist("save_tick", record, slo_id)
        except asyncio.CancelledError:
            # the in-memory commit stands; its notifications are still owed
            log.info("slo %s retired while its committed tick was being saved", slo_id)
        await self._notify(decisions)
        return TickResult(
            slo_id=slo_id,
            outcome=TickOutcome.committed,
            as_of=now,
            budget=budget,
            alerts=decisions,
            result=result,
        )

    def _apply(self, record: CommitRecord) -> None:
        slo_id = record.slo.slo_id
        for event in record.events:
            self.tracker.record_consumption(slo_id, event)
        self.tracker.record_measurement(record.slo, record.measurement)
        for decision in record.alerts:
            self.alerting.commit(decision)
        rt = self.runtime(slo_id)
        rt.watermark = record.watermark
        rt.last_committed_at = record.watermark

    async def _persist(self, hook: str, payload: Any, subject: str) -> None:
        if self.persistence is None:
            return
        try:
            await asyncio.shield(getattr(self.persistence, hook)(payload))
        except Exception as exc:
            log.error("%s for %s failed, state kept in memory only: %s", hook, subject, exc)

    async def _notify(self, decisions: Sequence[AlertDecision]) -> None:
        if self.notifier is None:
            return
        for decision in decisions:
            if decision.notification is None:
                continue
            try:
                await self.notifier.send(decision.notification)
            except Exception as exc:
                log.error("alert notification for %s/%s failed: %s", decision.state.slo_id, decision.state.rule, exc)

    async def tick_policy(self, service_id: str, now: Optional[float] = None) -> Optional[PolicyDecision]:
        now = self.clock() if now is None else now
        lock = self._policy_locks.setdefault(service_id, asyncio.Lock())
        async with lock:
            try:
                decision = self.policy.plan(service_id, now)
            except InvariantViolation as exc:
                log.critical("policy tick for %s discarded: %s", service_id, exc)
                return None
            self.policy.commit(decision)
            await self._persist("save_policy", decision, service_id)
        await self.publish(decision)
        return decision

    async def publish(self, decision: PolicyDecision) -> None:
        change = decision.change
        if change is None or self.gate is None:
            return
        try:
            await self.gate.publish(change)
        except Exception as exc:
            log.error("policy change for %s not delivered to the deployment gate: %s", decision.service_id, exc)

    async def tick_service(self, service_id: str, now: Optional[float] = None) -> ServiceTick:
        now = self.clock() if now is None else now
        outcome = ServiceTick(service_id=service_id)
        slo_ids = [s.slo_id for s in self.registry.list_by_service(service_id)]
        results = await asyncio.gather(*[self.tick(slo_id, now) for slo_id in slo_ids], return_exceptions=True)
        blocked = False
        for slo_id, res in zip(slo_ids, results):
            if isinstance(res, BaseException):
                log.error("slo %s tick failed: %s", slo_id, res)
                blocked = True
                continue
            outcome.results.append(res)
            blocked = blocked or res.outcome in _BLOCKING
        if blocked:
            log.info("policy for %s held: at least one slo lacks trustworthy data this round", service_id)
        else:
            outcome.policy = await self.tick_policy(service_id, now)
        return outcome

    async def tick_all(self, now: Optional[float] = None) -> List[ServiceTick]:
        now = self.clock() if now is None else now
        return list(await asyncio.gather(*[self.tick_service(s, now) for s in self.registry.services()]))

    def _release(self, slo_id: str) -> None:
        task = self._tasks.get(slo_id)
        if task is not None and not task.done():
            task.cancel()
        self.alerting.drop(slo_id)
        self._runtime.pop(slo_id, None)

    async def retire(self, slo_id: str) -> SloDefinition:
        retired = self.registry.retire(slo_id)
        self._release(slo_id)
        return retired

    async def supersede(self, slo_id: str, definition: SloDefinition) -> SloDefinition:
        new_id = self.registry.supersede(slo_id, definition)
        self._release(slo_id)
        return self.registry.get(new_id)
