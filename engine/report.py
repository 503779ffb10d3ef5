"""
Per-service SLO health report: compliance, budget, consumption trend, alerts and release policy.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from engine.budget.tracker import ErrorBudget, bad_seconds
from engine.enums import BudgetStatus, Health, PolicyLevel, Severity, TickOutcome
from engine.errors import NotFound
from engine.orchestrator import Orchestrator
from engine.series import TimeRange, covered_seconds
from engine.slo.definitions import SloDefinition
from config import settings


@dataclass(frozen=True)
class TrendBucket:
    start: float
    end: float
    consumed_seconds: float


@dataclass(frozen=True)
class SloReportEntry:
    slo_id: str
    name: str
    sli_id: str
    objective: float
    compliance: Optional[float]
    measured_seconds: float
    consumed_seconds: float
    budget: ErrorBudget
    trend: Tuple[TrendBucket, ...]
    firing_alerts: Tuple[str, ...]
    health: Health
    flags: Tuple[str, ...]


@dataclass(frozen=True)
class SloHealthReport:
    service_id: str
    time_range: TimeRange
    generated_at: float
    health: Health
    policy_level: PolicyLevel
    required_approval: Optional[str]
    unfreeze_eligible: bool
    slos: Tuple[SloReportEntry, ...]


def _trend(events, time_range: TimeRange, buckets: int) -> Tuple[TrendBucket, ...]:
    buckets = max(1, buckets)
    width = time_range.duration / buckets
    out: List[TrendBucket] = []
    for i in range(buckets):
        start = time_range.start + i * width
        end = time_range.end if i == buckets - 1 else start + width
        out.append(TrendBucket(start=start, end=end, consumed_seconds=bad_seconds(events, TimeRange(start, end))))
    return tuple(out)


def _flags(orchestrator: Orchestrator, slo_id: str) -> Tuple[str, ...]:
    rt = orchestrator.runtime(slo_id)
    flags: List[str] = []
    if rt.config_error:
        flags.append("config_error")
    if rt.stale:
        flags.append("stale")
    if rt.last_outcome == TickOutcome.insufficient_evidence:
        flags.append("insufficient_evidence")
    if rt.last_committed_at is None:
        flags.append("never_evaluated")
    return tuple(flags)


def _entry(
    orchestrator: Orchestrator,
    slo: SloDefinition,
    time_range: TimeRange,
    buckets: int,
) -> SloReportEntry:
    tracker = orchestrator.tracker
    events = [e for e in tracker.events(slo.slo_id) if e.start < time_range.end and e.end > time_range.start]
    measured = [m for m in tracker.measurements(slo.slo_id, time_range) if m.compliant is not None]
    measured_seconds = covered_seconds([(m.start, m.end) for m in measured], time_range)
    good_seconds = covered_seconds([(m.start, m.end) for m in measured if m.compliant], time_range)
    compliance = round(100.0 * good_seconds / measured_seconds, 4) if measured_seconds > 0 else None

    budget = tracker.compute(slo, time_range.end)
    severity = {r.name: r.severity for r in slo.alert_rules}
    firing = tuple(
        s.rule
        for s in sorted(
            (s for s in orchestrator.alerting.states_for(slo.slo_id) if s.firing),
            key=lambda s: (-severity.get(s.rule, Severity.info).weight(), s.rule),
        )
    )
    flags = _flags(orchestrator, slo.slo_id)

    # missing data never reads as healthy
    if flags:
        health = Health.unknown
    elif budget.status != BudgetStatus.healthy or firing:
        health = Health.degraded
    else:
        health = Health.healthy

    return SloReportEntry(
        slo_id=slo.slo_id,
        name=slo.name,
        sli_id=slo.sli_id,
        objective=slo.objective,
        compliance=compliance,
        measured_seconds=measured_seconds,
        consumed_seconds=bad_seconds(events, time_range),
        budget=budget,
        trend=_trend(events, time_range, buckets),
        firing_alerts=firing,
        health=health,
        flags=flags,
    )


def generate_report(
    orchestrator: Orchestrator,
    service_id: str,
    time_range: TimeRange,
    now: Optional[float] = None,
    buckets: Optional[int] = None,
) -> SloHealthReport:
    now = orchestrator.clock() if now is None else now
    time_range.validate(now, skew=float(settings.clock_skew_seconds))
    slos = orchestrator.registry.list_by_service(service_id)
    if not slos:
        raise NotFound(f"no active SLOs for service {service_id!r}")

    entries = tuple(
        _entry(orchestrator, slo, time_range, int(buckets or settings.report_trend_buckets))
        for slo in slos
    )
    healths = {e.health for e in entries}
    if Health.degraded in healths:
        health = Health.degraded
    elif Health.unknown in healths:
        health = Health.unknown
    else:
        health = Health.healthy

    policy = orchestrator.policy.state(service_id)
    return SloHealthReport(
        service_id=service_id,
        time_range=time_range,
        generated_at=now,
        health=health,
        policy_level=policy.level,
        required_approval=policy.required_approval,
        unfreeze_eligible=policy.unfreeze_eligible,
        slos=entries,
    )
