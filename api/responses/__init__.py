"""
Response models for API endpoints.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import math
from typing import Any, List, Optional

import numpy as np
from pydantic import BaseModel, Field, model_serializer

from engine.alerting.engine import AlertState
from engine.budget.events import BudgetConsumptionEvent
from engine.budget.tracker import ErrorBudget
from engine.enums import (
    Aggregation,
    BudgetStatus,
    Comparator,
    Health,
    PolicyLevel,
    Severity,
    SliCategory,
    SloStatus,
    TickOutcome,
)
from engine.orchestrator import ServiceTick, TickResult
from engine.policy.machine import PolicyState, PolicyTransition
from engine.report import SloHealthReport, SloReportEntry
from engine.slo.definitions import SliDefinition, SloDefinition


def _coerce(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _coerce(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_coerce(v) for v in obj]
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (float, np.floating)):
        # JSON has no infinity; an unbounded burn rate is reported as null
        return float(obj) if math.isfinite(obj) else None
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    return obj


class NpModel(BaseModel):

    @model_serializer(mode="wrap")
    def _serialize(self, handler: Any) -> Any:
        return _coerce(handler(self))


class SliResponse(NpModel):
    id: str
    category: SliCategory
    query: str
    aggregation: Aggregation
    unit: str
    percentile: Optional[float]
    total_query: Optional[str]
    description: str

    @classmethod
    def build(cls, sli: SliDefinition) -> SliResponse:
        return cls(
            id=sli.sli_id,
            category=sli.category,
            query=sli.query,
            aggregation=sli.aggregation,
            unit=sli.unit,
            percentile=sli.percentile,
            total_query=sli.total_query,
            description=sli.description,
        )


class AlertRuleResponse(NpModel):
    name: str
    severity: Severity
    threshold: float
    short_window_seconds: float
    long_window_seconds: float
    min_sample_size: int


class SloResponse(NpModel):
    id: str
    name: str
    service: str
    sli: str
    target: float
    objective: float
    window_seconds: float
    comparator: Comparator
    time_slice_target: Optional[float]
    cooldown_seconds: Optional[float]
    status: SloStatus
    superseded_by: Optional[str]
    alert_rules: List[AlertRuleResponse] = Field(default_factory=list)

    @classmethod
    def build(cls, slo: SloDefinition) -> SloResponse:
        return cls(
            id=slo.slo_id,
            name=slo.name,
            service=slo.service_id,
            sli=slo.sli_id,
            target=slo.target,
            objective=slo.objective,
            window_seconds=slo.window_seconds,
            comparator=slo.comparator,
            time_slice_target=slo.time_slice_target,
            cooldown_seconds=slo.cooldown_seconds,
            status=slo.status,
            superseded_by=slo.superseded_by,
            alert_rules=[
                AlertRuleResponse(
                    name=r.name,
                    severity=r.severity,
                    threshold=r.threshold,
                    short_window_seconds=r.short_window_seconds,
                    long_window_seconds=r.long_window_seconds,
                    min_sample_size=r.min_sample_size,
                )
                for r in slo.alert_rules
            ],
        )


class BudgetResponse(NpModel):
    slo_id: str
    as_of: float
    window_seconds: float
    total_seconds: float
    consumed_seconds: float
    remaining_seconds: float
    overdraft_seconds: float
    remaining_fraction: float
    consumption_rate: Optional[float]
    status: BudgetStatus

    @classmethod
    def build(cls, budget: ErrorBudget) -> BudgetResponse:
        return cls(
            slo_id=budget.slo_id,
            as_of=budget.as_of,
            window_seconds=budget.window_seconds,
            total_seconds=budget.total,
            consumed_seconds=budget.consumed,
            remaining_seconds=budget.remaining,
            overdraft_seconds=budget.overdraft,
            remaining_fraction=budget.remaining_fraction,
            consumption_rate=budget.consumption_rate,
            status=budget.status,
        )


class ConsumptionEventResponse(NpModel):
    event_id: str
    slo_id: str
    start: float
    duration: float
    cause: Optional[str]
    severity: Severity

    @classmethod
    def build(cls, event: BudgetConsumptionEvent) -> ConsumptionEventResponse:
        return cls(
            event_id=event.event_id,
            slo_id=event.slo_id,
            start=event.start,
            duration=event.duration,
            cause=event.cause,
            severity=event.severity,
        )


class RecordConsumptionResponse(NpModel):
    recorded: bool
    event: ConsumptionEventResponse
    budget: BudgetResponse


class AlertStateResponse(NpModel):
    rule: str
    firing: bool
    first_crossed_at: Optional[float]
    fired_at: Optional[float]
    last_evaluated_at: Optional[float]
    short_burn_rate: Optional[float]
    long_burn_rate: Optional[float]

    @classmethod
    def build(cls, state: AlertState) -> AlertStateResponse:
        return cls(
            rule=state.rule,
            firing=state.firing,
            first_crossed_at=state.first_crossed_at,
            fired_at=state.fired_at,
            last_evaluated_at=state.last_evaluated_at,
            short_burn_rate=state.short_burn_rate,
            long_burn_rate=state.long_burn_rate,
        )


class PolicyTransitionResponse(NpModel):
    from_level: PolicyLevel
    to_level: PolicyLevel
    trigger_status: BudgetStatus
    reason: str
    at: float
    approval_ref: Optional[str]
    approved_by: Optional[str]

    @classmethod
    def build(cls, t: PolicyTransition) -> PolicyTransitionResponse:
        return cls(
            from_level=t.from_level,
            to_level=t.to_level,
            trigger_status=t.trigger_status,
            reason=t.reason,
            at=t.at,
            approval_ref=t.approval_ref,
            approved_by=t.approved_by,
        )


class PolicyStateResponse(NpModel):
    service_id: str
    level: PolicyLevel
    trigger_status: BudgetStatus
    entered_at: Optional[float]
    required_approval: Optional[str]
    unfreeze_eligible: bool
    approval_ref: Optional[str]
    last_tick_at: Optional[float]
    transitions: List[PolicyTransitionResponse] = Field(default_factory=list)

    @classmethod
    def build(cls, state: PolicyState, transitions: List[PolicyTransition]) -> PolicyStateResponse:
        return cls(
            service_id=state.service_id,
            level=state.level,
            trigger_status=state.trigger_status,
            entered_at=state.entered_at,
            required_approval=state.required_approval,
            unfreeze_eligible=state.unfreeze_eligible,
            approval_ref=state.approval_ref,
            last_tick_at=state.last_tick_at,
            transitions=[PolicyTransitionResponse.build(t) for t in transitions],
        )


class TickResponse(NpModel):
    slo_id: str
    outcome: TickOutcome
    as_of: float
    budget: Optional[BudgetResponse] = None
    fired: List[str] = Field(default_factory=list)
    resolved: List[str] = Field(default_factory=list)
    detail: str = ""

    @classmethod
    def build(cls, result: TickResult) -> TickResponse:
        return cls(
            slo_id=result.slo_id,
            outcome=result.outcome,
            as_of=result.as_of,
            budget=BudgetResponse.build(result.budget) if result.budget else None,
            fired=[d.state.rule for d in result.alerts if d.fire],
            resolved=[d.state.rule for d in result.alerts if d.resolve],
            detail=result.detail,
        )


class ServiceTickResponse(NpModel):
    service_id: str
    results: List[TickResponse]
    policy_level: Optional[PolicyLevel] = None
    policy_changed: bool = False

    @classmethod
    def build(cls, tick: ServiceTick) -> ServiceTickResponse:
        return cls(
            service_id=tick.service_id,
            results=[TickResponse.build(r) for r in tick.results],
            policy_level=tick.policy.level if tick.policy else None,
            policy_changed=bool(tick.policy and tick.policy.changed),
        )


class TrendBucketResponse(NpModel):
    start: float
    end: float
    consumed_seconds: float


class SloReportResponse(NpModel):
    slo_id: str
    name: str
    sli_id: str
    objective: float
    compliance: Optional[float]
    measured_seconds: float
    consumed_seconds: float
    budget: BudgetResponse
    trend: List[TrendBucketResponse]
    firing_alerts: List[str]
    health: Health
    flags: List[str]

    @classmethod
    def build(cls, entry: SloReportEntry) -> SloReportResponse:
        return cls(
            slo_id=entry.slo_id,
            name=entry.name,
            sli_id=entry.sli_id,
            objective=entry.objective,
            compliance=entry.compliance,
            measured_seconds=entry.measured_seconds,
            consumed_seconds=entry.consumed_seconds,
            budget=BudgetResponse.build(entry.budget),
            trend=[
                TrendBucketResponse(start=b.start, end=b.end, consumed_seconds=b.consumed_seconds)
                for b in entry.trend
            ],
            firing_alerts=list(entry.firing_alerts),
            health=entry.health,
            flags=list(entry.flags),
        )


class ReportResponse(NpModel):
    service_id: str
    start: float
    end: float
    generated_at: float
    health: Health
    policy_level: PolicyLevel
    required_approval: Optional[str]
    unfreeze_eligible: bool
    slos: List[SloReportResponse]

    @classmethod
    def build(cls, report: SloHealthReport) -> ReportResponse:
        return cls(
            service_id=report.service_id,
            start=report.time_range.start,
            end=report.time_range.end,
            generated_at=report.generated_at,
            health=report.health,
            policy_level=report.policy_level,
            required_approval=report.required_approval,
            unfreeze_eligible=report.unfreeze_eligible,
            slos=[SloReportResponse.build(e) for e in report.slos],
        )
