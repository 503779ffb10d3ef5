from __future__ import annotations

import re
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from engine.budget.events import BudgetConsumptionEvent
from engine.enums import Aggregation, Comparator, Severity, SliCategory
from engine.slo.definitions import BurnRateAlertRule, SliDefinition, SloDefinition

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d|w)?\s*$")
_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, "d": 86400.0, "w": 604800.0}

Duration = Union[float, str]


def parse_duration(value: Duration) -> float:
    """Seconds from a number or a string such as ``30d``, ``5m`` or ``90s``."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION.match(str(value))
    if not match:
        raise ValueError(f"invalid duration {value!r}")
    return float(match.group(1)) * _UNITS[match.group(2) or "s"]


class AlertRuleRequest(BaseModel):
    name: str
    severity: Severity = Severity.warning
    threshold: float
    short_window: Duration
    long_window: Duration
    min_samples: int = 0

    @field_validator("short_window", "long_window")
    @classmethod
    def _seconds(cls, v: Duration) -> float:
        return parse_duration(v)

    def to_rule(self) -> BurnRateAlertRule:
        return BurnRateAlertRule(
            name=self.name,
            severity=self.severity,
            threshold=self.threshold,
            short_window_seconds=float(self.short_window),
            long_window_seconds=float(self.long_window),
            min_sample_size=self.min_samples,
        )


class SliRequest(BaseModel):
    id: str
    category: SliCategory
    query: str
    aggregation: Aggregation
    unit: str = ""
    percentile: Optional[float] = None
    total_query: Optional[str] = None
    description: str = ""

    def to_definition(self) -> SliDefinition:
        return SliDefinition(
            sli_id=self.id,
            category=self.category,
            query=self.query,
            aggregation=self.aggregation,
            unit=self.unit,
            percentile=self.percentile,
            total_query=self.total_query,
            description=self.description,
        )


class SloRequest(BaseModel):
    service: str
    sli: str
    target: float
    window: Duration
    comparator: Comparator = Comparator.gte
    id: Optional[str] = None
    name: str = ""
    time_slice_target: Optional[float] = None
    cooldown: Optional[Duration] = None
    alert_rules: List[AlertRuleRequest] = Field(default_factory=list)

    @field_validator("window")
    @classmethod
    def _window(cls, v: Duration) -> float:
        return parse_duration(v)

    @field_validator("cooldown")
    @classmethod
    def _cooldown(cls, v: Optional[Duration]) -> Optional[float]:
        return None if v is None else parse_duration(v)

    def to_definition(self) -> SloDefinition:
        return SloDefinition(
            service_id=self.service,
            sli_id=self.sli,
            target=self.target,
            window_seconds=float(self.window),
            comparator=self.comparator,
            alert_rules=tuple(r.to_rule() for r in self.alert_rules),
            slo_id=self.id or "",
            name=self.name,
            time_slice_target=self.time_slice_target,
            cooldown_seconds=None if self.cooldown is None else float(self.cooldown),
        )


class SloConfigFile(BaseModel):
    slis: List[SliRequest] = Field(default_factory=list)
    slos: List[SloRequest] = Field(default_factory=list)


class ConsumptionRequest(BaseModel):
    start: float
    duration: Duration
    cause: Optional[str] = None
    severity: Severity = Severity.warning
    event_id: Optional[str] = None

    @field_validator("duration")
    @classmethod
    def _duration(cls, v: Duration) -> float:
        return parse_duration(v)


class UnfreezeRequest(BaseModel):
    approval_ref: str = Field(min_length=1)


class ReportRequest(BaseModel):
    start: float
    end: float
    buckets: Optional[int] = Field(default=None, ge=1, le=500)


def consumption_event(slo_id: str, req: ConsumptionRequest, event_id: str) -> BudgetConsumptionEvent:
    return BudgetConsumptionEvent(
        event_id=event_id,
        slo_id=slo_id,
        start=req.start,
        duration=float(req.duration),
        cause=req.cause,
        severity=req.severity,
    )
