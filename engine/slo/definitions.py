"""
SLI, SLO and burn-rate alert rule definitions together with their validation rules.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from engine.enums import Aggregation, Comparator, Severity, SliCategory, SloStatus
from config import settings


@dataclass(frozen=True)
class SliDefinition:
    sli_id: str
    category: SliCategory
    query: str
    aggregation: Aggregation
    unit: str = ""
    percentile: Optional[float] = None
    # denominator query for ratio indicators; ``query`` counts the good events
    total_query: Optional[str] = None
    description: str = ""

    @property
    def ratio_based(self) -> bool:
        return self.aggregation == Aggregation.ratio


@dataclass(frozen=True)
class BurnRateAlertRule:
    name: str
    severity: Severity
    threshold: float
    short_window_seconds: float
    long_window_seconds: float
    min_sample_size: int = 0


@dataclass(frozen=True)
class SloDefinition:
    service_id: str
    sli_id: str
    target: float
    window_seconds: float
    comparator: Comparator = Comparator.gte
    alert_rules: Tuple[BurnRateAlertRule, ...] = ()
    slo_id: str = ""
    name: str = ""
    # percent of the window the threshold must hold for non-ratio indicators
    time_slice_target: Optional[float] = None
    cooldown_seconds: Optional[float] = None
    status: SloStatus = SloStatus.active
    superseded_by: Optional[str] = None
    objective: float = field(default=0.0, compare=False)

    @property
    def allowance(self) -> float:
        """Fraction of the window that may be bad before the budget is spent."""
        return max(0.0, 1.0 - self.objective / 100.0)

    @property
    def active(self) -> bool:
        return self.status == SloStatus.active


def default_alert_rules() -> Tuple[BurnRateAlertRule, ...]:
    return tuple(
        BurnRateAlertRule(
            name=name,
            severity=Severity(severity),
            threshold=float(threshold),
            short_window_seconds=float(short),
            long_window_seconds=float(long_),
            min_sample_size=int(min_samples),
        )
        for name, severity, threshold, short, long_, min_samples in settings.default_alert_rules
    )


def _finite(value: Optional[float]) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(float(value))


def validate_sli(sli: SliDefinition, existing: Mapping[str, SliDefinition]) -> List[str]:
    errors: List[str] = []
    if not str(sli.sli_id or "").strip():
        errors.append("sli_id must be a non-empty string")
    elif sli.sli_id in existing:
        errors.append(f"sli {sli.sli_id!r} already exists; register a new identifier instead")
    if not str(sli.query or "").strip():
        errors.append("query must be a non-empty descriptor")
    if sli.aggregation == Aggregation.percentile:
        if not _finite(sli.percentile) or not (0.0 < float(sli.percentile) <= 100.0):
            errors.append("percentile aggregation requires percentile in (0, 100]")
    if sli.aggregation == Aggregation.ratio and not str(sli.total_query or "").strip():
        errors.append("ratio aggregation requires total_query")
    return errors


def validate_rule(rule: BurnRateAlertRule) -> List[str]:
    errors: List[str] = []
    label = rule.name or "<unnamed>"
    if not _finite(rule.threshold) or rule.threshold <= 0:
        errors.append(f"rule {label}: threshold must be positive")
    if not _finite(rule.short_window_seconds) or rule.short_window_seconds <= 0:
        errors.append(f"rule {label}: short window must be a positive duration")
    if not _finite(rule.long_window_seconds) or rule.long_window_seconds <= 0:
        errors.append(f"rule {label}: long window must be a positive duration")
    elif _finite(rule.short_window_seconds) and rule.long_window_seconds <= rule.short_window_seconds:
        errors.append(f"rule {label}: long window must be longer than the short window")
    if rule.min_sample_size < 0:
        errors.append(f"rule {label}: min_sample_size must not be negative")
    return errors


def validate_slo(
    slo: SloDefinition,
    slis: Mapping[str, SliDefinition],
    existing: Mapping[str, SloDefinition],
) -> List[str]:
    """Return every violated constraint, empty when the definition is acceptable."""
    errors: List[str] = []
    if not str(slo.service_id or "").strip():
        errors.append("service_id must be a non-empty string")
    if slo.slo_id and slo.slo_id in existing:
        errors.append(f"slo {slo.slo_id!r} already exists")

    sli = slis.get(slo.sli_id)
    if sli is None:
        errors.append(f"referenced sli {slo.sli_id!r} does not exist")

    if not _finite(slo.window_seconds) or slo.window_seconds <= 0:
        errors.append("window must be a positive duration")

    if not _finite(slo.target):
        errors.append("target must be a finite number")
    elif sli is not None and sli.ratio_based and not (0.0 < slo.target <= 100.0):
        errors.append("target must be in (0, 100] for ratio SLOs")

    if sli is not None and not sli.ratio_based:
        if slo.time_slice_target is None:
            errors.append("time_slice_target is required for non-ratio SLOs")
        elif not _finite(slo.time_slice_target) or not (0.0 < slo.time_slice_target <= 100.0):
            errors.append("time_slice_target must be in (0, 100]")

    if not isinstance(slo.comparator, Comparator):
        errors.append(f"unknown comparator {slo.comparator!r}")

    if slo.cooldown_seconds is not None and (not _finite(slo.cooldown_seconds) or slo.cooldown_seconds < 0):
        errors.append("cooldown must be a non-negative duration")

    names = [r.name for r in slo.alert_rules]
    if len(names) != len(set(names)):
        errors.append("alert rule names must be unique")
    for rule in slo.alert_rules:
        errors.extend(validate_rule(rule))
    return errors
