"""
Enumerations for SLI categories, aggregations, budget status, alert severity and policy levels

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import operator
from enum import Enum

from config import SEVERITY_WEIGHTS


class SliCategory(str, Enum):
    availability = "availability"
    latency = "latency"
    quality = "quality"
    throughput = "throughput"


class Aggregation(str, Enum):
    average = "average"
    percentile = "percentile"
    ratio = "ratio"
    rate = "rate"


class Comparator(str, Enum):
    gte = ">="
    lte = "<="
    eq = "=="

    def holds(self, value: float, target: float) -> bool:
        return _COMPARATORS[self](value, target)


_COMPARATORS = {
    Comparator.gte: operator.ge,
    Comparator.lte: operator.le,
    Comparator.eq: operator.eq,
}


class Severity(str, Enum):
    info = "info"
    warning = "warning"
    critical = "critical"

    def weight(self) -> int:
        return SEVERITY_WEIGHTS[self.value]


class BudgetStatus(str, Enum):
    healthy = "healthy"
    warning = "warning"
    critical = "critical"
    exhausted = "exhausted"

    @property
    def rank(self) -> int:
        return _BUDGET_ORDER.index(self)


_BUDGET_ORDER = [BudgetStatus.healthy, BudgetStatus.warning, BudgetStatus.critical, BudgetStatus.exhausted]


class PolicyLevel(str, Enum):
    normal = "normal"
    increased_scrutiny = "increased_scrutiny"
    restricted_releases = "restricted_releases"
    feature_freeze = "feature_freeze"

    @property
    def rank(self) -> int:
        return _POLICY_ORDER.index(self)

    @classmethod
    def for_status(cls, status: BudgetStatus) -> PolicyLevel:
        return _POLICY_ORDER[status.rank]

    def stricter(self) -> PolicyLevel:
        return _POLICY_ORDER[min(self.rank + 1, len(_POLICY_ORDER) - 1)]

    def laxer(self) -> PolicyLevel:
        return _POLICY_ORDER[max(self.rank - 1, 0)]


_POLICY_ORDER = [
    PolicyLevel.normal,
    PolicyLevel.increased_scrutiny,
    PolicyLevel.restricted_releases,
    PolicyLevel.feature_freeze,
]


class SloStatus(str, Enum):
    active = "active"
    archived = "archived"


class Health(str, Enum):
    healthy = "healthy"
    degraded = "degraded"
    unknown = "unknown"


class TickOutcome(str, Enum):
    committed = "committed"
    coalesced = "coalesced"
    insufficient_evidence = "insufficient_evidence"
    stale = "stale"
    config_error = "config_error"
    invariant_violation = "invariant_violation"
    cancelled = "cancelled"
    skipped = "skipped"
