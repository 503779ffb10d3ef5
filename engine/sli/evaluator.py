"""
SLI evaluation: pulls samples for an indicator over a closed time range and reduces them to a
compliance value with an explicit data-coverage figure.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from engine.enums import Aggregation
from engine.fetcher import MetricsSourceAdapter
from engine.series import TimeRange, covered_seconds
from engine.slo.definitions import SliDefinition, SloDefinition
from engine.sli import aggregate
from config import settings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SliResult:
    sli_id: str
    time_range: TimeRange
    value: Optional[float]
    sample_count: int
    coverage: float
    insufficient_evidence: bool

    def compliant(self, slo: SloDefinition) -> Optional[bool]:
        """``None`` when there is no value to judge; missing data is never compliant or not."""
        if self.value is None:
            return None
        return slo.comparator.holds(self.value, slo.target)


def coverage(timestamps: Iterable[float], time_range: TimeRange, step: float) -> float:
    if time_range.duration <= 0:
        return 0.0
    covered = covered_seconds(((ts, ts + step) for ts in timestamps), time_range)
    return round(min(1.0, covered / time_range.duration), 6)


class SliEvaluator:
    def __init__(
        self,
        source: MetricsSourceAdapter,
        min_coverage: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.source = source
        self.min_coverage = float(min_coverage if min_coverage is not None else settings.min_coverage)
        self.clock = clock

    async def evaluate(self, sli: SliDefinition, time_range: TimeRange, now: Optional[float] = None) -> SliResult:
        now = self.clock() if now is None else now
        time_range.validate(now, settings.clock_skew_seconds)
        step = self.source.step_seconds

        if sli.aggregation == Aggregation.ratio:
            good = await self.source.query(sli.query, time_range)
            total = await self.source.query(str(sli.total_query), time_range)
            pairs = aggregate.aligned(good, total)
            value = aggregate.ratio(pairs)
            count = len(pairs)
            cov = coverage((p[0] for p in pairs), time_range, step)
        else:
            samples = await self.source.query(sli.query, time_range)
            count = len(samples)
            cov = coverage((s.timestamp for s in samples), time_range, step)
            if sli.aggregation == Aggregation.percentile:
                value = aggregate.percentile(samples, float(sli.percentile))
            elif sli.aggregation == Aggregation.rate:
                value = aggregate.rate(samples, time_range.duration)
            else:
                value = aggregate.average(samples)

        insufficient = value is None or cov < self.min_coverage
        if insufficient:
            log.info(
                "sli %s insufficient evidence: coverage=%.3f (min %.3f) samples=%d",
                sli.sli_id, cov, self.min_coverage, count,
            )
        return SliResult(
            sli_id=sli.sli_id,
            time_range=time_range,
            value=value,
            sample_count=count,
            coverage=cov,
            insufficient_evidence=insufficient,
        )
