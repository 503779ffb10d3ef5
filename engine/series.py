"""
Time ranges, samples and interval arithmetic shared by the evaluator and the budget tracker.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple

from engine.errors import InvalidTimeRange

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sample:
    timestamp: float
    value: float


@dataclass(frozen=True)
class TimeRange:
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    def validate(self, now: float, skew: float = 0.0) -> None:
        if not (math.isfinite(self.start) and math.isfinite(self.end)):
            raise InvalidTimeRange("time range bounds must be finite")
        if self.end <= self.start:
            raise InvalidTimeRange(f"time range is empty: [{self.start}, {self.end}]")
        if self.end > now + skew:
            raise InvalidTimeRange(f"time range ends in the future: {self.end} > {now}")

    def overlap(self, start: float, end: float) -> float:
        return max(0.0, min(self.end, end) - max(self.start, start))

    @classmethod
    def trailing(cls, end: float, seconds: float) -> TimeRange:
        return cls(start=end - seconds, end=end)


def merge_intervals(intervals: Iterable[Tuple[float, float]]) -> List[Tuple[float, float]]:
    merged: List[Tuple[float, float]] = []
    for start, end in sorted(i for i in intervals if i[1] > i[0]):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def covered_seconds(intervals: Iterable[Tuple[float, float]], window: TimeRange) -> float:
    """Length of the union of ``intervals`` clipped to ``window``."""
    clipped = [
        (max(s, window.start), min(e, window.end))
        for s, e in intervals
    ]
    return sum(e - s for s, e in merge_intervals(clipped))


def iter_samples(raw: Dict[str, Any]) -> List[Sample]:
    """Flatten a Prometheus range-query response into ascending samples.

    Multiple series are summed per timestamp; ``NaN`` points are dropped so a
    gap stays a gap rather than becoming a zero.
    """
    totals: Dict[float, float] = {}
    for series in (raw or {}).get("data", {}).get("result", []) or []:
        for point in series.get("values", []) or []:
            try:
                ts = float(point[0])
                value = float(point[1])
            except (TypeError, ValueError, IndexError):
                log.debug("dropping malformed point %r", point)
                continue
            if not math.isfinite(value):
                continue
            totals[ts] = totals.get(ts, 0.0) + value
    return [Sample(timestamp=ts, value=totals[ts]) for ts in sorted(totals)]
