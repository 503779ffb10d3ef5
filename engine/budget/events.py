"""
Budget consumption events and per-interval measurements, kept in an append-only log per SLO.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import bisect
import hashlib
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from engine.enums import Severity
from engine.series import TimeRange
from engine.slo.definitions import SloDefinition
from config import settings


@dataclass(frozen=True)
class BudgetConsumptionEvent:
    event_id: str
    slo_id: str
    start: float
    duration: float
    cause: Optional[str] = None
    severity: Severity = Severity.warning

    @property
    def end(self) -> float:
        return self.start + self.duration


@dataclass(frozen=True)
class Measurement:
    slo_id: str
    start: float
    end: float
    value: Optional[float]
    sample_count: int
    coverage: float
    compliant: Optional[bool]


def event_id_for(slo_id: str, start: float, duration: float) -> str:
    """Stable identifier so re-recording the same interval is a no-op."""
    raw = f"{slo_id}:{start:.3f}:{duration:.3f}"
    return hashlib.sha256(raw.encode()).hexdigest()[:32]


def classify_severity(slo: SloDefinition, value: float, ratio_based: bool) -> Severity:
    if ratio_based:
        allowed = 100.0 - slo.target
        if allowed <= 0:
            return Severity.critical
        burn = (100.0 - value) / allowed
        return Severity.critical if burn >= settings.event_critical_burn else Severity.warning
    scale = abs(slo.target) or 1.0
    deviation = abs(value - slo.target) / scale
    return Severity.critical if deviation >= settings.event_critical_deviation else Severity.warning


class EventLog:
    """Ordered, idempotent storage of events and measurements keyed by SLO."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: Dict[str, List[BudgetConsumptionEvent]] = {}
        self._event_ids: Dict[str, set] = {}
        self._measurements: Dict[str, List[Measurement]] = {}

    def append_event(self, event: BudgetConsumptionEvent) -> bool:
        with self._lock:
            seen = self._event_ids.setdefault(event.slo_id, set())
            if event.event_id in seen:
                return False
            seen.add(event.event_id)
            events = self._events.setdefault(event.slo_id, [])
            keys = [e.start for e in events]
            events.insert(bisect.bisect_right(keys, event.start), event)
            return True

    def append_measurement(self, measurement: Measurement, horizon: Optional[float] = None) -> None:
        with self._lock:
            items = self._measurements.setdefault(measurement.slo_id, [])
            keys = [m.start for m in items]
            items.insert(bisect.bisect_right(keys, measurement.start), measurement)
            if horizon is not None:
                cutoff = measurement.end - horizon
                self._measurements[measurement.slo_id] = [m for m in items if m.end > cutoff]

    def events(self, slo_id: str) -> List[BudgetConsumptionEvent]:
        return list(self._events.get(slo_id, ()))

    def events_overlapping(self, slo_id: str, window: TimeRange) -> List[BudgetConsumptionEvent]:
        return [e for e in self._events.get(slo_id, ()) if e.start < window.end and e.end > window.start]

    def measurements(self, slo_id: str, window: Optional[TimeRange] = None) -> List[Measurement]:
        items: Sequence[Measurement] = self._measurements.get(slo_id, ())
        if window is None:
            return list(items)
        return [m for m in items if m.start < window.end and m.end > window.start]

    def drop(self, slo_id: str) -> None:
        with self._lock:
            self._events.pop(slo_id, None)
            self._event_ids.pop(slo_id, None)
            self._measurements.pop(slo_id, None)
