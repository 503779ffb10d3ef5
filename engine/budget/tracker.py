"""
Error budget tracking over a sliding window.

The budget is recomputed from the event log on every query rather than reset
on calendar boundaries, so an outage ages out of the window continuously.
Events straddling the window start contribute only their overlapping part.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from engine.budget.events import BudgetConsumptionEvent, EventLog, Measurement
from engine.enums import BudgetStatus
from engine.errors import InvariantViolation
from engine.registry import SloRegistry
from engine.series import TimeRange, merge_intervals
from engine.slo.definitions import SloDefinition
from config import settings

log = logging.getLogger(__name__)

_TOLERANCE = 1e-6


@dataclass(frozen=True)
class ErrorBudget:
    slo_id: str
    as_of: float
    window_seconds: float
    total: float
    consumed: float
    remaining: float
    overdraft: float
    consumption_rate: float
    status: BudgetStatus

    @property
    def remaining_fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.remaining / self.total

    def check(self) -> None:
        """Raise :class:`InvariantViolation` when the snapshot cannot be trusted."""
        problems: List[str] = []
        if self.consumed < -_TOLERANCE or self.remaining < -_TOLERANCE:
            problems.append("negative budget component")
        if not math.isclose(min(self.consumed, self.total) + self.remaining, self.total, abs_tol=_TOLERANCE):
            problems.append(
                f"conservation broken: consumed={self.consumed} remaining={self.remaining} total={self.total}"
            )
        if self.consumed > self.window_seconds + _TOLERANCE:
            problems.append(f"consumed {self.consumed}s exceeds the {self.window_seconds}s window")
        if problems:
            raise InvariantViolation(f"budget {self.slo_id}: " + "; ".join(problems))


def classify(
    total: float,
    consumed: float,
    remaining: float,
    warning_remaining: float,
    critical_remaining: float,
) -> BudgetStatus:
    if total <= 0:
        # a 100% objective tolerates nothing
        return BudgetStatus.exhausted if consumed > 0 else BudgetStatus.healthy
    if consumed >= total:
        return BudgetStatus.exhausted
    if remaining < critical_remaining * total:
        return BudgetStatus.critical
    if remaining < warning_remaining * total:
        return BudgetStatus.warning
    return BudgetStatus.healthy


def bad_seconds(events: Sequence[BudgetConsumptionEvent], window: TimeRange) -> float:
    clipped = [
        (max(e.start, window.start), min(e.end, window.end))
        for e in events
        if e.start < window.end and e.end > window.start
    ]
    return sum(end - start for start, end in merge_intervals(clipped))


def burn_rate(bad: float, window_seconds: float, allowance: float) -> float:
    """Bad-time fraction of the window relative to the fraction the SLO allows."""
    if window_seconds <= 0:
        return 0.0
    error_ratio = bad / window_seconds
    if allowance <= 0:
        return math.inf if error_ratio > 0 else 0.0
    return error_ratio / allowance


class ErrorBudgetTracker:
    def __init__(
        self,
        registry: SloRegistry,
        event_log: Optional[EventLog] = None,
        warning_remaining: Optional[float] = None,
        critical_remaining: Optional[float] = None,
        rate_window_seconds: Optional[float] = None,
    ) -> None:
        self.registry = registry
        self.log = event_log or EventLog()
        self.warning_remaining = float(
            warning_remaining if warning_remaining is not None else settings.budget_warning_remaining
        )
        self.critical_remaining = float(
            critical_remaining if critical_remaining is not None else settings.budget_critical_remaining
        )
        self.rate_window_seconds = float(
            rate_window_seconds if rate_window_seconds is not None else settings.rate_window_seconds
        )

    def record_consumption(self, slo_id: str, event: BudgetConsumptionEvent) -> bool:
        if event.slo_id != slo_id:
            raise ValueError(f"event belongs to {event.slo_id!r}, not {slo_id!r}")
        if event.duration <= 0:
            raise ValueError("consumption event duration must be positive")
        added = self.log.append_event(event)
        if added:
            log.debug("slo %s consumed %.1fs from %.0f (%s)", slo_id, event.duration, event.start, event.cause)
        return added

    def record_measurement(self, slo: SloDefinition, measurement: Measurement) -> None:
        horizon = max(
            [slo.window_seconds, self.rate_window_seconds]
            + [r.long_window_seconds for r in slo.alert_rules]
        )
        self.log.append_measurement(measurement, horizon=horizon)

    def _events(self, slo_id: str, window: TimeRange, pending: Sequence[BudgetConsumptionEvent]) -> List[BudgetConsumptionEvent]:
        return self.log.events_overlapping(slo_id, window) + [
            e for e in pending if e.start < window.end and e.end > window.start
        ]

    def compute(
        self,
        slo: SloDefinition,
        as_of: float,
        pending: Sequence[BudgetConsumptionEvent] = (),
    ) -> ErrorBudget:
        """Budget snapshot for ``slo`` at ``as_of``, including ``pending`` uncommitted events."""
        window = TimeRange.trailing(as_of, slo.window_seconds)
        total = slo.window_seconds * slo.allowance
        consumed = bad_seconds(self._events(slo.slo_id, window, pending), window)
        remaining = max(0.0, total - consumed)

        rate_window = TimeRange.trailing(as_of, self.rate_window_seconds)
        recent = bad_seconds(self._events(slo.slo_id, rate_window, pending), rate_window)

        return ErrorBudget(
            slo_id=slo.slo_id,
            as_of=as_of,
            window_seconds=slo.window_seconds,
            total=total,
            consumed=consumed,
            remaining=remaining,
            overdraft=max(0.0, consumed - total),
            consumption_rate=burn_rate(recent, self.rate_window_seconds, slo.allowance),
            status=classify(total, consumed, remaining, self.warning_remaining, self.critical_remaining),
        )

    def get_budget(self, slo_id: str, as_of: float) -> ErrorBudget:
        return self.compute(self.registry.get(slo_id), as_of)

    def burn_rate(
        self,
        slo: SloDefinition,
        window_seconds: float,
        as_of: float,
        pending: Sequence[BudgetConsumptionEvent] = (),
    ) -> float:
        window = TimeRange.trailing(as_of, window_seconds)
        return burn_rate(bad_seconds(self._events(slo.slo_id, window, pending), window), window_seconds, slo.allowance)

    def sample_count(
        self,
        slo_id: str,
        window_seconds: float,
        as_of: float,
        pending: Sequence[Measurement] = (),
    ) -> int:
        """Underlying SLI samples behind the measurements inside the trailing window."""
        window = TimeRange.trailing(as_of, window_seconds)
        items = self.log.measurements(slo_id, window) + [
            m for m in pending if m.start < window.end and m.end > window.start
        ]
        return sum(m.sample_count for m in items if m.compliant is not None)

    def events(self, slo_id: str) -> List[BudgetConsumptionEvent]:
        return self.log.events(slo_id)

    def measurements(self, slo_id: str, window: Optional[TimeRange] = None) -> List[Measurement]:
        return self.log.measurements(slo_id, window)
