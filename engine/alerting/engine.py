"""
Multi-window, multi-burn-rate alerting.

An alert fires only when both the short and the long window burn faster than
the rule's threshold and the long window holds enough samples. It resolves
once the short window has stayed under the threshold for a full short window
and the alert has been firing for the debounce period.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import dataclasses
import logging
import math
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from engine.budget.events import BudgetConsumptionEvent, Measurement
from engine.budget.tracker import ErrorBudget, ErrorBudgetTracker
from engine.enums import Severity
from engine.slo.definitions import BurnRateAlertRule, SloDefinition
from config import settings

log = logging.getLogger(__name__)

RAISED = "raised"
RESOLVED = "resolved"


@dataclass(frozen=True)
class AlertState:
    slo_id: str
    rule: str
    firing: bool = False
    first_crossed_at: Optional[float] = None
    fired_at: Optional[float] = None
    below_since: Optional[float] = None
    last_evaluated_at: Optional[float] = None
    short_condition: bool = False
    long_condition: bool = False
    short_burn_rate: float = 0.0
    long_burn_rate: float = 0.0


@dataclass(frozen=True)
class AlertNotification:
    kind: str
    slo_id: str
    service_id: str
    rule: str
    severity: Severity
    burn_rate: float
    time_to_exhaustion: Optional[float]
    message: str
    at: float


@dataclass(frozen=True)
class AlertDecision:
    fire: bool
    resolve: bool
    suppressed: bool
    short_burn_rate: float
    long_burn_rate: float
    state: AlertState
    notification: Optional[AlertNotification] = None


def time_to_exhaustion(budget: ErrorBudget, burn: float, allowance: float) -> Optional[float]:
    """Seconds until the remaining budget is gone at ``burn``; ``None`` means never."""
    if burn <= 0:
        return None
    if budget.remaining <= 0 or allowance <= 0 or math.isinf(burn):
        return 0.0
    return budget.remaining / (burn * allowance)


def _fmt(seconds: float) -> str:
    if seconds >= 86400 and seconds % 86400 == 0:
        return f"{int(seconds // 86400)}d"
    if seconds >= 3600 and seconds % 3600 == 0:
        return f"{int(seconds // 3600)}h"
    if seconds >= 60 and seconds % 60 == 0:
        return f"{int(seconds // 60)}m"
    return f"{seconds:g}s"


class AlertingEngine:
    def __init__(self, tracker: ErrorBudgetTracker, min_firing_seconds: Optional[float] = None) -> None:
        self.tracker = tracker
        self.min_firing_seconds = float(
            min_firing_seconds if min_firing_seconds is not None else settings.alert_min_firing_seconds
        )
        self._lock = threading.Lock()
        self._states: Dict[Tuple[str, str], AlertState] = {}

    def state(self, slo_id: str, rule: str) -> AlertState:
        return self._states.get((slo_id, rule)) or AlertState(slo_id=slo_id, rule=rule)

    def states_for(self, slo_id: str) -> List[AlertState]:
        return [s for (sid, _), s in sorted(self._states.items()) if sid == slo_id]

    def restore(self, state: AlertState) -> None:
        with self._lock:
            self._states[(state.slo_id, state.rule)] = state

    def drop(self, slo_id: str) -> None:
        with self._lock:
            for key in [k for k in self._states if k[0] == slo_id]:
                del self._states[key]

    def decide(
        self,
        slo: SloDefinition,
        rule: BurnRateAlertRule,
        as_of: float,
        budget: ErrorBudget,
        pending_events: Sequence[BudgetConsumptionEvent] = (),
        pending_measurements: Sequence[Measurement] = (),
    ) -> AlertDecision:
        """Work out the next state for ``rule`` without storing it."""
        prev = self.state(slo.slo_id, rule.name)
        short = self.tracker.burn_rate(slo, rule.short_window_seconds, as_of, pending_events)
        long_ = self.tracker.burn_rate(slo, rule.long_window_seconds, as_of, pending_events)
        short_cond = short >= rule.threshold
        long_cond = long_ >= rule.threshold
        samples = self.tracker.sample_count(slo.slo_id, rule.long_window_seconds, as_of, pending_measurements)
        suppressed = samples < rule.min_sample_size

        state = dataclasses.replace(
            prev,
            last_evaluated_at=as_of,
            short_condition=short_cond,
            long_condition=long_cond,
            short_burn_rate=short,
            long_burn_rate=long_,
        )
        fire = resolve = False

        if suppressed:
            log.debug(
                "alert %s/%s suppressed: %d samples in long window (min %d)",
                slo.slo_id, rule.name, samples, rule.min_sample_size,
            )
        elif not prev.firing:
            if short_cond and long_cond:
                fire = True
                state = dataclasses.replace(
                    state,
                    firing=True,
                    first_crossed_at=prev.first_crossed_at or as_of,
                    fired_at=as_of,
                    below_since=None,
                )
            elif short_cond or long_cond:
                state = dataclasses.replace(state, first_crossed_at=prev.first_crossed_at or as_of)
            else:
                state = dataclasses.replace(state, first_crossed_at=None)
        else:
            below_since = None if short_cond else (prev.below_since if prev.below_since is not None else as_of)
            state = dataclasses.replace(state, below_since=below_since)
            min_firing = self.min_firing_seconds or rule.short_window_seconds
            held = below_since is not None and as_of - below_since >= rule.short_window_seconds
            debounced = prev.fired_at is None or as_of - prev.fired_at >= min_firing
            if held and debounced:
                resolve = True
                state = dataclasses.replace(
                    state, firing=False, first_crossed_at=None, fired_at=None, below_since=None,
                )

        notification = None
        if fire or resolve:
            notification = self._notification(slo, rule, as_of, budget, short, long_, RAISED if fire else RESOLVED)
        return AlertDecision(
            fire=fire,
            resolve=resolve,
            suppressed=suppressed,
            short_burn_rate=short,
            long_burn_rate=long_,
            state=state,
            notification=notification,
        )

    def commit(self, decision: AlertDecision) -> None:
        with self._lock:
            self._states[(decision.state.slo_id, decision.state.rule)] = decision.state
        if decision.fire:
            log.warning("alert %s/%s fired (burn %.2fx)", decision.state.slo_id, decision.state.rule, decision.short_burn_rate)
        elif decision.resolve:
            log.info("alert %s/%s resolved", decision.state.slo_id, decision.state.rule)

    def evaluate(self, slo: SloDefinition, rule: BurnRateAlertRule, as_of: float) -> AlertDecision:
        decision = self.decide(slo, rule, as_of, self.tracker.compute(slo, as_of))
        self.commit(decision)
        return decision

    def _notification(
        self,
        slo: SloDefinition,
        rule: BurnRateAlertRule,
        as_of: float,
        budget: ErrorBudget,
        short: float,
        long_: float,
        kind: str,
    ) -> AlertNotification:
        label = slo.name or slo.slo_id
        if kind == RAISED:
            message = (
                f"{label}: error budget burning at {short:.1f}x over {_fmt(rule.short_window_seconds)} "
                f"and {long_:.1f}x over {_fmt(rule.long_window_seconds)} (threshold {rule.threshold:g}x)"
            )
        else:
            message = f"{label}: burn rate back under {rule.threshold:g}x over {_fmt(rule.short_window_seconds)}"
        return AlertNotification(
            kind=kind,
            slo_id=slo.slo_id,
            service_id=slo.service_id,
            rule=rule.name,
            severity=rule.severity,
            burn_rate=short,
            time_to_exhaustion=time_to_exhaustion(budget, short, slo.allowance),
            message=message,
            at=as_of,
        )
