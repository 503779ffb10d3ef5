"""
Release policy state machine driven by the worst error budget status of a service.

Degradation is immediate but moves one level per tick so every crossing is
recorded. Recovery moves one level at a time and only after the budget has
been continuously better than the status behind the current level for the
cool-down.
A feature freeze is never lifted by metrics alone; recovery only makes the
service eligible for an approved unfreeze.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from engine.budget.tracker import ErrorBudgetTracker
from engine.enums import BudgetStatus, PolicyLevel
from engine.errors import InvariantViolation, PolicyError
from engine.registry import SloRegistry
from config import settings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyState:
    service_id: str
    level: PolicyLevel = PolicyLevel.normal
    trigger_status: BudgetStatus = BudgetStatus.healthy
    entered_at: Optional[float] = None
    required_approval: Optional[str] = None
    # (level, since): the worst status has allowed that level continuously since ``since``
    recovery_marks: Tuple[Tuple[PolicyLevel, float], ...] = ()
    unfreeze_eligible: bool = False
    approval_ref: Optional[str] = None
    last_tick_at: Optional[float] = None


@dataclass(frozen=True)
class PolicyTransition:
    service_id: str
    from_level: PolicyLevel
    to_level: PolicyLevel
    trigger_status: BudgetStatus
    reason: str
    at: float
    approval_ref: Optional[str] = None
    approved_by: Optional[str] = None


@dataclass(frozen=True)
class PolicyLevelChanged:
    service_id: str
    new_level: PolicyLevel
    previous_level: PolicyLevel
    reason: str
    requires_approval_from: Optional[str]
    at: float


@dataclass(frozen=True)
class PolicyDecision:
    service_id: str
    level: PolicyLevel
    changed: bool
    reason: str
    state: PolicyState
    transition: Optional[PolicyTransition] = None

    @property
    def change(self) -> Optional[PolicyLevelChanged]:
        if self.transition is None:
            return None
        return PolicyLevelChanged(
            service_id=self.service_id,
            new_level=self.level,
            previous_level=self.transition.from_level,
            reason=self.reason,
            requires_approval_from=self.state.required_approval,
            at=self.transition.at,
        )


def _duration(seconds: float) -> str:
    if seconds >= 3600:
        return f"{seconds / 3600:.1f}h"
    return f"{seconds / 60:.0f}m"


class PolicyEngine:
    def __init__(
        self,
        registry: SloRegistry,
        tracker: ErrorBudgetTracker,
        cooldown_seconds: Optional[float] = None,
        authorities: Optional[Mapping[str, Optional[str]]] = None,
    ) -> None:
        self.registry = registry
        self.tracker = tracker
        self.cooldown_seconds = float(
            cooldown_seconds if cooldown_seconds is not None else settings.policy_cooldown_seconds
        )
        self.authorities = dict(authorities if authorities is not None else settings.policy_approval_authorities)
        self._lock = threading.Lock()
        self._states: Dict[str, PolicyState] = {}
        self._transitions: Dict[str, List[PolicyTransition]] = {}

    def state(self, service_id: str) -> PolicyState:
        return self._states.get(service_id) or PolicyState(service_id=service_id)

    def restore(self, state: PolicyState) -> None:
        with self._lock:
            self._states[state.service_id] = state

    def restore_transitions(self, transitions: List[PolicyTransition]) -> None:
        with self._lock:
            for t in sorted(transitions, key=lambda t: t.at):
                self._transitions.setdefault(t.service_id, []).append(t)

    def transitions(self, service_id: str) -> List[PolicyTransition]:
        return list(self._transitions.get(service_id, ()))

    def required_approval(self, level: PolicyLevel) -> Optional[str]:
        return self.authorities.get(level.value)

    def cooldown_for(self, service_id: str) -> float:
        slos = self.registry.list_by_service(service_id)
        if not slos:
            return self.cooldown_seconds
        # the strictest SLO of the service governs recovery
        return max(
            s.cooldown_seconds if s.cooldown_seconds is not None
            else (self.cooldown_seconds or s.window_seconds)
            for s in slos
        )

    def worst_status(
        self,
        service_id: str,
        as_of: float,
        overrides: Optional[Mapping[str, BudgetStatus]] = None,
    ) -> BudgetStatus:
        overrides = overrides or {}
        worst = BudgetStatus.healthy
        for slo in self.registry.list_by_service(service_id):
            status = overrides.get(slo.slo_id) or self.tracker.compute(slo, as_of).status
            if status.rank > worst.rank:
                worst = status
        return worst

    def _marks(self, prev: PolicyState, target: PolicyLevel, as_of: float) -> Dict[PolicyLevel, float]:
        marks = {lvl: since for lvl, since in prev.recovery_marks if lvl.rank < prev.level.rank}
        for lvl in list(PolicyLevel)[: prev.level.rank]:
            if target.rank <= lvl.rank:
                marks.setdefault(lvl, as_of)
            else:
                marks.pop(lvl, None)
        return marks

    def plan(
        self,
        service_id: str,
        as_of: float,
        overrides: Optional[Mapping[str, BudgetStatus]] = None,
    ) -> PolicyDecision:
        """Work out the next policy state without storing it."""
        prev = self.state(service_id)
        worst = self.worst_status(service_id, as_of, overrides)
        target = PolicyLevel.for_status(worst)
        marks = self._marks(prev, target, as_of)
        cooldown = self.cooldown_for(service_id)
        new_level = prev.level
        eligible = False

        if target.rank > prev.level.rank:
            new_level = prev.level.stricter()
            marks = {}
            reason = f"budget {worst.value}: stepping up from {prev.level.value} to {new_level.value}"
        elif target.rank < prev.level.rank:
            lower = prev.level.laxer()
            since = marks.get(lower)
            waited = as_of - since if since is not None else 0.0
            if waited >= cooldown:
                if prev.level == PolicyLevel.feature_freeze:
                    eligible = True
                    reason = "budget recovered; eligible for approved unfreeze"
                else:
                    new_level = lower
                    reason = f"budget {worst.value} for {_duration(waited)}: relaxing to {new_level.value}"
            else:
                reason = f"budget {worst.value}; cool-down {_duration(cooldown - waited)} remaining"
        else:
            reason = f"budget {worst.value}; holding {prev.level.value}"

        if abs(new_level.rank - prev.level.rank) > 1:
            raise InvariantViolation(
                f"policy {service_id}: transition {prev.level.value} -> {new_level.value} skips a level"
            )

        changed = new_level != prev.level
        transition = None
        if changed:
            marks = {lvl: since for lvl, since in marks.items() if lvl.rank < new_level.rank}
            state = PolicyState(
                service_id=service_id,
                level=new_level,
                trigger_status=worst,
                entered_at=as_of,
                required_approval=self.required_approval(new_level),
                recovery_marks=tuple(sorted(marks.items(), key=lambda kv: kv[0].rank)),
                last_tick_at=as_of,
            )
            transition = PolicyTransition(
                service_id=service_id,
                from_level=prev.level,
                to_level=new_level,
                trigger_status=worst,
                reason=reason,
                at=as_of,
            )
        else:
            state = dataclasses.replace(
                prev,
                required_approval=self.required_approval(prev.level),
                recovery_marks=tuple(sorted(marks.items(), key=lambda kv: kv[0].rank)),
                unfreeze_eligible=eligible,
                last_tick_at=as_of,
            )
        return PolicyDecision(
            service_id=service_id,
            level=new_level,
            changed=changed,
            reason=reason,
            state=state,
            transition=transition,
        )

    def commit(self, decision: PolicyDecision) -> None:
        with self._lock:
            self._states[decision.service_id] = decision.state
            if decision.transition is not None:
                self._transitions.setdefault(decision.service_id, []).append(decision.transition)
        if decision.transition is not None:
            log.warning(
                "policy %s: %s -> %s (%s)",
                decision.service_id,
                decision.transition.from_level.value,
                decision.transition.to_level.value,
                decision.reason,
            )

    def tick(self, service_id: str, as_of: float) -> PolicyDecision:
        decision = self.plan(service_id, as_of)
        self.commit(decision)
        return decision

    def approve_unfreeze(
        self,
        service_id: str,
        approval_ref: str,
        approver_role: str,
        as_of: float,
        approved_by: Optional[str] = None,
    ) -> PolicyDecision:
        """Leave ``feature_freeze`` on a recorded approval once the budget has recovered."""
        if not str(approval_ref or "").strip():
            raise PolicyError("an approval reference is required to lift a feature freeze")
        current = self.state(service_id)
        if current.level != PolicyLevel.feature_freeze:
            raise PolicyError(f"service {service_id!r} is not frozen (level {current.level.value})")
        required = self.required_approval(PolicyLevel.feature_freeze)
        if required and approver_role != required:
            raise PolicyError(f"lifting a feature freeze requires approval from {required!r}")

        probe = self.plan(service_id, as_of)
        if not probe.state.unfreeze_eligible:
            raise PolicyError(f"service {service_id!r} is not yet eligible for unfreeze: {probe.reason}")

        new_level = PolicyLevel.feature_freeze.laxer()
        reason = f"unfreeze approved ({approval_ref})"
        worst = self.worst_status(service_id, as_of)
        marks = {lvl: since for lvl, since in probe.state.recovery_marks if lvl.rank < new_level.rank}
        decision = PolicyDecision(
            service_id=service_id,
            level=new_level,
            changed=True,
            reason=reason,
            state=PolicyState(
                service_id=service_id,
                level=new_level,
                trigger_status=worst,
                entered_at=as_of,
                required_approval=self.required_approval(new_level),
                recovery_marks=tuple(sorted(marks.items(), key=lambda kv: kv[0].rank)),
                approval_ref=approval_ref,
                last_tick_at=as_of,
            ),
            transition=PolicyTransition(
                service_id=service_id,
                from_level=PolicyLevel.feature_freeze,
                to_level=new_level,
                trigger_status=worst,
                reason=reason,
                at=as_of,
                approval_ref=approval_ref,
                approved_by=approved_by,
            ),
        )
        self.commit(decision)
        return decision
