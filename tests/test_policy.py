"""
Test cases for the release policy state machine.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import pytest

from engine.budget.events import BudgetConsumptionEvent, event_id_for
from engine.budget.tracker import ErrorBudgetTracker
from engine.enums import BudgetStatus, PolicyLevel
from engine.errors import PolicyError
from engine.policy.machine import PolicyEngine
from engine.registry import SloRegistry
from factories import ratio_sli, ratio_slo

T0 = 1_700_000_000.0
COOLDOWN = 600.0


@pytest.fixture
def engine():
    # one-hour window at 99% leaves a 36 second budget
    registry = SloRegistry()
    registry.register_sli(ratio_sli())
    registry.register(ratio_slo(target=99.0, window=3600.0))
    return PolicyEngine(registry, ErrorBudgetTracker(registry), cooldown_seconds=COOLDOWN)


def _bad(engine, start, duration):
    engine.tracker.record_consumption(
        "avail",
        BudgetConsumptionEvent(
            event_id=event_id_for("avail", start, duration), slo_id="avail", start=start, duration=duration,
        ),
    )


def _freeze(engine):
    _bad(engine, T0 - 100, 40)
    for i in range(3):
        engine.tick("checkout", T0 + i)
    assert engine.state("checkout").level == PolicyLevel.feature_freeze


def test_healthy_service_stays_normal(engine):
    decision = engine.tick("checkout", T0)
    assert decision.level == PolicyLevel.normal
    assert not decision.changed
    assert engine.transitions("checkout") == []


def test_degradation_moves_one_level_per_tick(engine):
    _bad(engine, T0 - 100, 40)
    levels = [engine.tick("checkout", T0 + i).level for i in range(4)]
    assert levels == [
        PolicyLevel.increased_scrutiny,
        PolicyLevel.restricted_releases,
        PolicyLevel.feature_freeze,
        PolicyLevel.feature_freeze,
    ]
    transitions = engine.transitions("checkout")
    assert [(t.from_level, t.to_level) for t in transitions] == [
        (PolicyLevel.normal, PolicyLevel.increased_scrutiny),
        (PolicyLevel.increased_scrutiny, PolicyLevel.restricted_releases),
        (PolicyLevel.restricted_releases, PolicyLevel.feature_freeze),
    ]
    assert all(t.trigger_status == BudgetStatus.exhausted for t in transitions)
    assert engine.state("checkout").required_approval == "vp_engineering"


def test_recovery_waits_for_cooldown(engine):
    _bad(engine, T0 - 100, 30)
    assert engine.tick("checkout", T0).level == PolicyLevel.increased_scrutiny

    recovered = T0 + 3600
    assert engine.tick("checkout", recovered).level == PolicyLevel.increased_scrutiny
    assert engine.tick("checkout", recovered + COOLDOWN - 1).level == PolicyLevel.increased_scrutiny
    relaxed = engine.tick("checkout", recovered + COOLDOWN)
    assert relaxed.changed
    assert relaxed.level == PolicyLevel.normal


def test_relapse_restarts_cooldown(engine):
    _bad(engine, T0 - 100, 30)
    engine.tick("checkout", T0)
    recovered = T0 + 3600
    engine.tick("checkout", recovered)
    _bad(engine, recovered + 10, 30)
    held = engine.tick("checkout", recovered + 50)
    assert held.level == PolicyLevel.increased_scrutiny
    assert held.state.recovery_marks == ()


def test_metrics_alone_never_lift_a_freeze(engine):
    _freeze(engine)
    recovered = T0 + 3600
    engine.tick("checkout", recovered)
    late = engine.tick("checkout", recovered + 10 * COOLDOWN)
    assert late.level == PolicyLevel.feature_freeze
    assert late.state.unfreeze_eligible


def test_unfreeze_requires_eligibility_and_role(engine):
    _freeze(engine)
    recovered = T0 + 3600
    engine.tick("checkout", recovered)

    with pytest.raises(PolicyError):
        engine.approve_unfreeze("checkout", "CHG-1", "vp_engineering", recovered)

    engine.tick("checkout", recovered + COOLDOWN)
    assert engine.state("checkout").unfreeze_eligible

    with pytest.raises(PolicyError):
        engine.approve_unfreeze("checkout", "CHG-1", "engineering_manager", recovered + COOLDOWN)
    with pytest.raises(PolicyError):
        engine.approve_unfreeze("checkout", "  ", "vp_engineering", recovered + COOLDOWN)

    decision = engine.approve_unfreeze(
        "checkout", "CHG-1", "vp_engineering", recovered + COOLDOWN, approved_by="dana",
    )
    assert decision.level == PolicyLevel.restricted_releases
    assert decision.transition.approval_ref == "CHG-1"
    assert decision.transition.approved_by == "dana"
    assert decision.change.requires_approval_from == "engineering_manager"
    assert engine.state("checkout").approval_ref == "CHG-1"


def test_unfreeze_rejected_when_not_frozen(engine):
    with pytest.raises(PolicyError):
        engine.approve_unfreeze("checkout", "CHG-1", "vp_engineering", T0)


def test_overrides_take_precedence_over_computed_status(engine):
    decision = engine.plan("checkout", T0, overrides={"avail": BudgetStatus.critical})
    assert decision.level == PolicyLevel.increased_scrutiny
    assert engine.state("checkout").level == PolicyLevel.normal
