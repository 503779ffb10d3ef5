"""
Test cases for the sliding-window error budget tracker.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import math

import pytest

from engine.budget.events import BudgetConsumptionEvent, classify_severity, event_id_for
from engine.budget.tracker import ErrorBudgetTracker, classify
from engine.enums import BudgetStatus, Severity
from engine.errors import InvariantViolation
from engine.registry import SloRegistry
from factories import DAY, ratio_sli, ratio_slo

T0 = 1_700_000_000.0
WINDOW = 30 * DAY


@pytest.fixture
def tracker():
    registry = SloRegistry()
    registry.register_sli(ratio_sli())
    registry.register(ratio_slo(target=99.9, window=WINDOW))
    registry.register(ratio_slo(target=100.0, window=WINDOW, slo_id="perfect"))
    return ErrorBudgetTracker(registry)


def _event(start, duration, slo_id="avail"):
    return BudgetConsumptionEvent(
        event_id=event_id_for(slo_id, start, duration),
        slo_id=slo_id,
        start=start,
        duration=duration,
        cause="outage",
    )


def test_fresh_budget_is_full(tracker):
    budget = tracker.get_budget("avail", T0)
    assert budget.total == pytest.approx(2592.0)
    assert budget.consumed == 0
    assert budget.remaining == pytest.approx(2592.0)
    assert budget.remaining_fraction == pytest.approx(1.0)
    assert budget.status == BudgetStatus.healthy
    budget.check()


def test_consumed_plus_remaining_equals_total(tracker):
    tracker.record_consumption("avail", _event(T0 - 2000, 1000))
    budget = tracker.get_budget("avail", T0)
    assert budget.consumed == pytest.approx(1000.0)
    assert budget.consumed + budget.remaining == pytest.approx(budget.total)
    assert budget.status == BudgetStatus.healthy


def test_event_straddling_window_start_counts_only_overlap(tracker):
    window_start = T0 - WINDOW
    tracker.record_consumption("avail", _event(window_start - 720, 1200))
    assert tracker.get_budget("avail", T0).consumed == pytest.approx(480.0)


def test_event_outside_window_ages_out(tracker):
    tracker.record_consumption("avail", _event(T0 - WINDOW - 5000, 1200))
    budget = tracker.get_budget("avail", T0)
    assert budget.consumed == 0
    assert budget.status == BudgetStatus.healthy


def test_fast_burn_exhausts_with_overdraft(tracker):
    tracker.record_consumption("avail", _event(T0 - 3600, 3000))
    budget = tracker.get_budget("avail", T0)
    assert budget.status == BudgetStatus.exhausted
    assert budget.remaining == 0
    assert budget.overdraft == pytest.approx(408.0)
    budget.check()


def test_overlapping_events_are_not_double_counted(tracker):
    tracker.record_consumption("avail", _event(T0 - 1000, 100))
    tracker.record_consumption("avail", _event(T0 - 950, 100))
    assert tracker.get_budget("avail", T0).consumed == pytest.approx(150.0)


def test_recording_same_event_twice_is_idempotent(tracker):
    event = _event(T0 - 600, 60)
    assert tracker.record_consumption("avail", event) is True
    assert tracker.record_consumption("avail", event) is False
    assert len(tracker.events("avail")) == 1
    assert tracker.get_budget("avail", T0).consumed == pytest.approx(60.0)


def test_perfect_objective_tolerates_nothing(tracker):
    assert tracker.get_budget("perfect", T0).status == BudgetStatus.healthy
    tracker.record_consumption("perfect", _event(T0 - 10, 1, slo_id="perfect"))
    budget = tracker.get_budget("perfect", T0)
    assert budget.total == 0
    assert budget.status == BudgetStatus.exhausted
    assert math.isinf(budget.consumption_rate)
    budget.check()


def test_pending_events_are_included_without_being_stored(tracker):
    slo = tracker.registry.get("avail")
    budget = tracker.compute(slo, T0, pending=[_event(T0 - 60, 60)])
    assert budget.consumed == pytest.approx(60.0)
    assert tracker.events("avail") == []


def test_invalid_events_rejected(tracker):
    with pytest.raises(ValueError):
        tracker.record_consumption("avail", _event(T0, 10, slo_id="other"))
    with pytest.raises(ValueError):
        tracker.record_consumption("avail", _event(T0, 0))


def test_check_flags_broken_snapshot(tracker):
    import dataclasses

    budget = dataclasses.replace(tracker.get_budget("avail", T0), remaining=10.0)
    with pytest.raises(InvariantViolation):
        budget.check()


@pytest.mark.parametrize(
    "consumed,expected",
    [
        (0, BudgetStatus.healthy),
        (75, BudgetStatus.healthy),
        (80, BudgetStatus.warning),
        (95, BudgetStatus.critical),
        (100, BudgetStatus.exhausted),
        (130, BudgetStatus.exhausted),
    ],
)
def test_classify_thresholds(consumed, expected):
    remaining = max(0.0, 100.0 - consumed)
    assert classify(100.0, consumed, remaining, 0.25, 0.10) == expected


def test_event_severity_scales_with_burn():
    registry = SloRegistry()
    registry.register_sli(ratio_sli())
    slo = registry.get(registry.register(ratio_slo(target=99.9)))
    assert classify_severity(slo, 99.0, ratio_based=True) == Severity.critical
    assert classify_severity(slo, 99.5, ratio_based=True) == Severity.warning


def test_event_ids_are_stable():
    assert event_id_for("a", 10.0, 5.0) == event_id_for("a", 10.0, 5.0)
    assert event_id_for("a", 10.0, 5.0) != event_id_for("b", 10.0, 5.0)
