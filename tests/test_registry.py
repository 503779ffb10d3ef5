"""
Test cases for the SLO registry: validation, identity, supersession and retirement.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import dataclasses

import pytest

from engine.enums import SloStatus
from engine.errors import NotFound, ValidationError
from engine.registry import SloRegistry
from factories import latency_sli, latency_slo, ratio_sli, ratio_slo, rule


@pytest.fixture
def registry():
    reg = SloRegistry()
    reg.register_sli(ratio_sli())
    reg.register_sli(latency_sli())
    return reg


def test_register_applies_defaults(registry):
    slo_id = registry.register(ratio_slo())
    slo = registry.get(slo_id)
    assert slo.status == SloStatus.active
    assert slo.objective == 99.9
    assert [r.name for r in slo.alert_rules] == ["page-fast", "page-slow", "ticket", "trend"]


def test_register_generates_id_when_missing(registry):
    slo_id = registry.register(ratio_slo(slo_id=""))
    assert slo_id
    assert registry.get(slo_id).service_id == "checkout"


def test_non_ratio_objective_is_time_slice_target(registry):
    slo = registry.get(registry.register(latency_slo()))
    assert slo.objective == 99.0
    assert slo.allowance == pytest.approx(0.01)


def test_validation_reports_every_violation(registry):
    bad = dataclasses.replace(
        ratio_slo(),
        service_id="",
        target=150.0,
        window_seconds=-1,
        alert_rules=(rule(short=600, long=300), rule(name="page", threshold=0)),
    )
    with pytest.raises(ValidationError) as exc:
        registry.register(bad)
    errors = exc.value.errors
    assert "service_id must be a non-empty string" in errors
    assert "window must be a positive duration" in errors
    assert "target must be in (0, 100] for ratio SLOs" in errors
    assert "alert rule names must be unique" in errors
    assert any("long window must be longer" in e for e in errors)
    assert any("threshold must be positive" in e for e in errors)
    assert registry.active() == []


def test_unknown_sli_and_missing_time_slice(registry):
    with pytest.raises(ValidationError) as exc:
        registry.register(ratio_slo(sli_id="nope"))
    assert exc.value.errors == ["referenced sli 'nope' does not exist"]

    with pytest.raises(ValidationError) as exc:
        registry.register(dataclasses.replace(latency_slo(), time_slice_target=None))
    assert "time_slice_target is required for non-ratio SLOs" in exc.value.errors


def test_sli_validation(registry):
    with pytest.raises(ValidationError) as exc:
        registry.register_sli(dataclasses.replace(ratio_sli(sli_id="x"), total_query=None))
    assert "ratio aggregation requires total_query" in exc.value.errors

    with pytest.raises(ValidationError):
        registry.register_sli(ratio_sli())


def test_duplicate_slo_id_rejected(registry):
    registry.register(ratio_slo())
    with pytest.raises(ValidationError):
        registry.register(ratio_slo())


def test_supersede_archives_old_definition(registry):
    registry.register(ratio_slo())
    new_id = registry.supersede("avail", ratio_slo(slo_id="avail-v2", target=99.5))
    old = registry.get("avail")
    assert old.status == SloStatus.archived
    assert old.superseded_by == new_id
    assert registry.get(new_id).target == 99.5
    assert [s.slo_id for s in registry.list_by_service("checkout")] == ["avail-v2"]
    assert len(registry.list_by_service("checkout", include_archived=True)) == 2

    with pytest.raises(ValidationError):
        registry.supersede("avail", ratio_slo(slo_id="avail-v3"))


def test_snapshot_is_unaffected_by_later_writes(registry):
    registry.register(ratio_slo())
    snap = registry.snapshot()
    registry.retire("avail")
    assert snap.get("avail").active
    assert not registry.get("avail").active
    assert not registry.is_active("avail")
    assert registry.services() == []


def test_unknown_lookups(registry):
    with pytest.raises(NotFound):
        registry.get("missing")
    with pytest.raises(NotFound):
        registry.get_sli("missing")
    assert registry.list_by_service("nobody") == []
