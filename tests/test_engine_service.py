"""
Test cases for the engine service: persistence write-through, restore and lookups.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import os

import pytest

from database import dispose_database, init_database, init_db
from engine.budget.events import BudgetConsumptionEvent
from engine.enums import PolicyLevel, TickOutcome
from engine.errors import NotFound
from services.engine_service import EngineService
from services.history_service import HistoryService
from store import state as state_store
from factories import T0, ratio_sli, ratio_slo, rule

EXAMPLE = os.path.join(os.path.dirname(__file__), "..", "slos.example.yaml")


def _service(provider, clock, history=None):
    svc = EngineService(tenant_id="t1", provider=provider, clock=clock, history=history)
    svc.register_sli(ratio_sli())
    svc.register_slo(ratio_slo(rules=[rule()]))
    svc.register_slo(ratio_slo(service="payments", slo_id="pay", target=99.0, window=3600.0, rules=[rule()]))
    return svc


def _failing(provider):
    provider.series["good"] = lambda ts: 900.0
    provider.series["total"] = lambda ts: 1000.0


@pytest.fixture
def history(tmp_path):
    init_database(f"sqlite:///{tmp_path / 'history.db'}")
    init_db()
    yield HistoryService("t1")
    dispose_database()


@pytest.mark.asyncio
async def test_restart_restores_alerts_watermarks_and_policy(provider, clock):
    _failing(provider)
    first = _service(provider, clock)
    await first.orchestrator.tick_all()
    assert first.alerting.state("avail", "page").firing

    second = _service(provider, clock)
    await second.restore()
    assert second.alerting.state("avail", "page").firing
    assert second.orchestrator.runtime("avail").watermark == T0
    assert second.policy.state("payments").level == PolicyLevel.increased_scrutiny


@pytest.mark.asyncio
async def test_history_survives_restart(provider, clock, history):
    _failing(provider)
    first = _service(provider, clock, history)
    await first.orchestrator.tick_all()
    manual = BudgetConsumptionEvent(event_id="manual-1", slo_id="avail", start=T0 - 7200, duration=120.0, cause="dns")
    assert await first.record_consumption(manual)

    second = _service(provider, clock, history)
    await second.restore()
    assert sorted(e.event_id for e in second.tracker.events("avail")) == sorted(
        e.event_id for e in first.tracker.events("avail")
    )
    assert second.budget("avail").consumed == pytest.approx(180.0)
    transitions = second.policy.transitions("payments")
    assert [(t.from_level, t.to_level) for t in transitions] == [
        (PolicyLevel.normal, PolicyLevel.increased_scrutiny)
    ]


@pytest.mark.asyncio
async def test_startup_loads_configuration(provider, clock):
    svc = EngineService(tenant_id="t1", provider=provider, clock=clock)
    loaded = await svc.startup(EXAMPLE)
    assert len(loaded.slo_ids) == 2
    assert len(svc.list_slos("checkout")) == 2


@pytest.mark.asyncio
async def test_supersede_starts_fresh_and_forgets_old_state(provider, clock):
    _failing(provider)
    svc = _service(provider, clock)
    await svc.tick_slo("avail")
    assert svc.budget("avail").consumed > 0

    replacement = await svc.supersede("avail", ratio_slo(slo_id="avail-v2", target=99.5, rules=[rule()]))
    assert replacement.slo_id == "avail-v2"
    assert svc.budget("avail-v2").consumed == 0
    assert await state_store.load_watermark("t1", "avail") is None
    assert [a.slo_id for a in await state_store.load_alerts("t1")] == []
    assert [s.slo_id for s in svc.list_slos("checkout", include_archived=True)] == ["avail", "avail-v2"]


@pytest.mark.asyncio
async def test_lookups_reject_unknown_identifiers(provider, clock):
    svc = _service(provider, clock)
    with pytest.raises(NotFound):
        await svc.tick_slo("missing")
    with pytest.raises(NotFound):
        await svc.tick_service("nobody")
    with pytest.raises(NotFound):
        svc.policy_state("nobody")
    with pytest.raises(NotFound):
        svc.alerts("missing")

    await svc.retire("pay")
    event = BudgetConsumptionEvent(event_id="e", slo_id="pay", start=T0 - 60, duration=10.0)
    with pytest.raises(NotFound):
        await svc.record_consumption(event)


@pytest.mark.asyncio
async def test_manual_tick_of_retired_slo_is_skipped(provider, clock):
    svc = _service(provider, clock)
    await svc.retire("avail")
    result = await svc.tick_slo("avail")
    assert result.outcome == TickOutcome.skipped
