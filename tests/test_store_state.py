import pytest

from engine.alerting.engine import AlertState
from engine.enums import BudgetStatus, PolicyLevel
from engine.policy.machine import PolicyState
from store import state as state_store
from store.client import _fallback, redis_set
from store import keys


@pytest.mark.asyncio
async def test_alert_and_policy_state_round_trip():
    alert = AlertState(slo_id="avail", rule="page", firing=True, fired_at=10.0, short_burn_rate=20.0)
    policy = PolicyState(
        service_id="checkout",
        level=PolicyLevel.feature_freeze,
        trigger_status=BudgetStatus.exhausted,
        required_approval="vp_engineering",
        recovery_marks=((PolicyLevel.normal, 5.0), (PolicyLevel.restricted_releases, 5.0)),
    )
    await state_store.save_alert("t1", alert)
    await state_store.save_policy("t1", policy)
    await state_store.save_watermark("t1", "avail", 123.0)

    assert await state_store.load_alerts("t1") == [alert]
    assert await state_store.load_policies("t1") == [policy]
    assert await state_store.load_watermark("t1", "avail") == 123.0
    assert await state_store.load_alerts("t2") == []


@pytest.mark.asyncio
async def test_forget_slo_drops_its_keys():
    await state_store.save_alert("t1", AlertState(slo_id="avail", rule="page"))
    await state_store.save_watermark("t1", "avail", 1.0)
    await state_store.forget_slo("t1", "avail", ["page"])
    assert _fallback == {}


@pytest.mark.asyncio
async def test_unreadable_entries_are_skipped():
    await redis_set(keys.policy_state("t1", "broken"), "{not json")
    await redis_set(keys.watermark("t1", "avail"), "\"soon\"")
    assert await state_store.load_policies("t1") == []
    assert await state_store.load_watermark("t1", "avail") is None
