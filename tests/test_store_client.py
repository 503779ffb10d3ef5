"""
Test Suite for the state store client running on its in-memory fallback

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import pytest

from store import client as store_client
from store import keys
from store.client import _fallback, redis_delete, redis_get, redis_scan, redis_set


@pytest.mark.asyncio
async def test_set_get_delete_watermark():
    key = keys.watermark("t1", "avail")
    await redis_set(key, "1700000000.0", ttl=60)
    assert await redis_get(key) == "1700000000.0"
    await redis_delete(key)
    assert await redis_get(key) is None


@pytest.mark.asyncio
async def test_scan_is_scoped_to_tenant_and_kind():
    await redis_set(keys.alert_state("t1", "avail", "page"), "{}")
    await redis_set(keys.alert_state("t2", "avail", "page"), "{}")
    await redis_set(keys.policy_state("t1", "checkout"), "{}")
    found = await redis_scan(keys.alert_states("t1"))
    assert found == [keys.alert_state("t1", "avail", "page")]


@pytest.mark.asyncio
async def test_full_fallback_drops_new_keys_but_updates_existing(monkeypatch):
    monkeypatch.setattr(store_client, "_MAX_FALLBACK_SIZE", 1)
    await redis_set("hf:t1:watermark:a", "1")
    await redis_set("hf:t1:watermark:b", "2")
    await redis_set("hf:t1:watermark:a", "3")
    assert _fallback == {"hf:t1:watermark:a": "3"}
