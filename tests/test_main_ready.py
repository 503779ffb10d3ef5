"""
Readiness behavior tests for API health endpoint.
"""

from __future__ import annotations

import json

import pytest

import main as app_main
from config import METRICS_BACKEND_MIMIR, METRICS_BACKEND_VICTORIAMETRICS
from datasources.exceptions import BackendStartupTimeout
from services.engine_service import EngineService, set_engine_service


class DummySettings:
    metrics_backend = METRICS_BACKEND_MIMIR
    mimir_url = "http://mimir"
    victoriametrics_url = "http://victoriametrics"
    connector_timeout = 1
    startup_timeout = 1


@pytest.fixture
def engine_service(provider):
    svc = EngineService(tenant_id="tenant-a", provider=provider)
    set_engine_service(svc)
    yield svc
    set_engine_service(None)


@pytest.mark.asyncio
async def test_ready_endpoint_returns_503_with_backend_details_when_not_ready(engine_service):
    app_main._backend_ready = False
    app_main._backend_status = {"mimir": "failed: timeout"}
    response = await app_main.ready()
    payload = json.loads(response.body.decode("utf-8"))
    assert response.status_code == 503
    assert payload["ready"] is False
    assert payload["backends"]["mimir"].startswith("failed:")
    assert payload["scheduler"] == "stopped"


@pytest.mark.asyncio
async def test_wait_for_backend_sets_ready_false_on_failure(monkeypatch):
    probed = []

    async def fake_wait_for(name, url, timeout, headers=None, accept_status=(200,)):
        probed.append((name, url, headers))
        raise BackendStartupTimeout("mimir down")

    monkeypatch.setattr(app_main, "wait_for", fake_wait_for)
    app_main._backend_ready = True
    app_main._backend_status = {}

    await app_main._wait_for_backend_bg(DummySettings(), "tenant-a")

    assert app_main._backend_ready is False
    assert app_main._backend_status[METRICS_BACKEND_MIMIR].startswith("failed:")
    assert probed == [(METRICS_BACKEND_MIMIR, "http://mimir/ready", {"X-Scope-OrgID": "tenant-a"})]


@pytest.mark.asyncio
async def test_wait_for_backend_marks_ready(monkeypatch, engine_service):
    async def fake_wait_for(name, url, timeout, headers=None, accept_status=(200,)):
        return None

    monkeypatch.setattr(app_main, "wait_for", fake_wait_for)
    app_main._backend_ready = False
    app_main._backend_status = {}

    settings = DummySettings()
    settings.metrics_backend = METRICS_BACKEND_VICTORIAMETRICS
    assert app_main._metrics_probe(settings, "tenant-a") == (
        METRICS_BACKEND_VICTORIAMETRICS,
        "http://victoriametrics/health",
    )
    await app_main._wait_for_backend_bg(settings, "tenant-a")

    assert app_main._backend_ready is True
    response = await app_main.ready()
    assert response.status_code == 200
