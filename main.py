"""
Entry point for the Holdfast SLO compliance and error-budget engine API server.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from api.routes import router
from api.security import InternalAuthMiddleware
from datasources.data_config import DataSourceSettings
from datasources.factory import DataSourceFactory
from config import settings
from database import init_database, init_db, dispose_database
from datasources.exceptions import BackendStartupTimeout
from services.engine_service import EngineService, get_engine_service, set_engine_service
from services.history_service import HistoryService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    stream=sys.stdout,
)
log = logging.getLogger(__name__)

_backend_ready = False
_backend_status: Dict[str, str] = {}


async def wait_for(
    name: str,
    url: str,
    timeout: float,
    headers: Optional[Dict[str, str]] = None,
    accept_status: tuple = (200, 204),
) -> None:
    deadline = time.monotonic() + timeout
    attempt = 0
    async with httpx.AsyncClient() as client:
        while time.monotonic() < deadline:
            attempt += 1
            try:
                resp = await client.get(url, headers=headers or {}, timeout=3.0)
                if resp.status_code in accept_status:
                    log.info("%s ready (attempt %d, status %d)", name, attempt, resp.status_code)
                    return
                log.debug("%s probe returned %d (attempt %d)", name, resp.status_code, attempt)
            except Exception as exc:
                log.debug("%s not reachable (attempt %d): %s", name, attempt, exc)
            await asyncio.sleep(2)
    raise BackendStartupTimeout(f"{name} did not become ready within {timeout}s")


def _metrics_probe(source: DataSourceSettings, tenant_id: str) -> tuple[str, str]:
    connector = DataSourceFactory.create_metrics(source, tenant_id)
    return source.metrics_backend, connector.health_url


async def _wait_for_backend_bg(source: DataSourceSettings, tenant_id: str) -> None:
    global _backend_ready

    name, url = _metrics_probe(source, tenant_id)
    _backend_status[name] = "waiting"
    log.info("metrics backend readiness check starting (timeout=%ds) ...", source.startup_timeout)
    try:
        await wait_for(name, url, source.startup_timeout, headers={"X-Scope-OrgID": tenant_id}, accept_status=(200,))
    except BackendStartupTimeout as exc:
        log.error("%s failed readiness: %s", name, exc)
        _backend_status[name] = f"failed: {exc}"
        _backend_ready = False
        return
    _backend_status[name] = "ready"
    _backend_ready = True
    log.info("metrics backend ready; evaluations will use live data")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    history = None
    if settings.database_url:
        init_database(settings.database_url)
        init_db()
        history = HistoryService(settings.default_tenant_id)

    service = EngineService(tenant_id=settings.default_tenant_id, history=history)
    set_engine_service(service)
    await service.startup()

    readiness_task = asyncio.create_task(_wait_for_backend_bg(DataSourceSettings(), service.tenant_id))
    service.scheduler.start()
    try:
        yield
    finally:
        readiness_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await readiness_task
        await service.scheduler.stop()
        set_engine_service(None)
        dispose_database()


app = FastAPI(
    title="Holdfast",
    description="SLO compliance tracking, error budgets, burn-rate alerting and release policy.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(InternalAuthMiddleware)
app.include_router(router, prefix="/api/v1")


@app.get("/api/v1/ready", tags=["health"], summary="Metrics backend readiness probe")
async def ready() -> JSONResponse:
    code = 200 if _backend_ready else 503
    service = get_engine_service()
    return JSONResponse(
        status_code=code,
        content={
            "ready": _backend_ready,
            "backends": _backend_status,
            "scheduler": "running" if service.scheduler.running else "stopped",
        },
    )


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=4330,
        log_level="info",
        access_log=True,
    )
