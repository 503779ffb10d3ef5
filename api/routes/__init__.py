"""
Routes initialization for API endpoints.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.routes.health import router as health_router
from api.routes.slos import router as slos_router
from api.routes.budget import router as budget_router
from api.routes.alerts import router as alerts_router
from api.routes.policy import router as policy_router
from api.routes.report import router as report_router
from api.routes.tick import router as tick_router
from services.engine_service import EngineService, get_engine_service


def tenant_guard(request: Request, svc: EngineService = Depends(get_engine_service)) -> None:
    # probes carry no caller; everything else must be for the tenant this engine serves
    caller = getattr(request.state, "caller", None)
    if caller is not None and caller.tenant_id != svc.tenant_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Caller context is for another tenant")


router = APIRouter(dependencies=[Depends(tenant_guard)])

for _sub in (health_router, slos_router, budget_router, alerts_router, policy_router, report_router, tick_router):
    router.include_router(_sub)

__all__ = ["router", "tenant_guard"]
