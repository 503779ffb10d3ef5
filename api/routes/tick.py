"""
On-demand evaluation outside the scheduler cadence.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from fastapi import APIRouter, Depends

from api.responses import ServiceTickResponse, TickResponse
from api.routes.exception import handle_exceptions
from services.engine_service import EngineService, get_engine_service

router = APIRouter(tags=["Evaluation"])


@router.post("/slos/{slo_id}/tick", summary="Evaluate one SLO now")
@handle_exceptions
async def tick_slo(slo_id: str, svc: EngineService = Depends(get_engine_service)) -> TickResponse:
    return TickResponse.build(await svc.tick_slo(slo_id))


@router.post("/services/{service_id}/tick", summary="Evaluate every SLO of a service and its policy now")
@handle_exceptions
async def tick_service(service_id: str, svc: EngineService = Depends(get_engine_service)) -> ServiceTickResponse:
    return ServiceTickResponse.build(await svc.tick_service(service_id))
