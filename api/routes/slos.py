"""
Registration, supersession and retirement of SLI and SLO definitions.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from typing import List

from fastapi import APIRouter, Depends

from api.requests import SliRequest, SloRequest
from api.responses import SliResponse, SloResponse
from api.routes.exception import handle_exceptions
from services.engine_service import EngineService, get_engine_service

router = APIRouter(tags=["Registry"])


@router.post("/slis", summary="Register an SLI", status_code=201)
@handle_exceptions
async def register_sli(req: SliRequest, svc: EngineService = Depends(get_engine_service)) -> SliResponse:
    return SliResponse.build(svc.register_sli(req.to_definition()))


@router.get("/slis/{sli_id}", summary="Read an SLI")
@handle_exceptions
async def get_sli(sli_id: str, svc: EngineService = Depends(get_engine_service)) -> SliResponse:
    return SliResponse.build(svc.registry.get_sli(sli_id))


@router.post("/slos", summary="Register an SLO", status_code=201)
@handle_exceptions
async def register_slo(req: SloRequest, svc: EngineService = Depends(get_engine_service)) -> SloResponse:
    return SloResponse.build(svc.register_slo(req.to_definition()))


@router.get("/slos/{slo_id}", summary="Read an SLO")
@handle_exceptions
async def get_slo(slo_id: str, svc: EngineService = Depends(get_engine_service)) -> SloResponse:
    return SloResponse.build(svc.registry.get(slo_id))


@router.put("/slos/{slo_id}", summary="Supersede an SLO with a new definition")
@handle_exceptions
async def supersede_slo(
    slo_id: str,
    req: SloRequest,
    svc: EngineService = Depends(get_engine_service),
) -> SloResponse:
    return SloResponse.build(await svc.supersede(slo_id, req.to_definition()))


@router.delete("/slos/{slo_id}", summary="Retire an SLO")
@handle_exceptions
async def retire_slo(slo_id: str, svc: EngineService = Depends(get_engine_service)) -> SloResponse:
    return SloResponse.build(await svc.retire(slo_id))


@router.get("/services/{service_id}/slos", summary="List the SLOs of a service")
@handle_exceptions
async def list_slos(
    service_id: str,
    include_archived: bool = False,
    svc: EngineService = Depends(get_engine_service),
) -> List[SloResponse]:
    return [SloResponse.build(s) for s in svc.list_slos(service_id, include_archived)]
