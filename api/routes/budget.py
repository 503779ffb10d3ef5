"""
Error budget reads and manual consumption events.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from typing import List, Optional

from fastapi import APIRouter, Depends

from api.requests import ConsumptionRequest, consumption_event
from api.responses import BudgetResponse, ConsumptionEventResponse, RecordConsumptionResponse
from api.routes.exception import handle_exceptions
from engine.budget.events import event_id_for
from services.engine_service import EngineService, get_engine_service

router = APIRouter(tags=["Budget"])


@router.get("/slos/{slo_id}/budget", summary="Error budget snapshot")
@handle_exceptions
async def get_budget(
    slo_id: str,
    as_of: Optional[float] = None,
    svc: EngineService = Depends(get_engine_service),
) -> BudgetResponse:
    return BudgetResponse.build(svc.budget(slo_id, as_of))


@router.get("/slos/{slo_id}/events", summary="Budget consumption events")
@handle_exceptions
async def list_events(slo_id: str, svc: EngineService = Depends(get_engine_service)) -> List[ConsumptionEventResponse]:
    return [ConsumptionEventResponse.build(e) for e in svc.events(slo_id)]


@router.post("/slos/{slo_id}/events", summary="Record a manual consumption event", status_code=201)
@handle_exceptions
async def record_event(
    slo_id: str,
    req: ConsumptionRequest,
    svc: EngineService = Depends(get_engine_service),
) -> RecordConsumptionResponse:
    event = consumption_event(slo_id, req, req.event_id or event_id_for(slo_id, req.start, float(req.duration)))
    recorded = await svc.record_consumption(event)
    return RecordConsumptionResponse(
        recorded=recorded,
        event=ConsumptionEventResponse.build(event),
        budget=BudgetResponse.build(svc.budget(slo_id)),
    )
