"""
Burn-rate alert state per SLO.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from typing import List

from fastapi import APIRouter, Depends

from api.responses import AlertStateResponse
from api.routes.exception import handle_exceptions
from services.engine_service import EngineService, get_engine_service

router = APIRouter(tags=["Alerts"])


@router.get("/slos/{slo_id}/alerts", summary="Alert state of every rule of an SLO")
@handle_exceptions
async def get_alerts(slo_id: str, svc: EngineService = Depends(get_engine_service)) -> List[AlertStateResponse]:
    return [AlertStateResponse.build(s) for s in svc.alerts(slo_id)]
