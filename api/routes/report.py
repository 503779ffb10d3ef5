"""
Per-service SLO health report.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from fastapi import APIRouter, Depends

from api.requests import ReportRequest
from api.responses import ReportResponse
from api.routes.exception import handle_exceptions
from services.engine_service import EngineService, get_engine_service

router = APIRouter(tags=["Report"])


@router.post("/services/{service_id}/report", summary="SLO health report over a time range")
@handle_exceptions
async def service_report(
    service_id: str,
    req: ReportRequest,
    svc: EngineService = Depends(get_engine_service),
) -> ReportResponse:
    return ReportResponse.build(svc.report(service_id, req.start, req.end, req.buckets))
