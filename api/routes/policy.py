"""
Release policy state, transition history and approved unfreeze.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from fastapi import APIRouter, Depends

from api.requests import UnfreezeRequest
from api.responses import PolicyStateResponse
from api.routes.exception import handle_exceptions
from api.security import CallerContext, require_approver
from services.engine_service import EngineService, get_engine_service

router = APIRouter(tags=["Policy"])


@router.get("/services/{service_id}/policy", summary="Current release policy and its history")
@handle_exceptions
async def get_policy(service_id: str, svc: EngineService = Depends(get_engine_service)) -> PolicyStateResponse:
    state, transitions = svc.policy_state(service_id)
    return PolicyStateResponse.build(state, transitions)


@router.post("/services/{service_id}/policy/unfreeze", summary="Lift a feature freeze on approval")
@handle_exceptions
async def unfreeze(
    service_id: str,
    req: UnfreezeRequest,
    caller: CallerContext = Depends(require_approver),
    svc: EngineService = Depends(get_engine_service),
) -> PolicyStateResponse:
    # the approver role comes from the signed context, never from the request body
    await svc.approve_unfreeze(service_id, req.approval_ref, caller.role, approved_by=caller.approver)
    state, transitions = svc.policy_state(service_id)
    return PolicyStateResponse.build(state, transitions)
