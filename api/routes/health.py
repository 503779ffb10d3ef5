"""
Liveness route reporting state store, history database and scheduler activity.

Copyright (c) 2026 Stefan Kumarasinghe
Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import asyncio
from typing import Any, Dict

from fastapi import APIRouter, Depends

from database import connection_test
from store.client import get_redis, is_using_fallback
from api.routes.exception import handle_exceptions
from services.engine_service import EngineService, get_engine_service

router = APIRouter(tags=["Health"])


@router.get("/health")
@handle_exceptions
async def health(svc: EngineService = Depends(get_engine_service)) -> Dict[str, Any]:
    await get_redis()
    database = "disabled"
    if svc.history is not None:
        database = "ok" if await asyncio.to_thread(connection_test) else "unreachable"
    return {
        "status": "ok",
        "store": "fallback" if is_using_fallback() else "redis",
        "database": database,
        "scheduler": "running" if svc.scheduler.running else "stopped",
        "rounds": svc.scheduler.rounds,
        "active_slos": len(svc.registry.active()),
    }
