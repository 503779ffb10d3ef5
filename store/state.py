"""
Write-through persistence of alert states, policy states and evaluation watermarks.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any, Dict, List, Optional

from engine.alerting.engine import AlertState
from engine.enums import BudgetStatus, PolicyLevel
from engine.policy.machine import PolicyState
from store.client import redis_delete, redis_get, redis_scan, redis_set
from config import STATE_TTL
from store import keys

log = logging.getLogger(__name__)


def alert_to_dict(state: AlertState) -> Dict[str, Any]:
    return dataclasses.asdict(state)


def alert_from_dict(payload: Dict[str, Any]) -> AlertState:
    fields = {f.name for f in dataclasses.fields(AlertState)}
    return AlertState(**{k: v for k, v in payload.items() if k in fields})


def policy_to_dict(state: PolicyState) -> Dict[str, Any]:
    return {
        "service_id": state.service_id,
        "level": state.level.value,
        "trigger_status": state.trigger_status.value,
        "entered_at": state.entered_at,
        "required_approval": state.required_approval,
        "recovery_marks": [[lvl.value, since] for lvl, since in state.recovery_marks],
        "unfreeze_eligible": state.unfreeze_eligible,
        "approval_ref": state.approval_ref,
        "last_tick_at": state.last_tick_at,
    }


def policy_from_dict(payload: Dict[str, Any]) -> PolicyState:
    return PolicyState(
        service_id=str(payload["service_id"]),
        level=PolicyLevel(payload.get("level", PolicyLevel.normal.value)),
        trigger_status=BudgetStatus(payload.get("trigger_status", BudgetStatus.healthy.value)),
        entered_at=payload.get("entered_at"),
        required_approval=payload.get("required_approval"),
        recovery_marks=tuple(
            (PolicyLevel(lvl), float(since)) for lvl, since in payload.get("recovery_marks") or ()
        ),
        unfreeze_eligible=bool(payload.get("unfreeze_eligible", False)),
        approval_ref=payload.get("approval_ref"),
        last_tick_at=payload.get("last_tick_at"),
    )


async def save_alert(tenant_id: str, state: AlertState) -> None:
    await redis_set(
        keys.alert_state(tenant_id, state.slo_id, state.rule),
        json.dumps(alert_to_dict(state)),
        ttl=STATE_TTL,
    )


async def save_policy(tenant_id: str, state: PolicyState) -> None:
    await redis_set(keys.policy_state(tenant_id, state.service_id), json.dumps(policy_to_dict(state)), ttl=STATE_TTL)


async def save_watermark(tenant_id: str, slo_id: str, watermark: float) -> None:
    await redis_set(keys.watermark(tenant_id, slo_id), json.dumps(watermark), ttl=STATE_TTL)


async def load_watermark(tenant_id: str, slo_id: str) -> Optional[float]:
    raw = await redis_get(keys.watermark(tenant_id, slo_id))
    if not raw:
        return None
    try:
        return float(json.loads(raw))
    except (TypeError, ValueError) as exc:
        log.warning("ignoring unreadable watermark for %s: %s", slo_id, exc)
        return None


async def _load_all(pattern: str, parse) -> List[Any]:
    out: List[Any] = []
    for key in await redis_scan(pattern):
        raw = await redis_get(key)
        if not raw:
            continue
        try:
            out.append(parse(json.loads(raw)))
        except (TypeError, ValueError, KeyError) as exc:
            log.warning("ignoring unreadable state at %s: %s", key, exc)
    return out


async def load_alerts(tenant_id: str) -> List[AlertState]:
    return await _load_all(keys.alert_states(tenant_id), alert_from_dict)


async def load_policies(tenant_id: str) -> List[PolicyState]:
    return await _load_all(keys.policy_states(tenant_id), policy_from_dict)


async def forget_slo(tenant_id: str, slo_id: str, rules: List[str]) -> None:
    await redis_delete(keys.watermark(tenant_id, slo_id))
    for rule in rules:
        await redis_delete(keys.alert_state(tenant_id, slo_id, rule))
