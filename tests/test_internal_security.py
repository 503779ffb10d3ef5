"""
Test Internal Security logic for the SLO engine API, including authentication of internal service
requests, context propagation and the approver role carried by the signed context token.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import asyncio
import json

import jwt
import pytest
from fastapi import HTTPException
from starlette.responses import JSONResponse

from api.security import (
    CallerContext,
    InternalAuthMiddleware,
    caller_from_claims,
    current_caller,
    require_approver,
    require_caller,
    reset_caller,
    set_caller,
)
from config import settings


def _headers(payload):
    token = jwt.encode(payload, settings.context_verify_key, algorithm="HS256")
    return {
        "x-service-token": settings.expected_service_token,
        "authorization": f"Bearer {token}",
    }


@pytest.fixture(autouse=True)
def _security_defaults(monkeypatch):
    monkeypatch.setattr(settings, "expected_service_token", "internal-service-token")
    monkeypatch.setattr(settings, "context_verify_key", "very-secret-signing-key")
    monkeypatch.setattr(settings, "context_issuer", "holdfast-gateway")
    monkeypatch.setattr(settings, "context_audience", "holdfast")
    monkeypatch.setattr(settings, "context_algorithms", "HS256")


def _claims(**extra):
    return {
        "iss": settings.context_issuer,
        "aud": settings.context_audience,
        "iat": 1_700_000_000,
        "exp": 4_700_000_000,
        "tenant_id": "tenant-from-context",
        "user_id": "u1",
        "username": "alice",
        **extra,
    }


async def _run_request(path: str, headers: dict[str, str]):
    async def app(scope, receive, send):
        ctx = current_caller()
        payload = {"tenant_id": ctx.tenant_id, "role": ctx.role} if ctx else {}
        response = JSONResponse(payload)
        await response(scope, receive, send)

    middleware = InternalAuthMiddleware(app)

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("ascii"),
        "query_string": b"",
        "headers": [(k.encode("latin1"), v.encode("latin1")) for k, v in headers.items()],
        "client": ("127.0.0.1", 12345),
        "server": ("testserver", 80),
    }

    messages: list[dict] = []

    async def receive():
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(message):
        messages.append(message)

    await middleware(scope, receive, send)

    status = next(m["status"] for m in messages if m["type"] == "http.response.start")
    body = b"".join(m.get("body", b"") for m in messages if m["type"] == "http.response.body")
    data = json.loads(body.decode("utf-8")) if body else {}
    return status, data


def test_missing_service_token_rejected():
    status, _ = asyncio.run(_run_request("/api/v1/slos/x", headers={}))
    assert status == 401


def test_invalid_context_token_rejected():
    status, _ = asyncio.run(
        _run_request(
            "/api/v1/slos/x",
            headers={"x-service-token": settings.expected_service_token, "authorization": "Bearer invalid"},
        )
    )
    assert status == 401


def test_expired_context_token_rejected():
    status, data = asyncio.run(_run_request("/api/v1/slos/x", headers=_headers(_claims(exp=1_700_000_100))))
    assert status == 401
    assert data["detail"] == "Context token expired"


def test_public_paths_skip_authentication():
    status, data = asyncio.run(_run_request("/api/v1/health", headers={}))
    assert status == 200
    assert data == {}


def test_valid_context_carries_tenant_and_role():
    status, payload = asyncio.run(_run_request("/api/v1/slos/x", headers=_headers(_claims(role="vp_engineering"))))
    assert status == 200
    assert payload == {"tenant_id": "tenant-from-context", "role": "vp_engineering"}


def test_role_defaults_to_user():
    status, payload = asyncio.run(_run_request("/api/v1/slos/x", headers=_headers(_claims())))
    assert status == 200
    assert payload["role"] == "user"


def test_user_id_falls_back_to_subject_claim():
    caller = caller_from_claims({"tenant_id": "t1", "sub": "svc-deployer"})
    assert caller == CallerContext(tenant_id="t1", user_id="svc-deployer", username="", role="user")

    with pytest.raises(HTTPException) as exc:
        caller_from_claims({"user_id": "u1"})
    assert exc.value.status_code == 401


class _Req:
    class state:
        pass


def test_require_caller_falls_back_to_context_var():
    with pytest.raises(HTTPException) as exc:
        require_caller(_Req())
    assert exc.value.status_code == 401

    caller = CallerContext(tenant_id="ctx-tenant", user_id="u1", username="alice", role="service_owner")
    token = set_caller(caller)
    try:
        assert require_caller(_Req()) is caller
        assert require_approver(_Req()).approver == "u1"
    finally:
        reset_caller(token)


def test_approval_needs_an_identified_caller():
    token = set_caller(CallerContext(tenant_id="t1", user_id="", username="", role="vp_engineering"))
    try:
        with pytest.raises(HTTPException) as exc:
            require_approver(_Req())
        assert exc.value.status_code == 403
    finally:
        reset_caller(token)
