"""
Caller authentication for the internal API.

Every /api/v1 call outside the probes carries the shared service token and a
signed context token. The context names the tenant the call is for and the
caller; unfreeze approvals are checked against the caller's role.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass
from hmac import compare_digest
from typing import Any, Dict, List, Optional

import jwt
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from config import settings

PUBLIC_PATHS = frozenset({"/api/v1/ready", "/api/v1/health"})
DEFAULT_ROLE = "user"

_caller: ContextVar[Optional["CallerContext"]] = ContextVar("holdfast_caller", default=None)


@dataclass(frozen=True)
class CallerContext:
    tenant_id: str
    user_id: str
    username: str
    role: str = DEFAULT_ROLE

    @property
    def approver(self) -> str:
        return self.user_id or self.username


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _algorithms() -> List[str]:
    names = [v.strip() for v in str(settings.context_algorithms or "").split(",")]
    return [n for n in names if n] or ["HS256"]


def _bearer(header: Optional[str]) -> str:
    if not header:
        raise _unauthorized("Missing authorization header")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Invalid authorization header")
    return token.strip()


def _claims(token: str) -> Dict[str, Any]:
    if not settings.context_verify_key:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Missing context verify key")
    try:
        return jwt.decode(
            token,
            settings.context_verify_key,
            algorithms=_algorithms(),
            audience=settings.context_audience,
            issuer=settings.context_issuer,
            options={"require": ["exp", "iat", "iss", "aud"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise _unauthorized("Context token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise _unauthorized("Invalid context token") from exc


def caller_from_claims(claims: Dict[str, Any]) -> CallerContext:
    tenant_id = str(claims.get("tenant_id") or "").strip()
    if not tenant_id:
        raise _unauthorized("Missing tenant context")
    return CallerContext(
        tenant_id=tenant_id,
        user_id=str(claims.get("user_id") or claims.get("sub") or ""),
        username=str(claims.get("username") or ""),
        role=str(claims.get("role") or DEFAULT_ROLE),
    )


def authenticate(request: Request) -> CallerContext:
    expected = settings.expected_service_token
    if not expected:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Missing expected service token")
    if not compare_digest(request.headers.get("x-service-token", ""), expected):
        raise _unauthorized("Invalid service token")
    return caller_from_claims(_claims(_bearer(request.headers.get("authorization"))))


def set_caller(caller: CallerContext) -> Token:
    return _caller.set(caller)


def reset_caller(token: Token) -> None:
    _caller.reset(token)


def current_caller() -> Optional[CallerContext]:
    return _caller.get()


class InternalAuthMiddleware:
    """Pure ASGI middleware; probes pass through, everything else under /api/v1 is authenticated."""

    def __init__(self, app) -> None:
        self.app = app

    async def __call__(self, scope, receive, send):
        path = str(scope.get("path", ""))
        if scope.get("type") != "http" or not path.startswith("/api/v1") or path in PUBLIC_PATHS:
            await self.app(scope, receive, send)
            return

        try:
            caller = authenticate(Request(scope, receive=receive))
        except HTTPException as exc:
            await JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})(scope, receive, send)
            return

        scope.setdefault("state", {})["caller"] = caller
        token = set_caller(caller)
        try:
            await self.app(scope, receive, send)
        finally:
            reset_caller(token)


def require_caller(request: Request) -> CallerContext:
    caller = getattr(request.state, "caller", None) or current_caller()
    if caller is None:
        raise _unauthorized("Missing caller context")
    return caller


def require_approver(request: Request) -> CallerContext:
    caller = require_caller(request)
    if not caller.approver:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Approval requires an identified caller")
    return caller
