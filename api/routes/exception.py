"""
Centralized exception handling decorator for API route functions.

:func:`handle_exceptions` wraps an endpoint handler and translates engine
errors into :class:`fastapi.HTTPException` responses.  HTTPExceptions raised
by the handler pass through untouched.  Rejected definitions answer ``422``
with every violated constraint listed, unknown identifiers ``404``, refused
policy actions ``409``, malformed time ranges ``400`` and metrics source
failures ``502``.  Anything else becomes a ``500``.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import inspect
import logging
from functools import wraps
from typing import Any, Callable, TypeVar, cast

from fastapi import HTTPException

from datasources.exceptions import DataSourceError
from engine.errors import InvalidTimeRange, NotFound, PolicyError, ValidationError

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail={"errors": exc.errors})
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PolicyError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (InvalidTimeRange, ValueError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, DataSourceError):
        return HTTPException(status_code=502, detail=str(exc))
    log.exception("unhandled error in route: %s", exc)
    return HTTPException(status_code=500, detail=str(exc))


def handle_exceptions(func: F) -> F:
    """Decorator that converts uncaught exceptions to HTTP errors; works on sync and async handlers."""

    if inspect.iscoroutinefunction(func):
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                raise
            except Exception as exc:
                raise to_http(exc) from exc

        return cast(F, async_wrapper)

    @wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as exc:
            raise to_http(exc) from exc

    return cast(F, sync_wrapper)
