"""
Shared helper functions for data source and webhook connectors.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from datasources.exceptions import SourceUnavailable, InvalidQuery, QueryTimeout


def _status_error(e: httpx.HTTPStatusError, invalid_msg: str, unavailable_msg: str, url: str) -> Exception:
    code = e.response.status_code
    # 4xx means the request itself is wrong; anything else may succeed on retry
    if 400 <= code < 500 and code != 429:
        return InvalidQuery(f"{invalid_msg} [{code}]: {e.response.text}", status_code=code)
    return SourceUnavailable(f"{unavailable_msg} {url} [{code}]", status_code=code)


async def fetch_json(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: int = 10,
    invalid_msg: str = "query failed",
    timeout_msg: str = "query timed out",
    unavailable_msg: str = "Cannot reach data source at",
) -> Dict[str, Any]:
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.get(url, params=params, headers=headers)
            resp.raise_for_status()
            return resp.json()
    except httpx.HTTPStatusError as e:
        raise _status_error(e, invalid_msg, unavailable_msg, url) from e
    except httpx.TimeoutException as e:
        raise QueryTimeout(timeout_msg) from e
    except httpx.RequestError as e:
        raise SourceUnavailable(f"{unavailable_msg} {url}") from e


async def post_json(
    url: str,
    payload: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
    timeout: int = 10,
    invalid_msg: str = "delivery rejected",
    timeout_msg: str = "delivery timed out",
    unavailable_msg: str = "Cannot reach receiver at",
) -> None:
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(url, json=payload, headers=headers)
            resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise _status_error(e, invalid_msg, unavailable_msg, url) from e
    except httpx.TimeoutException as e:
        raise QueryTimeout(timeout_msg) from e
    except httpx.RequestError as e:
        raise SourceUnavailable(f"{unavailable_msg} {url}") from e
