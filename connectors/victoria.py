"""
VictoriaMetrics Connector

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""
from typing import Any, Dict, Optional

from datasources.base import MetricsConnector
from datasources.helpers import fetch_json
from config import DATASOURCE_TIMEOUT


class VictoriaMetricsConnector(MetricsConnector):
    health_path = "/health"

    def __init__(
        self,
        base_url: str,
        tenant_id: str,
        timeout: int = DATASOURCE_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(tenant_id, base_url, timeout, headers)

    async def query_range(
        self,
        query: str,
        start: float,
        end: float,
        step: str,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/api/v1/query_range"
        params: Dict[str, Any] = {"query": query, "start": start, "end": end, "step": step}
        return await fetch_json(
            url,
            params=params,
            headers=self._headers(),
            timeout=self.timeout,
            invalid_msg="VictoriaMetrics query failed",
            timeout_msg="VictoriaMetrics query timed out",
            unavailable_msg="Cannot reach VictoriaMetrics at",
        )
