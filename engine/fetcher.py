"""
Metrics source adapter turning range queries into ordered sample sequences.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from datasources.exceptions import QueryTimeout
from engine.series import Sample, TimeRange, iter_samples
from config import settings

log = logging.getLogger(__name__)


def _step(seconds: float) -> str:
    return f"{max(1, int(round(seconds)))}s"


class MetricsSourceAdapter:
    """Wraps a provider exposing ``query_metrics``; every call is bounded by ``timeout``."""

    def __init__(self, provider: Any, timeout: Optional[float] = None, step_seconds: Optional[float] = None) -> None:
        self.provider = provider
        self.timeout = float(timeout if timeout is not None else settings.connector_timeout)
        self.step_seconds = float(step_seconds if step_seconds is not None else settings.metrics_step_seconds)

    async def query(self, descriptor: str, time_range: TimeRange) -> List[Sample]:
        try:
            raw = await asyncio.wait_for(
                self.provider.query_metrics(
                    query=descriptor,
                    start=time_range.start,
                    end=time_range.end,
                    step=_step(self.step_seconds),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise QueryTimeout(f"metrics query exceeded {self.timeout}s") from exc

        samples = [
            s for s in iter_samples(raw)
            if time_range.start <= s.timestamp <= time_range.end
        ]
        log.debug("query=%s range=[%s, %s] samples=%d", descriptor, time_range.start, time_range.end, len(samples))
        return samples
