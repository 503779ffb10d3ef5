"""
Test cases for the metrics source adapter: sample ordering, range filtering and call timeouts.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import asyncio

import pytest

from datasources.exceptions import QueryTimeout, SourceUnavailable
from engine.fetcher import MetricsSourceAdapter
from engine.series import TimeRange


class DummyProvider:
    def __init__(self, payload=None, delay=0.0):
        self.payload = payload
        self.delay = delay
        self.steps = []

    async def query_metrics(self, query, start, end, step):
        self.steps.append(step)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.payload


def _matrix(*series):
    return {"data": {"result": [{"metric": {}, "values": values} for values in series]}}


@pytest.mark.asyncio
async def test_query_returns_ascending_samples_within_range():
    provider = DummyProvider(_matrix([[130, "3"], [100, "1"], [115, "2"], [200, "9"]]))
    adapter = MetricsSourceAdapter(provider, timeout=1, step_seconds=15)
    samples = await adapter.query("up", TimeRange(100, 160))
    assert [s.timestamp for s in samples] == [100, 115, 130]
    assert [s.value for s in samples] == [1, 2, 3]
    assert provider.steps == ["15s"]


@pytest.mark.asyncio
async def test_query_sums_series_and_keeps_gaps():
    provider = DummyProvider(_matrix([[100, "1"], [115, "NaN"]], [[100, "2"], [130, "4"]]))
    adapter = MetricsSourceAdapter(provider, timeout=1, step_seconds=15)
    samples = await adapter.query("up", TimeRange(100, 160))
    assert [(s.timestamp, s.value) for s in samples] == [(100, 3.0), (130, 4.0)]


@pytest.mark.asyncio
async def test_query_timeout_raises_query_timeout():
    adapter = MetricsSourceAdapter(DummyProvider(_matrix([]), delay=1.0), timeout=0.01)
    with pytest.raises(QueryTimeout) as exc:
        await adapter.query("up", TimeRange(0, 60))
    assert isinstance(exc.value, SourceUnavailable)
