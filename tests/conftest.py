import asyncio
import os
import sys
from typing import Callable, Dict, List, Optional

import pytest

# ensure workspace root is on sys.path so our application packages can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from store.client import _fallback

from factories import T0


@pytest.fixture(autouse=True)
def clear_fallback(monkeypatch):
    """Keep every test on the in-memory store with a clean slate."""
    _fallback.clear()
    import store.client as client

    async def no_redis():
        return None

    monkeypatch.setattr(client, "get_redis", no_redis)
    yield
    _fallback.clear()


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    from config import settings

    monkeypatch.setattr(settings, "retry_delay_seconds", 0.0)
    monkeypatch.setattr(settings, "retry_attempts", 3)


class Clock:
    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: List = []

    async def send(self, notification) -> None:
        self.sent.append(notification)


class RecordingGate:
    def __init__(self) -> None:
        self.published: List = []

    async def publish(self, change) -> None:
        self.published.append(change)


class FakeProvider:
    """Answers range queries from per-query value functions in Prometheus matrix shape."""

    def __init__(self) -> None:
        self.series: Dict[str, Callable[[float], Optional[float]]] = {}
        self.failures: List[Exception] = []
        self.calls: List[tuple] = []
        self.gate_event: Optional[asyncio.Event] = None
        self.started = asyncio.Event()
        self.notifier = RecordingNotifier()
        self.gate = RecordingGate()

    async def query_metrics(self, query, start, end, step):
        self.calls.append((query, start, end))
        self.started.set()
        if self.gate_event is not None:
            await self.gate_event.wait()
        if self.failures:
            raise self.failures.pop(0)
        fn = self.series.get(query)
        step_seconds = float(str(step).rstrip("s"))
        values = []
        ts = start
        while ts <= end:
            value = fn(ts) if fn else None
            if value is not None:
                values.append([ts, str(value)])
            ts += step_seconds
        return {"status": "success", "data": {"resultType": "matrix", "result": [{"metric": {}, "values": values}]}}


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def provider():
    return FakeProvider()
