"""
Periodic driver that ticks every registered service on a fixed cadence.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import List, Optional

from engine.enums import TickOutcome
from engine.orchestrator import Orchestrator, ServiceTick
from config import settings

log = logging.getLogger(__name__)


class Scheduler:
    def __init__(self, orchestrator: Orchestrator, interval_seconds: Optional[float] = None) -> None:
        self.orchestrator = orchestrator
        self.interval_seconds = float(
            interval_seconds if interval_seconds is not None else settings.tick_interval_seconds
        )
        self._task: Optional[asyncio.Task] = None
        self.rounds = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> List[ServiceTick]:
        ticks = await self.orchestrator.tick_all()
        self.rounds += 1
        committed = sum(
            1 for t in ticks for r in t.results if r.outcome == TickOutcome.committed
        )
        log.info("evaluation round %d: %d services, %d slo ticks committed", self.rounds, len(ticks), committed)
        return ticks

    async def _loop(self) -> None:
        while True:
            started = time.monotonic()
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.exception("evaluation round failed: %s", exc)
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        log.info("scheduler started, interval %.0fs", self.interval_seconds)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        log.info("scheduler stopped")
