"""
Aggregation functions reducing raw samples to a single indicator value.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import numpy as np

from engine.series import Sample


def average(samples: Sequence[Sample]) -> Optional[float]:
    if not samples:
        return None
    return float(np.mean([s.value for s in samples]))


def percentile(samples: Sequence[Sample], p: float) -> Optional[float]:
    if not samples:
        return None
    return float(np.percentile([s.value for s in samples], p))


def rate(samples: Sequence[Sample], duration: float) -> Optional[float]:
    if not samples or duration <= 0:
        return None
    return float(np.sum([s.value for s in samples])) / duration


def aligned(good: Sequence[Sample], total: Sequence[Sample]) -> List[tuple]:
    """Pairs of (timestamp, good, total) for timestamps present in both series."""
    by_ts: Dict[float, float] = {s.timestamp: s.value for s in good}
    return [(t.timestamp, by_ts[t.timestamp], t.value) for t in total if t.timestamp in by_ts]


def ratio(pairs: Sequence[tuple]) -> Optional[float]:
    """Good over total as a percentage; ``None`` when there were no events at all."""
    good = float(np.sum([p[1] for p in pairs])) if pairs else 0.0
    total = float(np.sum([p[2] for p in pairs])) if pairs else 0.0
    if total <= 0:
        return None
    return min(100.0, max(0.0, good / total * 100.0))
