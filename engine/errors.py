"""
Exceptions raised by the SLO engine components.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Iterable, List


class EngineError(Exception):
    pass


class ValidationError(EngineError):
    """Configuration rejected; carries every violated constraint."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "invalid definition")


class NotFound(EngineError):
    pass


class InvalidTimeRange(EngineError, ValueError):
    pass


class InvariantViolation(EngineError):
    pass


class PolicyError(EngineError):
    pass
