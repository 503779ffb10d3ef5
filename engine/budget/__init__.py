"""
Error budget package: consumption events and the sliding-window budget tracker.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.budget.events import BudgetConsumptionEvent, EventLog, Measurement, event_id_for
from engine.budget.tracker import ErrorBudget, ErrorBudgetTracker, classify

__all__ = [
    "BudgetConsumptionEvent",
    "EventLog",
    "Measurement",
    "event_id_for",
    "ErrorBudget",
    "ErrorBudgetTracker",
    "classify",
]
