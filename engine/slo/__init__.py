"""
SLO definitions and their validation rules.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.slo.definitions import (
    BurnRateAlertRule,
    SliDefinition,
    SloDefinition,
    default_alert_rules,
    validate_rule,
    validate_sli,
    validate_slo,
)

__all__ = [
    "BurnRateAlertRule",
    "SliDefinition",
    "SloDefinition",
    "default_alert_rules",
    "validate_rule",
    "validate_sli",
    "validate_slo",
]
