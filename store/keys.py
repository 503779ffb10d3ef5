"""
Key layout for engine state kept in the key-value store.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import hashlib

PREFIX = "hf"


def _slug(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:32]


def alert_state(tenant_id: str, slo_id: str, rule: str) -> str:
    return f"{PREFIX}:{tenant_id}:alert:{slo_id}:{_slug(rule)}"


def alert_states(tenant_id: str) -> str:
    return f"{PREFIX}:{tenant_id}:alert:*"


def policy_state(tenant_id: str, service_id: str) -> str:
    return f"{PREFIX}:{tenant_id}:policy:{_slug(service_id)}"


def policy_states(tenant_id: str) -> str:
    return f"{PREFIX}:{tenant_id}:policy:*"


def watermark(tenant_id: str, slo_id: str) -> str:
    return f"{PREFIX}:{tenant_id}:watermark:{slo_id}"
