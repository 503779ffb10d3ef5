"""
Log-only collaborators used when no webhook receiver is configured.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from typing import Any

from datasources.base import DeploymentGate, Notifier

log = logging.getLogger(__name__)


class LogNotifier(Notifier):
    async def send(self, notification: Any) -> None:
        log.warning(
            "alert %s slo=%s service=%s severity=%s burn_rate=%.2f: %s",
            notification.kind, notification.slo_id, notification.service_id,
            notification.severity, notification.burn_rate, notification.message,
        )


class LogDeploymentGate(DeploymentGate):
    async def publish(self, change: Any) -> None:
        log.warning(
            "policy service=%s level=%s requires_approval_from=%s: %s",
            change.service_id, change.new_level, change.requires_approval_from, change.reason,
        )
