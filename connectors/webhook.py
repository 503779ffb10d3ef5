"""
Webhook connectors delivering alert notifications and policy-level changes to external receivers.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import dataclasses
from typing import Any, Dict, Optional

from datasources.base import DeploymentGate, Notifier
from datasources.helpers import post_json
from datasources.retry import retry
from datasources.exceptions import SourceUnavailable
from config import DATASOURCE_TIMEOUT


def _payload(obj: Any) -> Dict[str, Any]:
    if dataclasses.is_dataclass(obj):
        return dataclasses.asdict(obj)
    return dict(obj)


class WebhookNotifier(Notifier):
    def __init__(self, url: str, timeout: int = DATASOURCE_TIMEOUT, headers: Optional[Dict[str, str]] = None):
        self.url = str(url).rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}

    @retry(attempts=3, delay=0.5, backoff=2.0, exceptions=(SourceUnavailable,))
    async def send(self, notification: Any) -> None:
        await post_json(
            self.url,
            _payload(notification),
            headers=self.headers,
            timeout=self.timeout,
            invalid_msg="Notification rejected",
            timeout_msg="Notification delivery timed out",
            unavailable_msg="Cannot reach notification receiver at",
        )


class WebhookDeploymentGate(DeploymentGate):
    def __init__(self, url: str, timeout: int = DATASOURCE_TIMEOUT, headers: Optional[Dict[str, str]] = None):
        self.url = str(url).rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}

    @retry(attempts=3, delay=0.5, backoff=2.0, exceptions=(SourceUnavailable,))
    async def publish(self, change: Any) -> None:
        await post_json(
            self.url,
            _payload(change),
            headers=self.headers,
            timeout=self.timeout,
            invalid_msg="Policy change rejected",
            timeout_msg="Policy change delivery timed out",
            unavailable_msg="Cannot reach deployment gate at",
        )
