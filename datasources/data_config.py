"""
Settings for the metrics source and the outbound notification and deployment-gate collaborators.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""
from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings
from config import (
    METRICS_BACKEND_MIMIR,
    METRICS_BACKEND_VICTORIAMETRICS,
    NOTIFIER_LOG,
    NOTIFIER_WEBHOOK,
    HOLDFAST_METRICS_BACKEND,
    HOLDFAST_METRICS_MIMIR_URL,
    HOLDFAST_METRICS_VICTORIAMETRICS_URL,
    HOLDFAST_CONNECTOR_TIMEOUT,
    HOLDFAST_STARTUP_TIMEOUT,
    HOLDFAST_NOTIFIER,
    HOLDFAST_NOTIFY_WEBHOOK_URL,
    HOLDFAST_GATE_WEBHOOK_URL,
)


class DataSourceSettings(BaseSettings):
    metrics_backend: str = HOLDFAST_METRICS_BACKEND
    mimir_url: str = HOLDFAST_METRICS_MIMIR_URL
    victoriametrics_url: Optional[str] = HOLDFAST_METRICS_VICTORIAMETRICS_URL
    connector_timeout: int = HOLDFAST_CONNECTOR_TIMEOUT
    startup_timeout: int = HOLDFAST_STARTUP_TIMEOUT
    notifier: str = HOLDFAST_NOTIFIER
    notify_webhook_url: str = HOLDFAST_NOTIFY_WEBHOOK_URL
    gate_webhook_url: str = HOLDFAST_GATE_WEBHOOK_URL

    @field_validator("mimir_url", "victoriametrics_url", "notify_webhook_url", "gate_webhook_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return str(v).rstrip("/") if v is not None else v

    @field_validator("metrics_backend", mode="before")
    @classmethod
    def validate_metrics_backend(cls, v: str) -> str:
        value = str(v or "").strip().lower()
        if value not in {METRICS_BACKEND_MIMIR, METRICS_BACKEND_VICTORIAMETRICS}:
            raise ValueError(f"Unsupported metrics backend: {value!r}")
        return value

    @field_validator("notifier", mode="before")
    @classmethod
    def validate_notifier(cls, v: str) -> str:
        value = str(v or "").strip().lower()
        if value not in {NOTIFIER_LOG, NOTIFIER_WEBHOOK}:
            raise ValueError(f"Unsupported notifier: {value!r}")
        return value

    model_config = {"env_prefix": "HOLDFAST_", "extra": "ignore"}
