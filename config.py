"""
Constants and configuration for Holdfast.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import os
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings


REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
STATE_TTL: int = int(os.getenv("STATE_TTL", "7776000"))

METRICS_BACKEND_MIMIR = "mimir"
METRICS_BACKEND_VICTORIAMETRICS = "victoriametrics"

NOTIFIER_LOG = "log"
NOTIFIER_WEBHOOK = "webhook"

HOLDFAST_METRICS_BACKEND = os.getenv("HOLDFAST_METRICS_BACKEND", METRICS_BACKEND_MIMIR).lower()
HOLDFAST_METRICS_MIMIR_URL = os.getenv("HOLDFAST_METRICS_MIMIR_URL", "http://mimir:9009").rstrip("/")
HOLDFAST_METRICS_VICTORIAMETRICS_URL = os.getenv("HOLDFAST_METRICS_VICTORIAMETRICS_URL", "").rstrip("/")

# metrics calls are bounded independently of the evaluation cadence
HOLDFAST_CONNECTOR_TIMEOUT = int(os.getenv("HOLDFAST_CONNECTOR_TIMEOUT", "10"))
HOLDFAST_STARTUP_TIMEOUT = int(os.getenv("HOLDFAST_STARTUP_TIMEOUT", "120"))

HOLDFAST_DEFAULT_TENANT_ID = os.getenv("HOLDFAST_DEFAULT_TENANT_ID", "anonymous")

HOLDFAST_NOTIFIER = os.getenv("HOLDFAST_NOTIFIER", NOTIFIER_LOG).lower()
HOLDFAST_NOTIFY_WEBHOOK_URL = os.getenv("HOLDFAST_NOTIFY_WEBHOOK_URL", "").rstrip("/")
HOLDFAST_GATE_WEBHOOK_URL = os.getenv("HOLDFAST_GATE_WEBHOOK_URL", "").rstrip("/")

DATASOURCE_TIMEOUT = 10
HEALTH_PATH = "/ready"

# weight values assigned to severity labels; firing alerts in reports are listed heaviest first
SEVERITY_WEIGHTS: Dict[str, int] = {
    "info": 1,
    "warning": 2,
    "critical": 4,
}


class Settings(BaseSettings):
    metrics_backend: str = HOLDFAST_METRICS_BACKEND
    mimir_url: str = HOLDFAST_METRICS_MIMIR_URL
    victoriametrics_url: Optional[str] = (
        HOLDFAST_METRICS_VICTORIAMETRICS_URL or None
    )

    connector_timeout: int = HOLDFAST_CONNECTOR_TIMEOUT
    startup_timeout: int = HOLDFAST_STARTUP_TIMEOUT

    default_tenant_id: str = HOLDFAST_DEFAULT_TENANT_ID

    # slo definitions file loaded into the registry at startup
    slo_config_path: Optional[str] = os.getenv("HOLDFAST_SLO_CONFIG_PATH") or None

    # outbound collaborators
    notifier: str = HOLDFAST_NOTIFIER
    notify_webhook_url: str = HOLDFAST_NOTIFY_WEBHOOK_URL
    gate_webhook_url: str = HOLDFAST_GATE_WEBHOOK_URL

    # optional SQL history for consumption events and policy transitions
    database_url: Optional[str] = os.getenv("HOLDFAST_DATABASE_URL") or None
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    # internal auth
    expected_service_token: str = os.getenv("HOLDFAST_EXPECTED_SERVICE_TOKEN", "")
    context_verify_key: str = os.getenv("HOLDFAST_CONTEXT_VERIFY_KEY", "")
    context_issuer: str = os.getenv("HOLDFAST_CONTEXT_ISSUER", "holdfast-gateway")
    context_audience: str = os.getenv("HOLDFAST_CONTEXT_AUDIENCE", "holdfast")
    context_algorithms: str = os.getenv("HOLDFAST_CONTEXT_ALGORITHMS", "HS256")

    # scheduler
    tick_interval_seconds: float = 60.0
    max_parallel_slo_ticks: int = 8
    # how far back an evaluation reaches when the previous interval was never committed
    max_backfill_seconds: float = 3600.0

    # sli evaluation
    metrics_step_seconds: float = 15.0
    min_coverage: float = 0.9
    clock_skew_seconds: float = 5.0

    # retry of transient source failures
    retry_attempts: int = 3
    retry_delay_seconds: float = 0.5
    retry_backoff: float = 2.0

    # budget status thresholds, expressed as remaining fraction of the total
    budget_critical_remaining: float = 0.10
    budget_warning_remaining: float = 0.25
    # trailing window used for the instantaneous consumption rate
    rate_window_seconds: float = 3600.0
    # burn multiple above which a consumption event is classified critical
    event_critical_burn: float = 10.0
    # relative deviation above which a threshold breach is classified critical
    event_critical_deviation: float = 0.5

    # default multi-window burn-rate rules: (name, severity, threshold, short, long, min samples)
    default_alert_rules: List[tuple] = [
        ("page-fast", "critical", 14.4, 300.0, 3600.0, 10),
        ("page-slow", "critical", 6.0, 1800.0, 21600.0, 30),
        ("ticket", "warning", 3.0, 7200.0, 86400.0, 60),
        ("trend", "info", 1.0, 21600.0, 259200.0, 120),
    ]
    # minimum time an alert stays firing before it may resolve; 0 means use the short window
    alert_min_firing_seconds: float = 0.0

    # policy hysteresis; 0 means use the SLO window
    policy_cooldown_seconds: float = 0.0
    # approver role required to leave each level
    policy_approval_authorities: Dict[str, Optional[str]] = {
        "normal": None,
        "increased_scrutiny": "service_owner",
        "restricted_releases": "engineering_manager",
        "feature_freeze": "vp_engineering",
    }

    # reports
    report_trend_buckets: int = 24

    store_redis_retry_cooldown_seconds: float = 10.0
    store_fallback_max_items: int = 10_000

    model_config = {
        "env_prefix": "HOLDFAST_",
        "extra": "ignore",
    }


settings = Settings()
