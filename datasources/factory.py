"""
Factory for creating the metrics connector and outbound collaborators based on configuration.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from connectors.logsink import LogDeploymentGate, LogNotifier
from connectors.mimir import MimirConnector
from connectors.victoria import VictoriaMetricsConnector
from connectors.webhook import WebhookDeploymentGate, WebhookNotifier


class DataSourceFactory:

    @staticmethod
    def create_metrics(config, tenant_id):
        from config import METRICS_BACKEND_MIMIR, METRICS_BACKEND_VICTORIAMETRICS

        if config.metrics_backend == METRICS_BACKEND_MIMIR:
            return MimirConnector(config.mimir_url, tenant_id, timeout=config.connector_timeout)
        if config.metrics_backend == METRICS_BACKEND_VICTORIAMETRICS:
            return VictoriaMetricsConnector(config.victoriametrics_url, tenant_id, timeout=config.connector_timeout)
        raise ValueError("Unsupported metrics backend")

    @staticmethod
    def create_notifier(config):
        from config import NOTIFIER_WEBHOOK

        if config.notifier == NOTIFIER_WEBHOOK and config.notify_webhook_url:
            return WebhookNotifier(config.notify_webhook_url, timeout=config.connector_timeout)
        return LogNotifier()

    @staticmethod
    def create_gate(config):
        if config.gate_webhook_url:
            return WebhookDeploymentGate(config.gate_webhook_url, timeout=config.connector_timeout)
        return LogDeploymentGate()
