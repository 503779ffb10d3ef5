"""
Tests for datasource factory connector construction.
"""

from __future__ import annotations

from types import SimpleNamespace

from config import (
    METRICS_BACKEND_MIMIR,
    METRICS_BACKEND_VICTORIAMETRICS,
    NOTIFIER_LOG,
    NOTIFIER_WEBHOOK,
)
from connectors.logsink import LogDeploymentGate, LogNotifier
from connectors.webhook import WebhookDeploymentGate, WebhookNotifier
from datasources.factory import DataSourceFactory


def test_factory_passes_connector_timeout_to_mimir(monkeypatch):
    captured: dict[str, int] = {}

    def fake_mimir(url, tenant_id, timeout=None, headers=None):
        captured["metrics"] = timeout
        return ("mimir", timeout)

    monkeypatch.setattr("datasources.factory.MimirConnector", fake_mimir)

    cfg = SimpleNamespace(
        metrics_backend=METRICS_BACKEND_MIMIR,
        mimir_url="http://mimir",
        victoriametrics_url="http://victoria",
        connector_timeout=42,
    )

    assert DataSourceFactory.create_metrics(cfg, "tenant")[1] == 42
    assert captured == {"metrics": 42}


def test_factory_passes_timeout_to_victoria_connector(monkeypatch):
    captured: dict[str, int] = {}

    def fake_victoria(url, tenant_id, timeout=None, headers=None):
        captured["victoria"] = timeout
        return ("victoria", timeout)

    monkeypatch.setattr("datasources.factory.VictoriaMetricsConnector", fake_victoria)

    cfg = SimpleNamespace(
        metrics_backend=METRICS_BACKEND_VICTORIAMETRICS,
        victoriametrics_url="http://victoria",
        connector_timeout=13,
    )
    assert DataSourceFactory.create_metrics(cfg, "tenant")[1] == 13
    assert captured["victoria"] == 13


def test_notifier_and_gate_default_to_logging():
    cfg = SimpleNamespace(notifier=NOTIFIER_LOG, notify_webhook_url="", gate_webhook_url="", connector_timeout=5)
    assert isinstance(DataSourceFactory.create_notifier(cfg), LogNotifier)
    assert isinstance(DataSourceFactory.create_gate(cfg), LogDeploymentGate)


def test_webhook_collaborators_when_urls_configured():
    cfg = SimpleNamespace(
        notifier=NOTIFIER_WEBHOOK,
        notify_webhook_url="http://alerts/hook",
        gate_webhook_url="http://gate/hook",
        connector_timeout=5,
    )
    notifier = DataSourceFactory.create_notifier(cfg)
    gate = DataSourceFactory.create_gate(cfg)
    assert isinstance(notifier, WebhookNotifier) and notifier.url == "http://alerts/hook"
    assert isinstance(gate, WebhookDeploymentGate) and gate.timeout == 5
