"""
Shared builders for SLI and SLO definitions used across the test suite.
"""

from engine.enums import Aggregation, Comparator, Severity, SliCategory
from engine.slo.definitions import BurnRateAlertRule, SliDefinition, SloDefinition

DAY = 86400.0
T0 = 1_700_000_000.0


def ratio_sli(sli_id="checkout-availability", good="good", total="total"):
    return SliDefinition(
        sli_id=sli_id,
        category=SliCategory.availability,
        query=good,
        aggregation=Aggregation.ratio,
        unit="%",
        total_query=total,
    )


def latency_sli(sli_id="checkout-p99", query="latency", percentile=99.0):
    return SliDefinition(
        sli_id=sli_id,
        category=SliCategory.latency,
        query=query,
        aggregation=Aggregation.percentile,
        unit="s",
        percentile=percentile,
    )


def rule(name="page", threshold=14.4, short=300.0, long=3600.0, min_samples=0, severity=Severity.critical):
    return BurnRateAlertRule(
        name=name,
        severity=severity,
        threshold=threshold,
        short_window_seconds=short,
        long_window_seconds=long,
        min_sample_size=min_samples,
    )


def ratio_slo(
    service="checkout",
    sli_id="checkout-availability",
    target=99.9,
    window=30 * DAY,
    slo_id="avail",
    rules=None,
    cooldown=None,
):
    return SloDefinition(
        service_id=service,
        sli_id=sli_id,
        target=target,
        window_seconds=window,
        comparator=Comparator.gte,
        alert_rules=tuple(rules) if rules is not None else (),
        slo_id=slo_id,
        name=f"{service} availability",
        cooldown_seconds=cooldown,
    )


def latency_slo(service="checkout", sli_id="checkout-p99", target=0.3, slice_target=99.0, slo_id="latency"):
    return SloDefinition(
        service_id=service,
        sli_id=sli_id,
        target=target,
        window_seconds=7 * DAY,
        comparator=Comparator.lte,
        slo_id=slo_id,
        name=f"{service} p99 latency",
        time_slice_target=slice_target,
    )
