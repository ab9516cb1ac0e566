"""Prometheus exposition of a MetricRegistry.

Registry names are dotted (``pool.duration``); Prometheus names are not, so
every character outside ``[a-zA-Z0-9_:]`` becomes an underscore.
"""
from __future__ import annotations

import re
from typing import Iterator

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from workmeter.metrics.instruments import Histogram, Timer
from workmeter.metrics.registry import MetricRegistry
from workmeter.observability.logging import get_logger

log = get_logger("metrics")

_INVALID = re.compile(r"[^a-zA-Z0-9_:]")
QUANTILES = (0.5, 0.75, 0.95, 0.98, 0.99, 0.999)


def prometheus_name(metric_name: str, namespace: str = "") -> str:
    full = f"{namespace}_{metric_name}" if namespace else metric_name
    sanitized = _INVALID.sub("_", full)
    if sanitized[:1].isdigit():
        sanitized = "_" + sanitized
    return sanitized


class RegistryCollector(Collector):
    """Custom collector that reads a MetricRegistry on every scrape."""

    def __init__(self, registry: MetricRegistry, namespace: str = ""):
        self.registry = registry
        self.namespace = namespace

    def describe(self) -> list[Metric]:
        # names are dynamic; skip registration-time collision checks
        return []

    def collect(self) -> Iterator[Metric]:
        seen: dict[str, str] = {}
        for metric_name, family in self._families():
            first = seen.setdefault(family.name, metric_name)
            if first != metric_name:
                # two registry names sanitize to one family; keep the first
                log.warning("prometheus_name_collision", name=metric_name, kept=first, family=family.name)
                continue
            yield family

    def _families(self) -> Iterator[tuple[str, Metric]]:
        for metric_name, counter in self.registry.counters().items():
            yield metric_name, GaugeMetricFamily(
                prometheus_name(metric_name, self.namespace), f"Counter {metric_name}", value=counter.count
            )

        for metric_name, gauge in self.registry.gauges().items():
            value = gauge.value
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                log.debug("gauge_not_numeric", name=metric_name, value_type=type(value).__name__)
                continue
            yield metric_name, GaugeMetricFamily(
                prometheus_name(metric_name, self.namespace), f"Gauge {metric_name}", value=value
            )

        for metric_name, meter in self.registry.meters().items():
            yield metric_name, CounterMetricFamily(
                prometheus_name(metric_name, self.namespace), f"Meter {metric_name}", value=meter.count
            )

        for metric_name, histogram in self.registry.histograms().items():
            yield metric_name, self._summary(metric_name, f"Histogram {metric_name}", histogram)

        for metric_name, timer in self.registry.timers().items():
            yield metric_name, self._summary(metric_name, f"Timer {metric_name} (seconds)", timer)

    def _summary(self, metric_name: str, documentation: str, source: Histogram | Timer) -> Metric:
        prom = prometheus_name(metric_name, self.namespace)
        family = Metric(prom, documentation, "summary")
        snapshot = source.snapshot()
        for q in QUANTILES:
            family.add_sample(prom, {"quantile": str(q)}, snapshot.get_value(q))
        family.add_sample(prom + "_count", {}, source.count)
        family.add_sample(prom + "_sum", {}, source.sum)
        return family


def render_latest(registry: MetricRegistry, namespace: str = "") -> bytes:
    """Text exposition of ``registry`` in the Prometheus format."""
    collector_registry = CollectorRegistry(auto_describe=False)
    collector_registry.register(RegistryCollector(registry, namespace))
    return generate_latest(collector_registry)
