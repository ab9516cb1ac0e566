"""Named, process-shareable collection of metric instruments."""
from __future__ import annotations

import threading
from typing import Any, Callable, TypeVar

from workmeter.metrics.instruments import (
    DEFAULT_CLOCK,
    DEFAULT_RESERVOIR_SIZE,
    Clock,
    Counter,
    Gauge,
    Histogram,
    Meter,
    Metric,
    Timer,
    UniformReservoir,
)
from workmeter.observability.logging import get_logger

M = TypeVar("M", bound=Metric)
log = get_logger("metrics")


def name(*parts: str | None) -> str:
    """Join the non-empty parts of a metric name with dots."""
    return ".".join(p for p in parts if p)


class MetricRegistry:
    """
    Thread-safe namespace of metrics keyed by exact name.

    counter/meter/histogram/timer/gauge are lookup-or-create: every caller
    asking for the same name gets the same instrument. Asking for a name
    that already holds a different kind of instrument raises ValueError.
    """

    def __init__(self, clock: Clock = DEFAULT_CLOCK, reservoir_size: int = DEFAULT_RESERVOIR_SIZE):
        self._clock = clock
        self._reservoir_size = reservoir_size
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def _get_or_add(self, metric_name: str, kind: type[M], factory: Callable[[], M]) -> M:
        # Fast path: dict reads are atomic, instruments are never replaced in place.
        existing = self._metrics.get(metric_name)
        if existing is None:
            with self._lock:
                existing = self._metrics.get(metric_name)
                if existing is None:
                    created = factory()
                    self._metrics[metric_name] = created
                    log.debug("metric_created", name=metric_name, kind=kind.__name__)
                    return created
        if not isinstance(existing, kind):
            raise ValueError(f"{metric_name} is already used for a different type of metric")
        return existing

    def counter(self, metric_name: str) -> Counter:
        return self._get_or_add(metric_name, Counter, Counter)

    def meter(self, metric_name: str) -> Meter:
        return self._get_or_add(metric_name, Meter, lambda: Meter(self._clock))

    def histogram(self, metric_name: str) -> Histogram:
        return self._get_or_add(
            metric_name, Histogram, lambda: Histogram(UniformReservoir(self._reservoir_size))
        )

    def timer(self, metric_name: str) -> Timer:
        return self._get_or_add(
            metric_name, Timer, lambda: Timer(UniformReservoir(self._reservoir_size), self._clock)
        )

    def gauge(self, metric_name: str, supplier: Callable[[], Any] | None = None) -> Gauge:
        """Return the gauge under ``metric_name``, creating it from ``supplier`` if absent."""
        if supplier is None and metric_name not in self._metrics:
            raise ValueError(f"gauge {metric_name} does not exist and no supplier was given")
        return self._get_or_add(metric_name, Gauge, lambda: Gauge(supplier))

    def register(self, metric_name: str, metric: M) -> M:
        with self._lock:
            if metric_name in self._metrics:
                raise ValueError(f"A metric named {metric_name} already exists")
            self._metrics[metric_name] = metric
        return metric

    def remove(self, metric_name: str) -> bool:
        with self._lock:
            return self._metrics.pop(metric_name, None) is not None

    def remove_matching(self, predicate: Callable[[str, Metric], bool]) -> list[str]:
        with self._lock:
            doomed = [n for n, m in self._metrics.items() if predicate(n, m)]
            for n in doomed:
                del self._metrics[n]
        return doomed

    def get(self, metric_name: str) -> Metric | None:
        return self._metrics.get(metric_name)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._metrics)

    def _of_kind(self, kind: type[M]) -> dict[str, M]:
        with self._lock:
            items = [(n, m) for n, m in self._metrics.items() if isinstance(m, kind)]
        return dict(sorted(items))

    def counters(self) -> dict[str, Counter]:
        return self._of_kind(Counter)

    def meters(self) -> dict[str, Meter]:
        return self._of_kind(Meter)

    def histograms(self) -> dict[str, Histogram]:
        return self._of_kind(Histogram)

    def timers(self) -> dict[str, Timer]:
        return self._of_kind(Timer)

    def gauges(self) -> dict[str, Gauge]:
        return self._of_kind(Gauge)

    def __len__(self) -> int:
        return len(self._metrics)

    def __contains__(self, metric_name: object) -> bool:
        return metric_name in self._metrics


# Process-wide named registries
_shared: dict[str, MetricRegistry] = {}
_shared_lock = threading.Lock()


def shared_registry(registry_name: str) -> MetricRegistry:
    """
    Get or create the process-wide registry called ``registry_name``.

    Double-checked under a lock so concurrent first callers agree on one instance.
    """
    registry = _shared.get(registry_name)
    if registry is None:
        with _shared_lock:
            registry = _shared.get(registry_name)
            if registry is None:
                registry = MetricRegistry()
                _shared[registry_name] = registry
    return registry


def clear_shared_registries() -> None:
    """Forget every shared registry (useful for testing)."""
    with _shared_lock:
        _shared.clear()
