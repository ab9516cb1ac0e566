from workmeter.metrics.instruments import (
    Clock,
    Counter,
    Gauge,
    Histogram,
    Meter,
    Metric,
    SlidingWindowReservoir,
    Snapshot,
    Timer,
    UniformReservoir,
)
from workmeter.metrics.registry import (
    MetricRegistry,
    clear_shared_registries,
    name,
    shared_registry,
)

__all__ = [
    "Clock",
    "Counter",
    "Gauge",
    "Histogram",
    "Meter",
    "Metric",
    "MetricRegistry",
    "SlidingWindowReservoir",
    "Snapshot",
    "Timer",
    "UniformReservoir",
    "clear_shared_registries",
    "name",
    "shared_registry",
]
