"""Thread-pool instrumentation: counts, in-flight gauges and run timers for
work submitted to ``concurrent.futures`` executors."""
from __future__ import annotations

from workmeter.errors import ExecutorShutdownError, RejectedExecutionError
from workmeter.executors import (
    BoundedThreadPoolExecutor,
    InstrumentedExecutor,
    InstrumentedScheduledExecutor,
    ScheduledFuture,
    ScheduledThreadPoolExecutor,
)
from workmeter.metrics import MetricRegistry, name

__version__ = "0.1.0"

__all__ = [
    "BoundedThreadPoolExecutor",
    "ExecutorShutdownError",
    "InstrumentedExecutor",
    "InstrumentedScheduledExecutor",
    "MetricRegistry",
    "RejectedExecutionError",
    "ScheduledFuture",
    "ScheduledThreadPoolExecutor",
    "name",
]
