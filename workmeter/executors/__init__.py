from workmeter.executors.bounded import BoundedThreadPoolExecutor
from workmeter.executors.instrumented import InstrumentedExecutor, InstrumentedScheduledExecutor
from workmeter.executors.scheduled import ScheduledFuture, ScheduledThreadPoolExecutor

__all__ = [
    "BoundedThreadPoolExecutor",
    "InstrumentedExecutor",
    "InstrumentedScheduledExecutor",
    "ScheduledFuture",
    "ScheduledThreadPoolExecutor",
]
