"""Thread-safe metric instruments: counters, meters, histograms, timers, gauges."""
from __future__ import annotations

import math
import random
import threading
import time
from collections import deque
from typing import Any, Callable, Sequence, TypeVar

T = TypeVar("T")

TICK_INTERVAL = 5.0  # seconds between EWMA ticks
DEFAULT_RESERVOIR_SIZE = 1028


class Clock:
    """Time source shared by every time-aware instrument."""

    def tick(self) -> float:
        """Monotonic seconds, for measuring elapsed time."""
        return time.perf_counter()

    def time(self) -> float:
        """Wall-clock seconds since the epoch."""
        return time.time()


DEFAULT_CLOCK = Clock()


class Metric:
    """Marker base class for everything a MetricRegistry can hold."""

    pass


class Counter(Metric):
    """Integer accumulator that can go up and down."""

    def __init__(self) -> None:
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= n

    @property
    def count(self) -> int:
        return self._count


class Gauge(Metric):
    """Reads its value from a zero-argument supplier on demand."""

    def __init__(self, supplier: Callable[[], Any]):
        self._supplier = supplier

    @property
    def value(self) -> Any:
        return self._supplier()


class EWMA:
    """
    Exponentially weighted moving average of a per-second rate.

    Not thread-safe on its own; Meter serializes access.
    """

    def __init__(self, minutes: float, interval: float = TICK_INTERVAL):
        self.alpha = 1.0 - math.exp(-interval / 60.0 / minutes)
        self.interval = interval
        self._uncounted = 0
        self._rate = 0.0
        self._initialized = False

    def update(self, n: int) -> None:
        self._uncounted += n

    def tick(self) -> None:
        instant_rate = self._uncounted / self.interval
        self._uncounted = 0
        if self._initialized:
            self._rate += self.alpha * (instant_rate - self._rate)
        else:
            self._rate = instant_rate
            self._initialized = True

    @property
    def rate(self) -> float:
        return self._rate


class Meter(Metric):
    """Monotonic event count with mean and 1/5/15-minute moving rates."""

    def __init__(self, clock: Clock = DEFAULT_CLOCK):
        self._clock = clock
        self._count = 0
        self._start = clock.tick()
        self._last_tick = self._start
        self._m1 = EWMA(1)
        self._m5 = EWMA(5)
        self._m15 = EWMA(15)
        self._lock = threading.Lock()

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._tick_if_necessary()
            self._count += n
            self._m1.update(n)
            self._m5.update(n)
            self._m15.update(n)

    def _tick_if_necessary(self) -> None:
        now = self._clock.tick()
        age = now - self._last_tick
        if age > TICK_INTERVAL:
            self._last_tick = now - age % TICK_INTERVAL
            for _ in range(int(age // TICK_INTERVAL)):
                self._m1.tick()
                self._m5.tick()
                self._m15.tick()

    def _rate(self, ewma: EWMA) -> float:
        with self._lock:
            self._tick_if_necessary()
            return ewma.rate

    @property
    def count(self) -> int:
        return self._count

    @property
    def mean_rate(self) -> float:
        if self._count == 0:
            return 0.0
        elapsed = self._clock.tick() - self._start
        return self._count / elapsed if elapsed > 0 else 0.0

    @property
    def one_minute_rate(self) -> float:
        return self._rate(self._m1)

    @property
    def five_minute_rate(self) -> float:
        return self._rate(self._m5)

    @property
    def fifteen_minute_rate(self) -> float:
        return self._rate(self._m15)


class Snapshot:
    """Immutable, sorted view of a reservoir's samples."""

    def __init__(self, values: Sequence[float]):
        self._values = sorted(values)

    def get_value(self, quantile: float) -> float:
        if not 0.0 <= quantile <= 1.0:
            raise ValueError(f"{quantile} is not in [0..1]")
        values = self._values
        if not values:
            return 0.0
        pos = quantile * (len(values) + 1)
        index = int(pos)
        if index < 1:
            return float(values[0])
        if index >= len(values):
            return float(values[-1])
        lower = values[index - 1]
        upper = values[index]
        return lower + (pos - math.floor(pos)) * (upper - lower)

    @property
    def values(self) -> list[float]:
        return list(self._values)

    @property
    def size(self) -> int:
        return len(self._values)

    def __len__(self) -> int:
        return len(self._values)

    @property
    def min(self) -> float:
        return float(self._values[0]) if self._values else 0.0

    @property
    def max(self) -> float:
        return float(self._values[-1]) if self._values else 0.0

    @property
    def mean(self) -> float:
        if not self._values:
            return 0.0
        return sum(self._values) / len(self._values)

    @property
    def stddev(self) -> float:
        # sample standard deviation
        n = len(self._values)
        if n <= 1:
            return 0.0
        mean = self.mean
        return math.sqrt(sum((v - mean) ** 2 for v in self._values) / (n - 1))

    @property
    def median(self) -> float:
        return self.get_value(0.5)

    @property
    def p75(self) -> float:
        return self.get_value(0.75)

    @property
    def p95(self) -> float:
        return self.get_value(0.95)

    @property
    def p98(self) -> float:
        return self.get_value(0.98)

    @property
    def p99(self) -> float:
        return self.get_value(0.99)

    @property
    def p999(self) -> float:
        return self.get_value(0.999)


class UniformReservoir:
    """Statistically representative sample of every value ever seen (algorithm R)."""

    def __init__(self, size: int = DEFAULT_RESERVOIR_SIZE, rng: random.Random | None = None):
        if size < 1:
            raise ValueError("reservoir size must be positive")
        self._values: list[float] = []
        self._size = size
        self._seen = 0
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    def update(self, value: float) -> None:
        with self._lock:
            self._seen += 1
            if len(self._values) < self._size:
                self._values.append(value)
                return
            r = self._rng.randrange(self._seen)
            if r < self._size:
                self._values[r] = value

    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(list(self._values))


class SlidingWindowReservoir:
    """Keeps only the most recent ``size`` values."""

    def __init__(self, size: int = DEFAULT_RESERVOIR_SIZE):
        if size < 1:
            raise ValueError("reservoir size must be positive")
        self._values: deque[float] = deque(maxlen=size)
        self._lock = threading.Lock()

    def update(self, value: float) -> None:
        with self._lock:
            self._values.append(value)

    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(list(self._values))


Reservoir = UniformReservoir | SlidingWindowReservoir


class Histogram(Metric):
    """Distribution of recorded values; count and sum cover every update."""

    def __init__(self, reservoir: Reservoir | None = None):
        self._reservoir = reservoir if reservoir is not None else UniformReservoir()
        self._count = 0
        self._sum = 0.0
        self._lock = threading.Lock()

    def update(self, value: float) -> None:
        with self._lock:
            self._count += 1
            self._sum += value
        self._reservoir.update(value)

    @property
    def count(self) -> int:
        return self._count

    @property
    def sum(self) -> float:
        return self._sum

    def snapshot(self) -> Snapshot:
        return self._reservoir.snapshot()


class Timer(Metric):
    """
    Rate of timed events plus the distribution of their durations.

    Durations are recorded in seconds.
    """

    class Context:
        """One timing in progress; stop() records it at most once."""

        def __init__(self, timer: Timer, clock: Clock):
            self._timer = timer
            self._clock = clock
            self._start = clock.tick()
            self._elapsed: float | None = None

        def stop(self) -> float:
            if self._elapsed is None:
                self._elapsed = self._clock.tick() - self._start
                self._timer.update(self._elapsed)
            return self._elapsed

        def __enter__(self) -> Timer.Context:
            return self

        def __exit__(self, *exc: Any) -> None:
            self.stop()

    def __init__(self, reservoir: Reservoir | None = None, clock: Clock = DEFAULT_CLOCK):
        self._clock = clock
        self._meter = Meter(clock)
        self._histogram = Histogram(reservoir)

    def update(self, seconds: float) -> None:
        if seconds < 0:
            return
        self._histogram.update(seconds)
        self._meter.mark()

    def time(self) -> Timer.Context:
        return Timer.Context(self, self._clock)

    def time_call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        with self.time():
            return fn(*args, **kwargs)

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def count(self) -> int:
        return self._histogram.count

    @property
    def sum(self) -> float:
        return self._histogram.sum

    def snapshot(self) -> Snapshot:
        return self._histogram.snapshot()

    @property
    def mean_rate(self) -> float:
        return self._meter.mean_rate

    @property
    def one_minute_rate(self) -> float:
        return self._meter.one_minute_rate

    @property
    def five_minute_rate(self) -> float:
        return self._meter.five_minute_rate

    @property
    def fifteen_minute_rate(self) -> float:
        return self._meter.fifteen_minute_rate
