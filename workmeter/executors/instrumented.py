"""Executors that record submission, in-flight, completion, rejection and
duration metrics for every task passing through them.

For a prefix ``P`` the instruments are::

    P.submitted   meter    every submission attempt, admitted or not
    P.running     counter  tasks whose body is executing right now
    P.completed   meter    bodies that returned or raised
    P.duration    timer    seconds spent in each body
    P.rejected    meter    submissions the backend refused for capacity

Instruments are looked up by name in the registry, so executors sharing a
prefix and a registry share (and sum into) the same instruments.

When a task finishes its duration sample is recorded just before
``completed`` is marked. The two are separate updates, so a reader racing a
finishing task may see ``duration.count`` one ahead of ``completed``, never
behind it.
"""
from __future__ import annotations

import itertools
import time
from concurrent.futures import FIRST_COMPLETED, CancelledError, Executor, Future, wait
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Iterable, TypeVar

from workmeter.errors import RejectedExecutionError
from workmeter.executors.scheduled import ScheduledFuture, ScheduledThreadPoolExecutor
from workmeter.metrics.instruments import Counter, Histogram, Meter, Timer
from workmeter.metrics.registry import MetricRegistry, name
from workmeter.observability.logging import get_logger

T = TypeVar("T")
log = get_logger("executors")

_auto_names = itertools.count()


class _InstrumentedCall:
    """Wraps one task body; counts and times it only if it actually starts."""

    __slots__ = ("fn", "args", "kwargs", "running", "completed", "duration")

    def __init__(self, fn: Callable[..., Any], args: tuple, kwargs: dict, running: Counter,
                 completed: Meter, duration: Timer):
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.running = running
        self.completed = completed
        self.duration = duration

    def __call__(self) -> Any:
        self.running.inc()
        start = self.duration.clock.tick()
        try:
            return self.fn(*self.args, **self.kwargs)
        finally:
            elapsed = self.duration.clock.tick() - start
            self.running.dec()
            # completed <= duration.count for any reader
            self.duration.update(elapsed)
            self.completed.mark()
            self._after(elapsed)

    def _after(self, elapsed: float) -> None:
        pass


class _InstrumentedPeriodicCall(_InstrumentedCall):
    """Per-run shim for periodic tasks; also tracks runs that overrun their period."""

    __slots__ = ("period", "overrun", "percent_of_period")

    def __init__(self, fn, args, kwargs, running, completed, duration, period: float,
                 overrun: Counter, percent_of_period: Histogram):
        super().__init__(fn, args, kwargs, running, completed, duration)
        self.period = period
        self.overrun = overrun
        self.percent_of_period = percent_of_period

    def _after(self, elapsed: float) -> None:
        if elapsed > self.period:
            self.overrun.inc()
        self.percent_of_period.update(100.0 * elapsed / self.period)


class InstrumentedExecutor(Executor):
    """
    Decorates a concurrent.futures.Executor with task lifecycle metrics.

    Scheduling, ordering, backpressure and the returned futures are exactly
    those of the wrapped backend; only metric side effects are added.

    Args:
        backend: Executor that actually runs the tasks
        registry: Registry holding the instruments
        prefix: Metrics namespace; generated when omitted
    """

    def __init__(self, backend: Executor, registry: MetricRegistry, prefix: str | None = None):
        self.backend = backend
        self.registry = registry
        self.prefix = prefix or name("instrumented-executor", str(next(_auto_names)))
        self.submitted = registry.meter(name(self.prefix, "submitted"))
        self.running = registry.counter(name(self.prefix, "running"))
        self.completed = registry.meter(name(self.prefix, "completed"))
        self.duration = registry.timer(name(self.prefix, "duration"))
        self.rejected = registry.meter(name(self.prefix, "rejected"))

    def _wrap(self, fn: Callable[..., Any], args: tuple, kwargs: dict) -> _InstrumentedCall:
        return _InstrumentedCall(fn, args, kwargs, self.running, self.completed, self.duration)

    def _admit(self, delegate: Callable[..., T], *delegate_args: Any) -> T:
        """Count a submission attempt and hand it to the backend."""
        self.submitted.mark()
        return self._delegate(delegate, *delegate_args)

    def _delegate(self, delegate: Callable[..., T], *delegate_args: Any) -> T:
        try:
            return delegate(*delegate_args)
        except RejectedExecutionError:
            self.rejected.mark()
            log.debug("task_rejected", prefix=self.prefix)
            raise

    def submit(self, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> Future:
        return self._admit(self.backend.submit, self._wrap(fn, args, kwargs))

    def execute(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None:
        """Fire-and-forget submission; a task that raises is logged as ``task_failed``."""
        future = self.submit(fn, *args, **kwargs)
        future.add_done_callback(self._log_failure)

    def _log_failure(self, future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            log.error(
                "task_failed",
                prefix=self.prefix,
                error=str(error),
                error_type=type(error).__name__,
            )

    def _submit_each(self, fns: Iterable[Callable[[], T]]) -> list[Future]:
        tasks = list(fns)
        # the whole batch counts as submitted, even the part never handed over
        self.submitted.mark(len(tasks))
        futures: list[Future] = []
        try:
            for fn in tasks:
                futures.append(self._delegate(self.backend.submit, self._wrap(fn, (), {})))
        except BaseException:
            # all or nothing: a refused constituent withdraws the admitted ones
            for f in futures:
                f.cancel()
            raise
        return futures

    def invoke_all(self, fns: Iterable[Callable[[], T]], timeout: float | None = None) -> list[Future]:
        """
        Submit every callable and wait for all of them.

        If a submission is refused, the futures already admitted are cancelled
        and the refusal propagates. After ``timeout`` seconds unfinished
        futures are cancelled. Futures come back in input order.
        """
        futures = self._submit_each(fns)
        _, not_done = wait(futures, timeout=timeout)
        for f in not_done:
            f.cancel()
        return futures

    def invoke_any(self, fns: Iterable[Callable[[], T]], timeout: float | None = None) -> T:
        """
        Submit every callable and return the first successful result.

        The remaining futures are cancelled. Raises the last task failure if
        none succeed, or concurrent.futures.TimeoutError after ``timeout``.
        """
        futures = self._submit_each(fns)
        if not futures:
            raise ValueError("invoke_any() requires at least one task")

        pending = set(futures)
        deadline = None if timeout is None else time.monotonic() + timeout
        last_error: BaseException | None = None
        try:
            while pending:
                remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
                done, pending = wait(pending, timeout=remaining, return_when=FIRST_COMPLETED)
                if not done:
                    raise FuturesTimeoutError(f"no task completed within {timeout}s")
                for f in done:
                    if f.cancelled():
                        continue
                    error = f.exception()
                    if error is None:
                        return f.result()
                    last_error = error
            raise last_error if last_error is not None else CancelledError()
        finally:
            for f in futures:
                f.cancel()

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        self.backend.shutdown(wait=wait, cancel_futures=cancel_futures)


class InstrumentedScheduledExecutor(InstrumentedExecutor):
    """
    InstrumentedExecutor for a ScheduledThreadPoolExecutor backend.

    Adds ``P.scheduled.once`` and ``P.scheduled.repetitively`` meters for
    delayed and periodic submissions, ``P.scheduled.overrun`` for periodic
    runs that took longer than their period, and the
    ``P.scheduled.percent-of-period`` histogram. Every run of a periodic task
    is counted in running/completed/duration.
    """

    backend: ScheduledThreadPoolExecutor

    def __init__(self, backend: ScheduledThreadPoolExecutor, registry: MetricRegistry, prefix: str | None = None):
        super().__init__(backend, registry, prefix)
        self.scheduled_once = registry.meter(name(self.prefix, "scheduled", "once"))
        self.scheduled_repetitively = registry.meter(name(self.prefix, "scheduled", "repetitively"))
        self.scheduled_overrun = registry.counter(name(self.prefix, "scheduled", "overrun"))
        self.percent_of_period = registry.histogram(name(self.prefix, "scheduled", "percent-of-period"))

    def _wrap_periodic(self, fn: Callable[..., Any], args: tuple, kwargs: dict, period: float) -> _InstrumentedPeriodicCall:
        return _InstrumentedPeriodicCall(
            fn, args, kwargs, self.running, self.completed, self.duration,
            period, self.scheduled_overrun, self.percent_of_period,
        )

    def schedule(self, fn: Callable[..., T], delay: float, /, *args: Any, **kwargs: Any) -> ScheduledFuture:
        self.scheduled_once.mark()
        return self._admit(self.backend.schedule, self._wrap(fn, args, kwargs), delay)

    def schedule_at_fixed_rate(
        self, fn: Callable[..., Any], initial_delay: float, period: float, /, *args: Any, **kwargs: Any
    ) -> ScheduledFuture:
        self.scheduled_repetitively.mark()
        shim = self._wrap_periodic(fn, args, kwargs, period)
        return self._admit(self.backend.schedule_at_fixed_rate, shim, initial_delay, period)

    def schedule_with_fixed_delay(
        self, fn: Callable[..., Any], initial_delay: float, delay: float, /, *args: Any, **kwargs: Any
    ) -> ScheduledFuture:
        self.scheduled_repetitively.mark()
        shim = self._wrap_periodic(fn, args, kwargs, delay)
        return self._admit(self.backend.schedule_with_fixed_delay, shim, initial_delay, delay)
