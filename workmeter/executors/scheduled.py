"""Delayed and periodic task execution on a worker pool."""
from __future__ import annotations

import heapq
import itertools
import threading
import time
from concurrent.futures import Executor, Future, InvalidStateError, ThreadPoolExecutor
from typing import Any, Callable

from workmeter.errors import ExecutorShutdownError, RejectedExecutionError
from workmeter.observability.logging import get_logger

log = get_logger("executors")


class ScheduledFuture(Future):
    """
    Future for a task that runs after a delay, once or repeatedly.

    A periodic future stays pending across runs: it only finishes when it is
    cancelled or when a run raises, in which case the exception is set on it
    and no further runs happen.
    """

    def __init__(
        self,
        fn: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        deadline: float,
        period: float | None = None,
        fixed_rate: bool = True,
    ):
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.deadline = deadline
        self.period = period
        self.fixed_rate = fixed_rate

    @property
    def periodic(self) -> bool:
        return self.period is not None

    def delay(self) -> float:
        """Seconds until the next run is due (negative when overdue)."""
        return self.deadline - time.monotonic()


class ScheduledThreadPoolExecutor(Executor):
    """
    Runs tasks after a delay or periodically.

    A single dispatcher thread keeps due times in a heap and hands due tasks
    to a ThreadPoolExecutor. Periodic runs of one task never overlap: the
    next run is queued only after the previous one returns.

    Args:
        max_workers: Threads that run task bodies
        max_pending: Most tasks that may wait in the schedule; None for no limit
        thread_name_prefix: Prefix for worker and dispatcher thread names
    """

    def __init__(self, max_workers: int = 1, max_pending: int | None = None, thread_name_prefix: str = ""):
        if max_pending is not None and max_pending < 1:
            raise ValueError("max_pending must be positive")
        self.max_pending = max_pending
        self._prefix = thread_name_prefix or "scheduled"
        self._workers = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=self._prefix)
        self._queue: list[tuple[float, int, ScheduledFuture]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._shutdown = False
        self._dispatcher: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> ScheduledFuture:
        return self.schedule(fn, 0.0, *args, **kwargs)

    def schedule(self, fn: Callable[..., Any], delay: float, /, *args: Any, **kwargs: Any) -> ScheduledFuture:
        """Run ``fn(*args, **kwargs)`` once, ``delay`` seconds from now."""
        future = ScheduledFuture(fn, args, kwargs, time.monotonic() + max(delay, 0.0))
        self._enqueue(future)
        return future

    def schedule_at_fixed_rate(
        self, fn: Callable[..., Any], initial_delay: float, period: float, /, *args: Any, **kwargs: Any
    ) -> ScheduledFuture:
        """Run ``fn`` every ``period`` seconds measured from start to start."""
        if period <= 0:
            raise ValueError("period must be positive")
        future = ScheduledFuture(
            fn, args, kwargs, time.monotonic() + max(initial_delay, 0.0), period=period, fixed_rate=True
        )
        self._enqueue(future)
        return future

    def schedule_with_fixed_delay(
        self, fn: Callable[..., Any], initial_delay: float, delay: float, /, *args: Any, **kwargs: Any
    ) -> ScheduledFuture:
        """Run ``fn`` repeatedly, waiting ``delay`` seconds after each run ends."""
        if delay <= 0:
            raise ValueError("delay must be positive")
        future = ScheduledFuture(
            fn, args, kwargs, time.monotonic() + max(initial_delay, 0.0), period=delay, fixed_rate=False
        )
        self._enqueue(future)
        return future

    def _enqueue(self, future: ScheduledFuture) -> None:
        with self._cond:
            if self._shutdown:
                raise ExecutorShutdownError("cannot schedule new tasks after shutdown")
            if self.max_pending is not None:
                if len(self._queue) >= self.max_pending:
                    self._drop_cancelled()
                if len(self._queue) >= self.max_pending:
                    raise RejectedExecutionError(
                        f"Task {future.fn!r} rejected: {self.max_pending} tasks already scheduled"
                    )
            heapq.heappush(self._queue, (future.deadline, next(self._seq), future))
            if self._dispatcher is None:
                self._dispatcher = threading.Thread(
                    target=self._dispatch, name=f"{self._prefix}-dispatcher", daemon=True
                )
                self._dispatcher.start()
            self._cond.notify()

    def _drop_cancelled(self) -> None:
        # caller holds self._cond
        self._queue = [entry for entry in self._queue if not entry[2].cancelled()]
        heapq.heapify(self._queue)

    def _requeue(self, future: ScheduledFuture) -> None:
        with self._cond:
            if self._shutdown:
                future.cancel()
                return
            if future.cancelled():
                return
            heapq.heappush(self._queue, (future.deadline, next(self._seq), future))
            self._cond.notify()

    # ------------------------------------------------------------------
    # Dispatch and execution
    # ------------------------------------------------------------------

    def _dispatch(self) -> None:
        while True:
            future = self._next_due()
            if future is None:
                break
            if not future.cancelled():
                self._workers.submit(self._run, future)
        self._workers.shutdown(wait=False)

    def _next_due(self) -> ScheduledFuture | None:
        """Block until a task is due; None once shut down with nothing left to run."""
        with self._cond:
            while True:
                if not self._queue:
                    if self._shutdown:
                        return None
                    self._cond.wait()
                    continue
                remaining = self._queue[0][0] - time.monotonic()
                if remaining > 0:
                    self._cond.wait(remaining)
                    continue
                return heapq.heappop(self._queue)[2]

    def _run(self, future: ScheduledFuture) -> None:
        if not future.periodic:
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = future.fn(*future.args, **future.kwargs)
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)
            return

        if future.cancelled():
            return
        try:
            future.fn(*future.args, **future.kwargs)
        except BaseException as exc:
            log.warning(
                "periodic_task_failed",
                task=getattr(future.fn, "__name__", repr(future.fn)),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            try:
                future.set_exception(exc)
            except InvalidStateError:
                # cancelled while the failing run was in progress
                log.debug("periodic_task_cancelled_during_failure")
            return

        if future.fixed_rate:
            future.deadline += future.period
        else:
            future.deadline = time.monotonic() + future.period
        self._requeue(future)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def pending(self) -> int:
        """Scheduled tasks waiting for their next run, not counting cancelled ones."""
        with self._cond:
            return sum(1 for entry in self._queue if not entry[2].cancelled())

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        """
        Stop accepting tasks.

        Periodic tasks are cancelled. Delayed one-shot tasks still run when
        due unless ``cancel_futures`` is set.
        """
        with self._cond:
            self._shutdown = True
            kept = []
            for entry in self._queue:
                future = entry[2]
                if future.cancelled():
                    continue
                if future.periodic or cancel_futures:
                    future.cancel()
                else:
                    kept.append(entry)
            heapq.heapify(kept)
            self._queue = kept
            dispatcher = self._dispatcher
            self._cond.notify_all()
        log.debug("executor_shutdown", kind="scheduled", wait=wait, pending=len(kept))
        if dispatcher is None:
            self._workers.shutdown(wait=wait, cancel_futures=cancel_futures)
            return
        if wait:
            dispatcher.join()
            self._workers.shutdown(wait=True)
