"""Thread pool with a fixed admission capacity."""
from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from workmeter.config import ExecutorConfig
from workmeter.errors import ExecutorShutdownError, RejectedExecutionError
from workmeter.observability.logging import get_logger

log = get_logger("executors")


class BoundedThreadPoolExecutor(ThreadPoolExecutor):
    """
    ThreadPoolExecutor that refuses work instead of queueing without limit.

    At most ``max_workers + queue_size`` tasks may be admitted and not yet
    finished; one more submit raises RejectedExecutionError. A slot is freed
    when a task finishes, fails or is cancelled.
    """

    def __init__(self, max_workers: int, queue_size: int = 0, thread_name_prefix: str = ""):
        if queue_size < 0:
            raise ValueError("queue_size must be >= 0")
        super().__init__(max_workers=max_workers, thread_name_prefix=thread_name_prefix)
        self.queue_size = queue_size
        self.capacity = max_workers + queue_size
        self._slots = threading.BoundedSemaphore(self.capacity)

    @classmethod
    def from_config(cls, config: ExecutorConfig) -> BoundedThreadPoolExecutor:
        return cls(
            max_workers=config.max_workers,
            queue_size=config.queue_size,
            thread_name_prefix=config.thread_name_prefix or config.name,
        )

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        if not self._slots.acquire(blocking=False):
            raise RejectedExecutionError(
                f"Task {fn!r} rejected: all {self.capacity} slots of the pool are in use"
            )
        try:
            future = super().submit(fn, *args, **kwargs)
        except RuntimeError as e:
            self._slots.release()
            raise ExecutorShutdownError(str(e)) from e
        future.add_done_callback(self._release)
        return future

    def _release(self, _future: Future) -> None:
        self._slots.release()

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        log.debug("executor_shutdown", kind="bounded", wait=wait, cancel_futures=cancel_futures)
        super().shutdown(wait=wait, cancel_futures=cancel_futures)
