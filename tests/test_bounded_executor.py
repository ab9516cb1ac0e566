import threading

import pytest

from workmeter.config import ExecutorConfig
from workmeter.errors import ExecutorShutdownError, RejectedExecutionError
from workmeter.executors import BoundedThreadPoolExecutor


def test_admits_up_to_capacity():
    pool = BoundedThreadPoolExecutor(max_workers=2, queue_size=1)
    finish = threading.Event()
    futures = [pool.submit(finish.wait, 5) for _ in range(3)]

    with pytest.raises(RejectedExecutionError):
        pool.submit(lambda: None)

    finish.set()
    assert all(f.result(timeout=5) for f in futures)
    pool.shutdown()


def test_slots_are_released_when_tasks_finish():
    pool = BoundedThreadPoolExecutor(max_workers=1, queue_size=0)
    for i in range(5):
        assert pool.submit(lambda v=i: v).result(timeout=5) == i
    pool.shutdown()


def test_failed_task_releases_its_slot():
    pool = BoundedThreadPoolExecutor(max_workers=1)

    def boom():
        raise KeyError("x")

    assert isinstance(pool.submit(boom).exception(timeout=5), KeyError)
    assert pool.submit(lambda: "next").result(timeout=5) == "next"
    pool.shutdown()


def test_cancelled_task_releases_its_slot():
    pool = BoundedThreadPoolExecutor(max_workers=1, queue_size=1)
    finish = threading.Event()
    running = pool.submit(finish.wait, 5)
    queued = pool.submit(lambda: None)
    assert queued.cancel()

    # the freed slot admits another task
    again = pool.submit(lambda: "ok")
    finish.set()
    assert running.result(timeout=5)
    assert again.result(timeout=5) == "ok"
    pool.shutdown()


def test_submit_after_shutdown():
    pool = BoundedThreadPoolExecutor(max_workers=1)
    pool.shutdown()
    with pytest.raises(ExecutorShutdownError):
        pool.submit(lambda: None)
    # a refused shutdown submission must not leak a slot
    assert pool._slots.acquire(blocking=False)


def test_from_config():
    pool = BoundedThreadPoolExecutor.from_config(ExecutorConfig(name="io", max_workers=3, queue_size=5))
    assert pool.capacity == 8
    assert pool.queue_size == 5
    pool.shutdown()


def test_negative_queue_size():
    with pytest.raises(ValueError):
        BoundedThreadPoolExecutor(max_workers=1, queue_size=-1)
