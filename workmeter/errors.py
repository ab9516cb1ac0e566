"""Errors raised by executors at admission time."""
from __future__ import annotations


class RejectedExecutionError(RuntimeError):
    """Raised when an executor has no capacity left to admit a task."""

    pass


class ExecutorShutdownError(RuntimeError):
    """Raised when work is submitted to an executor that has been shut down."""

    pass
