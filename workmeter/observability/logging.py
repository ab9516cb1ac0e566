from __future__ import annotations
import logging, sys
from contextlib import contextmanager
from typing import Iterator

import structlog


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    # stdout is reserved for CLI reports
    logging.basicConfig(level=numeric_level, stream=sys.stderr, format="%(message)s")

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    processors.append(structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "workmeter"):
    return structlog.get_logger(name)


@contextmanager
def bound_executor(name: str) -> Iterator[None]:
    """Tag every log event emitted inside the block with the executor name."""
    with structlog.contextvars.bound_contextvars(executor=name):
        yield
