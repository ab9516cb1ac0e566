from __future__ import annotations
import time
from concurrent.futures import Future, wait
from enum import Enum
from typing import Optional

import typer
from rich import print

from workmeter.config import ExecutorConfig, Settings, load_settings
from workmeter.errors import RejectedExecutionError
from workmeter.executors import (
    BoundedThreadPoolExecutor,
    InstrumentedExecutor,
    InstrumentedScheduledExecutor,
    ScheduledThreadPoolExecutor,
)
from workmeter.metrics import MetricRegistry
from workmeter.observability.logging import bound_executor, configure_logging, get_logger
from workmeter.observability.metrics import render_latest
from workmeter.reporting import ConsoleReporter

app = typer.Typer(help="workmeter - run synthetic workloads through instrumented executors and show their metrics.")
log = get_logger("cli")


class OutputFormat(str, Enum):
    table = "table"
    prometheus = "prometheus"


def _setup() -> tuple[Settings, MetricRegistry]:
    settings = load_settings()
    configure_logging(settings.log_level, settings.json_logs)
    return settings, MetricRegistry(reservoir_size=settings.reservoir_size)

def _emit(registry: MetricRegistry, fmt: OutputFormat, title: str) -> None:
    if fmt == OutputFormat.prometheus:
        typer.echo(render_latest(registry).decode("utf-8"), nl=False)
    else:
        ConsoleReporter(registry, title=title).report()

@app.command()
def bench(
    tasks: int = typer.Option(100, min=1, help="Tasks to submit."),
    workers: Optional[int] = typer.Option(None, min=1, help="Worker threads (default: WM_MAX_WORKERS)."),
    queue_size: Optional[int] = typer.Option(None, min=0, help="Queued tasks beyond busy workers (default: WM_QUEUE_SIZE)."),
    task_ms: float = typer.Option(10.0, min=0.0, help="Sleep per task in milliseconds."),
    prefix: Optional[str] = typer.Option(None, help="Metrics prefix (default: WM_METRICS_PREFIX)."),
    fmt: OutputFormat = typer.Option(OutputFormat.table, "--format"),
):
    """Submit sleeping tasks to an instrumented bounded pool as fast as possible."""
    settings, registry = _setup()
    base = settings.executor_config()
    cfg = ExecutorConfig(
        name=prefix or base.name,
        max_workers=workers or base.max_workers,
        queue_size=base.queue_size if queue_size is None else queue_size,
        thread_name_prefix=prefix or base.thread_name_prefix,
    )

    futures: list[Future] = []
    rejected = 0
    with bound_executor(cfg.name):
        with InstrumentedExecutor(BoundedThreadPoolExecutor.from_config(cfg), registry, cfg.name) as ex:
            for _ in range(tasks):
                try:
                    futures.append(ex.submit(time.sleep, task_ms / 1000.0))
                except RejectedExecutionError:
                    rejected += 1
            wait(futures)
        log.info("bench_finished", tasks=tasks, admitted=len(futures), rejected=rejected)

    _emit(registry, fmt, f"bench: {cfg.name}")
    if fmt == OutputFormat.table:
        print(f"[bold]{len(futures)}[/bold] admitted, [bold]{rejected}[/bold] rejected")

@app.command()
def tick(
    seconds: float = typer.Option(1.0, min=0.0, help="How long to keep the periodic task scheduled."),
    period_ms: float = typer.Option(100.0, min=1.0, help="Fixed rate between run starts."),
    work_ms: float = typer.Option(10.0, min=0.0, help="Sleep per run in milliseconds."),
    prefix: str = typer.Option("ticker", help="Metrics prefix."),
    fmt: OutputFormat = typer.Option(OutputFormat.table, "--format"),
):
    """Run a fixed-rate task through an instrumented scheduled pool."""
    settings, registry = _setup()
    backend = ScheduledThreadPoolExecutor(max_workers=settings.scheduler_workers, thread_name_prefix=prefix)
    with bound_executor(prefix):
        with InstrumentedScheduledExecutor(backend, registry, prefix) as ex:
            handle = ex.schedule_at_fixed_rate(time.sleep, 0.0, period_ms / 1000.0, work_ms / 1000.0)
            time.sleep(seconds)
            handle.cancel()
        log.info("tick_finished", runs=ex.completed.count, overruns=ex.scheduled_overrun.count)

    _emit(registry, fmt, f"tick: {prefix}")

def main():
    """Entry point for the CLI."""
    app()
