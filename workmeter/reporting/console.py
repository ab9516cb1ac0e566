"""Renders a MetricRegistry as rich tables, once or on a fixed schedule."""
from __future__ import annotations

from rich.console import Console
from rich.table import Table

from workmeter.executors.scheduled import ScheduledFuture, ScheduledThreadPoolExecutor
from workmeter.metrics.instruments import Snapshot
from workmeter.metrics.registry import MetricRegistry
from workmeter.observability.logging import get_logger

log = get_logger("reporting")


def _f(value: float) -> str:
    return f"{value:.2f}"


class ConsoleReporter:
    """
    Prints counters, gauges, meters, histograms and timers.

    Rates are events per second; timer durations are shown in milliseconds.
    """

    def __init__(self, registry: MetricRegistry, console: Console | None = None, title: str = "workmeter"):
        self.registry = registry
        self.console = console or Console()
        self.title = title
        self._scheduler: ScheduledThreadPoolExecutor | None = None
        self._task: ScheduledFuture | None = None

    def tables(self) -> list[Table]:
        tables: list[Table] = []

        counters = self.registry.counters()
        if counters:
            t = Table(title="Counters")
            t.add_column("name"); t.add_column("count", justify="right")
            for n, c in counters.items():
                t.add_row(n, str(c.count))
            tables.append(t)

        gauges = self.registry.gauges()
        if gauges:
            t = Table(title="Gauges")
            t.add_column("name"); t.add_column("value", justify="right")
            for n, g in gauges.items():
                t.add_row(n, str(g.value))
            tables.append(t)

        meters = self.registry.meters()
        if meters:
            t = Table(title="Meters (events/s)")
            for col in ("name", "count", "mean", "1m", "5m", "15m"):
                t.add_column(col, justify="left" if col == "name" else "right")
            for n, m in meters.items():
                t.add_row(n, str(m.count), _f(m.mean_rate), _f(m.one_minute_rate),
                          _f(m.five_minute_rate), _f(m.fifteen_minute_rate))
            tables.append(t)

        histograms = self.registry.histograms()
        if histograms:
            t = Table(title="Histograms")
            self._distribution_columns(t)
            for n, h in histograms.items():
                t.add_row(n, str(h.count), *self._distribution_row(h.snapshot(), 1.0))
            tables.append(t)

        timers = self.registry.timers()
        if timers:
            t = Table(title="Timers (ms)")
            self._distribution_columns(t)
            t.add_column("mean rate/s", justify="right")
            for n, tm in timers.items():
                t.add_row(n, str(tm.count), *self._distribution_row(tm.snapshot(), 1000.0), _f(tm.mean_rate))
            tables.append(t)

        return tables

    @staticmethod
    def _distribution_columns(t: Table) -> None:
        t.add_column("name")
        for col in ("count", "min", "max", "mean", "stddev", "median", "p75", "p95", "p99"):
            t.add_column(col, justify="right")

    @staticmethod
    def _distribution_row(s: Snapshot, scale: float) -> list[str]:
        return [_f(v * scale) for v in (s.min, s.max, s.mean, s.stddev, s.median, s.p75, s.p95, s.p99)]

    def report(self) -> None:
        tables = self.tables()
        self.console.rule(self.title)
        if not tables:
            self.console.print("(no metrics)")
        for t in tables:
            self.console.print(t)

    def _report_safely(self) -> None:
        try:
            self.report()
        except Exception as e:
            # a failing report must not cancel the schedule
            log.exception("report_failed", err=str(e))

    def start(self, period_s: float) -> None:
        if self._task is not None:
            raise RuntimeError("reporter already started")
        self._scheduler = ScheduledThreadPoolExecutor(max_workers=1, thread_name_prefix="console-reporter")
        self._task = self._scheduler.schedule_at_fixed_rate(self._report_safely, period_s, period_s)
        log.info("reporter_started", period_s=period_s)

    def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=True)
        self._scheduler = None
        self._task = None
        log.info("reporter_stopped")
