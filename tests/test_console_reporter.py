import io
import time

from rich.console import Console

from workmeter.metrics import MetricRegistry
from workmeter.reporting import ConsoleReporter


def _console():
    buf = io.StringIO()
    return buf, Console(file=buf, width=200, force_terminal=False, color_system=None)


def test_report_lists_every_kind():
    r = MetricRegistry()
    r.counter("pool.running").inc()
    r.meter("pool.submitted").mark()
    r.timer("pool.duration").update(0.002)
    r.histogram("pool.scheduled.percent-of-period").update(50)
    r.gauge("pool.capacity", lambda: 4)
    buf, console = _console()

    ConsoleReporter(r, console=console, title="pool").report()
    out = buf.getvalue()

    for expected in ("pool.running", "pool.submitted", "pool.duration", "pool.capacity",
                     "pool.scheduled.percent-of-period", "Timers (ms)", "Meters (events/s)"):
        assert expected in out
    assert "2.00" in out  # 2 ms


def test_report_empty_registry():
    buf, console = _console()
    ConsoleReporter(MetricRegistry(), console=console).report()
    assert "(no metrics)" in buf.getvalue()


def test_periodic_reports():
    r = MetricRegistry()
    r.counter("ticks").inc()
    buf, console = _console()
    reporter = ConsoleReporter(r, console=console, title="periodic")
    reporter.start(0.01)
    try:
        deadline = time.monotonic() + 5
        while buf.getvalue().count("periodic") < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        reporter.stop()
    assert buf.getvalue().count("periodic") >= 2
