from workmeter.metrics import MetricRegistry
from workmeter.observability.metrics import prometheus_name, render_latest


def test_names_are_sanitized():
    assert prometheus_name("pool.scheduled.percent-of-period") == "pool_scheduled_percent_of_period"
    assert prometheus_name("1st.pool") == "_1st_pool"
    assert prometheus_name("pool.running", "wm") == "wm_pool_running"


def test_render_latest():
    r = MetricRegistry()
    r.counter("pool.running").inc(2)
    r.meter("pool.submitted").mark(3)
    r.timer("pool.duration").update(0.5)
    r.histogram("pool.sizes").update(4)
    r.gauge("pool.capacity", lambda: 8)
    r.gauge("pool.label", lambda: "not-a-number")

    text = render_latest(r).decode("utf-8")

    assert "pool_running 2.0" in text
    assert "pool_submitted_total 3.0" in text
    assert "# TYPE pool_duration summary" in text
    assert 'pool_duration{quantile="0.5"} 0.5' in text
    assert "pool_duration_count 1.0" in text
    assert "pool_duration_sum 0.5" in text
    assert "pool_sizes_count 1.0" in text
    assert "pool_capacity 8.0" in text
    assert "pool_label" not in text


def test_render_empty_registry():
    assert render_latest(MetricRegistry()) == b""


def test_colliding_names_render_once(captured_logs):
    r = MetricRegistry()
    r.counter("a-b").inc(1)
    r.counter("a.b").inc(2)

    text = render_latest(r).decode("utf-8")

    assert text.count("# TYPE a_b gauge") == 1
    assert "a_b 1.0" in text
    assert "a_b 2.0" not in text
    collisions = [e for e in captured_logs if e["event"] == "prometheus_name_collision"]
    assert collisions[0]["name"] == "a.b"
    assert collisions[0]["kept"] == "a-b"
