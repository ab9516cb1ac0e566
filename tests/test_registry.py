import threading

import pytest

from workmeter.metrics import (
    Counter,
    MetricRegistry,
    clear_shared_registries,
    name,
    shared_registry,
)


def test_name_joins_non_empty_parts():
    assert name("pool", "duration") == "pool.duration"
    assert name("pool", "", None, "scheduled", "once") == "pool.scheduled.once"
    assert name() == ""


def test_lookup_is_idempotent():
    r = MetricRegistry()
    assert r.counter("a") is r.counter("a")
    assert r.meter("b") is r.meter("b")
    assert r.timer("c") is r.timer("c")
    assert r.histogram("d") is r.histogram("d")
    assert r.names() == ["a", "b", "c", "d"]


def test_name_clash_between_kinds():
    r = MetricRegistry()
    r.counter("x")
    with pytest.raises(ValueError):
        r.meter("x")


def test_concurrent_first_lookups_agree():
    r = MetricRegistry()
    seen = []
    barrier = threading.Barrier(8)

    def lookup():
        barrier.wait()
        seen.append(r.counter("race"))

    threads = [threading.Thread(target=lookup) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len({id(c) for c in seen}) == 1


def test_register_and_remove():
    r = MetricRegistry()
    c = r.register("custom", Counter())
    assert r.get("custom") is c
    with pytest.raises(ValueError):
        r.register("custom", Counter())
    assert r.remove("custom")
    assert not r.remove("custom")
    assert "custom" not in r


def test_remove_matching():
    r = MetricRegistry()
    r.counter("pool.running"); r.meter("pool.submitted"); r.meter("other.submitted")
    removed = r.remove_matching(lambda n, m: n.startswith("pool."))
    assert sorted(removed) == ["pool.running", "pool.submitted"]
    assert r.names() == ["other.submitted"]


def test_typed_views_are_sorted():
    r = MetricRegistry()
    r.meter("z"); r.meter("a"); r.counter("m")
    assert list(r.meters()) == ["a", "z"]
    assert list(r.counters()) == ["m"]
    assert r.timers() == {}
    assert len(r) == 3


def test_gauge_requires_supplier_on_creation():
    r = MetricRegistry()
    with pytest.raises(ValueError):
        r.gauge("g")
    g = r.gauge("g", lambda: 3)
    assert r.gauge("g") is g
    assert g.value == 3


def test_shared_registries():
    clear_shared_registries()
    assert shared_registry("app") is shared_registry("app")
    assert shared_registry("app") is not shared_registry("other")
    first = shared_registry("app")
    clear_shared_registries()
    assert shared_registry("app") is not first
