from __future__ import annotations

import threading
import time

import pytest

from lotsweep.core.cache import CacheStats, TTLCache
from lotsweep.core.metrics import MetricsRegistry


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_cache_expiry_and_stats() -> None:
    clock = _Clock()
    c = TTLCache(default_ttl_s=10.0, clock=clock)
    c.set(("a.csv", 1), 1)
    assert c.get(("a.csv", 1)) == 1
    assert c.get(("a.csv", 2)) is None

    clock.now = 10.0
    assert c.get(("a.csv", 1), "gone") == "gone"
    assert c.stats() == CacheStats(hits=1, misses=2, size=0)


def test_cache_prune_and_clear() -> None:
    clock = _Clock()
    c = TTLCache(default_ttl_s=10.0, clock=clock)
    c.set("old", 1, ttl_s=1.0)
    c.set("new", 2)
    clock.now = 5.0
    assert c.prune() == 1
    assert len(c) == 1
    c.clear()
    assert len(c) == 0


def test_cache_keeps_falsy_values() -> None:
    c = TTLCache()
    calls: list[int] = []

    def load() -> int:
        calls.append(1)
        return 0

    assert c.get_or_load("k", load) == 0
    assert c.get_or_load("k", load) == 0
    assert len(calls) == 1


def test_cache_loader_error_caches_nothing() -> None:
    c = TTLCache()

    def load() -> int:
        raise OSError("unreadable")

    with pytest.raises(OSError):
        c.get_or_load("k", load)
    assert len(c) == 0


def test_cache_loads_once_under_contention() -> None:
    c = TTLCache()
    calls: list[int] = []

    def load() -> str:
        calls.append(1)
        time.sleep(0.01)
        return "series"

    results: list[str] = []
    threads = [threading.Thread(target=lambda: results.append(c.get_or_load("k", load))) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results == ["series"] * 8
    assert len(calls) == 1
    assert c.stats().hits == 7


def test_counters_are_thread_safe() -> None:
    m = MetricsRegistry()

    def bump() -> None:
        for _ in range(1000):
            m.counter("sweep.done").inc()

    threads = [threading.Thread(target=bump) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    m.gauge("sweep.total").set(8000)
    assert m.counter("sweep.done").value == 8000
    assert m.counter("sweep.done") is m.counter("sweep.done")
    snap = m.snapshot()
    assert snap["counter.sweep.done"] == 8000.0
    assert snap["gauge.sweep.total"] == 8000.0


def test_timer_summary() -> None:
    m = MetricsRegistry()
    t = m.timer("sweep.combination")
    t.observe(0.5)
    t.observe(1.5)
    with t.time():
        pass

    s = t.summary()
    assert s["count"] == 3.0
    assert s["max_s"] == 1.5
    assert s["total_s"] >= 2.0
    assert m.snapshot()["timer.sweep.combination.count"] == 3.0
