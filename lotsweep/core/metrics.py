"""lotsweep.core.metrics

Sweep progress counters and per-combination timings.

Workers share one registry, so every read and write goes through a lock.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class Counter:
    name: str
    _value: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def inc(self, amount: int = 1) -> int:
        """Increment and return the new value."""
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass
class Gauge:
    name: str
    _value: float = 0.0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    @property
    def value(self) -> float:
        with self._lock:
            return self._value


@dataclass
class Timer:
    """Count, total and worst case of observed durations, in seconds."""

    name: str
    _count: int = 0
    _total_s: float = 0.0
    _max_s: float = 0.0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def observe(self, seconds: float) -> None:
        with self._lock:
            self._count += 1
            self._total_s += seconds
            self._max_s = max(self._max_s, seconds)

    @contextmanager
    def time(self) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(time.perf_counter() - start)

    def summary(self) -> dict[str, float]:
        with self._lock:
            mean = self._total_s / self._count if self._count else 0.0
            return {"count": float(self._count), "total_s": self._total_s, "mean_s": mean, "max_s": self._max_s}


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._timers: dict[str, Timer] = {}

    def counter(self, name: str) -> Counter:
        with self._lock:
            return self._counters.setdefault(name, Counter(name=name))

    def gauge(self, name: str) -> Gauge:
        with self._lock:
            return self._gauges.setdefault(name, Gauge(name=name))

    def timer(self, name: str) -> Timer:
        with self._lock:
            return self._timers.setdefault(name, Timer(name=name))

    def snapshot(self) -> dict[str, float]:
        """Flat view: ``counter.<name>``, ``gauge.<name>``, ``timer.<name>.<stat>``."""

        with self._lock:
            data: dict[str, float] = {f"counter.{k}": float(c.value) for k, c in self._counters.items()}
            data.update({f"gauge.{k}": g.value for k, g in self._gauges.items()})
            for k, t in self._timers.items():
                data.update({f"timer.{k}.{stat}": v for stat, v in t.summary().items()})
            return data
