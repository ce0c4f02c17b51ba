# Overview: Counter/timer sinks passed explicitly into service operations.

"""
Observability sinks

Operations accept a `metrics` argument instead of reaching for a module-level
monitor. The Flask app keeps the sink it was created with in
app.extensions["karat.metrics"]; routes pass it down, tests pass
InMemoryMetrics and assert on it.
"""

from __future__ import annotations

import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Iterator, Protocol


class MetricsSink(Protocol):
    def increment(self, name: str, value: int = 1, **tags) -> None:
        ...

    def timer(self, name: str, **tags):
        ...


class NullMetrics:
    """Discards everything."""

    def increment(self, name: str, value: int = 1, **tags) -> None:
        return None

    @contextmanager
    def timer(self, name: str, **tags) -> Iterator[None]:
        yield


class InMemoryMetrics:
    """Keeps counters and timings in memory, keyed by metric name."""

    def __init__(self):
        self.counters: dict[str, int] = defaultdict(int)
        self.timings: dict[str, list[float]] = defaultdict(list)

    def increment(self, name: str, value: int = 1, **tags) -> None:
        self.counters[name] += value

    @contextmanager
    def timer(self, name: str, **tags) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timings[name].append(time.perf_counter() - start)

    def count(self, name: str) -> int:
        return self.counters.get(name, 0)


NULL_METRICS = NullMetrics()


def resolve(metrics: MetricsSink | None) -> MetricsSink:
    return metrics if metrics is not None else NULL_METRICS


def current_metrics() -> MetricsSink:
    """The sink the running Flask app was created with."""
    from flask import current_app

    return resolve(current_app.extensions.get("karat.metrics"))
