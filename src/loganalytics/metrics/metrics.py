"""
Async-first delivery metrics for the Log Analytics sink.

Implements a minimal Prometheus-compatible set of counters and a latency
histogram for intake, batching and delivery.

Design goals:
- Zero global state; one collector per sink on an isolated registry
- Safe no-op export when metrics are disabled
- In-memory counters are always kept for quick assertions in tests
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class PipelineMetrics:
    """Captured runtime metrics for quick assertions in tests."""

    events_submitted: int = 0
    events_dropped: int = 0
    events_delivered: int = 0
    batches_delivered: int = 0
    batches_failed: int = 0
    delivery_attempts: int = 0


class MetricsCollector:
    """Sink-scoped metrics collector.

    Counters are updated from producer threads (drops on overflow) as well as
    from the worker, so state is guarded by a thread lock rather than an
    asyncio lock.
    """

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = threading.Lock()
        self._state = PipelineMetrics()

        self._c_submitted: Any | None = None
        self._c_dropped: Any | None = None
        self._c_batches: Any | None = None
        self._c_attempts: Any | None = None
        self._h_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry avoids duplicate registration across sinks
            self._registry = CollectorRegistry()
            self._c_submitted = Counter(
                "loganalytics_events_submitted_total",
                "Total number of events accepted into the buffer",
                registry=self._registry,
            )
            self._c_dropped = Counter(
                "loganalytics_events_dropped_total",
                "Total number of events dropped",
                ["reason"],
                registry=self._registry,
            )
            self._c_batches = Counter(
                "loganalytics_batches_total",
                "Total number of batches by delivery result",
                ["result"],
                registry=self._registry,
            )
            self._c_attempts = Counter(
                "loganalytics_delivery_attempts_total",
                "Total number of HTTP delivery attempts",
                registry=self._registry,
            )
            self._h_latency = Histogram(
                "loganalytics_delivery_seconds",
                "Latency of a single HTTP delivery attempt",
                buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        """Expose the isolated Prometheus registry when enabled."""
        return self._registry

    def record_event_submitted(self) -> None:
        with self._lock:
            self._state.events_submitted += 1
        if self._c_submitted is not None:
            self._c_submitted.inc()

    def record_events_dropped(self, count: int, *, reason: str) -> None:
        if count <= 0:
            return
        with self._lock:
            self._state.events_dropped += count
        if self._c_dropped is not None:
            self._c_dropped.labels(reason=reason).inc(count)

    def record_attempt(self, *, duration_seconds: float | None = None) -> None:
        with self._lock:
            self._state.delivery_attempts += 1
        if self._c_attempts is not None:
            self._c_attempts.inc()
        if duration_seconds is not None and self._h_latency is not None:
            self._h_latency.observe(duration_seconds)

    def record_batch_delivered(self, size: int) -> None:
        with self._lock:
            self._state.batches_delivered += 1
            self._state.events_delivered += size
        if self._c_batches is not None:
            self._c_batches.labels(result="delivered").inc()

    def record_batch_failed(self) -> None:
        with self._lock:
            self._state.batches_failed += 1
        if self._c_batches is not None:
            self._c_batches.labels(result="failed").inc()

    def snapshot(self) -> PipelineMetrics:
        with self._lock:
            s = self._state
            return PipelineMetrics(
                events_submitted=s.events_submitted,
                events_dropped=s.events_dropped,
                events_delivered=s.events_delivered,
                batches_delivered=s.batches_delivered,
                batches_failed=s.batches_failed,
                delivery_attempts=s.delivery_attempts,
            )
