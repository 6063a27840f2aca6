"""End-to-end pipeline tests against a mocked collector endpoint."""

from __future__ import annotations

import asyncio
import json
import threading
from typing import Any

import httpx
import pytest

from loganalytics import LogAnalyticsSink, LogEvent, MetricsCollector
from loganalytics.core.resources import HttpClientPool
from loganalytics.core.signature import build_signature

pytestmark = pytest.mark.integration


class _Collector:
    """Records requests; optionally fails the first ``fail_first`` of them."""

    def __init__(self, *, fail_first: int = 0, status: int = 200) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_first = fail_first
        self.status = status
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
            n = len(self.requests)
        if n <= self.fail_first:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status)

    def bodies(self) -> list[Any]:
        return [json.loads(r.content) for r in self.requests]


def _pool(collector: _Collector) -> HttpClientPool:
    return HttpClientPool(name="test", transport=httpx.MockTransport(collector))


def _events(n: int) -> list[LogEvent]:
    return [
        LogEvent.create("Information", "Order {OrderId} placed", OrderId=i)
        for i in range(n)
    ]


@pytest.mark.asyncio
async def test_three_events_two_batches_signed(
    sink_config: dict, shared_key: str
) -> None:
    collector = _Collector()
    sink = LogAnalyticsSink(
        sink_config,
        batch_size=2,
        flush_interval_seconds=30.0,
        time_generated_field="Timestamp",
        pool=_pool(collector),
    )
    await sink.start()
    for event in _events(3):
        sink.submit(event)
    await sink.stop()

    assert len(collector.requests) == 2
    first, second = collector.bodies()
    assert isinstance(first, list) and len(first) == 2
    assert isinstance(second, dict)
    assert [r["Properties.OrderId"] for r in first] == [0, 1]
    assert second["Message"] == "Order 2 placed"

    for request in collector.requests:
        assert str(request.url) == (
            "https://0b1c2d3e-aaaa-bbbb-cccc-123456789abc.ods.opinsights.azure.com"
            "/api/logs?api-version=2016-04-01"
        )
        assert request.method == "POST"
        assert request.headers["Log-Type"] == "AppLogs"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["time-generated-field"] == "Timestamp"
        assert int(request.headers["Content-Length"]) == len(request.content)
        date = request.headers["x-ms-date"]
        assert date.endswith(" GMT")
        expected = build_signature(len(request.content), date, shared_key)
        assert request.headers["Authorization"] == (
            f"SharedKey {sink_config['workspace_id']}:{expected}"
        )


@pytest.mark.asyncio
async def test_network_failure_then_next_cycle_succeeds(sink_config: dict) -> None:
    collector = _Collector(fail_first=1)
    metrics = MetricsCollector()
    sink = LogAnalyticsSink(
        sink_config,
        batch_size=1,
        retry_max_attempts=1,
        flush_interval_seconds=30.0,
        pool=_pool(collector),
        metrics=metrics,
    )
    await sink.start()
    a, b = _events(2)
    sink.submit(a)
    await sink.flush()
    assert await sink.health_check() is False
    sink.submit(b)
    await sink.flush()
    assert await sink.health_check() is True
    await sink.stop()

    snap = metrics.snapshot()
    assert snap.batches_failed == 1
    assert snap.batches_delivered == 1
    assert snap.events_dropped == 1
    assert collector.bodies()[-1]["Properties.OrderId"] == 1


@pytest.mark.asyncio
async def test_transient_failure_is_retried(sink_config: dict) -> None:
    collector = _Collector(fail_first=2)
    metrics = MetricsCollector()
    sink = LogAnalyticsSink(
        sink_config,
        retry_max_attempts=3,
        retry_base_delay_seconds=0.0,
        flush_interval_seconds=30.0,
        pool=_pool(collector),
        metrics=metrics,
    )
    await sink.start()
    sink.submit(_events(1)[0])
    await sink.flush()
    await sink.stop()

    assert len(collector.requests) == 3
    # Every attempt carries an identical body
    assert len({r.content for r in collector.requests}) == 1
    snap = metrics.snapshot()
    assert snap.delivery_attempts == 3
    assert snap.batches_delivered == 1


@pytest.mark.asyncio
async def test_non_2xx_is_dropped_after_retries(sink_config: dict) -> None:
    collector = _Collector(status=403)
    sink = LogAnalyticsSink(
        sink_config,
        retry_max_attempts=2,
        retry_base_delay_seconds=0.0,
        flush_interval_seconds=30.0,
        pool=_pool(collector),
    )
    await sink.start()
    sink.submit(_events(1)[0])
    await sink.flush()
    assert sink.buffer.is_empty()
    await sink.stop()
    assert len(collector.requests) == 2


@pytest.mark.asyncio
async def test_interval_flushes_partial_batch(sink_config: dict) -> None:
    collector = _Collector()
    sink = LogAnalyticsSink(
        sink_config,
        batch_size=100,
        flush_interval_seconds=0.05,
        pool=_pool(collector),
    )
    async with sink:
        sink.submit(_events(1)[0])
        for _ in range(100):
            if collector.requests:
                break
            await asyncio.sleep(0.01)
        assert len(collector.requests) == 1


def test_threaded_sink_end_to_end(sink_config: dict) -> None:
    collector = _Collector()
    sink = LogAnalyticsSink(
        sink_config,
        batch_size=10,
        flush_interval_seconds=30.0,
        pool=_pool(collector),
    )
    sink.start_in_thread()
    for event in _events(25):
        sink.submit(event)
    sink.close(timeout=5.0)

    ids = [
        r["Properties.OrderId"]
        for body in collector.bodies()
        for r in (body if isinstance(body, list) else [body])
    ]
    assert sorted(ids) == list(range(25))
