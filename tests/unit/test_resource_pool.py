import asyncio

import httpx
import pytest

from loganalytics.core.resources import HttpClientPool, PoolClosedError


def _ok_transport() -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(200))


@pytest.mark.asyncio
async def test_http_client_pool_basic():
    pool = HttpClientPool(max_size=2, transport=_ok_transport())
    assert pool.started is False
    await pool.start()
    assert pool.started is True
    async with pool.acquire() as client:
        resp = await client.post("https://example.invalid/x", content=b"{}")
        assert resp.status_code == 200
    await pool.stop()
    assert pool.started is False


@pytest.mark.asyncio
async def test_acquire_before_start_raises():
    pool = HttpClientPool(name="unstarted")
    with pytest.raises(PoolClosedError, match="unstarted"):
        async with pool.acquire():
            pass


@pytest.mark.asyncio
async def test_pool_acquire_timeout_backpressure():
    pool = HttpClientPool(
        max_size=1, acquire_timeout_seconds=0.05, transport=_ok_transport()
    )
    await pool.start()
    try:
        async with pool.acquire():
            with pytest.raises(TimeoutError):
                async with pool.acquire():
                    pass
        # Released slot is reusable
        async with pool.acquire() as client:
            assert client is not None
    finally:
        await pool.stop()


@pytest.mark.asyncio
async def test_concurrent_use_is_bounded():
    in_flight = 0
    peak = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return httpx.Response(200)

    pool = HttpClientPool(
        max_size=2, acquire_timeout_seconds=5.0, transport=httpx.MockTransport(handler)
    )
    await pool.start()

    async def call() -> None:
        async with pool.acquire() as client:
            await client.post("https://example.invalid/x", content=b"{}")

    await asyncio.gather(*(call() for _ in range(6)))
    await pool.stop()
    assert peak <= 2


@pytest.mark.asyncio
async def test_stop_calls_aclose(monkeypatch):
    closed = {"n": 0}
    original = httpx.AsyncClient.aclose

    async def _aclose(self):
        closed["n"] += 1
        await original(self)

    monkeypatch.setattr(httpx.AsyncClient, "aclose", _aclose)
    pool = HttpClientPool(transport=_ok_transport())
    await pool.start()
    await pool.stop()
    await pool.stop()
    assert closed["n"] == 1


def test_invalid_size():
    with pytest.raises(ValueError):
        HttpClientPool(max_size=0)
