"""
Lifecycle-owned HTTP transport.

`HttpClientPool` owns a single connection-pooled ``httpx.AsyncClient`` for
the lifetime of one sink. ``acquire()`` hands out the shared client under a
semaphore so the number of concurrent requests stays bounded.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from .errors import LogAnalyticsError


class PoolClosedError(LogAnalyticsError):
    pass


class HttpClientPool:
    """Shared ``httpx.AsyncClient`` with bounded concurrent use."""

    def __init__(
        self,
        *,
        name: str = "http",
        max_size: int = 4,
        timeout: float = 30.0,
        acquire_timeout_seconds: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self.name = name
        self._transport = transport
        self._max_size = max_size
        self._timeout = timeout
        self._acquire_timeout = acquire_timeout_seconds
        self._client: httpx.AsyncClient | None = None
        self._sem: asyncio.Semaphore | None = None

    @property
    def started(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        if self._client is not None:
            return
        self._sem = asyncio.Semaphore(self._max_size)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            limits=httpx.Limits(
                max_connections=self._max_size,
                max_keepalive_connections=self._max_size,
            ),
            transport=self._transport,
        )

    async def stop(self) -> None:
        client, self._client = self._client, None
        self._sem = None
        if client is not None:
            await client.aclose()

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is None or self._sem is None:
            raise PoolClosedError(f"HTTP pool '{self.name}' is not started")
        sem = self._sem
        try:
            await asyncio.wait_for(sem.acquire(), timeout=self._acquire_timeout)
        except asyncio.TimeoutError as exc:
            raise TimeoutError(
                f"Timed out acquiring HTTP client from pool '{self.name}'"
            ) from exc
        try:
            yield self._client
        finally:
            sem.release()


__all__ = ["HttpClientPool", "PoolClosedError"]
