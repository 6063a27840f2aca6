"""
Background batch scheduler.

Drains the `EventBuffer` into size-bounded batches, encodes them and hands
them to the delivery client. One scheduler runs per sink as a single asyncio
task; producers never wait on it.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Awaitable, Callable, Mapping, Sequence

from ..metrics.metrics import MetricsCollector
from . import diagnostics
from .concurrency import EventBuffer
from .errors import RetryExhaustedError, TransientDeliveryError
from .retry import AsyncRetrier, RetryConfig
from .serialization import EncodedPayload, encode_batch

# Delivery callable: EncodedPayload -> outcome exposing ``success`` and friends
Deliver = Callable[[EncodedPayload], Awaitable[Any]]
Formatter = Callable[[Any], Mapping[str, Any]]


class BatchScheduler:
    """Drain-encode-deliver loop with bounded retry and a final flush.

    Wake-up sources:
    - a fixed interval (``flush_interval_seconds``), so a partial batch never
      waits longer than one interval
    - ``notify()`` from any thread once the buffer reaches ``batch_size``
    - ``request_stop()``
    """

    def __init__(
        self,
        *,
        buffer: EventBuffer[Any],
        batch_size: int,
        flush_interval_seconds: float,
        deliver: Deliver,
        formatter: Formatter,
        retry_config: RetryConfig | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self._buffer = buffer
        self._batch_size = batch_size
        self._interval = flush_interval_seconds
        self._deliver = deliver
        self._formatter = formatter
        self._retry_config = retry_config or RetryConfig(max_attempts=1)
        self._metrics = metrics
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wake: asyncio.Event | None = None
        self._stopping = False
        self._last_success: bool | None = None
        self._lock = asyncio.Lock()
        self._in_flight = 0

    @property
    def last_success(self) -> bool | None:
        return self._last_success

    @property
    def in_flight(self) -> int:
        """Size of the batch currently being delivered, 0 when idle."""
        return self._in_flight

    @property
    def running(self) -> bool:
        return self._loop is not None and not self._stopping

    def notify(self) -> None:
        """Wake the worker. Safe to call from any thread."""
        loop, wake = self._loop, self._wake
        if loop is None or wake is None:
            return
        try:
            loop.call_soon_threadsafe(wake.set)
        except RuntimeError:
            # Loop already closed; the final drain has run or will not run
            pass

    def request_stop(self) -> None:
        self._stopping = True
        self.notify()

    async def run(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        try:
            while not self._stopping:
                handled = await self._deliver_next()
                if handled >= self._batch_size:
                    continue
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
                self._wake.clear()
            diagnostics.debug(
                "scheduler", "final drain", queued=self._buffer.qsize()
            )
            await self.drain_all(retry=False)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pragma: no cover
            self._emit_worker_error(exc)
        finally:
            self._loop = None

    async def drain_all(self, *, retry: bool = True) -> int:
        """Flush everything currently buffered; returns events handled."""
        handled = 0
        while True:
            count = await self._deliver_next(retry=retry)
            if not count:
                return handled
            handled += count

    async def _deliver_next(self, *, retry: bool = True) -> int:
        # Drain and delivery happen under one lock so batches leave in FIFO
        # order even when flush() races the worker loop.
        async with self._lock:
            batch = self._buffer.drain(self._batch_size)
            if batch:
                await self.process_batch(batch, retry=retry)
            return len(batch)

    async def process_batch(self, batch: Sequence[Any], *, retry: bool = True) -> bool:
        """Encode and deliver one batch. Never raises except on cancellation."""
        # Left set if cancelled mid-delivery so shutdown can count the loss
        self._in_flight = len(batch)
        try:
            payload = encode_batch([self._formatter(e) for e in batch])
        except Exception as exc:
            diagnostics.warn(
                "scheduler",
                "batch encoding failed; dropping batch",
                error_type=type(exc).__name__,
                error=str(exc),
                batch_size=len(batch),
            )
            self._record_failure(len(batch), reason="serialization")
            return False

        config = self._retry_config
        if not retry:
            config = replace(config, max_attempts=1)
        retrier = AsyncRetrier(config)

        async def _attempt() -> Any:
            outcome = await self._deliver(payload)
            if not getattr(outcome, "success", False):
                raise TransientDeliveryError(
                    "delivery attempt failed",
                    status_code=getattr(outcome, "status_code", None),
                    error=getattr(outcome, "error", None),
                )
            return outcome

        try:
            await retrier.retry(_attempt)
        except asyncio.CancelledError:
            raise
        except RetryExhaustedError:
            diagnostics.warn(
                "scheduler",
                "dropping batch after failed delivery",
                attempts=retrier.stats.attempt_count,
                batch_size=len(batch),
            )
            self._record_failure(len(batch), reason="delivery")
            return False
        except Exception as exc:
            self._emit_worker_error(exc)
            self._record_failure(len(batch), reason="delivery")
            return False

        self._in_flight = 0
        self._last_success = True
        if self._metrics is not None:
            self._metrics.record_batch_delivered(len(batch))
        return True

    def _record_failure(self, size: int, *, reason: str) -> None:
        self._in_flight = 0
        self._last_success = False
        if self._metrics is not None:
            self._metrics.record_batch_failed()
            self._metrics.record_events_dropped(size, reason=reason)

    def _emit_worker_error(self, exc: BaseException) -> None:
        diagnostics.warn(
            "scheduler",
            "worker error",
            error_type=type(exc).__name__,
            error=str(exc),
        )


__all__ = ["BatchScheduler", "Deliver", "Formatter"]
