"""
Azure Log Analytics sink.

Wires the event buffer, batch scheduler, HTTP pool and delivery client into
one object with an async lifecycle (``start``/``stop``) and a threaded one
(``start_in_thread``/``close``) for synchronous applications.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Mapping

from pydantic import ValidationError

from ..core import diagnostics
from ..core.concurrency import EventBuffer, OverflowPolicy
from ..core.errors import ConfigurationError
from ..core.events import LogEvent, RecordFormatter, to_record
from ..core.resources import HttpClientPool
from ..core.retry import RetryConfig
from ..core.serialization import EncodedPayload
from ..core.settings import Settings, SinkSettings
from ..core.signature import decode_shared_key
from ..core.worker import BatchScheduler
from ..metrics.metrics import MetricsCollector
from .http_client import DeliveryOutcome, LogAnalyticsClient

__all__ = ["LogAnalyticsSink", "parse_sink_config"]


def parse_sink_config(
    config: SinkSettings | Mapping[str, Any] | None, **kwargs: Any
) -> SinkSettings:
    """Build a `SinkSettings` from a model, a mapping and/or keyword args.

    Validation failures surface as `ConfigurationError`.
    """
    try:
        if isinstance(config, SinkSettings):
            if not kwargs:
                return config
            data = config.model_dump()
            data.update(kwargs)
            return SinkSettings.model_validate(data)
        data = dict(config or {})
        data.update(kwargs)
        return SinkSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"invalid sink configuration: {e.error_count()} error(s)",
            component_name="log-analytics-sink",
            cause=e,
            errors=[err.get("loc") for err in e.errors()],
        ) from e


class LogAnalyticsSink:
    """Batching sink that ships events to the HTTP Data Collector API."""

    name = "log-analytics"

    def __init__(
        self,
        config: SinkSettings | Mapping[str, Any] | None = None,
        *,
        pool: HttpClientPool | None = None,
        metrics: MetricsCollector | None = None,
        formatter: RecordFormatter | None = None,
        **kwargs: Any,
    ) -> None:
        cfg = parse_sink_config(config, **kwargs)
        self._config = cfg
        # Fails fast on a malformed key, before anything is started
        self._shared_key = decode_shared_key(cfg.shared_key.get_secret_value())
        self._metrics = metrics
        self._pool = pool or HttpClientPool(
            name="log-analytics",
            max_size=cfg.max_connections,
            timeout=cfg.request_timeout_seconds,
            acquire_timeout_seconds=cfg.request_timeout_seconds,
        )
        self._formatter = formatter or self._default_formatter
        self._buffer: EventBuffer[LogEvent] = EventBuffer(
            cfg.buffer_capacity,
            policy=cfg.overflow_policy,
            on_overflow=self._on_overflow,
        )
        self._client = LogAnalyticsClient(
            cfg, pool=self._pool, shared_key=self._shared_key, metrics=metrics
        )
        self._scheduler = BatchScheduler(
            buffer=self._buffer,
            batch_size=cfg.batch_size,
            flush_interval_seconds=cfg.flush_interval_seconds,
            deliver=self._deliver,
            formatter=self._formatter,
            retry_config=RetryConfig(
                max_attempts=cfg.retry_max_attempts,
                base_delay=cfg.retry_base_delay_seconds,
                max_delay=cfg.retry_max_delay_seconds,
                timeout_per_attempt=cfg.request_timeout_seconds,
            ),
            metrics=metrics,
        )
        self._task: asyncio.Task[None] | None = None
        self._thread: threading.Thread | None = None
        self._thread_loop: asyncio.AbstractEventLoop | None = None
        self._started = False
        self._closed = False
        self._last_outcome: DeliveryOutcome | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, **kwargs: Any
    ) -> LogAnalyticsSink:
        """Create a sink from environment-backed `Settings`."""
        try:
            settings = settings or Settings()
        except ValidationError as e:
            raise ConfigurationError(
                "invalid environment configuration", cause=e
            ) from e
        if settings.sink is None:
            raise ConfigurationError(
                "LOGANALYTICS_SINK__* settings are required",
                component_name="log-analytics-sink",
            )
        if "metrics" not in kwargs and settings.core.enable_metrics:
            kwargs["metrics"] = MetricsCollector(enabled=True)
        return cls(settings.sink, **kwargs)

    @property
    def config(self) -> SinkSettings:
        return self._config

    @property
    def buffer(self) -> EventBuffer[LogEvent]:
        return self._buffer

    @property
    def client(self) -> LogAnalyticsClient:
        return self._client

    # Intake -----------------------------------------------------------------

    def submit(self, event: LogEvent) -> None:
        """Buffer ``event`` for delivery. Never blocks and never raises."""
        try:
            if self._closed:
                if self._metrics is not None:
                    self._metrics.record_events_dropped(1, reason="closed")
                return
            if not self._buffer.submit(event):
                return
            if self._metrics is not None:
                self._metrics.record_event_submitted()
            if self._buffer.qsize() >= self._config.batch_size:
                self._scheduler.notify()
        except Exception:
            # Producers must never observe sink failures
            pass

    emit = submit

    def _on_overflow(self, policy: OverflowPolicy) -> None:
        if self._metrics is not None:
            self._metrics.record_events_dropped(1, reason=policy.value)
        diagnostics.warn(
            "log-analytics-sink",
            "buffer full; event dropped",
            policy=policy.value,
            capacity=self._buffer.capacity,
        )

    # Async lifecycle --------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return
        if self._closed:
            raise RuntimeError("sink is closed")
        await self._pool.start()
        self._task = asyncio.create_task(self._scheduler.run())
        self._started = True

    async def stop(self, timeout: float | None = None) -> None:
        """Stop the worker after a bounded final drain, then close the pool.

        ``timeout`` overrides ``shutdown_timeout_seconds`` for this call.
        """
        if self._closed:
            return
        self._closed = True
        task, self._task = self._task, None
        bound = timeout if timeout is not None else self._config.shutdown_timeout_seconds
        try:
            if task is None:
                self._discard_unsent("sink stopped before start; events discarded")
                return
            self._scheduler.request_stop()
            try:
                await asyncio.wait_for(task, timeout=bound)
            except asyncio.TimeoutError:
                self._discard_unsent(
                    "shutdown timed out; remaining events discarded",
                    in_flight=self._scheduler.in_flight,
                )
        finally:
            self._started = False
            await self._pool.stop()

    def _discard_unsent(self, message: str, *, in_flight: int = 0) -> None:
        queued = len(self._buffer.drain(self._buffer.capacity))
        lost = queued + in_flight
        if not lost:
            return
        diagnostics.warn(
            "log-analytics-sink",
            message,
            remaining=queued,
            in_flight=in_flight,
        )
        if self._metrics is not None:
            self._metrics.record_events_dropped(lost, reason="shutdown")

    async def flush(self) -> int:
        """Deliver everything buffered now; returns events handled."""
        if not self._started:
            raise RuntimeError("sink is not started")
        return await self._scheduler.drain_all()

    async def health_check(self) -> bool:
        return bool(self._started and self._scheduler.last_success is not False)

    async def __aenter__(self) -> LogAnalyticsSink:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.stop()

    # Threaded lifecycle -----------------------------------------------------

    def start_in_thread(self) -> None:
        """Run the worker on a dedicated daemon thread with its own loop."""
        if self._thread is not None:
            return
        ready = threading.Event()
        errors: list[BaseException] = []

        def _runner() -> None:
            loop = asyncio.new_event_loop()
            self._thread_loop = loop
            asyncio.set_event_loop(loop)
            try:
                try:
                    loop.run_until_complete(self.start())
                except BaseException as exc:
                    errors.append(exc)
                    return
                finally:
                    ready.set()
                # Runs until close() schedules loop.stop() after the final drain
                loop.run_forever()
            finally:
                _cancel_pending(loop)
                loop.close()
                self._thread_loop = None

        self._thread = threading.Thread(
            target=_runner, name="loganalytics-sink", daemon=True
        )
        self._thread.start()
        ready.wait()
        if errors:
            self._thread = None
            raise errors[0]

        from ..core.shutdown import register_sink

        register_sink(self)

    def close(self, timeout: float | None = None) -> None:
        """Stop a threaded sink and wait for its final drain."""
        thread, loop = self._thread, self._thread_loop
        if thread is None or loop is None:
            return
        wait = timeout if timeout is not None else self._config.shutdown_timeout_seconds
        fut = None
        try:
            fut = asyncio.run_coroutine_threadsafe(self.stop(timeout=wait), loop)
            # Small margin over the worker's own shutdown bound for pool close
            fut.result(timeout=wait + 1.0)
        except Exception as exc:
            if fut is not None:
                fut.cancel()
            diagnostics.warn(
                "log-analytics-sink",
                "close failed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
        try:
            loop.call_soon_threadsafe(loop.stop)
        except RuntimeError:
            pass
        thread.join(timeout=wait)
        self._thread = None

        from ..core.shutdown import unregister_sink

        unregister_sink(self)

    # Delivery ---------------------------------------------------------------

    def _default_formatter(self, event: LogEvent) -> Mapping[str, Any]:
        return to_record(
            event, store_timestamp_in_utc=self._config.store_timestamp_in_utc
        )

    async def _deliver(self, payload: EncodedPayload) -> DeliveryOutcome:
        outcome = await self._client.send(payload)
        self._last_outcome = outcome
        return outcome


def _cancel_pending(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel and await whatever is still scheduled on a stopped loop."""
    pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
    for task in pending:
        task.cancel()
    if pending:
        loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
    loop.run_until_complete(loop.shutdown_asyncgens())
