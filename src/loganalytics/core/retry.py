"""
Async retry with exponential backoff.

Used by the batch worker to re-attempt a failed delivery a bounded number of
times before the batch is dropped.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from .errors import RetryExhaustedError, TransientDeliveryError

T = TypeVar("T")


def _default_retryable() -> list[type[BaseException]]:
    return [
        TransientDeliveryError,
        ConnectionError,
        TimeoutError,
        asyncio.TimeoutError,
    ]


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    multiplier: float = 2.0
    jitter: bool = True
    timeout_per_attempt: float | None = None
    retryable_exceptions: list[type[BaseException]] = field(
        default_factory=_default_retryable
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Backoff before attempt ``attempt + 1`` (``attempt`` is 1-based)."""
        delay = min(self.max_delay, self.base_delay * (self.multiplier ** (attempt - 1)))
        if self.jitter and delay > 0:
            delay = random.uniform(delay / 2, delay)
        return delay


@dataclass
class RetryStats:
    attempt_count: int = 0
    total_delay: float = 0.0
    last_exception: BaseException | None = None


class AsyncRetrier:
    """Retry an async operation according to a `RetryConfig`."""

    def __init__(self, config: RetryConfig | None = None) -> None:
        self.config = config or RetryConfig()
        self.stats = RetryStats()

    def _is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, tuple(self.config.retryable_exceptions))

    async def retry(self, func: Callable[[], Awaitable[T]]) -> T:
        self.stats = RetryStats()
        cfg = self.config
        for attempt in range(1, cfg.max_attempts + 1):
            self.stats.attempt_count = attempt
            try:
                if cfg.timeout_per_attempt is not None:
                    return await asyncio.wait_for(func(), cfg.timeout_per_attempt)
                return await func()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if not self._is_retryable(exc):
                    raise
                self.stats.last_exception = exc
                if attempt >= cfg.max_attempts:
                    break
                delay = cfg.delay_for(attempt)
                self.stats.total_delay += delay
                await asyncio.sleep(delay)
        raise RetryExhaustedError(
            f"All {cfg.max_attempts} retry attempts exhausted",
            retry_stats=self.stats,
            cause=self.stats.last_exception,
        )


__all__ = [
    "AsyncRetrier",
    "RetryConfig",
    "RetryStats",
]
