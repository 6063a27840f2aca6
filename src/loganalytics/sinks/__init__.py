from __future__ import annotations

from typing import Protocol, runtime_checkable

from .http_client import DeliveryOutcome, LogAnalyticsClient
from .log_analytics import LogAnalyticsSink, parse_sink_config


@runtime_checkable
class BaseSink(Protocol):
    """Minimal sink contract: non-blocking ``submit()`` plus async lifecycle.

    Implementations must contain their own errors; nothing raised while
    delivering may reach the producer that called ``submit()``.
    """

    async def start(self) -> None:  # Optional lifecycle hook
        ...

    async def stop(self) -> None:  # Optional lifecycle hook
        ...

    def submit(self, _event: object) -> None:  # noqa: ARG002, D401
        """Buffer one event for delivery."""
        ...


__all__ = [
    "BaseSink",
    "DeliveryOutcome",
    "LogAnalyticsClient",
    "LogAnalyticsSink",
    "parse_sink_config",
]
