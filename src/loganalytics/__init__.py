"""
Public entrypoints for loganalytics.

Provides `get_sink()` for zero-code setup from environment variables and
re-exports the sink, event and configuration types.
"""

from __future__ import annotations

from typing import Any

from ._version import __version__
from .core.concurrency import OverflowPolicy
from .core.errors import ConfigurationError, LogAnalyticsError
from .core.events import LogEvent
from .core.settings import CloudVariant, Settings, SinkSettings
from .metrics.metrics import MetricsCollector
from .sinks.log_analytics import LogAnalyticsSink

__all__ = [
    "CloudVariant",
    "ConfigurationError",
    "LogAnalyticsError",
    "LogAnalyticsSink",
    "LogEvent",
    "MetricsCollector",
    "OverflowPolicy",
    "Settings",
    "SinkSettings",
    "VERSION",
    "__version__",
    "get_sink",
]

VERSION = __version__


def get_sink(settings: Settings | None = None, **kwargs: Any) -> LogAnalyticsSink:
    """Return a running sink configured from the environment.

    The worker runs on a background thread, so the sink can be used from
    plain synchronous code. Call ``close()`` to drain it explicitly; an
    atexit hook does the same on interpreter shutdown.

    @docs:examples
    ```python
    from loganalytics import LogEvent, get_sink

    # LOGANALYTICS_SINK__WORKSPACE_ID, __SHARED_KEY and __LOG_TYPE must be set
    sink = get_sink()
    sink.submit(LogEvent.create("Information", "User {UserId} signed in", UserId=42))
    sink.close()
    ```

    @docs:notes
    - Raises ConfigurationError when settings are missing or invalid
    - ``submit()`` never blocks and never raises
    """
    sink = LogAnalyticsSink.from_settings(settings, **kwargs)
    sink.start_in_thread()
    return sink
