"""Best-effort drain of threaded sinks at interpreter exit.

Sinks started with ``start_in_thread()`` register here. The atexit handler
closes each one, which performs the sink's bounded final drain. A WeakSet
keeps registration from holding sinks alive.
"""

from __future__ import annotations

import atexit
import threading
import weakref
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..sinks.log_analytics import LogAnalyticsSink


_registered_sinks: weakref.WeakSet[Any] = weakref.WeakSet()
_lock = threading.Lock()
_atexit_installed = False


def register_sink(sink: LogAnalyticsSink) -> None:
    """Register a threaded sink for automatic close on exit."""
    global _atexit_installed
    with _lock:
        _registered_sinks.add(sink)
        if not _atexit_installed:
            atexit.register(_atexit_handler)
            _atexit_installed = True


def unregister_sink(sink: LogAnalyticsSink) -> None:
    with _lock:
        _registered_sinks.discard(sink)


def registered_sinks() -> list[Any]:
    with _lock:
        return list(_registered_sinks)


def _atexit_handler() -> None:
    """Close every registered sink; never raises."""
    for sink in registered_sinks():
        try:
            sink.close()
        except Exception:
            pass  # Best effort - don't crash on exit
