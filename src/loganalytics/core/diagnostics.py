"""
Internal diagnostics side channel.

Emits one-line structured JSON records about the sink's own health (delivery
success/failure, buffer overflow, worker errors). Diagnostics are disabled by
default and enabled with ``LOGANALYTICS_CORE__INTERNAL_LOGGING_ENABLED=true``.

Rules:
- Never raise into the caller
- Rate limit identical component/message pairs
- Writers are swappable for tests
"""

from __future__ import annotations

import sys
import threading
import time
from typing import Any, Callable

import orjson

Writer = Callable[[dict[str, Any]], None]

# Cached on first access; tests reset this to None between cases
_internal_logging_enabled: bool | None = None

_MAX_PER_WINDOW = 20
_WINDOW_SECONDS = 1.0
_rate_lock = threading.Lock()
_rate_state: dict[tuple[str, str], tuple[float, int]] = {}


def _stderr_writer(payload: dict[str, Any]) -> None:
    line = orjson.dumps(payload, default=str)
    buf = sys.stderr.buffer if hasattr(sys.stderr, "buffer") else None
    if buf is not None:
        buf.write(line + b"\n")
        buf.flush()
    else:  # pragma: no cover - non-standard stderr (e.g. captured text io)
        sys.stderr.write(line.decode("utf-8") + "\n")


_writer: Writer = _stderr_writer


def set_writer_for_tests(writer: Writer | None) -> None:
    """Replace the diagnostics writer; ``None`` restores stderr."""
    global _writer
    _writer = writer or _stderr_writer
    with _rate_lock:
        _rate_state.clear()


def is_enabled() -> bool:
    global _internal_logging_enabled
    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            _internal_logging_enabled = bool(Settings().core.internal_logging_enabled)
        except Exception:
            _internal_logging_enabled = False
    return _internal_logging_enabled


def _allow(component: str, message: str) -> bool:
    now = time.monotonic()
    key = (component, message)
    with _rate_lock:
        start, count = _rate_state.get(key, (now, 0))
        if now - start >= _WINDOW_SECONDS:
            start, count = now, 0
        if count >= _MAX_PER_WINDOW:
            _rate_state[key] = (start, count)
            return False
        _rate_state[key] = (start, count + 1)
        return True


def _emit(level: str, component: str, message: str, fields: dict[str, Any]) -> None:
    try:
        if not is_enabled():
            return
        if not _allow(component, message):
            return
        payload: dict[str, Any] = {
            "ts": time.time(),
            "level": level,
            "component": component,
            "message": message,
        }
        payload.update(fields)
        _writer(payload)
    except Exception:
        # Diagnostics must never break the pipeline
        pass


def warn(component: str, message: str, **fields: Any) -> None:
    _emit("WARN", component, message, fields)


def info(component: str, message: str, **fields: Any) -> None:
    _emit("INFO", component, message, fields)


def debug(component: str, message: str, **fields: Any) -> None:
    _emit("DEBUG", component, message, fields)
