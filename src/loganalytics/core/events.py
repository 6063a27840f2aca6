"""
Log event model and default record shaping.

`LogEvent` is what producers submit. `to_record()` turns it into the flat,
JSON-serializable mapping that one row of the custom log table receives.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Mapping

RecordFormatter = Callable[["LogEvent"], Mapping[str, Any]]

# {Name}, {@Name}, {$Name}, {Name:format}, {Name,alignment}
_HOLE_RE = re.compile(r"\{([@$]?)([A-Za-z_][A-Za-z0-9_.]*)(?:[,:][^}]*)?\}")


@dataclass(frozen=True)
class LogEvent:
    """A structured log event as produced by the upstream framework."""

    timestamp: datetime
    level: str
    message_template: str
    properties: Mapping[str, Any] = field(default_factory=dict)
    exception: str | None = None

    def __post_init__(self) -> None:
        # Freeze the top-level mapping so the event cannot change after submit
        object.__setattr__(
            self, "properties", MappingProxyType(dict(self.properties))
        )

    @classmethod
    def create(
        cls,
        level: str,
        message_template: str,
        *,
        exception: BaseException | str | None = None,
        **properties: Any,
    ) -> LogEvent:
        exc_text: str | None
        if isinstance(exception, BaseException):
            exc_text = f"{type(exception).__name__}: {exception}"
        else:
            exc_text = exception
        return cls(
            timestamp=datetime.now(timezone.utc),
            level=level,
            message_template=message_template,
            properties=properties,
            exception=exc_text,
        )


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return str(value)


def render_message(template: str, properties: Mapping[str, Any]) -> str:
    """Fill template holes with property values; unknown holes stay as-is."""

    def _sub(match: re.Match[str]) -> str:
        name = match.group(2)
        if name in properties:
            return _render_value(properties[name])
        return match.group(0)

    return _HOLE_RE.sub(_sub, template)


def flatten(
    value: Mapping[str, Any], prefix: str = "", sep: str = "."
) -> dict[str, Any]:
    """Flatten nested mappings into ``sep``-joined keys.

    Lists and scalars are leaves and are kept as JSON values.
    """
    out: dict[str, Any] = {}
    for key, item in value.items():
        name = f"{prefix}{sep}{key}" if prefix else str(key)
        if isinstance(item, Mapping):
            if item:
                out.update(flatten(item, name, sep))
            else:
                out[name] = {}
        else:
            out[name] = item
    return out


def _format_timestamp(ts: datetime, utc: bool) -> str:
    if ts.tzinfo is None:
        # Naive timestamps are taken as local time
        ts = ts.astimezone()
    return ts.astimezone(timezone.utc if utc else None).isoformat()


def to_record(
    event: LogEvent, *, store_timestamp_in_utc: bool = True
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "Timestamp": _format_timestamp(event.timestamp, store_timestamp_in_utc),
        "Level": event.level,
        "MessageTemplate": event.message_template,
        "Message": render_message(event.message_template, event.properties),
    }
    if event.exception:
        record["Exception"] = event.exception
    if event.properties:
        record.update(flatten(event.properties, "Properties"))
    return record


__all__ = [
    "LogEvent",
    "RecordFormatter",
    "flatten",
    "render_message",
    "to_record",
]
