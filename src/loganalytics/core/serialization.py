"""
Batch payload codec.

Encodes shaped records into the single JSON document the collector API
expects: a bare object for one record, an array for several. The byte length
reported is that of the exact UTF-8 bytes that will be transmitted, which is
what the request signature covers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import orjson

from .errors import ErrorCategory, ErrorSeverity, SerializationError, create_error_context


def _default(obj: Any) -> Any:
    """Default serializer hook for values orjson does not handle natively."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(exclude_none=True)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).decode("utf-8", errors="replace")
    return str(obj)


@dataclass(frozen=True)
class EncodedPayload:
    body: bytes
    record_count: int

    @property
    def content_length(self) -> int:
        return len(self.body)


def encode_batch(records: Sequence[Mapping[str, Any]]) -> EncodedPayload:
    """Serialize shaped records to UTF-8 JSON bytes.

    One record is emitted as a bare object; more than one as an array.
    """
    if not records:
        raise ValueError("cannot encode an empty batch")
    document: Any = records[0] if len(records) == 1 else list(records)
    try:
        body = orjson.dumps(
            document,
            default=_default,
            option=orjson.OPT_NON_STR_KEYS,
        )
    except TypeError as e:
        context = create_error_context(
            ErrorCategory.SERIALIZATION,
            ErrorSeverity.HIGH,
            record_count=len(records),
        )
        raise SerializationError(
            "Batch serialization failed",
            error_context=context,
            cause=e,
        ) from e
    return EncodedPayload(body=body, record_count=len(records))


__all__ = ["EncodedPayload", "encode_batch"]
