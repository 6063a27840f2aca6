"""
SharedKey request signing for the HTTP Data Collector API.

The service recomputes an HMAC-SHA256 over a canonical string built from the
request metadata. Every piece of that string must match the request that is
actually sent, character for character:

    POST\\n{content_length}\\napplication/json\\nx-ms-date:{date}\\n/api/logs
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime

from .errors import ConfigurationError
from .serialization import EncodedPayload

HTTP_METHOD = "POST"
CONTENT_TYPE = "application/json"
RESOURCE = "/api/logs"
DATE_HEADER = "x-ms-date"


@dataclass(frozen=True)
class SignedRequest:
    content_length: int
    date: str
    signature: str
    body: bytes


def decode_shared_key(key: str | bytes) -> bytes:
    """Decode a base64 shared key, failing fast on malformed input."""
    if isinstance(key, bytes):
        key = key.decode("ascii", errors="replace")
    key = key.strip()
    if not key:
        raise ConfigurationError("shared key is empty", component_name="signature")
    try:
        raw = base64.b64decode(key, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(
            "shared key is not valid base64",
            component_name="signature",
            cause=e,
        ) from e
    if not raw:
        raise ConfigurationError("shared key is empty", component_name="signature")
    return raw


def rfc1123_date(now: datetime | None = None) -> str:
    """Format ``now`` (default: current time) as an RFC1123 GMT date."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return format_datetime(moment.astimezone(timezone.utc), usegmt=True)


def build_string_to_sign(content_length: int, date: str) -> str:
    return (
        f"{HTTP_METHOD}\n{content_length}\n{CONTENT_TYPE}\n"
        f"{DATE_HEADER}:{date}\n{RESOURCE}"
    )


def build_signature(content_length: int, date: str, shared_key: str | bytes) -> str:
    """Return the base64 HMAC-SHA256 signature for the request metadata.

    ``shared_key`` is either the base64 key string or its decoded bytes.
    """
    key = shared_key if isinstance(shared_key, bytes) else decode_shared_key(shared_key)
    message = build_string_to_sign(content_length, date).encode("utf-8")
    digest = hmac.new(key, message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def authorization_header(workspace_id: str, signature: str) -> str:
    return f"SharedKey {workspace_id}:{signature}"


def sign_request(
    payload: EncodedPayload,
    *,
    shared_key: bytes,
    now: datetime | None = None,
) -> SignedRequest:
    date = rfc1123_date(now)
    return SignedRequest(
        content_length=payload.content_length,
        date=date,
        signature=build_signature(payload.content_length, date, shared_key),
        body=payload.body,
    )


__all__ = [
    "SignedRequest",
    "authorization_header",
    "build_signature",
    "build_string_to_sign",
    "decode_shared_key",
    "rfc1123_date",
    "sign_request",
]
