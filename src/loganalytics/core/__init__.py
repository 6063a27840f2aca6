"""Core building blocks: buffer, scheduler, codec, signing, errors, retry."""

from .concurrency import EventBuffer, OverflowPolicy
from .errors import (
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorRecoveryStrategy,
    ErrorSeverity,
    LogAnalyticsError,
    RetryExhaustedError,
    SerializationError,
    TransientDeliveryError,
)
from .events import LogEvent, flatten, render_message, to_record
from .retry import AsyncRetrier, RetryConfig
from .serialization import EncodedPayload, encode_batch
from .settings import CloudVariant, CoreSettings, Settings, SinkSettings
from .signature import (
    SignedRequest,
    build_signature,
    build_string_to_sign,
    decode_shared_key,
    rfc1123_date,
    sign_request,
)
from .worker import BatchScheduler

__all__ = [
    "AsyncRetrier",
    "BatchScheduler",
    "CloudVariant",
    "ConfigurationError",
    "CoreSettings",
    "EncodedPayload",
    "ErrorCategory",
    "ErrorContext",
    "ErrorRecoveryStrategy",
    "ErrorSeverity",
    "EventBuffer",
    "LogAnalyticsError",
    "LogEvent",
    "OverflowPolicy",
    "RetryConfig",
    "RetryExhaustedError",
    "SerializationError",
    "Settings",
    "SignedRequest",
    "SinkSettings",
    "TransientDeliveryError",
    "build_signature",
    "build_string_to_sign",
    "decode_shared_key",
    "encode_batch",
    "flatten",
    "render_message",
    "rfc1123_date",
    "sign_request",
    "to_record",
]
