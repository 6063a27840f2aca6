"""
Error hierarchy for the Log Analytics sink.

Errors carry an `ErrorContext` with a stable id, timestamp, category and
severity so they can be serialized into diagnostics without losing detail.

Propagation rules:
- ConfigurationError is raised at construction and prevents startup
- TransientDeliveryError and RetryExhaustedError stay inside the worker
- Nothing raised here ever reaches a producer calling ``submit()``
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    CONFIG = "config"
    NETWORK = "network"
    SERIALIZATION = "serialization"
    BUFFER = "buffer"
    SYSTEM = "system"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorRecoveryStrategy(str, Enum):
    NONE = "none"
    RETRY = "retry"
    DROP = "drop"


@dataclass
class ErrorContext:
    """Structured context attached to every `LogAnalyticsError`."""

    category: ErrorCategory = ErrorCategory.SYSTEM
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    recovery_strategy: ErrorRecoveryStrategy = ErrorRecoveryStrategy.NONE
    component_name: str | None = None
    error_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "category": self.category.value,
            "severity": self.severity.value,
            "recovery_strategy": self.recovery_strategy.value,
            "component_name": self.component_name,
            "metadata": dict(self.metadata),
        }


def create_error_context(
    category: ErrorCategory,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    recovery_strategy: ErrorRecoveryStrategy = ErrorRecoveryStrategy.NONE,
    **metadata: Any,
) -> ErrorContext:
    return ErrorContext(
        category=category,
        severity=severity,
        recovery_strategy=recovery_strategy,
        metadata=metadata,
    )


class LogAnalyticsError(Exception):
    """Base error for the sink with context preservation and chaining."""

    default_category = ErrorCategory.SYSTEM
    default_severity = ErrorSeverity.MEDIUM
    default_recovery = ErrorRecoveryStrategy.NONE

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        error_context: ErrorContext | None = None,
        cause: BaseException | None = None,
        component_name: str | None = None,
        **metadata: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        context = error_context or ErrorContext(
            category=category or self.default_category,
            severity=severity or self.default_severity,
            recovery_strategy=self.default_recovery,
        )
        if component_name is not None:
            context.component_name = component_name
        if metadata:
            context.metadata.update(metadata)
        self.context = context
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "context": self.context.to_dict(),
        }
        if self.__cause__ is not None:
            data["cause"] = f"{type(self.__cause__).__name__}: {self.__cause__}"
        return data


class ConfigurationError(LogAnalyticsError):
    """Invalid sink configuration; fatal at construction time."""

    default_category = ErrorCategory.CONFIG
    default_severity = ErrorSeverity.CRITICAL


class TransientDeliveryError(LogAnalyticsError):
    """A delivery attempt failed in a way that may succeed on retry."""

    default_category = ErrorCategory.NETWORK
    default_severity = ErrorSeverity.MEDIUM
    default_recovery = ErrorRecoveryStrategy.RETRY

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code


class SerializationError(LogAnalyticsError):
    default_category = ErrorCategory.SERIALIZATION
    default_severity = ErrorSeverity.HIGH
    default_recovery = ErrorRecoveryStrategy.DROP


class RetryExhaustedError(LogAnalyticsError):
    """Raised by `AsyncRetrier` when every attempt has failed."""

    default_category = ErrorCategory.NETWORK
    default_severity = ErrorSeverity.HIGH
    default_recovery = ErrorRecoveryStrategy.DROP

    def __init__(self, message: str, *, retry_stats: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_stats = retry_stats


__all__ = [
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorRecoveryStrategy",
    "ErrorSeverity",
    "LogAnalyticsError",
    "RetryExhaustedError",
    "SerializationError",
    "TransientDeliveryError",
    "create_error_context",
]
