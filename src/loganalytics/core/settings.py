"""
Configuration models using Pydantic v2 and pydantic-settings.

`SinkSettings` is the immutable endpoint/batching configuration of one sink.
`Settings` loads everything from the environment:

    LOGANALYTICS_SINK__WORKSPACE_ID=...
    LOGANALYTICS_SINK__SHARED_KEY=...
    LOGANALYTICS_SINK__LOG_TYPE=AppLogs
    LOGANALYTICS_CORE__INTERNAL_LOGGING_ENABLED=true
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .concurrency import OverflowPolicy

_WORKSPACE_ID_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?$")
_LOG_TYPE_RE = re.compile(r"^[A-Za-z0-9_]+$")


class CloudVariant(str, Enum):
    PUBLIC = "public"
    US_GOVERNMENT = "us_government"

    @property
    def host_suffix(self) -> str:
        return ".us" if self is CloudVariant.US_GOVERNMENT else ".com"


class CoreSettings(BaseModel):
    """Process-wide toggles for the sink's own observability."""

    internal_logging_enabled: bool = Field(
        default=False,
        description="Emit structured diagnostics for delivery and worker events",
    )
    enable_metrics: bool = Field(
        default=False,
        description="Export Prometheus metrics from an isolated registry",
    )


class SinkSettings(BaseModel):
    """Endpoint, credential and batching configuration for one sink."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    workspace_id: str = Field(description="Log Analytics workspace id")
    shared_key: SecretStr = Field(description="Base64 workspace shared key")
    log_type: str = Field(description="Custom log type name (Log-Type header)")
    store_timestamp_in_utc: bool = Field(
        default=True, description="Render event timestamps in UTC"
    )
    buffer_capacity: int = Field(default=25_000, ge=1)
    batch_size: int = Field(default=100, ge=1)
    cloud: CloudVariant = Field(default=CloudVariant.PUBLIC)
    overflow_policy: OverflowPolicy = Field(default=OverflowPolicy.DROP_OLDEST)
    flush_interval_seconds: float = Field(default=2.0, gt=0.0)
    request_timeout_seconds: float = Field(default=30.0, gt=0.0)
    shutdown_timeout_seconds: float = Field(default=10.0, gt=0.0)
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay_seconds: float = Field(default=0.5, ge=0.0)
    retry_max_delay_seconds: float = Field(default=10.0, ge=0.0)
    max_connections: int = Field(default=4, ge=1)
    time_generated_field: str | None = Field(
        default=None,
        description="Record field the service should use as TimeGenerated",
    )

    @field_validator("workspace_id")
    @classmethod
    def _validate_workspace_id(cls, value: str) -> str:
        value = value.strip()
        if not _WORKSPACE_ID_RE.match(value):
            raise ValueError("workspace_id must contain only letters, digits and '-'")
        return value

    @field_validator("log_type")
    @classmethod
    def _validate_log_type(cls, value: str) -> str:
        value = value.strip()
        if not _LOG_TYPE_RE.match(value) or len(value) > 100:
            raise ValueError(
                "log_type must be 1-100 letters, digits or underscores"
            )
        return value

    @property
    def endpoint_url(self) -> str:
        return (
            f"https://{self.workspace_id}.ods.opinsights.azure"
            f"{self.cloud.host_suffix}/api/logs?api-version=2016-04-01"
        )


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LOGANALYTICS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    core: CoreSettings = Field(default_factory=CoreSettings)
    sink: SinkSettings | None = None


__all__ = ["CloudVariant", "CoreSettings", "Settings", "SinkSettings"]
