"""
Delivery client for the HTTP Data Collector API.

Sends one signed POST per batch over the shared `HttpClientPool` and turns
every result, including transport exceptions, into a `DeliveryOutcome`.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime

import httpx

from ..core import diagnostics
from ..core.resources import HttpClientPool
from ..core.serialization import EncodedPayload
from ..core.settings import SinkSettings
from ..core.signature import (
    CONTENT_TYPE,
    DATE_HEADER,
    authorization_header,
    sign_request,
)
from ..metrics.metrics import MetricsCollector

_BODY_SNIPPET = 256


@dataclass(frozen=True)
class DeliveryOutcome:
    success: bool
    status_code: int | None = None
    reason: str | None = None
    error: str | None = None
    body: str | None = None


class LogAnalyticsClient:
    """Signed POSTs to one workspace's collector endpoint."""

    def __init__(
        self,
        config: SinkSettings,
        *,
        pool: HttpClientPool,
        shared_key: bytes,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._config = config
        self._pool = pool
        self._shared_key = shared_key
        self._metrics = metrics
        self._url = config.endpoint_url
        self._base_headers = {
            "Log-Type": config.log_type,
            "Content-Type": CONTENT_TYPE,
            "Accept": "application/json",
        }
        if config.time_generated_field:
            self._base_headers["time-generated-field"] = config.time_generated_field

    @property
    def url(self) -> str:
        return self._url

    def build_headers(self, signature: str, date: str) -> dict[str, str]:
        headers = dict(self._base_headers)
        headers["Authorization"] = authorization_header(
            self._config.workspace_id, signature
        )
        headers[DATE_HEADER] = date
        return headers

    async def send(
        self, payload: EncodedPayload, *, now: datetime | None = None
    ) -> DeliveryOutcome:
        """Sign ``payload`` with a fresh date and post it."""
        signed = sign_request(payload, shared_key=self._shared_key, now=now)
        return await self.post(signed.signature, signed.date, signed.body)

    async def post(self, signature: str, date: str, body: bytes) -> DeliveryOutcome:
        headers = self.build_headers(signature, date)
        start = time.perf_counter()
        try:
            async with self._pool.acquire() as client:
                resp = await client.post(self._url, content=body, headers=headers)
        except Exception as exc:
            self._record_attempt(start)
            error = f"{type(exc).__name__}: {exc}"
            diagnostics.warn(
                "log-analytics-client",
                "exception while delivering batch",
                endpoint=self._url,
                error=error,
            )
            return DeliveryOutcome(success=False, error=error)

        self._record_attempt(start)
        snippet = _response_snippet(resp)
        reason = resp.reason_phrase or None
        if 200 <= resp.status_code < 300:
            diagnostics.info(
                "log-analytics-client",
                "batch delivered",
                status_code=resp.status_code,
                reason=reason,
                bytes=len(body),
            )
            return DeliveryOutcome(
                success=True,
                status_code=resp.status_code,
                reason=reason,
                body=snippet,
            )
        diagnostics.warn(
            "log-analytics-client",
            "failed to deliver batch",
            status_code=resp.status_code,
            reason=reason,
            endpoint=self._url,
            body=snippet,
        )
        return DeliveryOutcome(
            success=False,
            status_code=resp.status_code,
            reason=reason,
            body=snippet,
        )

    def _record_attempt(self, start: float) -> None:
        if self._metrics is not None:
            self._metrics.record_attempt(duration_seconds=time.perf_counter() - start)


def _response_snippet(resp: httpx.Response) -> str | None:
    try:
        return resp.text[:_BODY_SNIPPET] or None
    except Exception:
        return None


__all__ = ["DeliveryOutcome", "LogAnalyticsClient"]
