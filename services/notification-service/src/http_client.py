import asyncio
import logging
import random
import time
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any

import httpx
from shared.observability.telemetry import CORRELATION_ID_HEADER, ensure_request_id

logger = logging.getLogger(__name__)
DEFAULT_TIMEOUT = httpx.Timeout(15.0, connect=5.0)
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_FACTOR = 0.5
RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


@dataclass
class RequestMetrics:
    attempts: int
    latency_ms: float


class BackendHttpClient:
    """
    Async httpx helper for the hosted backend and push APIs.

    Retries transient failures with jittered exponential backoff, stamps every
    call with a correlation id, and logs one structured line per outcome.
    """

    def __init__(
        self,
        *,
        base_url: str = "",
        default_headers: Mapping[str, str] | None = None,
        timeout: httpx.Timeout | float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        correlation_header: str = CORRELATION_ID_HEADER,
        retry_status_codes: set[int] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._default_headers = dict(default_headers or {})
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._backoff_factor = max(0.0, backoff_factor)
        self._correlation_header = correlation_header
        self._retry_status_codes = retry_status_codes or RETRYABLE_STATUS_CODES
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        *,
        request_id: str | None = None,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> tuple[httpx.Response, RequestMetrics]:
        url = self._resolve(path)
        correlation_id = request_id or ensure_request_id(None)
        attempts = 0
        start_time = time.perf_counter()
        last_exc: Exception | None = None

        while attempts < self._max_attempts:
            attempts += 1
            request_headers = self._build_headers(headers, correlation_id)

            try:
                async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                    response = await client.request(method=method.upper(), url=url, headers=request_headers, **kwargs)
                response.raise_for_status()
                metrics = self._metrics(start_time, attempts)
                self._log("info", "success", url, method, correlation_id, metrics, status_code=response.status_code)
                return response, metrics
            except (httpx.HTTPStatusError, httpx.RequestError) as exc:
                last_exc = exc
                metrics = self._metrics(start_time, attempts)
                if self._should_retry(exc) and attempts < self._max_attempts:
                    self._log("warning", "retry", url, method, correlation_id, metrics, error=str(exc))
                    await asyncio.sleep(self._backoff_seconds(attempts))
                    continue
                self._log("error", "failure", url, method, correlation_id, metrics, error=str(exc))
                raise

        assert last_exc is not None  # for mypy
        raise last_exc

    async def get(self, path: str, **kwargs: Any) -> tuple[httpx.Response, RequestMetrics]:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> tuple[httpx.Response, RequestMetrics]:
        return await self.request("POST", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> tuple[httpx.Response, RequestMetrics]:
        return await self.request("PATCH", path, **kwargs)

    def _resolve(self, path: str) -> str:
        if path.startswith(("http://", "https://")) or not self._base_url:
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    def _build_headers(
        self,
        headers: Mapping[str, str] | None,
        request_id: str,
    ) -> MutableMapping[str, str]:
        merged: MutableMapping[str, str] = dict(self._default_headers)
        if headers:
            merged.update(headers)
        merged.setdefault(self._correlation_header, request_id)
        return merged

    def _metrics(self, start_time: float, attempts: int) -> RequestMetrics:
        latency_ms = (time.perf_counter() - start_time) * 1000
        return RequestMetrics(attempts=attempts, latency_ms=round(latency_ms, 2))

    def _should_retry(self, exc: Exception) -> bool:
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            return status >= 500 or status in self._retry_status_codes
        return isinstance(exc, httpx.RequestError)

    def _backoff_seconds(self, attempts: int) -> float:
        base = self._backoff_factor * (2 ** (attempts - 1))
        jitter = random.uniform(0, base / 2 if base else 0)
        return base + jitter

    def _log(
        self,
        level: str,
        outcome: str,
        url: str,
        method: str,
        request_id: str,
        metrics: RequestMetrics,
        **extra: Any,
    ) -> None:
        # Query strings carry user ids (PostgREST filters); log the path only.
        getattr(logger, level)(
            {
                "event": "backend_request",
                "outcome": outcome,
                "url": httpx.URL(url).path,
                "method": method.upper(),
                "request_id": request_id,
                "attempts": metrics.attempts,
                "latency_ms": metrics.latency_ms,
                **extra,
            }
        )
