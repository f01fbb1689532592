from __future__ import annotations

import asyncio
import uuid
from typing import Any, Callable

import httpx

from .config import ClientConfig
from .error_mapper import map_error
from .exceptions import ApiError, NetworkFailure
from .logger import get_logger, log_action

REQUEST_ID_HEADER = "X-Request-ID"

logger = get_logger(__name__)


class HttpClient:
    def __init__(
        self,
        config: ClientConfig,
        client: httpx.AsyncClient | None = None,
        token_provider: Callable[[], str | None] | None = None,
    ) -> None:
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.api_base_url,
            timeout=config.timeout_seconds,
            verify=config.verify_ssl,
        )
        self._token_provider = token_provider
        self._retries = max(0, config.retries)
        self._retry_backoff_seconds = max(0.0, config.retry_backoff_seconds)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        normalized_method = method.upper()
        request_headers = {"Accept": "application/json", REQUEST_ID_HEADER: str(uuid.uuid4())}
        token = self._token_provider() if self._token_provider else None
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        if headers:
            request_headers.update(headers)

        normalized_path = path if path.startswith("/") else f"/{path}"
        # Writes are not idempotent-safe, only reads are retried.
        attempts = self._retries + 1 if normalized_method == "GET" else 1

        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.request(
                    normalized_method,
                    normalized_path,
                    json=json_body,
                    params=params,
                    headers=request_headers,
                )
            except httpx.TimeoutException as exc:
                if attempt >= attempts:
                    raise NetworkFailure(
                        code="TIMEOUT",
                        message="The API did not answer in time",
                        details={"type": type(exc).__name__},
                        trace_id=request_headers[REQUEST_ID_HEADER],
                    ) from exc
                await self._backoff(attempt, normalized_path, "timeout")
                continue
            except httpx.TransportError as exc:
                if attempt >= attempts:
                    raise NetworkFailure(
                        code="NETWORK_ERROR",
                        message="Network error while calling the admin API",
                        details={"type": type(exc).__name__, "error": str(exc)},
                        trace_id=request_headers[REQUEST_ID_HEADER],
                    ) from exc
                await self._backoff(attempt, normalized_path, "transport_error")
                continue

            if response.status_code >= 500 and attempt < attempts:
                await self._backoff(attempt, normalized_path, f"http_{response.status_code}")
                continue
            if response.status_code >= 400:
                raise self._error_from_response(response, request_headers[REQUEST_ID_HEADER])
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                return None

        raise NetworkFailure(code="NETWORK_ERROR", message="Retry attempts exhausted")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _backoff(self, attempt: int, path: str, reason: str) -> None:
        log_action(logger, module="http_client", action="retry", outcome=reason, path=path, attempt=attempt)
        await asyncio.sleep(self._retry_backoff_seconds * attempt)

    @staticmethod
    def _error_from_response(response: httpx.Response, request_id: str) -> ApiError:
        try:
            payload = response.json()
        except ValueError:
            payload = {"message": response.text or "HTTP request failed"}
        if not isinstance(payload, dict):
            payload = {"message": response.text or "HTTP request failed", "details": payload}
        trace_id = response.headers.get("X-Trace-ID") or response.headers.get(REQUEST_ID_HEADER) or request_id
        return map_error(response.status_code, payload, trace_id)
