"""Client for the hosted data store.

This module provides the RemoteStoreClient class that handles all
communication between Penne Stage and the hosted backend. It includes:

- Execution of typed ``QuerySpec`` reads against REST relations
- Upsert-by-key and insert writes
- Stored-procedure (RPC) calls such as atomic counter deltas
- Object downloads from storage buckets
- Request metrics and a health check
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from penne_stage.core.settings import settings
from penne_stage.schemas.query import QuerySpec

# Configure logger for this module
logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"
STORAGE_PREFIX = "/storage/v1/object"
HTTP_NO_CONTENT = 204
HTTP_BAD_REQUEST = 400


class RemoteStoreError(RuntimeError):
    """Base exception raised for hosted store failures."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteStoreDisabledError(RemoteStoreError):
    """Raised when store operations are attempted without a configured backend."""


@dataclass
class RemoteMetrics:
    """Metrics collection for store operations."""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_response_time: float = 0.0
    error_counts_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    endpoint_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_request(
        self, endpoint: str, response_time: float, success: bool, error_type: str | None = None
    ) -> None:
        """Record a request metric."""
        self.request_count += 1
        self.total_response_time += response_time
        self.endpoint_counts[endpoint] += 1

        if success:
            self.success_count += 1
        else:
            self.error_count += 1
            if error_type:
                self.error_counts_by_type[error_type] += 1

    def get_average_response_time(self) -> float:
        """Get average response time."""
        return self.total_response_time / self.request_count if self.request_count > 0 else 0.0


@dataclass(frozen=True)
class RemoteConfig:
    """Immutable configuration for store operations."""

    base_url: str | None
    anon_key: str | None
    service_key: str | None
    timeout_seconds: float

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.anon_key)


def load_remote_config() -> RemoteConfig:
    """Build configuration object from global settings."""

    return RemoteConfig(
        base_url=settings.rest_url or None,
        anon_key=settings.supabase_anon_key,
        service_key=settings.supabase_service_key,
        timeout_seconds=float(settings.remote_http_timeout_seconds),
    )


class RemoteStoreClient:
    """HTTP client wrapper for the hosted relational store."""

    def __init__(
        self,
        config: RemoteConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_remote_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._metrics = RemoteMetrics()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise RemoteStoreDisabledError("Hosted store is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url or "",
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )

        return self._client

    def _build_auth_headers(self) -> dict[str, str]:
        bearer = self.config.service_key or self.config.anon_key or ""
        return {
            "apikey": self.config.anon_key or "",
            "Authorization": f"Bearer {bearer}",
        }

    @dataclass
    class RequestParams:
        """Parameters for HTTP requests."""
        method: str
        path: str
        json_data: Any | None = None
        params: Sequence[tuple[str, str]] | Mapping[str, str] | None = None
        headers: dict[str, str] | None = None

    async def _request(self, params: RequestParams) -> httpx.Response:
        client = await self._ensure_client()
        headers = self._build_auth_headers()
        if params.headers:
            headers.update(params.headers)

        start_time = time.time()
        endpoint = f"{params.method} {params.path}"
        success = False
        error_type = None

        try:
            response = await client.request(
                params.method,
                params.path,
                json=params.json_data,
                params=params.params,
                headers=headers,
            )
            if response.status_code >= HTTP_BAD_REQUEST:
                error_type = f"http_{response.status_code}"
                raise RemoteStoreError(
                    f"Store responded with {response.status_code} for {endpoint}: "
                    f"{_error_message(response)}",
                    status_code=response.status_code,
                )
            success = True
        except httpx.HTTPError as exc:
            error_type = "network_error"
            raise RemoteStoreError(f"Store request failed: {exc}") from exc
        finally:
            self._metrics.record_request(endpoint, time.time() - start_time, success, error_type)

        return response

    async def select(self, query: QuerySpec) -> list[dict[str, Any]]:
        """Execute a read and return the matching rows."""

        response = await self._request(
            self.RequestParams(
                method="GET",
                path=f"{REST_PREFIX}/{query.relation}",
                params=query.to_params(),
            )
        )
        rows = response.json()
        if not isinstance(rows, list):
            raise RemoteStoreError(f"Unexpected payload for {query.relation}: expected a list")
        return rows

    async def upsert(
        self,
        relation: str,
        record: Mapping[str, Any],
        *,
        on_conflict: Sequence[str],
    ) -> list[dict[str, Any]]:
        """Insert a record or update the row sharing its ``on_conflict`` key."""

        response = await self._request(
            self.RequestParams(
                method="POST",
                path=f"{REST_PREFIX}/{relation}",
                json_data=dict(record),
                params={"on_conflict": ",".join(on_conflict)},
                headers={"Prefer": "resolution=merge-duplicates,return=representation"},
            )
        )
        return _rows(response)

    async def insert(self, relation: str, record: Mapping[str, Any]) -> list[dict[str, Any]]:
        """Insert a record and return the stored representation."""

        response = await self._request(
            self.RequestParams(
                method="POST",
                path=f"{REST_PREFIX}/{relation}",
                json_data=dict(record),
                headers={"Prefer": "return=representation"},
            )
        )
        return _rows(response)

    async def rpc(self, function: str, arguments: Mapping[str, Any] | None = None) -> Any:
        """Call a stored procedure and return its decoded result."""

        response = await self._request(
            self.RequestParams(
                method="POST",
                path=f"{REST_PREFIX}/rpc/{function}",
                json_data=dict(arguments or {}),
            )
        )
        if response.status_code == HTTP_NO_CONTENT or not response.content:
            return None
        return response.json()

    async def download(self, bucket: str, path: str) -> tuple[bytes, str]:
        """Download an object; returns its bytes and content type."""

        response = await self._request(
            self.RequestParams(method="GET", path=f"{STORAGE_PREFIX}/{bucket}/{path.lstrip('/')}")
        )
        content_type = response.headers.get("content-type", "application/octet-stream")
        return response.content, content_type.split(";")[0].strip()

    async def health_check(self) -> dict[str, Any]:
        """Perform a health check on the store connection.

        Returns:
            Dictionary containing health status and metrics
        """
        if not self.enabled:
            return {
                "status": "disabled",
                "enabled": False,
                "error": "Hosted store is not configured",
            }

        try:
            response = await self._request(self.RequestParams(method="GET", path=f"{REST_PREFIX}/"))
            return {
                "status": "healthy",
                "enabled": True,
                "response_time_ms": response.elapsed.total_seconds() * 1000,
            }
        except RemoteStoreError as e:
            return {
                "status": "error",
                "enabled": True,
                "error": str(e),
                "response_time_ms": None,
            }

    def get_metrics(self) -> dict[str, Any]:
        """Get store operation metrics."""
        return {
            "request_count": self._metrics.request_count,
            "success_count": self._metrics.success_count,
            "error_count": self._metrics.error_count,
            "average_response_time": self._metrics.get_average_response_time(),
            "error_counts_by_type": dict(self._metrics.error_counts_by_type),
            "endpoint_counts": dict(self._metrics.endpoint_counts),
        }

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


def _rows(response: httpx.Response) -> list[dict[str, Any]]:
    if response.status_code == HTTP_NO_CONTENT or not response.content:
        return []
    payload = response.json()
    if isinstance(payload, list):
        return payload
    return [payload]


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("error") or payload)
    return str(payload)


class _RemoteStoreSingleton:
    """Singleton wrapper for RemoteStoreClient."""

    _instance: RemoteStoreClient | None = None

    @classmethod
    def get_instance(cls) -> RemoteStoreClient:
        """Get or create the singleton RemoteStoreClient instance."""
        if cls._instance is None:
            cls._instance = RemoteStoreClient()
        return cls._instance


def get_remote_store() -> RemoteStoreClient:
    """Return a singleton store client instance."""
    return _RemoteStoreSingleton.get_instance()
