"""Async HTTP client base for reference-data providers.

Every provider client shares:
- One pooled httpx.AsyncClient per ``async with`` block
- A token-bucket rate limiter
- Retries with exponential backoff on 429/502/503/504, timeouts and
  network errors

Usage:
    class HoldingsClient(BaseAsyncClient):
        def __init__(self, api_key: str) -> None:
            super().__init__(
                base_url="https://api.example.com",
                headers={"Authorization": f"Bearer {api_key}"},
            )

        async def get_holdings(self, symbol: str) -> list[dict]:
            return await self.get("/holdings", params={"symbol": symbol})
"""

import asyncio
import logging
from typing import Any

import httpx


logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 502, 503, 504}
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds


class RateLimiter:
    """Token bucket rate limiter for async callers.

    Args:
        rate: Maximum requests per second
    """

    def __init__(self, rate: int) -> None:
        self.rate = rate
        self.tokens = float(rate)
        self.updated_at: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Take one token, sleeping until one is available."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            if self.updated_at is None:
                self.updated_at = loop.time()

            while self.tokens < 1:
                now = loop.time()
                self.tokens = min(self.rate, self.tokens + (now - self.updated_at) * self.rate)
                self.updated_at = now
                if self.tokens < 1:
                    await asyncio.sleep((1 - self.tokens) / self.rate)

            self.tokens -= 1
            self.updated_at = loop.time()


class DataProviderError(Exception):
    """A reference-data request failed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


def _backoff(attempt: int) -> float:
    return _BASE_BACKOFF * (2 ** attempt)


class BaseAsyncClient:
    """Rate-limited, retrying async JSON client.

    Args:
        base_url: Base URL for all requests
        headers: Default headers
        rate_limit: Maximum requests per second (default: 10)
        timeout: Request timeout in seconds (default: 30)
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        rate_limit: int = 10,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.timeout = timeout
        self._rate_limiter = RateLimiter(rate=rate_limit)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "BaseAsyncClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            RuntimeError: Used outside ``async with``
            DataProviderError: Non-retryable failure, or retries exhausted
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use async with context manager.")

        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"

        last_error: DataProviderError | None = None

        for attempt in range(_MAX_RETRIES + 1):
            await self._rate_limiter.acquire()
            logger.debug(
                "%s %s%s (attempt %d/%d)",
                method, self.base_url, endpoint, attempt + 1, _MAX_RETRIES + 1,
            )

            try:
                response = await self._client.request(method, endpoint, params=params)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                kind = "Timeout" if isinstance(e, httpx.TimeoutException) else "Network error"
                last_error = DataProviderError(f"{kind}: {e}")
                if attempt == _MAX_RETRIES:
                    logger.error("%s for %s: %s", kind, endpoint, e)
                    raise last_error from e
                logger.warning(
                    "%s for %s, retrying in %.1fs", kind, endpoint, _backoff(attempt),
                )
                await asyncio.sleep(_backoff(attempt))
                continue

            if response.status_code >= 400:
                last_error = DataProviderError(
                    f"Request failed: {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text[:500],
                )
                retryable = response.status_code in _RETRYABLE_STATUS_CODES
                if not retryable or attempt == _MAX_RETRIES:
                    logger.error(
                        "Provider error: %d %s - %s",
                        response.status_code, endpoint, last_error.response_body,
                    )
                    raise last_error
                logger.warning(
                    "Retryable %d for %s, retrying in %.1fs",
                    response.status_code, endpoint, _backoff(attempt),
                )
                await asyncio.sleep(_backoff(attempt))
                continue

            try:
                return response.json()
            except ValueError as e:
                raise DataProviderError(
                    f"Invalid JSON response: {e}",
                    status_code=response.status_code,
                    response_body=response.text[:500],
                ) from e

        raise last_error or DataProviderError("Request failed after retries")

    async def get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``endpoint`` and return the decoded JSON body."""
        return await self._request("GET", endpoint, params=params)
