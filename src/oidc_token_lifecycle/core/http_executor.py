"""HTTP executor for identity provider requests.

Wraps an ``httpx.AsyncClient`` with retry, exponential backoff and a
circuit breaker, and converts transport failures into the package's
error hierarchy.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx

from ..errors import (
    NetworkError,
    ProviderCommunicationError,
    ProviderTimeoutError,
    RateLimitError,
    ServerError,
)
from ..http import CircuitBreaker
from ..telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    from ..config import RetryConfig


def calculate_retry_delay(retry_config: RetryConfig, attempt: int) -> float:
    """Calculate retry delay with exponential backoff.

    Args:
        retry_config: Retry configuration.
        attempt: Current attempt number (0-indexed).

    Returns:
        Delay in seconds.
    """
    return retry_config.get_delay(attempt)


def should_retry_status(status_code: int) -> bool:
    """Check if status code should trigger retry."""
    return status_code == 429 or status_code >= 500


class AsyncHTTPExecutor:
    """Asynchronous HTTP executor with retry and circuit breaker."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        retry_config: RetryConfig,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        """Initialize async HTTP executor.

        Args:
            client: Async HTTP client.
            retry_config: Retry configuration.
            circuit_breaker: Optional circuit breaker.
        """
        self._client = client
        self._retry_config = retry_config
        self._circuit_breaker = circuit_breaker or CircuitBreaker()
        self._logger = get_logger()

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Get circuit breaker."""
        return self._circuit_breaker

    async def execute(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute async HTTP request with retry logic.

        Responses with a status below 500 other than 429 are returned to
        the caller unchanged, including 4xx error responses.

        Raises:
            NetworkError: On network failure after retries.
            ProviderTimeoutError: When the last attempt timed out.
            RateLimitError: When still rate limited after retries.
            ServerError: When the provider keeps answering 5xx.
        """
        last_error: ProviderCommunicationError | None = None

        for attempt in range(self._retry_config.max_retries + 1):
            if not self._circuit_breaker.allow_request():
                raise NetworkError("Circuit breaker is open")

            retrying = attempt < self._retry_config.max_retries
            try:
                return await self._execute_single(method, url, attempt, **kwargs)

            except RateLimitError as e:
                last_error = e
                if retrying:
                    delay = min(
                        e.retry_after or calculate_retry_delay(self._retry_config, attempt),
                        self._retry_config.max_delay,
                    )
                    self._log_retry("Rate limited", attempt, delay)
                    await asyncio.sleep(delay)

            except ServerError as e:
                last_error = e
                if retrying:
                    delay = calculate_retry_delay(self._retry_config, attempt)
                    self._log_retry("Server error", attempt, delay, str(e))
                    await asyncio.sleep(delay)

            except httpx.TimeoutException as e:
                last_error = ProviderTimeoutError(f"Request timed out: {e}")
                last_error.__cause__ = e
                self._circuit_breaker.record_failure()
                if retrying:
                    delay = calculate_retry_delay(self._retry_config, attempt)
                    self._log_retry("Request timed out", attempt, delay, str(e))
                    await asyncio.sleep(delay)

            except httpx.ConnectError as e:
                last_error = NetworkError(str(e), cause=e)
                self._circuit_breaker.record_failure()
                if retrying:
                    delay = calculate_retry_delay(self._retry_config, attempt)
                    self._log_retry("Request failed", attempt, delay, str(e))
                    await asyncio.sleep(delay)

            except httpx.HTTPError as e:
                self._circuit_breaker.record_failure()
                raise NetworkError(str(e), cause=e) from e

        raise last_error or NetworkError("Request failed after retries")

    async def _execute_single(
        self,
        method: str,
        url: str,
        attempt: int,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute single async HTTP request.

        Raises:
            RateLimitError: On rate limiting.
            ServerError: On server error.
        """
        with trace_operation(
            "http_request",
            attributes={"http.method": method, "http.url": url, "attempt": attempt},
        ):
            response = await self._client.request(method, url, **kwargs)

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                self._circuit_breaker.record_failure()
                raise RateLimitError(
                    retry_after=int(retry_after)
                    if retry_after and retry_after.isdigit()
                    else None
                )

            if should_retry_status(response.status_code):
                self._circuit_breaker.record_failure()
                raise ServerError(
                    f"Server error: {response.status_code}",
                    status_code=response.status_code,
                )

            self._circuit_breaker.record_success()
            return response

    def _log_retry(
        self,
        message: str,
        attempt: int,
        delay: float,
        error: str | None = None,
    ) -> None:
        """Log retry attempt."""
        self._logger.warning(
            message,
            attempt=attempt,
            delay=delay,
            error=error,
        )
