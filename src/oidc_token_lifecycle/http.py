"""HTTP client utilities.

Provides the httpx client used to talk to the identity provider and a
circuit breaker shared by the request executor.
"""

from __future__ import annotations

import ssl
import time
from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from .config import ClientSettings, ProviderConfig

USER_AGENT = "oidc-token-lifecycle/0.1.0 Python"


class CircuitState(StrEnum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Stops calls to an identity provider that keeps failing.

    After ``failure_threshold`` consecutive failures the breaker opens and
    rejects requests for ``recovery_timeout`` seconds. It then lets requests
    through again and closes after ``half_open_requests`` successes; any
    failure in that window opens it again. One breaker is normally shared by
    every client a ``ClientFactory`` builds, so the whole process backs off
    together.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        half_open_requests: int = 1,
        *,
        clock: Callable[[], float] = time.monotonic,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_requests = half_open_requests
        self._clock = clock
        self._logger = logger or structlog.get_logger(__name__)

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
        self._half_open_successes = 0

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def state(self) -> CircuitState:
        if (
            self._state == CircuitState.OPEN
            and self._clock() - self._opened_at >= self.recovery_timeout
        ):
            self._half_open_successes = 0
            self._move_to(CircuitState.HALF_OPEN)
        return self._state

    def _move_to(self, state: CircuitState) -> None:
        previous, self._state = self._state, state
        if state == CircuitState.OPEN:
            self._opened_at = self._clock()
            self._logger.warning(
                "provider circuit opened",
                previous=previous.value,
                failures=self._failure_count,
                retry_in=self.recovery_timeout,
            )
        else:
            self._logger.info(
                "provider circuit state changed",
                previous=previous.value,
                state=state.value,
            )

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._half_open_successes += 1
            if self._half_open_successes >= self.half_open_requests:
                self._failure_count = 0
                self._move_to(CircuitState.CLOSED)
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or (
            self._state == CircuitState.CLOSED
            and self._failure_count >= self.failure_threshold
        ):
            self._move_to(CircuitState.OPEN)

    def allow_request(self) -> bool:
        """False while the provider is being left alone to recover."""
        return self.state != CircuitState.OPEN


def build_tls_verify(settings: ClientSettings) -> bool | ssl.SSLContext:
    """Translate verify-peer/verify-host flags into an httpx ``verify`` value.

    Disabling peer verification turns off certificate checks entirely.
    Disabling only host verification keeps the chain check but skips the
    hostname match.
    """
    if not settings.verify_peer:
        return False
    if not settings.verify_host:
        context = httpx.create_ssl_context()
        context.check_hostname = False
        return context
    return True


def create_async_http_client(
    provider: ProviderConfig,
    settings: ClientSettings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create configured async HTTP client.

    Args:
        provider: Identity provider configuration.
        settings: Client settings carrying the TLS flags.
        transport: Optional transport override.

    Returns:
        Configured httpx.AsyncClient.
    """
    return httpx.AsyncClient(
        base_url=provider.base_url_str,
        timeout=httpx.Timeout(
            connect=provider.connect_timeout,
            read=provider.timeout,
            write=provider.timeout,
            pool=provider.timeout,
        ),
        headers={
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        },
        verify=build_tls_verify(settings),
        transport=transport,
        follow_redirects=False,
    )
