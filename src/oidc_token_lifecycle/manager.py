"""Token lifecycle manager.

Decides whether the access token cached in the session is still usable,
runs the refresh-token exchange when it is not, persists the resulting
token material and keeps the cached logout URL current.

The manager holds no token state of its own; everything durable lives in
the session store. Only ``ConfigurationError`` escapes ``refresh()``;
provider and response failures are logged and reported as a
``RefreshResult``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from .config import ConfigKey, ManagerConfig
from .core.errors import ErrorFactory
from .errors import (
    InvalidTokenResponseError,
    MissingRefreshTokenError,
    ProviderCommunicationError,
    ProviderTimeoutError,
    TokenLifecycleError,
)
from .models import TokenResponse
from .session import SessionKey, SessionLockRegistry, default_lock_registry
from .telemetry import get_logger, token_fingerprint, trace_operation
from .types import RefreshOutcome, RefreshResult

if TYPE_CHECKING:
    import structlog

    from .factory import ClientFactory
    from .types import ConfigProvider, ProtocolClient, SessionStore, UrlGenerator


class TokenLifecycleManager:
    """Refreshes and stores OIDC tokens for one user session."""

    def __init__(
        self,
        session: SessionStore,
        config: ConfigProvider,
        url_generator: UrlGenerator,
        client_factory: ClientFactory,
        *,
        settings: ManagerConfig | None = None,
        lock_registry: SessionLockRegistry | None = None,
        clock: Callable[[], float] = time.time,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            session: Session store of the current user.
            config: Host config provider.
            url_generator: Builds the absolute callback URL.
            client_factory: Builds protocol clients on demand.
            settings: Manager settings (app name, refresh timeout).
            lock_registry: Per-session lock registry shared by all managers
                of the process.
            clock: Returns the current time in seconds since the epoch.
            logger: Optional structlog logger.
        """
        self.session = session
        self.settings = settings or ManagerConfig()
        self._config = config
        self._url_generator = url_generator
        self._client_factory = client_factory
        self._locks = lock_registry if lock_registry is not None else default_lock_registry
        self._clock = clock
        self._logger = (logger or get_logger()).bind(app=self.settings.app_name)

    async def refresh_tokens(self) -> bool:
        """Make sure the session holds a valid access token.

        Returns:
            True if a valid access token is now in the session, False if
            the user has to log in again.

        Raises:
            ConfigurationError: If the protocol client cannot be built.
        """
        result = await self.refresh()
        return result.ok

    async def refresh(self) -> RefreshResult:
        """Refresh the session tokens if needed and report how it went."""
        attributes = {
            "oidc.app": self.settings.app_name,
            "oidc.session": token_fingerprint(self.session.session_id),
        }
        with trace_operation("token_refresh", attributes=attributes) as span:
            result = await self._refresh()
            span.set_attribute("oidc.refresh.outcome", result.outcome.value)
            if result.error is not None:
                span.set_attribute("oidc.refresh.error_code", result.error.code)
            return result

    async def _refresh(self) -> RefreshResult:
        if self._access_token_valid():
            self._logger.debug("no token expiration or not yet expired")
            return RefreshResult(RefreshOutcome.VALID)

        if not self.session.get(SessionKey.REFRESH_TOKEN):
            self._logger.debug("refresh token not found")
            return RefreshResult(
                RefreshOutcome.MISSING_REFRESH_TOKEN,
                MissingRefreshTokenError(),
            )

        async with self._locks.hold(self.session.session_id):
            # Another request of this session may have refreshed while we waited
            if self._access_token_valid():
                self._logger.debug("token refreshed by concurrent request")
                return RefreshResult(RefreshOutcome.VALID)

            refresh_token = self.session.get(SessionKey.REFRESH_TOKEN)
            if not refresh_token:
                self._logger.debug("refresh token not found")
                return RefreshResult(
                    RefreshOutcome.MISSING_REFRESH_TOKEN,
                    MissingRefreshTokenError(),
                )

            return await self._refresh_locked(refresh_token)

    async def _refresh_locked(self, refresh_token: str) -> RefreshResult:
        callback_url = self._url_generator.link_to_route_absolute(
            self.settings.callback_route_name
        )
        # ConfigurationError propagates to the caller
        client = self._client_factory.create_client(callback_url)

        self._logger.debug("refreshing token")
        try:
            token_response = await self._request_refresh(client, refresh_token)
            self.store_tokens(token_response)
            self._update_logout_url(client)
        except InvalidTokenResponseError as e:
            self._log_failure(e)
            return RefreshResult(RefreshOutcome.INVALID_TOKEN_RESPONSE, e)
        except ProviderCommunicationError as e:
            self._log_failure(e)
            return RefreshResult(RefreshOutcome.PROVIDER_ERROR, e)
        except Exception as e:
            error = ErrorFactory.from_exception(e)
            self._log_failure(error, exc=e)
            return RefreshResult(RefreshOutcome.PROVIDER_ERROR, error)
        finally:
            await client.close()

        self._logger.debug("token refreshed")
        return RefreshResult(RefreshOutcome.REFRESHED)

    async def _request_refresh(
        self,
        client: ProtocolClient,
        refresh_token: str,
    ) -> TokenResponse:
        timeout = self.settings.refresh_timeout
        try:
            async with asyncio.timeout(timeout):
                return await client.refresh_token(refresh_token)
        except TimeoutError as e:
            raise ProviderTimeoutError(
                f"Token refresh did not complete within {timeout}s",
                timeout_seconds=timeout,
            ) from e

    def _update_logout_url(self, client: ProtocolClient) -> None:
        if not self.session.get(SessionKey.LOGOUT_URL):
            return

        self._logger.debug("updating logout url")
        override = self._config.get_system_value(ConfigKey.LOGOUT_URL, False)
        try:
            logout_url = client.get_end_session_url(
                override or None,
                id_token_hint=self.session.get(SessionKey.ID_TOKEN),
            )
        except Exception as e:
            # Tokens are already stored; the previous URL stays in place
            error = ErrorFactory.from_exception(e)
            self._logger.warning("logout url update failed", **error.to_dict())
            return
        self.session.set(SessionKey.LOGOUT_URL, logout_url)

    def _access_token_valid(self) -> bool:
        expires_at = self.session.get(SessionKey.ACCESS_TOKEN_EXPIRES_AT)
        self._logger.debug("checking if token should be refreshed", expires=expires_at)
        if not expires_at:
            return False
        try:
            return self._clock() < float(expires_at)
        except (TypeError, ValueError):
            self._logger.warning("unreadable token expiry in session", expires=expires_at)
            return False

    def _log_failure(self, error: TokenLifecycleError, exc: Exception | None = None) -> None:
        self._logger.error(
            "token refresh failed",
            exc_info=exc or error,
            **error.to_dict(),
        )

    def store_tokens(self, token_response: TokenResponse | Mapping[str, Any]) -> None:
        """Write new token material into the session.

        The response is validated in full before the first write, so an
        invalid response leaves the session untouched. The expiry is
        stored as the current time plus ``expires_in``.

        Raises:
            InvalidTokenResponseError: If a token is missing or empty, or
                ``expires_in`` is negative.
        """
        if isinstance(token_response, TokenResponse):
            token_response = token_response.model_dump()
        response = TokenResponse.from_payload(token_response)

        expires_at = int(self._clock()) + response.expires_in
        self._logger.debug(
            "storing tokens",
            old_access_token=token_fingerprint(self.session.get(SessionKey.ACCESS_TOKEN)),
            new_access_token=token_fingerprint(response.access_token),
            expires_at=expires_at,
        )

        self.session.set(SessionKey.ACCESS_TOKEN, response.access_token)
        self.session.set(SessionKey.REFRESH_TOKEN, response.refresh_token)
        self.session.set(SessionKey.ACCESS_TOKEN_EXPIRES_AT, expires_at)
        if response.id_token:
            self.session.set(SessionKey.ID_TOKEN, response.id_token)

    def get_logout_url(self) -> str | None:
        """Cached provider logout URL, if any."""
        return self.session.get(SessionKey.LOGOUT_URL)
