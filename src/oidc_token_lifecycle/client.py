"""OpenID Connect protocol client.

Implements the refresh-token grant against the provider's token endpoint
and derives the end-session (logout) URL.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self
from urllib.parse import urlencode

from .core.errors import ErrorFactory
from .core.http_executor import AsyncHTTPExecutor
from .errors import (
    ErrorCode,
    InvalidTokenResponseError,
    MissingRefreshTokenError,
    ProviderCommunicationError,
)
from .http import CircuitBreaker, create_async_http_client
from .models import TokenResponse
from .telemetry import get_logger, token_fingerprint, traced_async

if TYPE_CHECKING:
    import httpx

    from .config import ClientSettings, ProviderConfig


class OIDCProtocolClient:
    """Asynchronous client for one identity provider."""

    def __init__(
        self,
        provider: ProviderConfig,
        settings: ClientSettings,
        *,
        app_name: str = "oidc_login",
        transport: httpx.AsyncBaseTransport | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            provider: Identity provider configuration.
            settings: Immutable client settings (redirect URL, TLS, scopes).
            app_name: Name of the host application, bound into log lines.
            transport: Optional httpx transport override.
            circuit_breaker: Optional circuit breaker shared across clients.
        """
        self.provider = provider
        self.settings = settings
        self.app_name = app_name
        self._http = create_async_http_client(provider, settings, transport=transport)
        self._executor = AsyncHTTPExecutor(
            self._http,
            provider.retry,
            circuit_breaker=circuit_breaker,
        )
        self._id_token: str | None = None
        self._logger = get_logger().bind(app=app_name, client_id=provider.client_id)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._http.aclose()

    @property
    def id_token(self) -> str | None:
        """ID token returned by the last successful refresh, if any."""
        return self._id_token

    @traced_async("refresh_token")
    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        """Exchange a refresh token for new token material.

        Args:
            refresh_token: Refresh token from the session.

        Returns:
            Validated token response.

        Raises:
            MissingRefreshTokenError: If ``refresh_token`` is empty.
            ProviderCommunicationError: On transport failure or when the
                provider rejects the grant.
            InvalidTokenResponseError: If the response body is malformed.
        """
        if not refresh_token:
            raise MissingRefreshTokenError()

        data: dict[str, Any] = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.provider.client_id,
            "scope": self.settings.scope_string,
        }
        if self.provider.client_secret:
            data["client_secret"] = self.provider.client_secret.get_secret_value()

        self._logger.debug(
            "requesting token refresh",
            token_endpoint=self.provider.token_endpoint,
            refresh_token=token_fingerprint(refresh_token),
        )
        response = await self._executor.execute(
            "POST",
            self.provider.token_endpoint,
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        if response.is_error:
            raise ErrorFactory.from_http_response(response)

        try:
            payload = response.json()
        except ValueError as e:
            msg = "Token response is not valid JSON"
            raise InvalidTokenResponseError(msg) from e

        token_response = TokenResponse.from_payload(payload)
        if token_response.id_token:
            self._id_token = token_response.id_token
        return token_response

    def get_end_session_url(
        self,
        override_url: str | None = None,
        *,
        id_token_hint: str | None = None,
    ) -> str:
        """Build the provider logout URL.

        A non-empty ``override_url`` is returned unchanged. Otherwise the
        configured end-session endpoint is used, with ``id_token_hint``,
        ``post_logout_redirect_uri`` and ``client_id`` appended.

        Raises:
            ProviderCommunicationError: If neither an override nor an
                end-session endpoint is available.
        """
        if override_url:
            return override_url

        endpoint = self.provider.end_session_endpoint
        if not endpoint:
            raise ProviderCommunicationError(
                "Provider does not expose an end_session_endpoint",
                ErrorCode.END_SESSION_UNAVAILABLE,
            )

        params: dict[str, str] = {}
        hint = id_token_hint or self._id_token
        if hint:
            params["id_token_hint"] = hint
        if self.provider.post_logout_redirect_uri:
            params["post_logout_redirect_uri"] = self.provider.post_logout_redirect_uri
        params["client_id"] = self.provider.client_id

        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(params)}"
