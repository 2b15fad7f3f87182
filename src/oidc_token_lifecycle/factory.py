"""Protocol client factory.

Maps host configuration values onto an immutable ``ClientSettings`` and
builds ``OIDCProtocolClient`` instances from it. Construction performs no
I/O; configuration problems surface here as ``ConfigurationError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from pydantic import ValidationError as PydanticValidationError

from .client import OIDCProtocolClient
from .config import DEFAULT_SCOPE, ClientSettings, ConfigKey, ProviderConfig
from .core.errors import ErrorFactory
from .http import CircuitBreaker

if TYPE_CHECKING:
    import httpx

    from .types import ConfigProvider


class ClientFactory:
    """Builds protocol clients bound to a callback URL."""

    def __init__(
        self,
        provider: ProviderConfig,
        config: ConfigProvider,
        *,
        app_name: str = "oidc_login",
        transport: httpx.AsyncBaseTransport | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            provider: Identity provider configuration.
            config: Host config provider for TLS and scope settings.
            app_name: Host application name.
            transport: Optional httpx transport handed to every client.
            circuit_breaker: Circuit breaker shared by all built clients.
        """
        self.provider = provider
        self._config = config
        self._app_name = app_name
        self._transport = transport
        self._circuit_breaker = circuit_breaker or CircuitBreaker()

    @classmethod
    def from_config_provider(cls, config: ConfigProvider, **kwargs: Any) -> Self:
        """Create a factory whose provider settings come from ``config``.

        Raises:
            ConfigurationError: If the provider settings are invalid.
        """

        def optional(key: ConfigKey) -> Any:
            return config.get_system_value(key, None) or None

        try:
            provider = ProviderConfig(
                base_url=config.get_system_value(ConfigKey.PROVIDER_URL, None),
                client_id=config.get_system_value(ConfigKey.CLIENT_ID, None),
                client_secret=optional(ConfigKey.CLIENT_SECRET),
                token_endpoint=optional(ConfigKey.TOKEN_ENDPOINT),
                end_session_endpoint=optional(ConfigKey.END_SESSION_ENDPOINT),
                post_logout_redirect_uri=optional(ConfigKey.POST_LOGOUT_REDIRECT_URI),
            )
        except PydanticValidationError as e:
            raise ErrorFactory.config_error(
                "Invalid identity provider configuration",
                cause=e,
            ) from e
        return cls(provider, config, **kwargs)

    def build_settings(self, callback_url: str = "") -> ClientSettings:
        """Read TLS and scope settings into an immutable ``ClientSettings``.

        Raises:
            ConfigurationError: If a setting has an unusable value.
        """
        verify = self._config.get_system_value(ConfigKey.TLS_VERIFY, True)
        scope = self._config.get_system_value(ConfigKey.SCOPE, DEFAULT_SCOPE)
        try:
            return ClientSettings(
                redirect_url=callback_url,
                verify_host=verify,
                verify_peer=verify,
                scopes=scope,
            )
        except PydanticValidationError as e:
            raise ErrorFactory.config_error(
                "Invalid OIDC client settings",
                cause=e,
            ) from e

    def create_client(self, callback_url: str = "") -> OIDCProtocolClient:
        """Build a protocol client bound to ``callback_url``."""
        return OIDCProtocolClient(
            self.provider,
            self.build_settings(callback_url),
            app_name=self._app_name,
            transport=self._transport,
            circuit_breaker=self._circuit_breaker,
        )
