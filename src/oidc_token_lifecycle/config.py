"""Configuration for the OIDC token lifecycle package.

Uses Pydantic v2 frozen models. ``ProviderConfig`` describes the identity
provider, ``ClientSettings`` is the immutable per-client configuration the
factory hands to a protocol client, and ``ConfigKey`` names the host settings
read through the config provider.
"""

from __future__ import annotations

import os
import random
from enum import StrEnum
from typing import Annotated, Any, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from .core.errors import ErrorFactory


class ConfigKey(StrEnum):
    """Host system settings consulted by the factory and the manager."""

    TLS_VERIFY = "oidc_login_tls_verify"
    SCOPE = "oidc_login_scope"
    LOGOUT_URL = "oidc_login_logout_url"
    PROVIDER_URL = "oidc_login_provider_url"
    CLIENT_ID = "oidc_login_client_id"
    CLIENT_SECRET = "oidc_login_client_secret"
    TOKEN_ENDPOINT = "oidc_login_token_endpoint"
    END_SESSION_ENDPOINT = "oidc_login_end_session_endpoint"
    POST_LOGOUT_REDIRECT_URI = "oidc_login_post_logout_redirect_uri"


DEFAULT_SCOPE = "openid"


class RetryConfig(BaseModel):
    """Retry configuration with exponential backoff."""

    model_config = ConfigDict(frozen=True)

    max_retries: Annotated[int, Field(ge=0, le=10)] = 2
    initial_delay: Annotated[float, Field(gt=0, le=60)] = 0.5
    max_delay: Annotated[float, Field(gt=0, le=300)] = 5.0
    exponential_base: Annotated[float, Field(ge=1.5, le=3.0)] = 2.0
    jitter: Annotated[float, Field(ge=0, le=1.0)] = 0.1

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt with exponential backoff."""
        delay = min(
            self.initial_delay * (self.exponential_base**attempt),
            self.max_delay,
        )
        # Add jitter to prevent thundering herd
        jitter_range = delay * self.jitter
        return delay + random.uniform(-jitter_range, jitter_range)  # noqa: S311


class TelemetryConfig(BaseModel):
    """Logging and tracing configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    service_name: str = "oidc-token-lifecycle"
    log_level: str = "INFO"


class ProviderConfig(BaseModel):
    """Identity provider endpoints, client credentials and HTTP settings."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    # Required
    base_url: HttpUrl
    client_id: str = Field(..., min_length=1)

    client_secret: SecretStr | None = None

    # HTTP settings
    timeout: Annotated[float, Field(gt=0, le=300)] = 10.0
    connect_timeout: Annotated[float, Field(gt=0, le=60)] = 5.0

    retry: RetryConfig = Field(default_factory=RetryConfig)

    # Endpoints (token endpoint auto-derived from base_url if not set)
    token_endpoint: str | None = None
    end_session_endpoint: str | None = None
    post_logout_redirect_uri: str | None = None

    @model_validator(mode="after")
    def set_default_endpoints(self) -> Self:
        """Set default token endpoint based on base_url."""
        base = str(self.base_url).rstrip("/")

        # Use object.__setattr__ since model is frozen
        if self.token_endpoint is None:
            object.__setattr__(self, "token_endpoint", f"{base}/oauth/token")

        return self

    @field_validator("token_endpoint", "end_session_endpoint")
    @classmethod
    def validate_endpoint(cls, v: str | None) -> str | None:
        """Endpoints must be absolute http(s) URLs."""
        if v is not None and not v.startswith(("https://", "http://")):
            msg = f"Endpoint must be an absolute http(s) URL: {v!r}"
            raise ValueError(msg)
        return v

    @property
    def base_url_str(self) -> str:
        """Get base URL as string without trailing slash."""
        return str(self.base_url).rstrip("/")

    @classmethod
    def from_env(cls, prefix: str = "OIDC_LOGIN_") -> Self:
        """Create config from ``<prefix>*`` environment variables.

        Raises:
            ConfigurationError: If a required variable is missing or a value
                is invalid.
        """

        def get_env(key: str, default: Any = None) -> Any:
            return os.environ.get(f"{prefix}{key}", default)

        base_url = get_env("PROVIDER_URL")
        if not base_url:
            raise ErrorFactory.config_error(
                f"{prefix}PROVIDER_URL environment variable is required",
                field="base_url",
            )

        client_id = get_env("CLIENT_ID")
        if not client_id:
            raise ErrorFactory.config_error(
                f"{prefix}CLIENT_ID environment variable is required",
                field="client_id",
            )

        raw_timeout = get_env("TIMEOUT", "10.0")
        try:
            timeout = float(raw_timeout)
        except ValueError as e:
            error = ErrorFactory.config_error(
                f"{prefix}TIMEOUT must be a number of seconds, got {raw_timeout!r}",
                field="timeout",
            )
            raise error from e

        try:
            return cls(
                base_url=base_url,
                client_id=client_id,
                client_secret=get_env("CLIENT_SECRET"),
                token_endpoint=get_env("TOKEN_ENDPOINT"),
                end_session_endpoint=get_env("END_SESSION_ENDPOINT"),
                post_logout_redirect_uri=get_env("POST_LOGOUT_REDIRECT_URI"),
                timeout=timeout,
            )
        except PydanticValidationError as e:
            raise ErrorFactory.config_error(
                f"Invalid identity provider configuration in {prefix}* variables",
                cause=e,
            ) from e


class ClientSettings(BaseModel):
    """Immutable configuration of one protocol client."""

    model_config = ConfigDict(frozen=True)

    redirect_url: str = ""
    verify_host: bool = True
    verify_peer: bool = True
    scopes: tuple[str, ...] = (DEFAULT_SCOPE,)

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(cls, v: Any) -> Any:
        """Accept a space-separated scope string as well as a sequence."""
        if isinstance(v, str):
            return tuple(v.split())
        return v

    @field_validator("scopes")
    @classmethod
    def validate_scopes(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """At least one scope is requested; duplicates are dropped."""
        scopes = tuple(dict.fromkeys(s for s in v if s))
        if not scopes:
            msg = "At least one OIDC scope is required"
            raise ValueError(msg)
        return scopes

    @property
    def scope_string(self) -> str:
        """Get scopes as space-separated string."""
        return " ".join(self.scopes)


class ManagerConfig(BaseModel):
    """Settings of the token lifecycle manager."""

    model_config = ConfigDict(frozen=True)

    app_name: str = Field(default="oidc_login", min_length=1)
    refresh_timeout: Annotated[float, Field(gt=0, le=300)] = 10.0
    callback_route: str | None = None

    @property
    def callback_route_name(self) -> str:
        """Route the provider redirects back to after login."""
        return self.callback_route or f"{self.app_name}.login.oidc"
