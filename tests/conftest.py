"""
Shared test fixtures for token lifecycle tests.

Provides session/config collaborators, a fake protocol client and a fixed
clock so refresh decisions are deterministic.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from oidc_token_lifecycle.config import ManagerConfig, ProviderConfig, RetryConfig
from oidc_token_lifecycle.manager import TokenLifecycleManager
from oidc_token_lifecycle.models import TokenResponse
from oidc_token_lifecycle.session import (
    DictConfigProvider,
    InMemorySessionStore,
    SessionKey,
    SessionLockRegistry,
)

NOW = 1_700_000_000
CALLBACK_URL = "https://cloud.example.com/apps/oidc_login/oidc"
END_SESSION_URL = "https://auth.example.com/oauth/logout?client_id=test-client-id"


@pytest.fixture
def now() -> int:
    """Provide the fixed current time used by the manager fixture."""
    return NOW


@pytest.fixture
def end_session_url() -> str:
    """Provide the logout URL the fake protocol client derives."""
    return END_SESSION_URL


@pytest.fixture
def provider_config() -> ProviderConfig:
    """Provide an identity provider configuration without retries."""
    return ProviderConfig(
        base_url="https://auth.example.com",
        client_id="test-client-id",
        client_secret="test-client-secret",
        end_session_endpoint="https://auth.example.com/oauth/logout",
        retry=RetryConfig(max_retries=0),
    )


@pytest.fixture
def config_provider() -> DictConfigProvider:
    """Provide an empty host configuration (all defaults)."""
    return DictConfigProvider()


@pytest.fixture
def session() -> InMemorySessionStore:
    """Provide a session holding an expired token and a refresh token."""
    return InMemorySessionStore(
        {
            SessionKey.ACCESS_TOKEN: "A1",
            SessionKey.REFRESH_TOKEN: "R1",
            SessionKey.ACCESS_TOKEN_EXPIRES_AT: NOW - 10,
        },
        session_id="session-1",
    )


@pytest.fixture
def url_generator() -> MagicMock:
    """Provide a URL generator returning a fixed callback URL."""
    generator = MagicMock()
    generator.link_to_route_absolute.return_value = CALLBACK_URL
    return generator


@pytest.fixture
def sample_token_response() -> dict:
    """Provide a sample token endpoint response."""
    return {
        "access_token": "A2",
        "token_type": "Bearer",
        "expires_in": 3600,
        "refresh_token": "R2",
        "scope": "openid",
    }


@pytest.fixture
def protocol_client(sample_token_response: dict) -> MagicMock:
    """Provide a fake protocol client whose refresh succeeds."""
    client = MagicMock()
    client.refresh_token = AsyncMock(
        return_value=TokenResponse.model_validate(sample_token_response)
    )
    client.get_end_session_url = MagicMock(return_value=END_SESSION_URL)
    client.close = AsyncMock()
    return client


@pytest.fixture
def client_factory(protocol_client: MagicMock) -> MagicMock:
    """Provide a client factory handing out the fake protocol client."""
    factory = MagicMock()
    factory.create_client.return_value = protocol_client
    return factory


@pytest.fixture
def manager(
    session: InMemorySessionStore,
    config_provider: DictConfigProvider,
    url_generator: MagicMock,
    client_factory: MagicMock,
) -> TokenLifecycleManager:
    """Provide a manager wired to the fake collaborators and a fixed clock."""
    return TokenLifecycleManager(
        session,
        config_provider,
        url_generator,
        client_factory,
        settings=ManagerConfig(refresh_timeout=1.0),
        lock_registry=SessionLockRegistry(),
        clock=lambda: NOW,
    )
