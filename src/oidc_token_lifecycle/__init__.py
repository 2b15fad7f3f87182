"""OIDC relying-party token lifecycle management."""

from .client import OIDCProtocolClient
from .config import (
    ClientSettings,
    ConfigKey,
    ManagerConfig,
    ProviderConfig,
    RetryConfig,
    TelemetryConfig,
)
from .errors import (
    ConfigurationError,
    InvalidTokenResponseError,
    MissingRefreshTokenError,
    ProviderCommunicationError,
    TokenLifecycleError,
)
from .factory import ClientFactory
from .manager import TokenLifecycleManager
from .models import TokenResponse
from .session import (
    DictConfigProvider,
    InMemorySessionStore,
    SessionKey,
    SessionLock,
    SessionLockRegistry,
)
from .types import RefreshOutcome, RefreshResult

__all__ = [
    "OIDCProtocolClient",
    "ClientFactory",
    "TokenLifecycleManager",
    "ClientSettings",
    "ConfigKey",
    "ManagerConfig",
    "ProviderConfig",
    "RetryConfig",
    "TelemetryConfig",
    "TokenLifecycleError",
    "ConfigurationError",
    "InvalidTokenResponseError",
    "MissingRefreshTokenError",
    "ProviderCommunicationError",
    "TokenResponse",
    "RefreshOutcome",
    "RefreshResult",
    "DictConfigProvider",
    "InMemorySessionStore",
    "SessionKey",
    "SessionLock",
    "SessionLockRegistry",
]

__version__ = "0.1.0"
