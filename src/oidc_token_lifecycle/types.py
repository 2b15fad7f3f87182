"""Type definitions: collaborator protocols and the refresh result record."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .config import ClientSettings
    from .errors import TokenLifecycleError
    from .models import TokenResponse


@runtime_checkable
class SessionStore(Protocol):
    """Key/value storage scoped to one authenticated user session."""

    @property
    def session_id(self) -> str: ...

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...


@runtime_checkable
class ConfigProvider(Protocol):
    """Process-wide named settings with caller-supplied defaults."""

    def get_system_value(self, key: str, default: Any = None) -> Any: ...


@runtime_checkable
class UrlGenerator(Protocol):
    """Builds absolute URLs for named host routes."""

    def link_to_route_absolute(self, route_name: str) -> str: ...


class ProtocolClient(Protocol):
    """Wire exchange with one identity provider."""

    settings: ClientSettings

    async def refresh_token(self, refresh_token: str) -> TokenResponse: ...

    def get_end_session_url(
        self,
        override_url: str | None = None,
        *,
        id_token_hint: str | None = None,
    ) -> str: ...

    async def close(self) -> None: ...


class RefreshOutcome(StrEnum):
    """How a refresh attempt ended."""

    VALID = "valid"
    REFRESHED = "refreshed"
    MISSING_REFRESH_TOKEN = "missing_refresh_token"
    PROVIDER_ERROR = "provider_error"
    INVALID_TOKEN_RESPONSE = "invalid_token_response"


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of one refresh attempt, with the contained error if any."""

    outcome: RefreshOutcome
    error: TokenLifecycleError | None = None

    @property
    def ok(self) -> bool:
        """True when a usable access token is in the session."""
        return self.outcome in (RefreshOutcome.VALID, RefreshOutcome.REFRESHED)
