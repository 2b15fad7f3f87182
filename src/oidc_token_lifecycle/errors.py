"""Error classes for the OIDC token lifecycle package.

Structured error hierarchy with error codes and correlation IDs. Only
``ConfigurationError`` is allowed to escape the token lifecycle manager;
everything under ``ProviderCommunicationError`` and
``InvalidTokenResponseError`` is contained and turned into a boolean outcome.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes."""

    # Authentication errors (1xxx)
    TOKEN_REFRESH_FAILED = "AUTH_1003"
    MISSING_REFRESH_TOKEN = "AUTH_1006"

    # Validation errors (2xxx)
    INVALID_CONFIG = "VAL_2002"
    INVALID_TOKEN_RESPONSE = "VAL_2005"

    # Network errors (3xxx)
    NETWORK_ERROR = "NET_3001"
    TIMEOUT_ERROR = "NET_3002"
    CONNECTION_ERROR = "NET_3003"
    END_SESSION_UNAVAILABLE = "NET_3004"

    # Rate limiting (4xxx)
    RATE_LIMITED = "RATE_4001"

    # Server errors (5xxx)
    SERVER_ERROR = "SRV_5001"


class TokenLifecycleError(Exception):
    """Base error with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if isinstance(code, str) else code.value
        self.status_code = status_code
        self.correlation_id = correlation_id
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "correlation_id": self.correlation_id,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class MissingRefreshTokenError(TokenLifecycleError):
    """Session holds no refresh token."""

    def __init__(self, message: str = "No refresh token in session") -> None:
        super().__init__(message, ErrorCode.MISSING_REFRESH_TOKEN, status_code=401)


class ProviderCommunicationError(TokenLifecycleError):
    """Talking to the identity provider failed."""

    def __init__(
        self,
        message: str = "Identity provider request failed",
        code: ErrorCode | str = ErrorCode.NETWORK_ERROR,
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            code,
            status_code=status_code,
            correlation_id=correlation_id,
            details=details,
        )


class NetworkError(ProviderCommunicationError):
    """Network request failed."""

    def __init__(
        self,
        message: str = "Network request failed",
        *,
        correlation_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.NETWORK_ERROR,
            correlation_id=correlation_id,
            details={"cause": str(cause)} if cause else None,
        )
        self.__cause__ = cause


class ProviderTimeoutError(ProviderCommunicationError):
    """Request to the provider timed out."""

    def __init__(
        self,
        message: str = "Request timed out",
        *,
        correlation_id: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.TIMEOUT_ERROR,
            status_code=408,
            correlation_id=correlation_id,
            details={"timeout_seconds": timeout_seconds} if timeout_seconds else None,
        )


class RateLimitError(ProviderCommunicationError):
    """Rate limit exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: int | None = None,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.RATE_LIMITED,
            status_code=429,
            correlation_id=correlation_id,
            details={"retry_after": retry_after} if retry_after else None,
        )
        self.retry_after = retry_after


class ServerError(ProviderCommunicationError):
    """Server-side error."""

    def __init__(
        self,
        message: str = "Server error",
        *,
        status_code: int = 500,
        correlation_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.SERVER_ERROR,
            status_code=status_code,
            correlation_id=correlation_id,
        )


class TokenRefreshError(ProviderCommunicationError):
    """Provider rejected the refresh grant."""

    def __init__(
        self,
        message: str = "Failed to refresh token",
        *,
        status_code: int | None = 400,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.TOKEN_REFRESH_FAILED,
            status_code=status_code,
            correlation_id=correlation_id,
            details=details,
        )


class InvalidTokenResponseError(TokenLifecycleError):
    """Token response is malformed or has out-of-range fields."""

    def __init__(
        self,
        message: str = "Invalid token response",
        *,
        correlation_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_TOKEN_RESPONSE,
            correlation_id=correlation_id,
            details=details,
        )


class ConfigurationError(TokenLifecycleError):
    """Invalid provider or client configuration."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_CONFIG,
            details={"field": field} if field else None,
        )
