"""Centralized error factory.

Provides consistent error creation from provider responses, transport
exceptions and configuration failures.
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..errors import (
    ConfigurationError,
    NetworkError,
    ProviderCommunicationError,
    ProviderTimeoutError,
    RateLimitError,
    ServerError,
    TokenLifecycleError,
    TokenRefreshError,
)


class ErrorFactory:
    """Centralized error creation with consistent structure.

    All errors created through this factory include:
    - Standardized error codes
    - Correlation IDs for tracing
    - Consistent detail structure for logging
    """

    @staticmethod
    def generate_correlation_id() -> str:
        """Generate a unique correlation ID."""
        return str(uuid.uuid4())

    @staticmethod
    def from_http_response(
        response: httpx.Response,
        *,
        correlation_id: str | None = None,
    ) -> ProviderCommunicationError:
        """Create an error from a non-successful token endpoint response.

        Args:
            response: HTTP response object.
            correlation_id: Optional correlation ID for tracing.

        Returns:
            Appropriate ProviderCommunicationError subclass.
        """
        status = response.status_code
        correlation_id = correlation_id or ErrorFactory.generate_correlation_id()

        # OAuth error bodies carry error / error_description
        details: dict[str, Any] = {}
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            details["error"] = body.get("error")
            details["error_description"] = body.get("error_description")

        if status in (400, 401, 403):
            error_type = details.get("error") or "unknown_error"
            description = details.get("error_description") or f"Token request rejected: {error_type}"
            return TokenRefreshError(
                description,
                status_code=status,
                correlation_id=correlation_id,
                details=details,
            )

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimitError(
                details.get("error_description") or "Rate limit exceeded",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                correlation_id=correlation_id,
            )

        if status >= 500:
            return ServerError(
                details.get("error_description") or f"Server error: {status}",
                status_code=status,
                correlation_id=correlation_id,
            )

        return ProviderCommunicationError(
            f"Request failed with status {status}",
            status_code=status,
            correlation_id=correlation_id,
            details=details,
        )

    @staticmethod
    def from_exception(
        exc: Exception,
        *,
        correlation_id: str | None = None,
    ) -> TokenLifecycleError:
        """Create a package error from an arbitrary exception.

        Args:
            exc: Original exception.
            correlation_id: Optional correlation ID for tracing.

        Returns:
            Appropriate TokenLifecycleError subclass.
        """
        correlation_id = correlation_id or ErrorFactory.generate_correlation_id()

        if isinstance(exc, TokenLifecycleError):
            # Already a package error, just ensure correlation ID
            if exc.correlation_id is None:
                exc.correlation_id = correlation_id
            return exc

        if isinstance(exc, httpx.TimeoutException):
            return ProviderTimeoutError(
                f"Request timed out: {exc}",
                correlation_id=correlation_id,
            )

        if isinstance(exc, httpx.ConnectError):
            return NetworkError(
                f"Connection failed: {exc}",
                correlation_id=correlation_id,
                cause=exc,
            )

        if isinstance(exc, httpx.HTTPStatusError):
            return ErrorFactory.from_http_response(
                exc.response,
                correlation_id=correlation_id,
            )

        if isinstance(exc, httpx.HTTPError):
            return NetworkError(
                f"HTTP error: {exc}",
                correlation_id=correlation_id,
                cause=exc,
            )

        return NetworkError(
            f"Unexpected error: {exc}",
            correlation_id=correlation_id,
            cause=exc,
        )

    @staticmethod
    def config_error(
        message: str,
        *,
        field: str | None = None,
        cause: PydanticValidationError | None = None,
    ) -> ConfigurationError:
        """Create configuration error with field details.

        When a pydantic validation error is given, the first offending
        field is reported unless ``field`` is set explicitly.
        """
        if field is None and cause is not None:
            errors = cause.errors()
            if errors and errors[0]["loc"]:
                field = ".".join(str(p) for p in errors[0]["loc"])
        error = ConfigurationError(message, field=field)
        if cause is not None:
            error.__cause__ = cause
        return error
