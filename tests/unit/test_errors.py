"""Unit tests for error classes.

Tests error hierarchy, serialization, and error codes.
"""

import pytest
from hypothesis import given, settings, strategies as st

from oidc_token_lifecycle.errors import (
    ConfigurationError,
    ErrorCode,
    InvalidTokenResponseError,
    MissingRefreshTokenError,
    NetworkError,
    ProviderCommunicationError,
    ProviderTimeoutError,
    RateLimitError,
    ServerError,
    TokenLifecycleError,
    TokenRefreshError,
)


class TestErrorCode:
    """Tests for ErrorCode enum."""

    def test_error_code_categories(self) -> None:
        """Error codes should follow category pattern."""
        assert ErrorCode.TOKEN_REFRESH_FAILED.value.startswith("AUTH_1")
        assert ErrorCode.MISSING_REFRESH_TOKEN.value.startswith("AUTH_1")
        assert ErrorCode.INVALID_CONFIG.value.startswith("VAL_2")
        assert ErrorCode.INVALID_TOKEN_RESPONSE.value.startswith("VAL_2")
        assert ErrorCode.NETWORK_ERROR.value.startswith("NET_3")
        assert ErrorCode.END_SESSION_UNAVAILABLE.value.startswith("NET_3")
        assert ErrorCode.RATE_LIMITED == "RATE_4001"
        assert ErrorCode.SERVER_ERROR == "SRV_5001"

    def test_codes_are_unique(self) -> None:
        values = [code.value for code in ErrorCode]
        assert len(values) == len(set(values))


class TestTokenLifecycleError:
    """Tests for the base error."""

    def test_to_dict(self) -> None:
        error = TokenLifecycleError(
            "Test error",
            ErrorCode.TOKEN_REFRESH_FAILED,
            status_code=400,
            correlation_id="req-123",
            details={"extra": "info"},
        )

        result = error.to_dict()

        assert str(error) == "Test error"
        assert result == {
            "error": "Test error",
            "code": "AUTH_1003",
            "status_code": 400,
            "correlation_id": "req-123",
            "details": {"extra": "info"},
        }

    def test_repr(self) -> None:
        repr_str = repr(TokenLifecycleError("Test", ErrorCode.SERVER_ERROR))

        assert "TokenLifecycleError" in repr_str
        assert "SRV_5001" in repr_str

    @given(message=st.text(min_size=1, max_size=100), code=st.sampled_from(list(ErrorCode)))
    @settings(max_examples=50)
    def test_code_stored_as_plain_string(self, message: str, code: ErrorCode) -> None:
        error = TokenLifecycleError(message, code)

        assert error.code == code.value
        assert error.to_dict()["error"] == message
        assert error.details == {}


class TestProviderErrors:
    """Tests for the provider communication family."""

    def test_network_error_with_cause(self) -> None:
        cause = ConnectionError("Connection refused")
        error = NetworkError("Failed to connect", cause=cause)

        assert error.__cause__ is cause
        assert "Connection refused" in error.details["cause"]
        assert error.code == ErrorCode.NETWORK_ERROR

    def test_timeout_error(self) -> None:
        error = ProviderTimeoutError(timeout_seconds=10.0)

        assert error.code == "NET_3002"
        assert error.status_code == 408
        assert error.details["timeout_seconds"] == 10.0

    def test_rate_limit_with_retry_after(self) -> None:
        error = RateLimitError(retry_after=60)

        assert error.status_code == 429
        assert error.retry_after == 60
        assert error.details["retry_after"] == 60

    def test_server_error_custom_status(self) -> None:
        error = ServerError("Service unavailable", status_code=503)

        assert error.code == "SRV_5001"
        assert error.status_code == 503

    def test_token_refresh_error(self) -> None:
        error = TokenRefreshError(details={"error": "invalid_grant"})

        assert error.code == "AUTH_1003"
        assert error.status_code == 400
        assert error.details["error"] == "invalid_grant"

    @pytest.mark.parametrize(
        "error",
        [
            NetworkError(),
            ProviderTimeoutError(),
            RateLimitError(),
            ServerError(),
            TokenRefreshError(),
        ],
    )
    def test_all_are_provider_errors(self, error: TokenLifecycleError) -> None:
        assert isinstance(error, ProviderCommunicationError)
        assert isinstance(error, TokenLifecycleError)


class TestOtherErrors:
    """Tests for errors outside the provider family."""

    def test_missing_refresh_token(self) -> None:
        error = MissingRefreshTokenError()

        assert error.code == "AUTH_1006"
        assert error.status_code == 401
        assert not isinstance(error, ProviderCommunicationError)

    def test_invalid_token_response(self) -> None:
        error = InvalidTokenResponseError(details={"fields": ["expires_in"]})

        assert error.code == "VAL_2005"
        assert error.details["fields"] == ["expires_in"]
        assert not isinstance(error, ProviderCommunicationError)

    def test_configuration_error_with_field(self) -> None:
        error = ConfigurationError("Invalid value", field="base_url")

        assert error.code == "VAL_2002"
        assert error.status_code is None
        assert error.details["field"] == "base_url"
