"""Unit tests for logging and tracing helpers."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest
from opentelemetry import trace

from oidc_token_lifecycle import telemetry
from oidc_token_lifecycle.config import TelemetryConfig
from oidc_token_lifecycle.errors import MissingRefreshTokenError
from oidc_token_lifecycle.telemetry import (
    _log_level_to_int,
    redact_credentials,
    token_fingerprint,
    trace_operation,
    traced_async,
)


class TestTokenFingerprint:
    def test_stable_and_short(self) -> None:
        assert token_fingerprint("secret-token") == token_fingerprint("secret-token")
        assert len(token_fingerprint("secret-token")) == 12
        assert "secret" not in token_fingerprint("secret-token")

    def test_distinguishes_tokens(self) -> None:
        assert token_fingerprint("A1") != token_fingerprint("A2")

    @pytest.mark.parametrize("token", [None, ""])
    def test_empty(self, token: str | None) -> None:
        assert token_fingerprint(token) is None


class TestLogLevel:
    @pytest.mark.parametrize(
        ("level", "expected"),
        [("debug", 10), ("INFO", 20), ("Warning", 30), ("ERROR", 40), ("bogus", 20)],
    )
    def test_level_mapping(self, level: str, expected: int) -> None:
        assert _log_level_to_int(level) == expected


class TestTracing:
    def test_disabled_telemetry_uses_noop_tracer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(telemetry, "_tracer", None)

        telemetry.configure_telemetry(TelemetryConfig(enabled=False))

        assert isinstance(telemetry.get_tracer(), trace.NoOpTracer)

    def test_trace_operation_reraises(self) -> None:
        with pytest.raises(ValueError, match="boom"):
            with trace_operation("failing", attributes={"k": "v"}):
                raise ValueError("boom")

    def test_traced_async_preserves_result_and_name(self) -> None:
        @traced_async()
        async def double(value: int) -> int:
            return value * 2

        assert double.__name__ == "double"
        assert asyncio.run(double(21)) == 42

    def test_trace_operation_skips_empty_attributes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        tracer = MagicMock()
        monkeypatch.setattr(telemetry, "_tracer", tracer)

        with trace_operation("op", attributes={"oidc.app": "oidc_login", "oidc.session": None}):
            pass

        span = tracer.start_as_current_span.return_value.__enter__.return_value
        tracer.start_as_current_span.assert_called_once_with("op")
        span.set_attribute.assert_called_once_with("oidc.app", "oidc_login")

    def test_trace_operation_records_error_code(self, monkeypatch: pytest.MonkeyPatch) -> None:
        tracer = MagicMock()
        monkeypatch.setattr(telemetry, "_tracer", tracer)

        with pytest.raises(MissingRefreshTokenError):
            with trace_operation("op"):
                raise MissingRefreshTokenError()

        span = tracer.start_as_current_span.return_value.__enter__.return_value
        span.set_attribute.assert_called_once_with(
            "oidc.error_code", MissingRefreshTokenError().code
        )
        span.record_exception.assert_called_once()

    def test_traced_async_static_attributes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        tracer = MagicMock()
        monkeypatch.setattr(telemetry, "_tracer", tracer)

        @traced_async("exchange", grant="refresh_token")
        async def exchange() -> str:
            return "ok"

        assert asyncio.run(exchange()) == "ok"
        tracer.start_as_current_span.assert_called_once_with("exchange")
        span = tracer.start_as_current_span.return_value.__enter__.return_value
        span.set_attribute.assert_called_once_with("grant", "refresh_token")


class TestRedactCredentials:
    def test_replaces_credentials_with_fingerprints(self) -> None:
        event = redact_credentials(
            None,
            "info",
            {"event": "stored", "access_token": "A1", "client_secret": "s3cret", "app": "x"},
        )

        assert event["access_token"] == token_fingerprint("A1")
        assert event["client_secret"] == token_fingerprint("s3cret")
        assert event["app"] == "x"

    def test_leaves_non_string_values(self) -> None:
        event = redact_credentials(None, "info", {"event": "e", "id_token": None})

        assert event["id_token"] is None
