"""Structured logging and tracing for token refreshes.

Log lines go through structlog, spans through the OpenTelemetry API. Both
are no-ops until the host installs a provider or calls
``configure_telemetry``. Credentials never reach either in clear text:
log fields named like a token are replaced by ``token_fingerprint``.
"""

from __future__ import annotations

import functools
import hashlib
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ParamSpec, TypeVar

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Generator, MutableMapping

    from .config import TelemetryConfig

P = ParamSpec("P")
T = TypeVar("T")

INSTRUMENTATION_NAME = "oidc-token-lifecycle"
INSTRUMENTATION_VERSION = "0.1.0"

CREDENTIAL_FIELDS = frozenset({"access_token", "refresh_token", "id_token", "client_secret"})

_tracer: trace.Tracer | None = None
_logger: structlog.BoundLogger | None = None


def token_fingerprint(token: str | None) -> str | None:
    """Short, non-reversible identifier of a credential for log lines."""
    if not token:
        return None
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


def redact_credentials(
    _wrapped: Any,
    _method: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor replacing raw credentials with fingerprints."""
    for key in CREDENTIAL_FIELDS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str):
            event_dict[key] = token_fingerprint(value)
    return event_dict


def get_tracer() -> trace.Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(INSTRUMENTATION_NAME, INSTRUMENTATION_VERSION)
    return _tracer


def get_logger() -> structlog.BoundLogger:
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(INSTRUMENTATION_NAME)
    return _logger


def _log_level_to_int(level: str) -> int:
    return logging.getLevelNamesMapping().get(level.upper(), logging.INFO)


def configure_telemetry(config: TelemetryConfig) -> None:
    """Install JSON logging at ``config.log_level`` and a named tracer.

    With ``enabled=False`` spans are dropped and logging is left as the
    host configured it.
    """
    global _tracer, _logger

    if not config.enabled:
        _tracer = trace.NoOpTracer()
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_credentials,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _log_level_to_int(config.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _tracer = trace.get_tracer(config.service_name, INSTRUMENTATION_VERSION)
    _logger = structlog.get_logger(config.service_name)


@contextmanager
def trace_operation(
    name: str,
    *,
    attributes: dict[str, Any] | None = None,
) -> Generator[trace.Span, None, None]:
    """Run the block inside a span named ``name``.

    ``None`` attribute values are skipped. An escaping exception marks the
    span as failed and, for package errors, records the error code.
    """
    with get_tracer().start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            code = getattr(e, "code", None)
            if isinstance(code, str):
                span.set_attribute("oidc.error_code", code)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise


def traced_async(
    name: str | None = None,
    **attributes: Any,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Wrap a coroutine function in ``trace_operation``.

    Keyword arguments become static span attributes.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        span_name = name or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            with trace_operation(span_name, attributes=attributes):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
