"""Core components shared by the protocol client and the manager.

Error construction and HTTP execution with retry and circuit breaker.
"""

from __future__ import annotations

from .errors import ErrorFactory
from .http_executor import AsyncHTTPExecutor

__all__ = [
    "ErrorFactory",
    "AsyncHTTPExecutor",
]
