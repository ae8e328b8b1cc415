"""HTTP client layer for DrsHub backend calls."""

from .client import (
    ClientCertificate,
    ResilientHttpClient,
    build_async_client,
    build_ssl_context,
)
from .retry import build_async_retrying, is_retryable_status

__all__ = [
    "ClientCertificate",
    "ResilientHttpClient",
    "build_async_client",
    "build_async_retrying",
    "build_ssl_context",
    "is_retryable_status",
]
