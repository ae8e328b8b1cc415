"""
Canonical Exception Types for DRS Resolution

Every failure that can reach a caller is one of the types below. The request
handler converts them into the wire failure body:

    {"status": <code>, "response": {"status": <code>, "text": <message>}}

Hierarchy:
    DrsHubError
    ├── RequestError (400)
    │   └── RetiredNamespaceError (400)
    ├── UpstreamError (upstream status, else 500)
    ├── ResolutionTimeoutError (500)
    └── InternalError (500)

``ProviderHTTPError`` sits outside the hierarchy: it is what the HTTP client
raises for a non-2xx response, and the orchestrator wraps it in an
``UpstreamError`` that names the step that failed.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

BAD_REQUEST_STATUS = 400
SERVER_ERROR_STATUS = 500
BAD_GATEWAY_STATUS = 502


class ProviderHTTPError(Exception):
    """Non-2xx response from a backend service.

    Attributes:
        status: HTTP status code returned by the backend
        text: Raw response body (may be empty)
        url: URL that was requested
    """

    def __init__(self, status: int, text: str = "", url: Optional[str] = None) -> None:
        self.status = status
        self.text = text
        self.url = url
        super().__init__(f"HTTP {status} from {url}: {text}" if url else f"HTTP {status}: {text}")


class DrsHubError(Exception):
    """Base class for errors reported to DrsHub callers."""

    status_code: int = SERVER_ERROR_STATUS

    @property
    def status(self) -> int:
        return self.status_code

    @property
    def text(self) -> str:
        return str(self)

    def to_failure_response(self) -> Dict[str, Any]:
        """Render the error as the wire failure body."""
        return failure_response(self.status, self.text)


class RequestError(DrsHubError):
    """Malformed input, unknown field, missing auth or unrecognized provider."""

    status_code = BAD_REQUEST_STATUS

    @property
    def text(self) -> str:
        return f"Request is invalid. {self}"


class RetiredNamespaceError(RequestError):
    """The URI points at a namespace whose data has moved elsewhere."""


class ResolutionTimeoutError(DrsHubError):
    """The metadata fetch did not finish before the request deadline."""

    def __init__(self, message: str, step: str = "Could not fetch DRS metadata.") -> None:
        self.step = step
        super().__init__(message)

    @property
    def text(self) -> str:
        return f"{self} {self.step}"


class InternalError(DrsHubError):
    """Inconsistent backend data that cannot be normalized."""


class UpstreamError(DrsHubError):
    """A backend call failed and the failure is fatal for this request.

    Args:
        cause: The underlying exception (usually ``ProviderHTTPError``)
        description: The step that failed, e.g. "Received error contacting Bond."
    """

    def __init__(self, cause: BaseException, description: str) -> None:
        self.cause = cause
        self.description = description
        super().__init__(f"{description} {upstream_message(cause)}")

    @property
    def status(self) -> int:
        status = getattr(self.cause, "status", None)
        if isinstance(self.cause, DrsHubError):
            status = self.cause.status
        if not isinstance(status, int) or status < BAD_REQUEST_STATUS:
            return SERVER_ERROR_STATUS
        return status


def upstream_message(error: BaseException) -> str:
    """Extract the most useful message from a backend failure.

    Bond and other Terra services answer with ``{"error": {"message": ...}}``;
    prefer that over the raw body, and the raw body over ``str(error)``.
    """
    message = str(error)
    text = getattr(error, "text", None)
    if isinstance(error, ProviderHTTPError) and text:
        message = text
    try:
        parsed = json.loads(message)
    except (TypeError, ValueError):
        return message
    if isinstance(parsed, dict):
        inner = parsed.get("error")
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
    return message


def failure_response(status: int, text: str) -> Dict[str, Any]:
    """Build the ``{status, response: {status, text}}`` failure body."""
    return {"status": status, "response": {"status": status, "text": text}}


__all__ = [
    "BAD_GATEWAY_STATUS",
    "BAD_REQUEST_STATUS",
    "SERVER_ERROR_STATUS",
    "DrsHubError",
    "InternalError",
    "ProviderHTTPError",
    "RequestError",
    "ResolutionTimeoutError",
    "RetiredNamespaceError",
    "UpstreamError",
    "failure_response",
    "upstream_message",
]
