# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and exception helpers."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .http.response import ResponseEnvelope

GENERIC_TRANSPORT_MESSAGE = "An error occurred while sending the HTTP request"
GENERIC_RESPONSE_MESSAGE = "An error occurred while handling the HTTP response"


class ErrorCategory(str, Enum):
    TIMEOUT = "TIMEOUT"
    SSL_ERROR = "SSL_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DNS_ERROR = "DNS_ERROR"
    ABORTED = "ABORTED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    NONE = "NONE"


class CourierError(Exception):
    """Base exception for the courier library."""


class InvalidURLError(CourierError, ValueError):
    """No URL could be resolved from the request options."""

    def __init__(self, message: str = "Invalid URL", *, value: Any = None):
        super().__init__(message)
        self.value = value


class TransportError(CourierError):
    """The socket/TLS layer failed to complete a round trip."""

    def __init__(self, message: str | None = None, *, category: ErrorCategory = ErrorCategory.UNKNOWN_ERROR):
        super().__init__(message or GENERIC_TRANSPORT_MESSAGE)
        self.category = category


class ResponseStreamError(CourierError):
    """The inbound response stream reported an error."""

    def __init__(self, message: str | None = None):
        super().__init__(message or GENERIC_RESPONSE_MESSAGE)


class StatusCodeError(CourierError):
    """A final response carried an error status while `simple` handling was requested."""

    def __init__(self, response: "ResponseEnvelope"):
        super().__init__(f"{response.status_code} {response.status_text}".strip())
        self.response = response
        self.status_code = response.status_code


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """
    Map Python/httpx exceptions to ErrorCategory.
    """
    import socket
    import ssl as ssl_module

    import httpx

    if isinstance(exc, TransportError):
        return exc.category

    if isinstance(exc, httpx.TimeoutException):
        return ErrorCategory.TIMEOUT

    cause = exc.__cause__ or exc.__context__
    if isinstance(cause, (ssl_module.SSLError, ssl_module.CertificateError)):
        return ErrorCategory.SSL_ERROR
    if isinstance(cause, (socket.gaierror, socket.herror)):
        return ErrorCategory.DNS_ERROR

    if isinstance(exc, (httpx.ConnectError, httpx.RemoteProtocolError, httpx.NetworkError, httpx.ProxyError)):
        return ErrorCategory.CONNECTION_ERROR

    if isinstance(exc, (ssl_module.SSLError, ssl_module.CertificateError)):
        return ErrorCategory.SSL_ERROR

    if isinstance(exc, (socket.gaierror, socket.herror)):
        return ErrorCategory.DNS_ERROR

    if isinstance(exc, (ConnectionError, ConnectionRefusedError, ConnectionResetError)):
        return ErrorCategory.CONNECTION_ERROR

    return ErrorCategory.UNKNOWN_ERROR


def error_category_to_reason(category: Optional[ErrorCategory]) -> str:
    """User-facing reason string."""
    mapping = {
        ErrorCategory.TIMEOUT: "Network timeout during request",
        ErrorCategory.SSL_ERROR: "TLS/certificate issue",
        ErrorCategory.CONNECTION_ERROR: "Network connectivity issue",
        ErrorCategory.DNS_ERROR: "DNS resolution failure",
        ErrorCategory.ABORTED: "Request aborted by caller",
        ErrorCategory.UNKNOWN_ERROR: "Network error during request",
        ErrorCategory.NONE: "",
        None: "",
    }
    return mapping.get(category, "Request failed due to network error")


__all__ = [
    "CourierError",
    "ErrorCategory",
    "InvalidURLError",
    "ResponseStreamError",
    "StatusCodeError",
    "TransportError",
    "categorize_exception",
    "error_category_to_reason",
]
