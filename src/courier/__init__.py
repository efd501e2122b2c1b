# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Courier package entrypoint.

Courier turns a declarative request description into a normalized RequestSpec,
executes it over an injectable socket transport (httpx by default), follows
redirects with a per-request loop guard and exposes the buffered response as a
serializable ResponseEnvelope.
"""

from .config import ClientSettings, load_client_settings
from .errors import (
    CourierError,
    ErrorCategory,
    InvalidURLError,
    ResponseStreamError,
    StatusCodeError,
    TransportError,
)
from .http import (
    CaselessHeaderMap,
    HttpxSocketTransport,
    RequestSpec,
    ResponseAssembler,
    ResponseEnvelope,
    SocketTransport,
    Transport,
    create_default_socket_transport,
    request,
)
from .log import setup_logging
from .version import __version__

__all__ = [
    "CaselessHeaderMap",
    "ClientSettings",
    "CourierError",
    "ErrorCategory",
    "HttpxSocketTransport",
    "InvalidURLError",
    "RequestSpec",
    "ResponseAssembler",
    "ResponseEnvelope",
    "ResponseStreamError",
    "SocketTransport",
    "StatusCodeError",
    "Transport",
    "TransportError",
    "create_default_socket_transport",
    "load_client_settings",
    "request",
    "setup_logging",
    "__version__",
]
