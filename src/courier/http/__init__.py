# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP client exports."""

from .adapters import StubResponse, StubSocketTransport
from .agent import SecureAgent
from .client import RawExchange, SocketTransport, create_default_socket_transport
from .credentials import credential_location, first_file, first_file_in_directory, read_credential
from .headers import CaselessHeaderMap
from .httpx_client import HttpxSocketTransport
from .request import RequestSpec, normalize
from .response import ResponseAssembler, ResponseEnvelope
from .transport import RedirectVisitTable, Transport, request
from .url import canonical_url, resolve_location

__all__ = [
    "CaselessHeaderMap",
    "HttpxSocketTransport",
    "RawExchange",
    "RedirectVisitTable",
    "RequestSpec",
    "ResponseAssembler",
    "ResponseEnvelope",
    "SecureAgent",
    "SocketTransport",
    "StubResponse",
    "StubSocketTransport",
    "Transport",
    "canonical_url",
    "create_default_socket_transport",
    "credential_location",
    "first_file",
    "first_file_in_directory",
    "normalize",
    "read_credential",
    "request",
    "resolve_location",
]
