# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Redirect-following request executor.

A Transport owns one top-level request: its RequestSpec, the visit table that
guards the redirect chain and the response of the latest round trip. Round
trips are strictly sequential; a redirect re-points the spec at the resolved
Location and loops until a non-redirect response arrives or a URL is revisited.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from typing import Any

from ..config import ClientSettings, load_client_settings
from ..errors import CourierError, InvalidURLError, StatusCodeError, TransportError, categorize_exception
from ..utils import between
from .client import SocketTransport, create_default_socket_transport
from .request import RequestSpec
from .response import ResponseAssembler, ResponseEnvelope
from .url import canonical_url, resolve_location

logger = logging.getLogger(__name__)

MAX_VISITS = 2


class RedirectVisitTable:
    """
    Per-chain visit counter keyed by canonical URL string.

    The origin starts at 1 because the first request already visited it. A
    redirect target is followed while its count after the hop stays below
    MAX_VISITS; the origin gets one extra hop so a URL that redirects to itself
    is retried exactly once. Every other URL is followed at most once, so an
    A -> B -> A -> B bounce stops on the second arrival at B.
    """

    def __init__(self, origin: Any = None):
        self._visits: dict[str, int] = {}
        self._origin = canonical_url(origin) if origin is not None else None
        if self._origin is not None:
            self._visits[self._origin] = 1

    def count(self, url: Any) -> int:
        return self._visits.get(canonical_url(url), 0)

    def visit(self, url: Any) -> int:
        key = canonical_url(url)
        self._visits[key] = self._visits.get(key, 0) + 1
        return self._visits[key]

    def allows(self, url: Any) -> bool:
        """Record a redirect to `url` and report whether it may be followed."""
        limit = MAX_VISITS + (1 if canonical_url(url) == self._origin else 0)
        return self.visit(url) < limit

    def __len__(self) -> int:
        return len(self._visits)

    def to_dict(self) -> dict[str, int]:
        return dict(self._visits)


class Transport:
    """Executes one request, following redirects until the chain settles."""

    def __init__(
        self,
        options: Mapping[str, Any],
        *,
        socket_transport: SocketTransport | None = None,
        settings: ClientSettings | None = None,
    ):
        self.settings = settings or load_client_settings()
        self.origin = RequestSpec.from_options(options, settings=self.settings)
        self.spec = self.origin
        self.redirects = RedirectVisitTable(self.origin.url)
        self.response: ResponseEnvelope | None = None
        self._socket_transport = socket_transport
        self._owns_socket_transport = socket_transport is None
        self._in_flight = threading.Lock()

    @property
    def socket_transport(self) -> SocketTransport:
        if self._socket_transport is None:
            self._socket_transport = create_default_socket_transport(self.settings)
        return self._socket_transport

    @property
    def is_secure(self) -> bool:
        return self.spec.is_secure

    def send(self) -> ResponseEnvelope:
        """
        Run the round trip (and any redirects) and return the settled response.

        Every call starts a fresh chain from the original request.
        """
        if not self._in_flight.acquire(blocking=False):
            raise RuntimeError("Transport already has a request in flight")
        try:
            spec = self.spec = self.origin
            self.redirects = RedirectVisitTable(spec.url)
            self.response = None
            while True:
                response = self._round_trip(spec)
                self.response = response
                following = self._next_spec(spec, response)
                if following is None:
                    logger.debug("%s %s settled with %s", spec.method, spec.url, response.status_code)
                    return response
                spec = self.spec = following
        finally:
            self._in_flight.release()

    def _round_trip(self, spec: RequestSpec) -> ResponseEnvelope:
        try:
            exchange = self.socket_transport.open(spec)
        except CourierError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise TransportError(str(exc) or None, category=categorize_exception(exc)) from exc

        assembler = ResponseAssembler(exchange, max_body_bytes=self.settings.max_body_bytes)
        try:
            return assembler.consume(exchange.stream, exchange.raw_trailers)
        finally:
            if exchange.close is not None:
                exchange.close()

    def _next_spec(self, spec: RequestSpec, response: ResponseEnvelope) -> RequestSpec | None:
        location = response.headers.get("location")
        if not between(response.status_code, 300, 399) or not location:
            return None

        target = resolve_location(spec.url, location)
        if not self.redirects.allows(target):
            logger.debug("Redirect loop detected at %s; not following", target)
            return None

        try:
            following = spec.with_url(target)
        except InvalidURLError:
            logger.warning("Ignoring unusable redirect Location %r from %s", location, spec.url)
            return None
        logger.debug("Following %s redirect %s -> %s", response.status_code, spec.url, following.url)
        return following

    def close(self) -> None:
        if self._owns_socket_transport and self._socket_transport is not None:
            self._socket_transport.close()
            self._socket_transport = None

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def to_dict(self) -> dict[str, Any]:
        return {
            "request": self.spec.to_dict(),
            "response": self.response.to_dict() if self.response is not None else None,
        }

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)


def request(
    options: Mapping[str, Any],
    *,
    socket_transport: SocketTransport | None = None,
    settings: ClientSettings | None = None,
) -> ResponseEnvelope | Any:
    """
    Perform a request described by `options`.

    Returns the full ResponseEnvelope unless `resolveWithFullResponse` is false,
    in which case only the parsed body is returned. With `simple` set, a final
    status of 400 or above raises StatusCodeError.
    """
    with Transport(options, socket_transport=socket_transport, settings=settings) as transport:
        response = transport.send()
    if transport.spec.simple and response.status_code >= 400:
        raise StatusCodeError(response)
    if not transport.spec.resolve_with_full_response:
        return response.body
    return response


__all__ = ["MAX_VISITS", "RedirectVisitTable", "Transport", "request"]
