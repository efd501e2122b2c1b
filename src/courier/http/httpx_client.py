# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""httpx-backed SocketTransport implementation."""

from __future__ import annotations

import logging
from collections.abc import Iterator

import httpx

from ..config import ClientSettings, load_client_settings
from ..errors import ErrorCategory, ResponseStreamError, TransportError, categorize_exception
from .agent import SecureAgent
from .client import RawExchange, SocketTransport
from .request import RequestSpec

logger = logging.getLogger(__name__)


def _flatten_headers(headers: httpx.Headers) -> list[str]:
    flat: list[str] = []
    for key, value in headers.raw:
        flat.extend((key.decode("latin-1"), value.decode("latin-1")))
    return flat


class HttpxSocketTransport(SocketTransport):
    """Synchronous httpx transport; one streamed round trip per `open` call."""

    def __init__(self, settings: ClientSettings | None = None, client: httpx.Client | None = None):
        self.settings = settings or load_client_settings()
        self._client = client
        self._default_clients: dict[bool, httpx.Client] = {}
        self._agent_clients: dict[tuple[str, bool], httpx.Client] = {}

    def _client_for(self, spec: RequestSpec) -> httpx.Client:
        if isinstance(spec.agent, httpx.Client):
            return spec.agent

        verify = bool(spec.reject_unauthorized or spec.strict_ssl) and self.settings.verify_ssl
        if isinstance(spec.agent, SecureAgent):
            # Each RequestSpec builds its own SecureAgent; share clients across equal material.
            key = (spec.agent.fingerprint, verify)
            client = self._agent_clients.get(key)
            if client is None:
                client = spec.agent.build_client(verify=verify, timeout=self.settings.timeout)
                self._agent_clients[key] = client
            return client

        if self._client is not None:
            return self._client
        client = self._default_clients.get(verify)
        if client is None:
            client = httpx.Client(verify=verify, timeout=self.settings.timeout, follow_redirects=False)
            self._default_clients[verify] = client
        return client

    def open(self, spec: RequestSpec) -> RawExchange:
        if spec.abort is not None and spec.abort.is_set():
            raise TransportError("Request aborted", category=ErrorCategory.ABORTED)

        client = self._client_for(spec)
        headers = spec.headers.entries()
        if not spec.headers.has("User-Agent"):
            headers.append(("User-Agent", self.settings.user_agent))
        timeout = spec.timeout if spec.timeout is not None else self.settings.timeout

        try:
            request = client.build_request(
                spec.method,
                spec.target,
                headers=headers,
                content=spec.body if spec.has_payload else None,
                timeout=timeout,
            )
            response = client.send(request, stream=True, follow_redirects=False)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            category = categorize_exception(exc)
            logger.warning("%s %s failed: %s", spec.method, spec.url, exc)
            raise TransportError(str(exc) or None, category=category) from exc

        logger.debug("%s %s -> %s", spec.method, spec.target, response.status_code)
        return RawExchange(
            status_code=response.status_code,
            reason=response.reason_phrase,
            method=response.request.method,
            url=str(spec.url),
            raw_headers=_flatten_headers(response.headers),
            stream=self._iter_body(response, spec),
            close=response.close,
        )

    def _iter_body(self, response: httpx.Response, spec: RequestSpec) -> Iterator[bytes]:
        try:
            for chunk in response.iter_bytes():
                if spec.abort is not None and spec.abort.is_set():
                    raise ResponseStreamError("Response aborted")
                yield chunk
        except httpx.HTTPError as exc:
            raise ResponseStreamError(str(exc) or None) from exc
        finally:
            response.close()

    def close(self) -> None:
        clients = list(self._default_clients.values()) + list(self._agent_clients.values())
        if self._client is not None:
            clients.append(self._client)
        for client in clients:
            client.close()
        self._default_clients.clear()
        self._agent_clients.clear()


__all__ = ["HttpxSocketTransport"]
