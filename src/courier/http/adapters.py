# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Deterministic SocketTransport implementations for tests and offline use."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..errors import TransportError
from .client import RawExchange, SocketTransport
from .request import RequestSpec
from .url import canonical_url


@dataclass
class StubResponse:
    """A scripted response. Mappings and lists in `body` are sent as JSON."""

    status_code: int = 200
    reason: str = "OK"
    headers: Mapping[str, str] | list[tuple[str, str]] = field(default_factory=dict)
    body: Any = b""
    chunk_size: int = 0
    trailers: Mapping[str, str] = field(default_factory=dict)
    stream_error: BaseException | None = None
    transport_error: BaseException | None = None

    def payload(self) -> bytes:
        if isinstance(self.body, (bytes, bytearray)):
            return bytes(self.body)
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body).encode("utf-8")

    def chunks(self) -> Iterator[bytes]:
        payload = self.payload()
        size = self.chunk_size or len(payload) or 1
        for start in range(0, len(payload), size):
            yield payload[start : start + size]
        if self.stream_error is not None:
            raise self.stream_error


def _flat(pairs: Mapping[str, str] | list[tuple[str, str]]) -> list[str]:
    items = pairs.items() if isinstance(pairs, Mapping) else pairs
    flat: list[str] = []
    for key, value in items:
        flat.extend((str(key), str(value)))
    return flat


class StubSocketTransport(SocketTransport):
    """
    Programmable transport keyed by URL.

    A URL may map to a single response (returned on every call) or a list that
    is consumed in order, repeating its last element once exhausted.
    """

    def __init__(self, responses: Mapping[str, StubResponse | list[StubResponse]] | None = None):
        self._responses: dict[str, list[StubResponse]] = {}
        self._served: dict[str, int] = {}
        self.requests: list[RequestSpec] = []
        for url, response in (responses or {}).items():
            self.add(url, response)

    def add(self, url: str, response: StubResponse | list[StubResponse]) -> None:
        self._responses[canonical_url(url)] = list(response) if isinstance(response, list) else [response]

    def open(self, spec: RequestSpec) -> RawExchange:
        self.requests.append(spec)
        key = canonical_url(spec.url)
        scripted = self._responses.get(key)
        if not scripted:
            raise TransportError(f"No stubbed response configured for {key}")

        served = self._served.get(key, 0)
        self._served[key] = served + 1
        response = scripted[min(served, len(scripted) - 1)]
        if response.transport_error is not None:
            raise response.transport_error

        return RawExchange(
            status_code=response.status_code,
            reason=response.reason,
            method=spec.method,
            url=str(spec.url),
            raw_headers=_flat(response.headers),
            stream=response.chunks(),
            raw_trailers=_flat(response.trailers),
        )

    def close(self) -> None:
        return None


__all__ = ["StubResponse", "StubSocketTransport"]
