# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Socket transport abstraction and factory."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from ..config import ClientSettings, load_client_settings

if TYPE_CHECKING:  # pragma: no cover
    from .request import RequestSpec


@dataclass
class RawExchange:
    """One round trip as seen by the socket layer: a status line, a flat header list and a byte stream."""

    status_code: int
    reason: str = ""
    method: str = "GET"
    url: str | None = None
    raw_headers: list[str] = field(default_factory=list)
    stream: Iterable[bytes] = ()
    raw_trailers: list[str] = field(default_factory=list)
    close: Callable[[], None] | None = None


class SocketTransport(Protocol):
    """Minimal protocol for performing one HTTP round trip."""

    def open(self, spec: RequestSpec) -> RawExchange: ...

    def close(self) -> None:  # pragma: no cover - optional for adapters
        ...


def create_default_socket_transport(settings: ClientSettings | None = None) -> SocketTransport:
    """Factory for the default httpx-backed transport."""
    from .httpx_client import HttpxSocketTransport

    return HttpxSocketTransport(settings or load_client_settings())


__all__ = ["RawExchange", "SocketTransport", "create_default_socket_transport"]
