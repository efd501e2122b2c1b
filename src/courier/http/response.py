# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Response assembly: buffering one inbound stream into a ResponseEnvelope."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from ..errors import CourierError, ResponseStreamError
from .headers import CaselessHeaderMap

if TYPE_CHECKING:  # pragma: no cover
    from .client import RawExchange

logger = logging.getLogger(__name__)

_UNSET = object()


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant {name}")


class ResponseEnvelope:
    """Fully assembled result of one HTTP exchange."""

    def __init__(
        self,
        *,
        status_code: int | None = None,
        status_text: str | None = None,
        method: str | None = None,
        url: str | None = None,
        raw_headers: list[str] | None = None,
        raw_trailers: list[str] | None = None,
    ):
        self.status_code = status_code if status_code is not None else 200
        self.status_text = status_text if status_text is not None else "OK"
        self.method = method or "GET"
        self.url = url
        self.truncated = False
        self._raw_headers = list(raw_headers or [])
        self._raw_trailers = list(raw_trailers or [])
        self._chunks: list[bytes] | tuple[bytes, ...] = []
        self._headers: CaselessHeaderMap[str] | None = None
        self._trailers: CaselessHeaderMap[str] | None = None
        self._body: Any = _UNSET

    @property
    def status(self) -> int:
        return self.status_code

    @property
    def complete(self) -> bool:
        return isinstance(self._chunks, tuple)

    @property
    def chunks(self) -> tuple[bytes, ...]:
        return tuple(self._chunks)

    @property
    def headers(self) -> CaselessHeaderMap[str]:
        if self._headers is None:
            self._headers = CaselessHeaderMap.from_flat(self._raw_headers)
        return self._headers

    @property
    def trailers(self) -> CaselessHeaderMap[str]:
        if self._trailers is None:
            self._trailers = CaselessHeaderMap.from_flat(self._raw_trailers)
        return self._trailers

    @property
    def content(self) -> bytes:
        return b"".join(self._chunks)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def body(self) -> Any:
        """Parsed JSON when the payload is well-formed JSON, otherwise the raw text."""
        if self._body is not _UNSET:
            return self._body
        text = self.text
        try:
            body: Any = json.loads(text, parse_constant=_reject_constant)
        except ValueError:
            body = text
        if self.complete:
            self._body = body
        return body

    def _append(self, chunk: bytes) -> None:
        self._chunks.append(chunk)  # type: ignore[union-attr]

    def _seal(self, raw_trailers: list[str] | None) -> None:
        self._chunks = tuple(self._chunks)
        if raw_trailers:
            self._raw_trailers = list(raw_trailers)
            self._trailers = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "body": self.body,
            "headers": self.headers.to_dict(),
            "method": self.method,
            "statusCode": self.status_code,
            "statusMessage": self.status_text,
            "trailers": self.trailers.to_dict(),
            "url": self.url,
        }

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __repr__(self) -> str:
        return f"ResponseEnvelope(status_code={self.status_code}, method={self.method!r}, url={self.url!r})"


class ResponseAssembler:
    """
    Accumulates one response stream and settles exactly once.

    `feed`, `finish` and `fail` mirror the data/end/error events of the stream.
    Events that arrive after settlement are ignored.
    """

    def __init__(self, exchange: RawExchange | None = None, *, max_body_bytes: int = 0, **envelope_fields: Any):
        if exchange is not None:
            envelope_fields = {
                "status_code": exchange.status_code,
                "status_text": exchange.reason,
                "method": exchange.method,
                "url": exchange.url,
                "raw_headers": exchange.raw_headers,
                "raw_trailers": exchange.raw_trailers,
                **envelope_fields,
            }
        self.envelope = ResponseEnvelope(**envelope_fields)
        self.max_body_bytes = max_body_bytes
        self._received = 0
        self._error: BaseException | None = None
        self._settled = False

    @property
    def settled(self) -> bool:
        return self._settled

    def feed(self, chunk: bytes) -> None:
        if self._settled or not chunk:
            return
        if self.max_body_bytes > 0:
            remaining = self.max_body_bytes - self._received
            if len(chunk) >= remaining:
                self.envelope._append(bytes(chunk[:remaining]))
                self._received += remaining
                self.envelope.truncated = len(chunk) > remaining
                if self.envelope.truncated:
                    self.finish()
                return
        self.envelope._append(bytes(chunk))
        self._received += len(chunk)

    def finish(self, raw_trailers: list[str] | None = None) -> None:
        if self._settled:
            return
        self._settled = True
        self.envelope._seal(raw_trailers)

    def fail(self, error: BaseException | None = None) -> None:
        if self._settled:
            return
        self._settled = True
        if error is None:
            self._error = ResponseStreamError()
        elif isinstance(error, CourierError):
            self._error = error
        else:
            wrapped = ResponseStreamError(str(error) or None)
            wrapped.__cause__ = error
            self._error = wrapped
        logger.debug("Response stream for %s failed: %s", self.envelope.url, self._error)

    def consume(self, stream: Iterable[bytes], raw_trailers: list[str] | None = None) -> ResponseEnvelope:
        """Drain `stream` into the envelope and return the settled result."""
        try:
            for chunk in stream:
                if self._settled:
                    break
                self.feed(chunk)
        except Exception as exc:  # noqa: BLE001
            self.fail(exc)
        else:
            self.finish(raw_trailers)
        return self.result()

    def result(self) -> ResponseEnvelope:
        if not self._settled:
            raise ResponseStreamError("Response stream has not finished")
        if self._error is not None:
            raise self._error
        return self.envelope


__all__ = ["ResponseAssembler", "ResponseEnvelope"]
