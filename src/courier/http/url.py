# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""URL helpers shared by request normalization and redirect handling."""

from __future__ import annotations

from typing import Any
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx

from ..errors import InvalidURLError

DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


def parse_absolute_url(value: Any) -> httpx.URL:
    """Parse `value` into an absolute httpx.URL or raise InvalidURLError."""
    try:
        url = value if isinstance(value, httpx.URL) else httpx.URL(str(value))
    except (httpx.InvalidURL, TypeError, ValueError) as exc:
        raise InvalidURLError(f"Invalid URL: {value!r}", value=value) from exc
    if not url.scheme or not url.host:
        raise InvalidURLError(f"Invalid URL: {value!r}", value=value)
    return url


def canonical_url(value: Any) -> str:
    """
    Return a normalized string form of a URL suitable for use as a dictionary key.

    Scheme and host are lower-cased, default ports and fragments dropped, and an
    empty path becomes "/".
      HTTPS://Example.com:443?a=1#top -> https://example.com/?a=1
    """
    parts = urlsplit(str(value))
    scheme = parts.scheme.lower()
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    try:
        port = parts.port
    except ValueError:
        port = None
    netloc = host
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"
    if parts.username:
        userinfo = parts.username if parts.password is None else f"{parts.username}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


def resolve_location(base: Any, location: str) -> str:
    """Resolve a (possibly relative) Location header against the URL that returned it."""
    return urljoin(str(base), str(location).strip())


def url_to_http_options(url: httpx.URL) -> dict[str, Any]:
    """Derive the per-request connection fields from a URL."""
    parts = urlsplit(str(url))
    pathname = parts.path or "/"
    search = f"?{parts.query}" if parts.query else ""
    port = url.port if url.port is not None else DEFAULT_PORTS.get(url.scheme)
    return {
        "protocol": f"{url.scheme}:",
        "hostname": url.host,
        "host": parts.netloc.rsplit("@", 1)[-1],
        "port": port,
        "pathname": pathname,
        "search": search,
        "path": f"{pathname}{search}",
        "href": str(url),
    }


__all__ = ["DEFAULT_PORTS", "canonical_url", "parse_absolute_url", "resolve_location", "url_to_http_options"]
