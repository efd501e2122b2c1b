# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Request normalization.

A loosely-typed options mapping (the shape accepted by request/request-promise
style clients) is turned into a frozen RequestSpec. Normalization is a fixed
sequence of steps; each step reads the options plus the fields resolved so far
and returns new fields. Nothing is validated or frozen until the last step, and
the caller's options are never mutated.
"""

from __future__ import annotations

import json
import re
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from functools import partial
from typing import Any

import httpx

from ..config import ClientSettings, load_client_settings
from ..errors import InvalidURLError
from ..utils import first_present, to_base64
from .agent import SecureAgent
from .credentials import read_credential
from .headers import CaselessHeaderMap
from .querystring import DEFAULT_EQ, DEFAULT_SEP, parse, stringify
from .url import parse_absolute_url, url_to_http_options

FORM_URLENCODED = "application/x-www-form-urlencoded"
TLS_MATERIAL = ("ca", "cert", "key", "passphrase", "pfx")
TLS_PASSTHROUGH = (
    "ciphers",
    "clientCertEngine",
    "crl",
    "dhparam",
    "ecdhCurve",
    "family",
    "honorCipherOrder",
    "maxHeaderSize",
    "maxVersion",
    "minVersion",
    "privateKeyEngine",
    "privateKeyIdentifier",
    "secureOptions",
    "secureProtocol",
    "servername",
    "sessionIdContext",
    "sessionTimeout",
    "setHost",
    "sigalgs",
    "socketPath",
    "ticketKeys",
)

_BASIC_CREDENTIALS_RE = re.compile(r"(.+):(.+)")
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

Fields = dict[str, Any]


def _snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name).lower()


def _option(options: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Read an option by its camelCase name, falling back to the snake_case spelling."""
    value = options.get(name)
    if value is None:
        value = options.get(_snake(name))
    return default if value is None else value


def _js_string(value: Any) -> str:
    if isinstance(value, (Mapping, list, tuple)) or value is None:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_empty_body(raw: Any) -> bool:
    if raw is None:
        return True
    if isinstance(raw, (str, bytes, bytearray, Mapping, list, tuple)):
        return len(raw) == 0
    return False


def _tls_options(options: Mapping[str, Any]) -> dict[str, Any]:
    passthrough: dict[str, Any] = {}
    for name in TLS_PASSTHROUGH:
        value = _option(options, name)
        if value is not None:
            passthrough[name] = value
    return passthrough


def _with_header(fields: Fields, key: str, value: str, *, overwrite: bool = False) -> CaselessHeaderMap[str]:
    headers: CaselessHeaderMap[str] = fields["headers"].copy()
    if overwrite or not headers.has(key):
        headers.set(key, value)
    return headers


def resolve_url(options: Mapping[str, Any], fields: Fields) -> Fields:
    uri = options.get("uri")
    url = options.get("url")
    host = options.get("host")
    hostname = options.get("hostname")
    path = options.get("path", "/")
    port = options.get("port", "80")
    protocol = options.get("protocol", "https:")

    if isinstance(uri, httpx.URL):
        resolved = parse_absolute_url(uri)
    elif isinstance(url, httpx.URL):
        resolved = parse_absolute_url(url)
    elif isinstance(uri, str):
        resolved = parse_absolute_url(uri)
    elif isinstance(url, str):
        resolved = parse_absolute_url(url)
    elif host and hostname and path and port and protocol:
        scheme = str(protocol).rstrip(":")
        resolved = parse_absolute_url(f"{scheme}://{host}{path}")
    else:
        raise InvalidURLError("Invalid URL", value=uri if uri is not None else url)

    return {**fields, **_url_fields(resolved)}


def _url_fields(url: httpx.URL) -> Fields:
    derived = url_to_http_options(url)
    return {
        "url": url,
        "path": derived["path"],
        "host": derived["host"],
        "hostname": derived["hostname"],
        "port": derived["port"],
        "protocol": derived["protocol"],
    }


def resolve_handling(options: Mapping[str, Any], fields: Fields) -> Fields:
    resolve_with_full_response = bool(_option(options, "resolveWithFullResponse", True))
    return {
        **fields,
        "resolve_with_full_response": resolve_with_full_response,
        "simple": bool(_option(options, "simple", False)),
        "strict_ssl": bool(first_present(options.get("strictSSL"), options.get("strict_ssl"), False)),
        "use_querystring": bool(_option(options, "useQuerystring", False)),
        "reject_unauthorized": bool(_option(options, "rejectUnauthorized", not resolve_with_full_response)),
    }


def resolve_querystring(options: Mapping[str, Any], fields: Fields) -> Fields:
    if not fields["use_querystring"]:
        return fields

    qs = dict(_option(options, "qs", {}))
    parse_options = {"sep": DEFAULT_SEP, "eq": DEFAULT_EQ, "maxKeys": 1000, **dict(_option(options, "qsParseOptions", {}))}
    stringify_options = {"sep": DEFAULT_SEP, "eq": DEFAULT_EQ, **dict(_option(options, "qsStringifyOptions", {}))}

    url: httpx.URL = fields["url"]
    derived = url_to_http_options(url)
    params = parse(derived["search"].lstrip("?"))
    params.extend((str(key), _js_string(value)) for key, value in qs.items())

    # Repeated keys collapse to their last value, in first-seen position.
    rendered = stringify(dict(params), stringify_options["sep"], stringify_options["eq"])
    return {
        **fields,
        "path": f"{derived['pathname']}/{rendered}",
        "qs": qs,
        "qs_parse_options": parse_options,
        "qs_stringify_options": stringify_options,
    }


def resolve_agent(options: Mapping[str, Any], fields: Fields, *, settings: ClientSettings) -> Fields:
    agent_options = dict(_option(options, "agentOptions", {}))
    client_auth = _option(options, "clientAuth")
    if client_auth is False:
        return {**fields, "client_auth": False, "agent_options": agent_options}

    material: dict[str, Any] = {}
    for name in TLS_MATERIAL:
        value = first_present(_option(options, name), agent_options.get(name))
        if value is None:
            value = read_credential(name, base_dir=settings.ssl_base_dir)
        material[name] = value

    if material["pfx"]:
        material["cert"] = material["key"] = None
    else:
        material["pfx"] = None

    explicit = options.get("agent")
    if isinstance(explicit, (httpx.Client, SecureAgent)):
        agent: Any = explicit
    elif (material["pfx"] or (material["cert"] and material["key"])) and material["ca"] and material["passphrase"]:
        agent = SecureAgent(keep_alive=True, tls_options=_tls_options(options), **material)
    else:
        agent = None

    return {**fields, **material, "agent": agent, "agent_options": agent_options, "client_auth": client_auth}


def resolve_headers(options: Mapping[str, Any], fields: Fields) -> Fields:
    raw = _option(options, "headers", {})
    headers: CaselessHeaderMap[str] = CaselessHeaderMap()
    for key, value in CaselessHeaderMap.from_mapping(raw).entries():
        if value is not None:
            headers.set(str(key), str(value))
    if not headers.has("Connection"):
        headers.set("Connection", "close")
    return {**fields, "headers": headers}


def resolve_auth(options: Mapping[str, Any], fields: Fields) -> Fields:
    auth = options.get("auth")
    if isinstance(auth, str):
        encoded = to_base64(auth) if _BASIC_CREDENTIALS_RE.fullmatch(auth) else auth
        return {**fields, "auth": auth, "headers": _with_header(fields, "Authorization", f"Basic {encoded}", overwrite=True)}
    if not isinstance(auth, Mapping):
        return fields

    oauth_token = (auth.get("oauth") or {}).get("token") or ""
    jwt_token = (auth.get("jwt") or {}).get("token") or ""
    username = auth.get("username") or ""
    password = auth.get("password") or ""

    if oauth_token or jwt_token:
        headers = _with_header(fields, "Authorization", f"Bearer {oauth_token or jwt_token}")
    elif username and password:
        headers = _with_header(fields, "Authorization", f"Basic {to_base64(f'{username}:{password}')}")
    else:
        headers = fields["headers"]
    return {**fields, "auth": dict(auth), "headers": headers}


def resolve_sso(options: Mapping[str, Any], fields: Fields) -> Fields:
    sso = options.get("sso") or {}
    sso_token = sso.get("ssoToken") or sso.get("sso_token") or ""
    xsrf_token = sso.get("xsrfToken") or sso.get("xsrf_token") or ""
    if not (sso_token or xsrf_token):
        return fields

    segments = [
        f"iPlanetDirectoryPro={sso_token}" if sso_token else "",
        f"XSRF-TOKEN={xsrf_token}" if xsrf_token else "",
        fields["headers"].get("Cookie", ""),
    ]
    cookie = "; ".join(segment for segment in segments if segment)
    return {**fields, "sso": dict(sso), "headers": _with_header(fields, "Cookie", cookie, overwrite=True)}


def resolve_payload(options: Mapping[str, Any], fields: Fields) -> Fields:
    raw = options.get("body")
    if _is_empty_body(raw):
        return {**fields, "body": None, "has_payload": False}

    headers: CaselessHeaderMap[str] = fields["headers"].copy()
    if isinstance(raw, str):
        body = raw.encode("utf-8")
        default_type = "text/plain"
    elif isinstance(raw, (bytes, bytearray)):
        body = bytes(raw)
        default_type = "application/octet-stream"
    else:
        content_type = str(headers.get("Content-Type", "")).split(";", 1)[0].strip().lower()
        if content_type == FORM_URLENCODED and isinstance(raw, (Mapping, list, tuple)):
            stringify_options = fields.get("qs_stringify_options") or dict(_option(options, "qsStringifyOptions", {}))
            form = raw if isinstance(raw, Mapping) else {str(index): item for index, item in enumerate(raw)}
            body = stringify(form, stringify_options.get("sep", DEFAULT_SEP), stringify_options.get("eq", DEFAULT_EQ)).encode("utf-8")
            default_type = FORM_URLENCODED
        else:
            body = json.dumps(raw, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
            default_type = "application/json"

    if not headers.has("Content-Type"):
        headers.set("Content-Type", default_type)
    headers.set("Content-Length", str(len(body)))
    return {**fields, "headers": headers, "body": body, "has_payload": True}


def resolve_ntlm(options: Mapping[str, Any], fields: Fields) -> Fields:
    if not _option(options, "useNtlm", False):
        return {**fields, "use_ntlm": False}
    return {
        **fields,
        "use_ntlm": True,
        "ntlm_json": bool(options.get("json", False)),
        "ntlm_domain": _option(options, "ntlmDomain"),
        "workstation": options.get("workstation"),
    }


def resolve_remaining(options: Mapping[str, Any], fields: Fields) -> Fields:
    abort = options.get("abort")
    timeout = options.get("timeout")
    return {
        **fields,
        "method": str(options.get("method") or "GET").upper(),
        "abort": abort if isinstance(abort, threading.Event) else None,
        "timeout": float(timeout) if timeout is not None else None,
        "tls_options": _tls_options(options),
    }


NORMALIZATION_STEPS: tuple[Callable[..., Fields], ...] = (
    resolve_url,
    resolve_handling,
    resolve_querystring,
    resolve_agent,
    resolve_headers,
    resolve_auth,
    resolve_sso,
    resolve_payload,
    resolve_ntlm,
    resolve_remaining,
)


@dataclass(frozen=True)
class RequestSpec:
    """Fully resolved, transport-ready description of one HTTP request."""

    url: httpx.URL
    method: str = "GET"
    path: str = "/"
    host: str = ""
    hostname: str = ""
    port: int | None = None
    protocol: str = "https:"
    headers: CaselessHeaderMap[str] = field(default_factory=CaselessHeaderMap)
    body: bytes | None = None
    has_payload: bool = False

    ca: str | bytes | None = None
    cert: str | bytes | None = None
    key: str | bytes | None = None
    passphrase: str | bytes | None = None
    pfx: bytes | None = None
    agent: Any = None
    agent_options: dict[str, Any] = field(default_factory=dict)
    client_auth: bool | None = None
    tls_options: dict[str, Any] = field(default_factory=dict)

    reject_unauthorized: bool = False
    resolve_with_full_response: bool = True
    simple: bool = False
    strict_ssl: bool = False
    use_querystring: bool = False

    qs: dict[str, Any] = field(default_factory=dict)
    qs_parse_options: dict[str, Any] = field(default_factory=dict)
    qs_stringify_options: dict[str, Any] = field(default_factory=dict)
    auth: Any = None
    sso: dict[str, Any] | None = None

    use_ntlm: bool = False
    ntlm_domain: str | None = None
    workstation: str | None = None
    ntlm_json: bool = False

    timeout: float | None = None
    abort: threading.Event | None = None
    options: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.url, httpx.URL) or not self.url.scheme or not self.url.host:
            raise InvalidURLError("Invalid URL", value=self.url)

    @classmethod
    def from_options(cls, options: Mapping[str, Any], *, settings: ClientSettings | None = None) -> RequestSpec:
        """Normalize a raw options mapping; raises InvalidURLError when no URL resolves."""
        if not isinstance(options, Mapping):
            raise InvalidURLError("Invalid URL", value=options)
        settings = settings or load_client_settings()
        fields: Fields = {}
        for step in NORMALIZATION_STEPS:
            if step is resolve_agent:
                step = partial(resolve_agent, settings=settings)
            fields = step(options, fields)
        return cls(options=dict(options), **fields)

    def with_url(self, url: str | httpx.URL) -> RequestSpec:
        """Return a copy of this spec pointed at another URL; headers, body and TLS material carry over."""
        return replace(self, **_url_fields(parse_absolute_url(url)))

    @property
    def is_secure(self) -> bool:
        return self.protocol in {"https:", "wss:"}

    @property
    def target(self) -> httpx.URL:
        """The URL actually sent on the wire (origin plus the resolved request path)."""
        return self.url.copy_with(raw_path=self.path.encode("utf-8"))

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.options)
        data.update(
            {
                "body": self.body.decode("utf-8", errors="replace") if self.body is not None else None,
                "headers": self.headers.to_dict(),
                "method": self.method,
                "path": self.path,
                "rejectUnauthorized": self.reject_unauthorized,
                "resolveWithFullResponse": self.resolve_with_full_response,
                "simple": self.simple,
                "url": str(self.url),
                "useNtlm": self.use_ntlm,
            }
        )
        for name in TLS_MATERIAL:
            data[name] = bool(getattr(self, name))
        masked = {key: bool(value) for key, value in self.agent_options.items()}
        for spelling in ("agentOptions", "agent_options"):
            if spelling in data:
                data[spelling] = masked
        data.pop("auth", None)
        data.pop("agent", None)
        data.pop("abort", None)
        return data

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)


def normalize(options: Mapping[str, Any], *, settings: ClientSettings | None = None) -> RequestSpec:
    return RequestSpec.from_options(options, settings=settings)


__all__ = ["NORMALIZATION_STEPS", "RequestSpec", "normalize"]
