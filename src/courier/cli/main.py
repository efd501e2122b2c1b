# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Courier CLI."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from ..config import ClientSettings, load_client_settings
from ..errors import CourierError, TransportError, error_category_to_reason
from ..http import Transport
from ..log import setup_logging
from ..utils import is_json

CLI_TEXT_TRUNCATION_BYTES = 4096


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Courier HTTP(S) client")
    parser.add_argument("url", help="Target URL")
    parser.add_argument("-X", "--method", default="GET", help="HTTP method (default: GET)")
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        default=[],
        metavar="NAME: VALUE",
        help="Request header; may be repeated",
    )
    parser.add_argument("-d", "--data", help="Request body")
    parser.add_argument(
        "--json-body",
        action="store_true",
        help="Parse --data as JSON and send it as application/json",
    )
    parser.add_argument(
        "--qs",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Querystring parameter merged into the request path; may be repeated",
    )
    parser.add_argument(
        "--verify-ssl",
        action="store_true",
        help="Reject servers whose TLS certificate cannot be verified",
    )
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output the request/response exchange as JSON",
    )
    parser.add_argument("--log-level", help="Logging level (default: $COURIER_LOG_LEVEL or WARNING)")
    return parser


def _split_pairs(values: list[str], separator: str, parser: argparse.ArgumentParser, flag: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition(separator)
        if not sep or not name.strip():
            parser.error(f"{flag} expects NAME{separator}VALUE, got {raw!r}")
        pairs[name.strip()] = value.strip()
    return pairs


def build_options(args: argparse.Namespace, parser: argparse.ArgumentParser) -> dict[str, Any]:
    options: dict[str, Any] = {
        "url": args.url,
        "method": args.method,
        "headers": _split_pairs(args.header, ":", parser, "--header"),
    }
    if args.data is not None:
        if args.json_body:
            if not is_json(args.data):
                parser.error("--json-body requires --data to be valid JSON")
            options["body"] = json.loads(args.data)
        else:
            options["body"] = args.data
    if args.qs:
        options["useQuerystring"] = True
        options["qs"] = _split_pairs(args.qs, "=", parser, "--qs")
    if args.verify_ssl:
        options["rejectUnauthorized"] = True
    if args.timeout is not None:
        options["timeout"] = args.timeout
    return options


def _truncate_text_bytes(text: str, max_bytes: int) -> str:
    raw = text.encode("utf-8")
    if len(raw) <= max_bytes:
        return text
    suffix = "...[truncated]"
    suffix_bytes = suffix.encode("utf-8")
    keep = max_bytes - len(suffix_bytes)
    if keep <= 0:
        return suffix_bytes[:max_bytes].decode("utf-8", errors="ignore")
    prefix = raw[:keep].decode("utf-8", errors="ignore")
    return prefix + suffix


def _truncate_for_cli(value: Any, *, max_bytes: int) -> Any:
    if isinstance(value, str):
        return _truncate_text_bytes(value, max_bytes)
    if isinstance(value, dict):
        return {k: _truncate_for_cli(v, max_bytes=max_bytes) for k, v in value.items()}
    if isinstance(value, list):
        return [_truncate_for_cli(v, max_bytes=max_bytes) for v in value]
    return value


def _print_json(data: Any) -> None:
    payload = data.to_dict() if hasattr(data, "to_dict") else data
    json.dump(_truncate_for_cli(payload, max_bytes=CLI_TEXT_TRUNCATION_BYTES), sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def _pretty_print(transport: Transport) -> None:
    response = transport.response
    if response is None:
        return
    print(f"{response.status_code} {response.status_text}")
    for name, value in response.headers.entries():
        print(f"{name}: {value}")
    print()
    body = response.body
    if isinstance(body, (dict, list)):
        print(json.dumps(body, indent=2))
    else:
        print(_truncate_text_bytes(str(body), CLI_TEXT_TRUNCATION_BYTES))


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    settings: ClientSettings = load_client_settings()
    options = build_options(args, parser)

    try:
        with Transport(options, settings=settings) as transport:
            transport.send()
    except TransportError as exc:
        reason = error_category_to_reason(exc.category)
        print(f"[courier] {reason}: {exc}" if reason else f"[courier] {exc}", file=sys.stderr)
        return 1
    except CourierError as exc:
        print(f"[courier] {exc}", file=sys.stderr)
        return 1

    if args.json:
        _print_json(transport)
    else:
        _pretty_print(transport)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
