# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Querystring rendering with configurable separators."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, quote

# Characters left alone by JavaScript's encodeURIComponent.
_SAFE = "-_.!~*'()"

DEFAULT_SEP = "&"
DEFAULT_EQ = "="


def escape(value: str) -> str:
    return quote(str(value), safe=_SAFE)


def _primitive(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, str):
        return value
    return ""


def stringify(obj: Mapping[str, Any] | None, sep: str = DEFAULT_SEP, eq: str = DEFAULT_EQ) -> str:
    """
    Render a mapping as a querystring.

    Lists and tuples repeat the key, scalars are stringified and anything else
    renders as an empty value.
    """
    if not obj:
        return ""
    fields: list[str] = []
    for key, value in obj.items():
        name = escape(key)
        if isinstance(value, (list, tuple)):
            fields.extend(f"{name}{eq}{escape(_primitive(item))}" for item in value)
        else:
            fields.append(f"{name}{eq}{escape(_primitive(value))}")
    return sep.join(fields)


def parse(query: str) -> list[tuple[str, str]]:
    """Parse a standard `a=1&b=2` query into ordered pairs."""
    return parse_qsl(query or "", keep_blank_values=True)


__all__ = ["DEFAULT_EQ", "DEFAULT_SEP", "escape", "parse", "stringify"]
