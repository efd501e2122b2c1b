# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Small value helpers shared by the request and response layers."""

from __future__ import annotations

import base64
import json
from typing import Any


def between(value: float, low: float, high: float) -> bool:
    """Inclusive range check."""
    return low <= value <= high


def is_json(text: str | bytes | None) -> bool:
    """Return True when `text` parses as JSON."""
    if not text:
        return False
    try:
        json.loads(text)
    except (TypeError, ValueError):
        return False
    return True


def to_base64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def first_present(*values: Any) -> Any:
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


__all__ = ["between", "first_present", "is_json", "to_base64"]
