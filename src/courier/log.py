# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Logging helpers for Courier."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

# httpx logs every request at INFO; courier.http.transport already logs each hop.
_NOISY_LOGGERS = ("httpx", "httpcore")


def default_log_level() -> str:
    return os.getenv("COURIER_LOG_LEVEL", "WARNING").strip().upper() or "WARNING"


def setup_logging(level: str | None = None) -> int:
    """Configure standard logging for CLI use and return the numeric level applied."""
    effective_level = (level or default_log_level()).upper()
    numeric = getattr(logging, effective_level, None)
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger("courier").setLevel(numeric)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(numeric if numeric <= logging.DEBUG else max(numeric, logging.WARNING))
    return numeric


__all__ = ["LOG_FORMAT", "default_log_level", "setup_logging"]
