# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
TLS credential discovery.

Each credential kind is located by trying, in order, an explicit environment
variable, the first matching file in `$SSL_PATH`, and a conventional fallback
under `<base_dir>/ssl/`. A missing file is never an error at this layer.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialSource:
    env_var: str
    pattern: re.Pattern[str]
    fallback: str
    binary: bool = False


CREDENTIAL_SOURCES: dict[str, CredentialSource] = {
    "ca": CredentialSource("SSL_PEM_TRUSTSTORE", re.compile(r"\.(pem|cert)", re.I), "ssl/local.pem"),
    "key": CredentialSource("SSL_PRIVATE_KEYFILE", re.compile(r"\.key$", re.I), "ssl/local.key"),
    "cert": CredentialSource("SSL_CLIENT_PEM", re.compile(r"\.(pem|cert)$", re.I), "ssl/local.pem"),
    "pfx": CredentialSource("SSL_PKCS12_KEYSTORE", re.compile(r"\.(p12|pfx)", re.I), "ssl/local.p12", binary=True),
    "passphrase": CredentialSource("SSL_KEYSTORE_PASS_FILE", re.compile(r"\.(pwd|txt)", re.I), "ssl/local.pwd"),
}


def first_file(*paths: str | os.PathLike[str] | None) -> str | None:
    """Return the first path that names an existing file."""
    for path in paths:
        if path and os.path.isfile(path):
            return str(path)
    return None


def first_file_in_directory(folder: str | os.PathLike[str] | None, pattern: str | re.Pattern[str] | None = None) -> str | None:
    """Return the first file directly inside `folder` whose path matches `pattern`."""
    if not folder or not os.path.isdir(folder):
        return None
    if pattern is None:
        regex = re.compile(r".+")
    elif isinstance(pattern, str):
        regex = re.compile(re.escape(pattern), re.I)
    else:
        regex = pattern
    for entry in sorted(Path(folder).iterdir()):
        if entry.is_file() and regex.search(str(entry)):
            return str(entry)
    return None


def credential_location(kind: str, *, env: Mapping[str, str] | None = None, base_dir: str = ".") -> str | None:
    """Locate the file backing a credential kind (`ca`, `cert`, `key`, `pfx`, `passphrase`)."""
    source = CREDENTIAL_SOURCES[kind]
    environ = os.environ if env is None else env
    return first_file(
        environ.get(source.env_var, ""),
        first_file_in_directory(environ.get("SSL_PATH", ""), source.pattern),
        os.path.join(base_dir, source.fallback),
    )


def read_credential(kind: str, *, env: Mapping[str, str] | None = None, base_dir: str = ".") -> str | bytes | None:
    """Return the contents of the first matching credential file, or None."""
    location = credential_location(kind, env=env, base_dir=base_dir)
    if location is None:
        return None
    source = CREDENTIAL_SOURCES[kind]
    try:
        if source.binary:
            return Path(location).read_bytes()
        return Path(location).read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Unable to read %s credential from %s: %s", kind, location, exc)
        return None


__all__ = [
    "CREDENTIAL_SOURCES",
    "CredentialSource",
    "credential_location",
    "first_file",
    "first_file_in_directory",
    "read_credential",
]
