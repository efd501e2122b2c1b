# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Client TLS material and the httpx clients built from it."""

from __future__ import annotations

import hashlib
import json
import os
import ssl
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from ..errors import ErrorCategory, TransportError

TLS_VERSIONS = {
    "TLSv1": ssl.TLSVersion.TLSv1,
    "TLSv1.1": ssl.TLSVersion.TLSv1_1,
    "TLSv1.2": ssl.TLSVersion.TLSv1_2,
    "TLSv1.3": ssl.TLSVersion.TLSv1_3,
}


def _text(value: str | bytes | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


def apply_tls_options(context: ssl.SSLContext, tls_options: Mapping[str, Any] | None) -> ssl.SSLContext:
    """Apply the passthrough TLS tuning fields the ssl module understands."""
    options = dict(tls_options or {})
    try:
        if options.get("ciphers"):
            context.set_ciphers(str(options["ciphers"]))
        if options.get("minVersion") in TLS_VERSIONS:
            context.minimum_version = TLS_VERSIONS[options["minVersion"]]
        if options.get("maxVersion") in TLS_VERSIONS:
            context.maximum_version = TLS_VERSIONS[options["maxVersion"]]
        if options.get("honorCipherOrder"):
            context.options |= ssl.OP_CIPHER_SERVER_PREFERENCE
        if isinstance(options.get("secureOptions"), int):
            context.options |= options["secureOptions"]
    except (ssl.SSLError, ValueError) as exc:
        raise TransportError(f"Invalid TLS options: {exc}", category=ErrorCategory.SSL_ERROR) from exc
    return context


def _password(passphrase: str | bytes | None) -> bytes | None:
    text = (_text(passphrase) or "").strip()
    return text.encode("utf-8") if text else None


def pkcs12_to_pem(pfx: bytes, passphrase: str | bytes | None = None) -> tuple[bytes, bytes]:
    """Decode a PKCS#12 keystore into a PEM certificate chain and an unencrypted PEM key."""
    try:
        key, certificate, chain = pkcs12.load_key_and_certificates(bytes(pfx), _password(passphrase))
    except (ValueError, TypeError) as exc:
        raise TransportError(f"Unable to load PKCS#12 keystore: {exc}", category=ErrorCategory.SSL_ERROR) from exc
    if key is None or certificate is None:
        raise TransportError("PKCS#12 keystore holds no private key and certificate", category=ErrorCategory.SSL_ERROR)

    cert_pem = b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in [certificate, *chain])
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return cert_pem, key_pem


def build_ssl_context(
    *,
    verify: bool = True,
    ca: str | bytes | None = None,
    cert: str | bytes | None = None,
    key: str | bytes | None = None,
    passphrase: str | bytes | None = None,
    pfx: bytes | None = None,
    tls_options: Mapping[str, Any] | None = None,
) -> ssl.SSLContext:
    """Build an SSLContext from in-memory PEM material or a PKCS#12 keystore."""
    if pfx:
        cert, key = pkcs12_to_pem(pfx, passphrase)
        passphrase = None
    try:
        context = ssl.create_default_context(cadata=_text(ca)) if ca else ssl.create_default_context()
        if not verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        if cert and key:
            password = _password(passphrase)
            # load_cert_chain only reads from disk.
            with tempfile.TemporaryDirectory(prefix="courier-tls-") as workdir:
                certfile = os.path.join(workdir, "cert.pem")
                keyfile = os.path.join(workdir, "key.pem")
                with open(certfile, "w", encoding="utf-8") as handle:
                    handle.write(_text(cert) or "")
                with open(keyfile, "w", encoding="utf-8") as handle:
                    handle.write(_text(key) or "")
                context.load_cert_chain(certfile, keyfile, password=password)
    except (ssl.SSLError, ValueError, OSError) as exc:
        raise TransportError(f"Unable to load TLS material: {exc}", category=ErrorCategory.SSL_ERROR) from exc
    return apply_tls_options(context, tls_options)


@dataclass(frozen=True, eq=False)
class SecureAgent:
    """Client TLS identity used to build a keep-alive httpx client."""

    ca: str | bytes | None = None
    cert: str | bytes | None = None
    key: str | bytes | None = None
    passphrase: str | bytes | None = None
    pfx: bytes | None = None
    keep_alive: bool = True
    tls_options: Mapping[str, Any] = field(default_factory=dict)

    def ssl_context(self, verify: bool = True) -> ssl.SSLContext:
        return build_ssl_context(
            verify=verify,
            ca=self.ca,
            cert=self.cert,
            key=self.key,
            passphrase=self.passphrase,
            pfx=self.pfx,
            tls_options=self.tls_options,
        )

    @property
    def fingerprint(self) -> str:
        """Digest of the TLS identity; equal material yields an equal fingerprint."""
        digest = hashlib.sha256()
        for name in ("ca", "cert", "key", "passphrase", "pfx"):
            value = getattr(self, name)
            raw = value if isinstance(value, (bytes, bytearray)) else str(value or "").encode("utf-8")
            digest.update(name.encode("ascii") + b"\0" + hashlib.sha256(raw).digest())
        digest.update(json.dumps(dict(self.tls_options), sort_keys=True, default=str).encode("utf-8"))
        digest.update(b"keep-alive" if self.keep_alive else b"close")
        return digest.hexdigest()

    def build_client(self, *, verify: bool = True, timeout: float | None = None) -> httpx.Client:
        limits = httpx.Limits() if self.keep_alive else httpx.Limits(max_keepalive_connections=0)
        return httpx.Client(verify=self.ssl_context(verify), timeout=timeout, limits=limits)

    def __repr__(self) -> str:
        material = [name for name in ("ca", "cert", "key", "passphrase", "pfx") if getattr(self, name)]
        return f"SecureAgent(material={material}, keep_alive={self.keep_alive})"


__all__ = ["SecureAgent", "apply_tls_options", "build_ssl_context", "pkcs12_to_pem"]
