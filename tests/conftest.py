# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from courier.http.credentials import CREDENTIAL_SOURCES

_ENV_VARS = [source.env_var for source in CREDENTIAL_SOURCES.values()] + [
    "SSL_PATH",
    "COURIER_HTTP_TIMEOUT",
    "COURIER_USER_AGENT",
    "COURIER_HTTP_VERIFY_SSL",
    "COURIER_HTTP_MAX_BODY_BYTES",
    "COURIER_SSL_BASE_DIR",
    "COURIER_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep host TLS material and Courier settings out of every test."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("COURIER_SSL_BASE_DIR", str(tmp_path))
    yield


@pytest.fixture(scope="session")
def client_identity():
    """Self-signed client identity as a PEM pair plus a passphrase-protected PKCS#12 keystore."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "courier-client")])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    cert_pem = certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.BestAvailableEncryption(b"secret"),
    ).decode("ascii")
    pfx = pkcs12.serialize_key_and_certificates(
        b"courier-client", key, certificate, None, serialization.BestAvailableEncryption(b"secret")
    )
    return {"ca": cert_pem, "cert": cert_pem, "key": key_pem, "pfx": pfx, "passphrase": "secret"}
