"""
Relying-party TLS identity loading.

Builds the SSL context used for mutual TLS with the BankID service: the
endpoint's CA root as the only trust anchor, plus the RP client
certificate issued by the bank (PKCS#12 or PEM).

Requires: cryptography>=41.0.0
"""

from __future__ import annotations

import logging
import secrets
import ssl
import tempfile
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from bankid_mcp.errors import ValidationError

log = logging.getLogger(__name__)

PKCS12_SUFFIXES = {".p12", ".pfx"}


def pkcs12_to_pem(
    data: bytes,
    password: str | None = None,
    key_passphrase: bytes | None = None,
) -> bytes:
    """
    Convert a PKCS#12 bundle into a single PEM blob.

    Args:
        data: DER-encoded PKCS#12 bytes
        password: Bundle passphrase
        key_passphrase: Encrypt the private key in the output with this

    Returns:
        Private key, leaf certificate and chain as PEM
    """
    try:
        key, cert, chain = pkcs12.load_key_and_certificates(
            data, password.encode("utf-8") if password else None
        )
    except ValueError as e:
        raise ValidationError(f"Could not load PKCS#12 certificate: {e}") from e
    if key is None or cert is None:
        raise ValidationError("PKCS#12 bundle must contain a private key and certificate")

    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=(
            serialization.BestAvailableEncryption(key_passphrase)
            if key_passphrase
            else serialization.NoEncryption()
        ),
    )
    pem += cert.public_bytes(serialization.Encoding.PEM)
    for extra in chain or []:
        pem += extra.public_bytes(serialization.Encoding.PEM)
    return pem


def load_ssl_context(
    ca_path: Path,
    certificate_path: Path,
    password: str | None = None,
) -> ssl.SSLContext:
    """
    Build an SSL context for mutual TLS against one BankID endpoint.

    Args:
        ca_path: PEM file with the endpoint's CA root
        certificate_path: RP certificate, .p12/.pfx or PEM
        password: Certificate passphrase

    Returns:
        ssl.SSLContext trusting only ca_path and presenting the RP certificate
    """
    if not ca_path.is_file():
        raise ValidationError(f"CA root certificate not found: {ca_path}")
    if not certificate_path.is_file():
        raise ValidationError(f"RP certificate not found: {certificate_path}")

    ctx = ssl.create_default_context(cafile=str(ca_path))

    if certificate_path.suffix.lower() in PKCS12_SUFFIXES:
        # load_cert_chain only reads from files; the key never hits disk in clear
        key_passphrase = secrets.token_urlsafe(32).encode("ascii")
        pem = pkcs12_to_pem(certificate_path.read_bytes(), password, key_passphrase)
        with tempfile.TemporaryDirectory() as tmp:
            pem_path = Path(tmp) / "client.pem"
            pem_path.touch(mode=0o600)
            pem_path.write_bytes(pem)
            ctx.load_cert_chain(pem_path, password=key_passphrase)
    else:
        try:
            ctx.load_cert_chain(certificate_path, password=password)
        except ssl.SSLError as e:
            raise ValidationError(f"Could not load RP certificate: {e}") from e

    log.debug("Loaded RP certificate %s with CA root %s", certificate_path, ca_path)
    return ctx
