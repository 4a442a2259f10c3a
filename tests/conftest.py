"""
Shared fixtures: self-signed test certificates.
"""

import ipaddress
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import NamedTuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


class CertFiles(NamedTuple):
    certificate: x509.Certificate
    cert_path: Path
    key_path: Path


def make_certificate(
    common_name: str = "localhost",
    serial: int = 1,
    not_before: datetime = None,
    not_after: datetime = None,
    issuer=None,
):
    """
    CA certificate usable both as server certificate and trust anchor.

    Self-signed unless ``issuer`` gives the signing (certificate, key) pair.
    """
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    issuer_name, signing_key = (issuer[0].subject, issuer[1]) if issuer else (name, key)
    now = datetime.now(timezone.utc)
    not_before = not_before or now - timedelta(days=1)
    not_after = not_after or now + timedelta(days=365)

    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(serial)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.SubjectAlternativeName(
                [x509.DNSName("localhost"), x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]
            ),
            critical=False,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(signing_key, hashes.SHA256())
    )
    return certificate, key


def write_certificate(directory: Path, name: str, certificate, key) -> CertFiles:
    cert_path = directory / f"{name}.pem"
    key_path = directory / f"{name}.key"
    cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return CertFiles(certificate, cert_path, key_path)


@pytest.fixture
def server_cert(tmp_path) -> CertFiles:
    """Valid self-signed certificate and key written to disk."""
    certificate, key = make_certificate(serial=0x1F2E)
    return write_certificate(tmp_path, "server", certificate, key)


@pytest.fixture
def expired_cert(tmp_path) -> CertFiles:
    """Self-signed certificate that expired five days ago."""
    now = datetime.now(timezone.utc)
    certificate, key = make_certificate(
        common_name="expired", not_before=now - timedelta(days=30), not_after=now - timedelta(days=5)
    )
    return write_certificate(tmp_path, "expired", certificate, key)


@pytest.fixture
def chained_cert(tmp_path):
    """Leaf signed by a CA; the certificate file holds the leaf followed by the CA."""
    ca_certificate, ca_key = make_certificate(common_name="Test CA", serial=10)
    leaf_certificate, leaf_key = make_certificate(
        common_name="leaf", serial=11, issuer=(ca_certificate, ca_key)
    )
    leaf = write_certificate(tmp_path, "leaf", leaf_certificate, leaf_key)
    ca = write_certificate(tmp_path, "ca", ca_certificate, ca_key)
    leaf.cert_path.write_bytes(
        leaf_certificate.public_bytes(serialization.Encoding.PEM)
        + ca_certificate.public_bytes(serialization.Encoding.PEM)
    )
    return leaf, ca
