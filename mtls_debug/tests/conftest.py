"""Test fixtures for mtls_debug tests."""

import base64
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import NameOID

from mtls_debug.lib._types import PeerCertificate
from mtls_debug.lib.cert_decoder import format_serial, format_validity
from mtls_debug.lib.cert_sources import LONG_NAMES
from mtls_debug.lib.local_cert import generate_self_signed


def _peer_certificate(cert: x509.Certificate) -> PeerCertificate:
    """Build the structured peer certificate a TLS socket reports for cert."""

    def long_names(name: x509.Name) -> dict[str, str]:
        short_codes = {
            NameOID.COMMON_NAME: "CN",
            NameOID.ORGANIZATION_NAME: "O",
            NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
            NameOID.COUNTRY_NAME: "C",
            NameOID.STATE_OR_PROVINCE_NAME: "ST",
            NameOID.LOCALITY_NAME: "L",
        }
        return {LONG_NAMES[short_codes[attr.oid]]: str(attr.value) for attr in name}

    return {
        "subject": long_names(cert.subject),
        "issuer": long_names(cert.issuer),
        "valid_from": format_validity(cert.not_valid_before_utc),
        "valid_to": format_validity(cert.not_valid_after_utc),
        "serialNumber": format_serial(cert.serial_number),
        "raw": cert.public_bytes(serialization.Encoding.DER),
    }


def _base64_body(cert: x509.Certificate) -> str:
    """Return cert DER as a single-line Base64 string with no PEM delimiters."""
    return base64.b64encode(cert.public_bytes(serialization.Encoding.DER)).decode("ascii")


@pytest.fixture(scope="session")
def local_key_and_cert() -> tuple[RSAPrivateKey, x509.Certificate]:
    """Self-signed CN=mTLS-Debug-Local certificate with no O/OU."""
    return generate_self_signed(key_size=2048)


@pytest.fixture(scope="session")
def local_cert(local_key_and_cert: tuple[RSAPrivateKey, x509.Certificate]) -> x509.Certificate:
    """Local self-signed certificate."""
    return local_key_and_cert[1]


@pytest.fixture(scope="session")
def local_pem(local_cert: x509.Certificate) -> str:
    """Local certificate as PEM text."""
    return local_cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


@pytest.fixture(scope="session")
def local_der(local_cert: x509.Certificate) -> bytes:
    """Local certificate as DER bytes."""
    return local_cert.public_bytes(serialization.Encoding.DER)


@pytest.fixture(scope="session")
def issuer_key() -> RSAPrivateKey:
    """Issuing CA key for the full-DN client certificate."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def client_cert(issuer_key: RSAPrivateKey) -> x509.Certificate:
    """Client certificate with every subject attribute, issued by a CA with CN/O/OU."""
    client_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "GB"),
            x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, "London"),
            x509.NameAttribute(NameOID.LOCALITY_NAME, "London"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "Test Unit"),
            x509.NameAttribute(NameOID.COMMON_NAME, "test-client-001"),
        ]
    )
    issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "Test PKI"),
            x509.NameAttribute(NameOID.COMMON_NAME, "Test Issuing CA"),
        ]
    )
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(client_key.public_key())
        .serial_number(0x0A1B2C3D4E5F)
        .not_valid_before(datetime(2026, 1, 5, 9, 3, 7, tzinfo=UTC))
        .not_valid_after(datetime(2026, 1, 5, 9, 3, 7, tzinfo=UTC) + timedelta(days=30))
        .sign(issuer_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def client_pem(client_cert: x509.Certificate) -> str:
    """Full-DN client certificate as PEM text."""
    return client_cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


@pytest.fixture
def cert_files(tmp_path: Path, local_key_and_cert: tuple[RSAPrivateKey, x509.Certificate]):
    """Write the local key pair to disk and return (cert_path, key_path)."""
    key, cert = local_key_and_cert
    cert_path = tmp_path / "cert.pem"
    key_path = tmp_path / "key.pem"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return cert_path, key_path


@pytest.fixture(scope="session")
def local_base64(local_cert: x509.Certificate) -> str:
    """Local certificate as Base64 DER without PEM delimiters."""
    return _base64_body(local_cert)


@pytest.fixture(scope="session")
def client_base64(client_cert: x509.Certificate) -> str:
    """Full-DN client certificate as Base64 DER without PEM delimiters."""
    return _base64_body(client_cert)


@pytest.fixture
def local_peer(local_cert: x509.Certificate) -> PeerCertificate:
    """Peer certificate a TLS socket reports for the local certificate."""
    return _peer_certificate(local_cert)


@pytest.fixture
def client_peer(client_cert: x509.Certificate) -> PeerCertificate:
    """Peer certificate a TLS socket reports for the full-DN client certificate."""
    return _peer_certificate(client_cert)
