"""Self-signed certificate generation for running the debug server locally."""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import NameOID

from .cert_decoder import format_serial
from .logging_config import LOGGER

LOCAL_COMMON_NAME = "mTLS-Debug-Local"


@dataclass
class LocalCertResult:
    """Paths of the generated key pair and the certificate serial."""

    cert_path: Path
    key_path: Path
    serial_number: str
    generated: bool


def generate_self_signed(
    common_name: str = LOCAL_COMMON_NAME,
    key_size: int = 4096,
    validity_days: int = 365,
) -> tuple[RSAPrivateKey, x509.Certificate]:
    """Build a self-signed certificate carrying only a CN.

    The same certificate serves as the server identity, the trusted client
    CA and the client certificate presented by browsers or curl, so it is
    marked as a CA.

    Args:
        common_name: Subject and issuer CN
        key_size: RSA key size in bits
        validity_days: Certificate validity period in days

    Returns:
        Tuple of (private_key, certificate)
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    not_before = datetime.now(UTC)
    not_after = not_before + timedelta(days=validity_days)
    public_key = private_key.public_key()

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(public_key)
        .serial_number(uuid.uuid4().int)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(
            x509.BasicConstraints(ca=True, path_length=None),
            critical=True,
        )
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(public_key),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(public_key),
            critical=False,
        )
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName("localhost")]),
            critical=False,
        )
    )

    return private_key, builder.sign(private_key, hashes.SHA256())


def write_self_signed(
    cert_path: Path,
    key_path: Path,
    common_name: str = LOCAL_COMMON_NAME,
    key_size: int = 4096,
    validity_days: int = 365,
) -> LocalCertResult:
    """Generate a self-signed certificate and write cert and key as PEM files."""
    private_key, cert = generate_self_signed(common_name, key_size, validity_days)

    cert_path.parent.mkdir(parents=True, exist_ok=True)
    key_path.parent.mkdir(parents=True, exist_ok=True)
    key_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    key_path.chmod(0o600)
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))

    serial_hex = format_serial(cert.serial_number)
    LOGGER.info("Generated self-signed certificate CN=%s serial=%s", common_name, serial_hex)
    return LocalCertResult(
        cert_path=cert_path,
        key_path=key_path,
        serial_number=serial_hex,
        generated=True,
    )


def ensure_local_cert(
    cert_path: Path,
    key_path: Path,
    common_name: str = LOCAL_COMMON_NAME,
    key_size: int = 4096,
    validity_days: int = 365,
) -> LocalCertResult:
    """Generate local test certificates unless both files already exist."""
    if cert_path.exists() and key_path.exists():
        cert = x509.load_pem_x509_certificate(cert_path.read_bytes())
        return LocalCertResult(
            cert_path=cert_path,
            key_path=key_path,
            serial_number=format_serial(cert.serial_number),
            generated=False,
        )

    LOGGER.info("Certificates not found, generating test certificates")
    return write_self_signed(cert_path, key_path, common_name, key_size, validity_days)
