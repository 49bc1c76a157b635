"""X.509 decoding of client certificate material into descriptor fields."""

import re
import string
import urllib.parse
from collections.abc import Mapping
from datetime import datetime

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID

from .descriptor import ISSUER_FIELDS, SUBJECT_FIELDS, DecodedCertificate

PEM_BEGIN = "-----BEGIN CERTIFICATE-----"
PEM_END = "-----END CERTIFICATE-----"

NAME_OIDS = {
    "CN": NameOID.COMMON_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "C": NameOID.COUNTRY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "L": NameOID.LOCALITY_NAME,
}

# Fixed English month names; strftime("%b") follows the process locale
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_BASE64_CHARS = frozenset(string.ascii_letters + string.digits + "+/=")
_BASE64URL_TABLE = str.maketrans("-_", "+/")

# Envoy x-forwarded-client-cert element: Hash=...;Cert="<url-encoded PEM>";Subject="..."
_ENVOY_CERT_RE = re.compile(r'(?:^|[;,])\s*cert="?([^";,]+)"?', re.IGNORECASE)


class DecodeError(ValueError):
    """Certificate material could not be parsed as X.509."""


class MaterialTooLargeError(DecodeError):
    """Certificate material exceeds the accepted size."""


def format_serial(serial: int) -> str:
    """Return serial as uppercase hex padded to whole bytes (e.g., 0A1B2C)."""
    sign = "-" if serial < 0 else ""
    serial_hex = f"{abs(serial):X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return sign + serial_hex


def format_validity(moment: datetime) -> str:
    """Render a validity bound the way TLS stacks print ASN.1 times.

    Example: ``Jan  5 09:03:07 2026 GMT``.
    """
    return (
        f"{_MONTHS[moment.month - 1]} {moment.day:>2} "
        f"{moment:%H:%M:%S} {moment.year} GMT"
    )


def _unwrap_transport_encoding(text: str) -> str:
    """Strip proxy-specific wrapping: Envoy XFCC elements and URL escaping."""
    text = text.strip()
    match = _ENVOY_CERT_RE.search(text)
    if match and PEM_BEGIN not in text:
        text = match.group(1)
    if "%" in text:
        text = urllib.parse.unquote(text)
    return text.strip().strip('"')


def normalize_pem(text: str) -> str:
    """Return a canonical PEM block for certificate text.

    Accepts PEM with or without delimiters, with newlines folded into spaces,
    URL-encoded, or wrapped in an Envoy XFCC element.

    Raises:
        DecodeError: If no Base64 certificate body can be found
    """
    text = _unwrap_transport_encoding(text)

    begin = text.find(PEM_BEGIN)
    if begin != -1:
        end = text.find(PEM_END, begin)
        if end == -1:
            raise DecodeError("PEM end delimiter missing")
        body = text[begin + len(PEM_BEGIN) : end]
    else:
        body = text

    body = "".join(body.split()).translate(_BASE64URL_TABLE)
    if not body:
        raise DecodeError("certificate body is empty")
    if not set(body) <= _BASE64_CHARS:
        raise DecodeError("certificate body is not Base64")

    lines = [body[i : i + 64] for i in range(0, len(body), 64)]
    return "\n".join([PEM_BEGIN, *lines, PEM_END, ""])


def load_certificate(material: str | bytes) -> x509.Certificate:
    """Parse DER bytes or PEM/Base64 text into an X.509 certificate.

    Raises:
        DecodeError: If the material is not a well-formed certificate
    """
    if isinstance(material, (bytes, bytearray, memoryview)):
        data = bytes(material)
        # DER certificates always open with a SEQUENCE tag
        if data[:1] == b"\x30":
            try:
                return x509.load_der_x509_certificate(data)
            except ValueError as e:
                raise DecodeError(f"invalid DER certificate: {e}") from e
        try:
            text = data.decode("ascii")
        except UnicodeDecodeError:
            raise DecodeError("certificate bytes are neither DER nor PEM text") from None
    elif isinstance(material, str):
        text = material
    else:
        raise DecodeError(f"unsupported certificate material type: {type(material).__name__}")

    pem = normalize_pem(text)
    try:
        return x509.load_pem_x509_certificate(pem.encode("ascii"))
    except ValueError as e:
        raise DecodeError(f"invalid X.509 certificate: {e}") from e


def name_attributes(name: x509.Name, fields: tuple[str, ...]) -> Mapping[str, str]:
    """Map DN attribute codes to values; absent attributes become empty strings."""
    result = {}
    for code in fields:
        values = [str(attr.value) for attr in name.get_attributes_for_oid(NAME_OIDS[code])]
        result[code] = ", ".join(values)
    return result


def describe_certificate(cert: x509.Certificate) -> DecodedCertificate:
    """Extract descriptor fields from a parsed certificate.

    Raises:
        DecodeError: If a field is structurally invalid
    """
    try:
        return DecodedCertificate(
            subject=name_attributes(cert.subject, SUBJECT_FIELDS),
            issuer=name_attributes(cert.issuer, ISSUER_FIELDS),
            valid_from=format_validity(cert.not_valid_before_utc),
            valid_to=format_validity(cert.not_valid_after_utc),
            serial_number=format_serial(cert.serial_number),
            fingerprint=cert.fingerprint(hashes.SHA256()).hex(),
        )
    except ValueError as e:
        raise DecodeError(f"malformed certificate field: {e}") from e


def decode(material: str | bytes) -> DecodedCertificate:
    """Decode certificate material into canonical descriptor fields.

    The fingerprint is SHA-256 over the DER encoding, so the same certificate
    yields the same fingerprint however its text was wrapped.

    Args:
        material: DER bytes, or PEM/Base64 text with or without delimiters

    Returns:
        DecodedCertificate with subject, issuer, validity, serial, fingerprint

    Raises:
        DecodeError: If the material cannot be parsed as X.509
    """
    return describe_certificate(load_certificate(material))
