"""Client certificate sources, one per deployment context."""

import base64
import binascii
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from ._types import ForwardedCertificate, PeerCertificate, RequestContext
from .cert_decoder import (
    DecodeError,
    MaterialTooLargeError,
    decode,
    name_attributes,
)
from .config import AppConfig, DeploymentContext
from .descriptor import (
    ISSUER_FIELDS,
    NOT_AVAILABLE,
    PARSE_FAILED,
    SUBJECT_FIELDS,
    CertificateDescriptor,
)
from .logging_config import LOGGER

# Python's ssl module and Node's TLS stack report DN attributes by long name
LONG_NAMES = {
    "CN": "commonName",
    "O": "organizationName",
    "OU": "organizationalUnitName",
    "C": "countryName",
    "ST": "stateOrProvinceName",
    "L": "localityName",
}

_PARSED_FIELDS = ("subject", "issuer", "valid_from", "valid_to", "serialNumber")


def sha256_hex(data: bytes) -> str:
    """Return hex SHA-256 digest of data."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize().hex()


def _join(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def mapping_attributes(name: Any, fields: tuple[str, ...]) -> dict[str, str]:
    """Read DN attributes from a transport-provided name.

    Looks up each attribute by long name first, then by short code. Accepts
    a mapping or an RFC 4514 string; anything else yields empty attributes.
    """
    if isinstance(name, str) and name:
        try:
            return dict(name_attributes(x509.Name.from_rfc4514_string(name), fields))
        except ValueError:
            LOGGER.warning("Ignoring unparseable distinguished name: %s", name)
            return dict.fromkeys(fields, "")
    if not isinstance(name, Mapping):
        return dict.fromkeys(fields, "")

    result = {}
    for code in fields:
        value = name.get(LONG_NAMES[code])
        if value is None:
            value = name.get(code)
        result[code] = _join(value)
    return result


def _text_field(value: Any) -> str:
    if value is None or value == "":
        return NOT_AVAILABLE
    return str(value)


def descriptor_from_fields(
    fields: Mapping[str, Any], fingerprint: str, error: str | None = None
) -> CertificateDescriptor:
    """Build a present descriptor from an already-parsed certificate object."""
    return CertificateDescriptor(
        present=True,
        subject=mapping_attributes(fields.get("subject"), SUBJECT_FIELDS),
        issuer=mapping_attributes(fields.get("issuer"), ISSUER_FIELDS),
        valid_from=_text_field(fields.get("valid_from")),
        valid_to=_text_field(fields.get("valid_to")),
        serial_number=_text_field(fields.get("serialNumber")),
        fingerprint=fingerprint,
        error=error,
    )


class CertificateSource(ABC):
    """Locates client certificate material for one deployment context.

    ``acquire`` never raises: undecodable material is reported as a
    parse-failed descriptor.
    """

    deployment: DeploymentContext

    def acquire(self, context: RequestContext) -> CertificateDescriptor:
        """Return the descriptor for the certificate carried by this request."""
        try:
            descriptor = self._acquire(context)
        except DecodeError as e:
            LOGGER.warning("Client certificate could not be decoded: %s", e)
            return CertificateDescriptor.parse_failed(str(e))
        except Exception:
            LOGGER.exception("Unexpected failure while reading client certificate")
            return CertificateDescriptor.parse_failed("unexpected error while reading certificate")

        if LOGGER.isEnabledFor(logging.DEBUG):
            LOGGER.debug("Client certificate processed", extra={"certificate": descriptor.to_dict()})
        return descriptor

    @abstractmethod
    def _acquire(self, context: RequestContext) -> CertificateDescriptor:
        """Read certificate material; may raise DecodeError."""


class AbsentSource(CertificateSource):
    """No client certificate source is reachable in this deployment."""

    deployment = DeploymentContext.ABSENT

    def _acquire(self, context: RequestContext) -> CertificateDescriptor:
        return CertificateDescriptor.absent()


class DirectTLSSocketSource(CertificateSource):
    """Reads the peer certificate negotiated on a TLS connection this process terminated."""

    deployment = DeploymentContext.DIRECT_TLS

    def _acquire(self, context: RequestContext) -> CertificateDescriptor:
        peer: PeerCertificate | None = context.get("peer_certificate")
        if not peer:
            LOGGER.debug("No peer certificate on transport")
            return CertificateDescriptor.absent()

        raw = peer.get("raw")
        if not any(peer.get(key) for key in _PARSED_FIELDS):
            # Unverified peers expose only the DER form
            if raw:
                return CertificateDescriptor.from_decoded(decode(raw))
            return CertificateDescriptor.absent()

        fingerprint = sha256_hex(raw) if raw else NOT_AVAILABLE
        return descriptor_from_fields(peer, fingerprint)


class ForwardedHeaderSource(CertificateSource):
    """Reads certificate material relayed by an upstream TLS terminator.

    Header values are either certificate text (PEM or Base64 DER, delimiters
    optional) or a JSON certificate object, possibly Base64-encoded. JSON is
    tried first.
    """

    deployment = DeploymentContext.FORWARDED_HEADER

    def __init__(self, header_names: tuple[str, ...], max_bytes: int) -> None:
        """Initialize source.

        Args:
            header_names: Header names to consult in order (case-insensitive)
            max_bytes: Largest header value accepted for decoding
        """
        self.header_names = tuple(name.lower() for name in header_names)
        self.max_bytes = max_bytes

    def _header_value(self, headers: Mapping[str, str]) -> tuple[str, str] | None:
        lowered = {name.lower(): value for name, value in headers.items()}
        for name in self.header_names:
            value = lowered.get(name)
            if value and value.strip():
                return name, value
        return None

    def _acquire(self, context: RequestContext) -> CertificateDescriptor:
        found = self._header_value(context.get("headers", {}))
        if found is None:
            LOGGER.debug("No forwarded certificate header among %s", ", ".join(self.header_names))
            return CertificateDescriptor.absent()

        header_name, value = found
        LOGGER.debug("Certificate material found in header %s", header_name)

        if len(value.encode("utf-8")) > self.max_bytes:
            raise MaterialTooLargeError(
                f"header {header_name} exceeds {self.max_bytes} bytes"
            )

        forwarded = parse_forwarded_json(value)
        if forwarded is not None:
            return self._from_json(forwarded)
        return CertificateDescriptor.from_decoded(decode(value))

    def _from_json(self, forwarded: ForwardedCertificate) -> CertificateDescriptor:
        embedded = forwarded.get("raw") or forwarded.get("pem")
        if not embedded:
            return descriptor_from_fields(forwarded, NOT_AVAILABLE)
        try:
            fingerprint = decode(embedded_material(embedded)).fingerprint
        except DecodeError as e:
            LOGGER.warning("Embedded certificate in forwarded JSON could not be decoded: %s", e)
            return descriptor_from_fields(
                forwarded, PARSE_FAILED, error=f"embedded certificate: {e}"
            )
        return descriptor_from_fields(forwarded, fingerprint)


def embedded_material(value: Any) -> str | bytes:
    """Return certificate material embedded in a forwarded JSON object.

    Strings are certificate text. Node serializes Buffers as
    ``{"type": "Buffer", "data": [...]}``; those and plain byte lists are DER.

    Raises:
        DecodeError: If the value has no recognizable certificate encoding
    """
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping) and value.get("type") == "Buffer":
        value = value.get("data")
    if isinstance(value, list):
        try:
            return bytes(value)
        except (TypeError, ValueError):
            raise DecodeError("embedded certificate byte list is invalid") from None
    raise DecodeError(f"unsupported embedded certificate type: {type(value).__name__}")


def parse_forwarded_json(value: str) -> ForwardedCertificate | None:
    """Return the JSON certificate object carried by a header value, if any.

    Plain JSON is tried first, then Base64-encoded JSON. Returns None when
    the value is not a JSON object, meaning it should be decoded as
    certificate text.
    """
    text = value.strip()
    if text.startswith("{"):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None

    try:
        decoded = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return None
    if not decoded.lstrip().startswith(b"{"):
        return None
    try:
        parsed = json.loads(decoded)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def select_source(config: AppConfig) -> CertificateSource:
    """Pick the certificate source for this deployment, once at startup."""
    if config.deployment is DeploymentContext.DIRECT_TLS:
        source: CertificateSource = DirectTLSSocketSource()
    elif config.deployment is DeploymentContext.FORWARDED_HEADER:
        source = ForwardedHeaderSource(config.cert_headers, config.max_header_bytes)
    else:
        source = AbsentSource()
    LOGGER.info(
        "Client certificate source selected for platform %s",
        config.platform.value,
        extra={"deployment": source.deployment.value},
    )
    return source
