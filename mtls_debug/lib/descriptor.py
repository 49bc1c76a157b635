"""Canonical client certificate descriptor."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from ._types import DescriptorDict

NOT_AVAILABLE = "N/A"
PARSE_FAILED = "PARSE_ERROR"

SUBJECT_FIELDS = ("CN", "O", "OU", "C", "ST", "L")
ISSUER_FIELDS = ("CN", "O", "OU")


def _filled(fields: tuple[str, ...], value: str) -> Mapping[str, str]:
    return MappingProxyType(dict.fromkeys(fields, value))


def _normalize_name(fields: tuple[str, ...], values: Mapping[str, str]) -> Mapping[str, str]:
    """Restrict a DN mapping to the given attribute codes, in order, with no missing keys."""
    return MappingProxyType({code: values.get(code, "") for code in fields})


@dataclass(frozen=True)
class DecodedCertificate:
    """Identity fields extracted from a parsed X.509 certificate."""

    subject: Mapping[str, str]
    issuer: Mapping[str, str]
    valid_from: str
    valid_to: str
    serial_number: str
    fingerprint: str


@dataclass(frozen=True)
class CertificateDescriptor:
    """What a single request presented as its client certificate.

    Every field is always populated. ``NOT_AVAILABLE`` marks data that does
    not exist (no certificate, or a field the source never supplied) and
    ``PARSE_FAILED`` marks material that was present but undecodable. An
    attribute missing from an otherwise readable DN is an empty string.
    """

    present: bool
    subject: Mapping[str, str] = field(default_factory=lambda: _filled(SUBJECT_FIELDS, ""))
    issuer: Mapping[str, str] = field(default_factory=lambda: _filled(ISSUER_FIELDS, ""))
    valid_from: str = NOT_AVAILABLE
    valid_to: str = NOT_AVAILABLE
    serial_number: str = NOT_AVAILABLE
    fingerprint: str = NOT_AVAILABLE
    error: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "subject", _normalize_name(SUBJECT_FIELDS, self.subject))
        object.__setattr__(self, "issuer", _normalize_name(ISSUER_FIELDS, self.issuer))

    @classmethod
    def absent(cls) -> "CertificateDescriptor":
        """Descriptor for a request that carried no certificate material."""
        return cls(
            present=False,
            subject=_filled(SUBJECT_FIELDS, NOT_AVAILABLE),
            issuer=_filled(ISSUER_FIELDS, NOT_AVAILABLE),
        )

    @classmethod
    def parse_failed(cls, error: str) -> "CertificateDescriptor":
        """Descriptor for material that was present but could not be decoded."""
        return cls(
            present=True,
            subject=_filled(SUBJECT_FIELDS, PARSE_FAILED),
            issuer=_filled(ISSUER_FIELDS, PARSE_FAILED),
            valid_from=PARSE_FAILED,
            valid_to=PARSE_FAILED,
            serial_number=PARSE_FAILED,
            fingerprint=PARSE_FAILED,
            error=error or "certificate could not be decoded",
        )

    @classmethod
    def from_decoded(cls, decoded: DecodedCertificate) -> "CertificateDescriptor":
        """Descriptor for a successfully decoded certificate."""
        return cls(
            present=True,
            subject=decoded.subject,
            issuer=decoded.issuer,
            valid_from=decoded.valid_from,
            valid_to=decoded.valid_to,
            serial_number=decoded.serial_number,
            fingerprint=decoded.fingerprint,
        )

    @property
    def status(self) -> str:
        """One of 'present', 'absent' or 'error' for display."""
        if not self.present:
            return "absent"
        if self.error:
            return "error"
        return "present"

    def to_dict(self) -> DescriptorDict:
        """Render as the JSON document consumed by API clients."""
        result: DescriptorDict = {
            "present": self.present,
            "subject": dict(self.subject),
            "issuer": dict(self.issuer),
            "validFrom": self.valid_from,
            "validTo": self.valid_to,
            "serialNumber": self.serial_number,
            "fingerprint": self.fingerprint,
        }
        if self.error is not None:
            result["error"] = self.error
        return result
