"""Tests for descriptor module."""

import dataclasses

import pytest

from mtls_debug.lib.descriptor import (
    ISSUER_FIELDS,
    NOT_AVAILABLE,
    PARSE_FAILED,
    SUBJECT_FIELDS,
    CertificateDescriptor,
    DecodedCertificate,
)

DESCRIPTOR_KEYS = {
    "present",
    "subject",
    "issuer",
    "validFrom",
    "validTo",
    "serialNumber",
    "fingerprint",
}


class TestAbsent:
    """Tests for the no-certificate descriptor."""

    def test_every_field_not_available(self) -> None:
        """absent() fills every field and DN attribute with N/A."""
        descriptor = CertificateDescriptor.absent()

        assert descriptor.present is False
        assert dict(descriptor.subject) == dict.fromkeys(SUBJECT_FIELDS, NOT_AVAILABLE)
        assert dict(descriptor.issuer) == dict.fromkeys(ISSUER_FIELDS, NOT_AVAILABLE)
        assert descriptor.valid_from == NOT_AVAILABLE
        assert descriptor.valid_to == NOT_AVAILABLE
        assert descriptor.serial_number == NOT_AVAILABLE
        assert descriptor.fingerprint == NOT_AVAILABLE
        assert descriptor.error is None

    def test_status(self) -> None:
        """absent() reports status 'absent'."""
        assert CertificateDescriptor.absent().status == "absent"


class TestParseFailed:
    """Tests for the undecodable-certificate descriptor."""

    def test_every_field_parse_failed(self) -> None:
        """parse_failed() marks material present with every field PARSE_ERROR."""
        descriptor = CertificateDescriptor.parse_failed("bad base64")

        assert descriptor.present is True
        assert dict(descriptor.subject) == dict.fromkeys(SUBJECT_FIELDS, PARSE_FAILED)
        assert dict(descriptor.issuer) == dict.fromkeys(ISSUER_FIELDS, PARSE_FAILED)
        assert descriptor.valid_from == PARSE_FAILED
        assert descriptor.valid_to == PARSE_FAILED
        assert descriptor.serial_number == PARSE_FAILED
        assert descriptor.fingerprint == PARSE_FAILED
        assert descriptor.error == "bad base64"
        assert descriptor.status == "error"

    def test_empty_error_gets_default_message(self) -> None:
        """parse_failed() never leaves the error empty."""
        assert CertificateDescriptor.parse_failed("").error == "certificate could not be decoded"

    def test_sentinels_are_distinct(self) -> None:
        """Absent and parse-failed sentinels cannot be confused."""
        assert NOT_AVAILABLE != PARSE_FAILED


class TestNameNormalization:
    """Tests for DN mapping normalization."""

    def test_missing_attributes_filled_with_empty_string(self) -> None:
        """Attributes missing from a supplied DN become empty strings."""
        descriptor = CertificateDescriptor(present=True, subject={"CN": "client"}, issuer={})

        assert dict(descriptor.subject) == {"CN": "client", "O": "", "OU": "", "C": "", "ST": "", "L": ""}
        assert dict(descriptor.issuer) == {"CN": "", "O": "", "OU": ""}

    def test_unknown_attributes_dropped(self) -> None:
        """Attributes outside the reported set are ignored."""
        descriptor = CertificateDescriptor(present=True, issuer={"CN": "ca", "C": "GB", "emailAddress": "x@y"})

        assert list(descriptor.issuer) == list(ISSUER_FIELDS)
        assert descriptor.issuer["CN"] == "ca"

    def test_from_decoded(self) -> None:
        """from_decoded() copies every decoded field."""
        decoded = DecodedCertificate(
            subject={"CN": "client", "O": "Org"},
            issuer={"CN": "ca"},
            valid_from="Jan  5 09:03:07 2026 GMT",
            valid_to="Feb  4 09:03:07 2026 GMT",
            serial_number="0A1B",
            fingerprint="ab" * 32,
        )

        descriptor = CertificateDescriptor.from_decoded(decoded)

        assert descriptor.present is True
        assert descriptor.subject["O"] == "Org"
        assert descriptor.subject["OU"] == ""
        assert descriptor.serial_number == "0A1B"
        assert descriptor.fingerprint == "ab" * 32
        assert descriptor.status == "present"


class TestImmutability:
    """Tests that descriptors are immutable values."""

    def test_fields_cannot_be_reassigned(self) -> None:
        """Descriptor attributes are frozen."""
        descriptor = CertificateDescriptor.absent()

        with pytest.raises(dataclasses.FrozenInstanceError):
            descriptor.fingerprint = "changed"  # type: ignore[misc]

    def test_subject_mapping_is_read_only(self) -> None:
        """Subject mapping rejects item assignment."""
        descriptor = CertificateDescriptor(present=True, subject={"CN": "client"})

        with pytest.raises(TypeError):
            descriptor.subject["CN"] = "other"  # type: ignore[index]

    def test_caller_dict_changes_do_not_leak(self) -> None:
        """Mutating the dict passed in does not alter the descriptor."""
        subject = {"CN": "client"}
        descriptor = CertificateDescriptor(present=True, subject=subject)

        subject["CN"] = "changed"

        assert descriptor.subject["CN"] == "client"


class TestToDict:
    """Tests for JSON rendering."""

    def test_absent_shape(self) -> None:
        """Absent descriptor renders without an error key."""
        result = CertificateDescriptor.absent().to_dict()

        assert set(result) == DESCRIPTOR_KEYS
        assert result["present"] is False
        assert result["subject"]["CN"] == NOT_AVAILABLE

    def test_parse_failed_includes_error(self) -> None:
        """Parse-failed descriptor renders its error."""
        result = CertificateDescriptor.parse_failed("truncated").to_dict()

        assert set(result) == DESCRIPTOR_KEYS | {"error"}
        assert result["error"] == "truncated"
        assert result["fingerprint"] == PARSE_FAILED

    def test_names_render_as_plain_dicts(self) -> None:
        """Subject and issuer render as plain dicts in attribute order."""
        result = CertificateDescriptor(present=True, subject={"L": "London", "CN": "client"}).to_dict()

        assert type(result["subject"]) is dict
        assert list(result["subject"]) == list(SUBJECT_FIELDS)
