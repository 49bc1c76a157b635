"""Type definitions for certificate sources and the diagnostic document."""

from collections.abc import Mapping
from typing import NotRequired, TypedDict


class PeerCertificate(TypedDict, total=False):
    """Peer certificate as exposed by a TLS-terminating transport."""

    subject: Mapping[str, str]
    issuer: Mapping[str, str]
    valid_from: str
    valid_to: str
    serialNumber: str
    raw: bytes


class ForwardedCertificate(TypedDict, total=False):
    """JSON certificate object relayed by an upstream proxy header."""

    subject: Mapping[str, str]
    issuer: Mapping[str, str]
    valid_from: str
    valid_to: str
    serialNumber: str
    raw: str
    pem: str


class RequestContext(TypedDict, total=False):
    """Certificate-relevant view of one inbound request.

    Header names are lower-cased.
    """

    headers: Mapping[str, str]
    peer_certificate: PeerCertificate | None


class DescriptorDict(TypedDict):
    """Certificate descriptor as rendered to JSON."""

    present: bool
    subject: dict[str, str]
    issuer: dict[str, str]
    validFrom: str
    validTo: str
    serialNumber: str
    fingerprint: str
    error: NotRequired[str]

