"""Diagnostic document describing the client certificate presented with a request."""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from ._types import PeerCertificate, RequestContext
from .cert_sources import CertificateSource
from .config import AppConfig
from .descriptor import CertificateDescriptor


class DiagnosticResponder:
    """Turns one request's certificate material into the API document and page context."""

    def __init__(self, config: AppConfig, source: CertificateSource) -> None:
        """Initialize responder.

        Args:
            config: Service configuration
            source: Certificate source selected for this deployment
        """
        self.config = config
        self.source = source

    def environment(self) -> dict[str, str | list[str]]:
        """Describe how this deployment obtains client certificates."""
        environment: dict[str, str | list[str]] = {
            "platform": self.config.platform.value,
            "deployment": self.source.deployment.value,
        }
        if self.config.cert_headers:
            environment["certificateHeaders"] = list(self.config.cert_headers)
        return environment

    def describe(
        self, headers: Mapping[str, str], peer_certificate: PeerCertificate | None
    ) -> CertificateDescriptor:
        """Acquire the descriptor for one request; never raises."""
        context: RequestContext = {"headers": headers, "peer_certificate": peer_certificate}
        return self.source.acquire(context)

    def api_document(
        self, descriptor: CertificateDescriptor, headers: Mapping[str, str]
    ) -> dict[str, Any]:
        """Build the JSON diagnostic document served at /api."""
        timestamp = datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return {
            "timestamp": timestamp,
            "clientCertificate": descriptor.to_dict(),
            "environment": self.environment(),
            "headers": dict(headers),
        }

    def page_context(
        self, descriptor: CertificateDescriptor, headers: Mapping[str, str]
    ) -> dict[str, Any]:
        """Build the template variables of the HTML diagnostic page."""
        return {
            "certificate": descriptor,
            "fields": [
                ("Subject", json.dumps(dict(descriptor.subject))),
                ("Issuer", json.dumps(dict(descriptor.issuer))),
                ("Valid From", descriptor.valid_from),
                ("Valid To", descriptor.valid_to),
                ("Serial Number", descriptor.serial_number),
                ("SHA-256 Fingerprint", descriptor.fingerprint),
            ],
            "headers_json": json.dumps(dict(headers), indent=2),
            "environment_json": json.dumps(self.environment(), indent=2),
        }
