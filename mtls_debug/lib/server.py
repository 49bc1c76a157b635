"""Local werkzeug server running the diagnostic app over HTTPS with optional client certificates."""

import logging
import ssl
from collections.abc import Iterable
from pathlib import Path

from werkzeug.serving import BaseWSGIServer, WSGIRequestHandler, make_server

from ._types import PeerCertificate
from .app import PEER_CERTIFICATE_KEY, create_app
from .config import AppConfig, DeploymentContext
from .logging_config import LOGGER


def build_tls_context(cert_path: Path, key_path: Path) -> ssl.SSLContext:
    """Create server TLS context that requests, but does not require, a client cert.

    The server certificate doubles as the trusted client CA, so clients
    presenting the locally generated certificate complete the handshake.

    Raises:
        OSError: If the certificate or key cannot be read (ssl.SSLError included)
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
    context.load_verify_locations(cafile=str(cert_path))
    context.verify_mode = ssl.CERT_OPTIONAL
    return context


def _flatten_rdns(rdns: Iterable[Iterable[tuple[str, str]]]) -> dict[str, str]:
    """Flatten ssl's nested RDN tuples into {attributeName: value}."""
    values: dict[str, list[str]] = {}
    for rdn in rdns:
        for key, value in rdn:
            values.setdefault(key, []).append(value)
    return {key: ", ".join(items) for key, items in values.items()}


def peer_certificate_from_socket(sock: object) -> PeerCertificate | None:
    """Read the negotiated client certificate from a TLS connection.

    Returns:
        PeerCertificate with raw DER and, when the peer was verified, the
        parsed fields; None for plain sockets or when no cert was sent
    """
    if not isinstance(sock, ssl.SSLSocket):
        return None
    raw = sock.getpeercert(binary_form=True)
    if not raw:
        return None

    peer: PeerCertificate = {"raw": raw}
    parsed = sock.getpeercert() or {}
    LOGGER.debug("Peer certificate received", extra={"verified": bool(parsed)})
    if parsed:
        peer["subject"] = _flatten_rdns(parsed.get("subject", ()))
        peer["issuer"] = _flatten_rdns(parsed.get("issuer", ()))
        if parsed.get("notBefore"):
            peer["valid_from"] = parsed["notBefore"]
        if parsed.get("notAfter"):
            peer["valid_to"] = parsed["notAfter"]
        if parsed.get("serialNumber"):
            peer["serialNumber"] = parsed["serialNumber"]
    return peer


class PeerCertificateRequestHandler(WSGIRequestHandler):
    """Records the TLS peer certificate in the WSGI environ and logs through LOGGER."""

    def make_environ(self):
        environ = super().make_environ()
        environ[PEER_CERTIFICATE_KEY] = peer_certificate_from_socket(self.connection)
        return environ

    def log(self, type: str, message: str, *args) -> None:
        level = logging.WARNING if type == "error" else logging.DEBUG
        text = message % args if args else message
        LOGGER.log(level, "%s", text, extra={"client": self.address_string()})


def server_scheme(server: BaseWSGIServer) -> str:
    return "https" if server.ssl_context is not None else "http"


def build_server(config: AppConfig) -> BaseWSGIServer:
    """Create the threaded diagnostic server for this deployment.

    A direct-TLS deployment whose certificate files cannot be loaded falls
    back to plain HTTP with no client certificate source.
    """
    ssl_context = None
    if config.deployment is DeploymentContext.DIRECT_TLS:
        try:
            ssl_context = build_tls_context(config.cert_path, config.key_path)
        except OSError as e:
            LOGGER.warning("Cannot start HTTPS server, serving plain HTTP without mTLS: %s", e)
            config = config.with_deployment(DeploymentContext.ABSENT)

    return make_server(
        config.host,
        config.port,
        create_app(config),
        threaded=True,
        request_handler=PeerCertificateRequestHandler,
        ssl_context=ssl_context,
    )
