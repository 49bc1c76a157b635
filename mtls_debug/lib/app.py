"""Flask application serving the certificate diagnostic page, API and health check."""

import logging
from collections.abc import Mapping
from typing import Any

from flask import Flask, Response, jsonify, render_template, request

from ._types import PeerCertificate
from .cert_sources import CertificateSource, select_source
from .config import AppConfig
from .logging_config import LOGGER
from .responder import DiagnosticResponder

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "X-Content-Type-Options": "nosniff",
}

# WSGI environ key under which the local server records the TLS peer certificate
PEER_CERTIFICATE_KEY = "mtls_debug.peer_certificate"

MAX_BODY_BYTES = 64 * 1024


def peer_certificate_from_environ(environ: Mapping[str, Any]) -> PeerCertificate | None:
    """Return the client certificate the WSGI server saw on the connection.

    The bundled server records the structured certificate read from the
    socket. Other servers (werkzeug, mod_wsgi, uWSGI) publish only the PEM
    text in ``SSL_CLIENT_CERT``, which is handed to the decoder as is.
    """
    peer = environ.get(PEER_CERTIFICATE_KEY)
    if peer:
        return peer
    pem = environ.get("SSL_CLIENT_CERT")
    if pem:
        return {"raw": pem.encode("utf-8")}
    return None


def _request_headers() -> dict[str, str]:
    return {name.lower(): value for name, value in request.headers.items()}


def create_app(config: AppConfig, source: CertificateSource | None = None) -> Flask:
    """Create the diagnostic Flask application.

    Args:
        config: Service configuration
        source: Certificate source (defaults to the one selected for config)

    Returns:
        Flask app; the responder is available as ``app.extensions["mtls_debug"]``
    """
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_BODY_BYTES

    responder = DiagnosticResponder(config, source or select_source(config))
    app.extensions["mtls_debug"] = responder

    @app.before_request
    def consume_body_and_log() -> None:
        # Bodies are never used but must be read off keep-alive connections
        request.get_data(cache=False)

        if request.path == "/favicon.ico":
            return
        extra = {"method": request.method, "path": request.path, "client": request.remote_addr}
        if LOGGER.isEnabledFor(logging.DEBUG):
            LOGGER.debug("Request received", extra={**extra, "headers": _request_headers()})
        else:
            LOGGER.info("Request received", extra=extra)

    @app.after_request
    def add_cors_headers(response: Response) -> Response:
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value
        return response

    @app.route("/favicon.ico", methods=["GET"])
    def favicon() -> tuple[str, int]:
        return "", 204

    @app.route("/health", methods=["GET"])
    def health() -> Response:
        return jsonify({"status": "healthy"})

    @app.route("/api", methods=["GET"])
    @app.route("/api/", methods=["GET"])
    def api() -> Response:
        headers = _request_headers()
        descriptor = responder.describe(headers, peer_certificate_from_environ(request.environ))
        return jsonify(responder.api_document(descriptor, headers))

    @app.route("/", defaults={"path": ""}, methods=["GET"])
    @app.route("/<path:path>", methods=["GET"])
    def index(path: str) -> str:
        headers = _request_headers()
        descriptor = responder.describe(headers, peer_certificate_from_environ(request.environ))
        return render_template("index.html", **responder.page_context(descriptor, headers))

    return app
