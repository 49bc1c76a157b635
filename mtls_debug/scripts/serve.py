#!/usr/bin/env python3
"""Run the mTLS debug server."""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from mtls_debug.lib.config import ConfigError, DeploymentContext, load_config
from mtls_debug.lib.local_cert import ensure_local_cert
from mtls_debug.lib.logging_config import LOGGER, set_verbose
from mtls_debug.lib.server import build_server, server_scheme


def main(argv: list[str] | None = None) -> int:
    """Serve the diagnostic page, API and health check.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Report the client certificate of each request")
    parser.add_argument("--host", help="Bind address (default: HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Listening port (default: PORT or 3000)")
    parser.add_argument("--cert", type=Path, help="Server certificate PEM (default: cert.pem)")
    parser.add_argument("--key", type=Path, help="Server private key PEM (default: key.pem)")
    parser.add_argument(
        "--no-generate",
        action="store_true",
        help="Do not generate a self-signed certificate when none exists",
    )
    parser.add_argument("--verbose", action="store_true", help="Log request headers")
    args = parser.parse_args(argv)

    try:
        config = load_config()
    except ConfigError as e:
        LOGGER.error("Invalid configuration: %s", e)
        return 1

    overrides = {
        "host": args.host,
        "port": args.port,
        "cert_path": args.cert,
        "key_path": args.key,
    }
    config = replace(config, **{key: value for key, value in overrides.items() if value is not None})
    if args.verbose:
        config = replace(config, verbose_logging=True)
    set_verbose(config.verbose_logging)

    try:
        if config.deployment is DeploymentContext.DIRECT_TLS and not args.no_generate:
            ensure_local_cert(config.cert_path, config.key_path)

        server = build_server(config)
    except Exception as e:
        LOGGER.error("Server startup failed: %s", e)
        return 1

    scheme = server_scheme(server)
    host, port = server.server_address[:2]
    LOGGER.info("Serving %s://%s:%s (API at /api)", scheme, host, port)
    if scheme == "https":
        LOGGER.info("Configure a client certificate in your browser or pass --cert to curl")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        LOGGER.info("Shutting down")
    finally:
        server.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
