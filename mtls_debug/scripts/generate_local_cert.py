#!/usr/bin/env python3
"""Generate a self-signed certificate for local mTLS testing."""

import argparse
import sys
from pathlib import Path

from mtls_debug.lib.local_cert import LOCAL_COMMON_NAME, ensure_local_cert, write_self_signed
from mtls_debug.lib.logging_config import LOGGER


def main(argv: list[str] | None = None) -> int:
    """Write cert.pem/key.pem usable as server cert, client CA and client cert.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Generate self-signed mTLS test certificate")
    parser.add_argument("--cert", type=Path, default=Path("cert.pem"), help="Certificate output path")
    parser.add_argument("--key", type=Path, default=Path("key.pem"), help="Private key output path")
    parser.add_argument(
        "--common-name",
        default=LOCAL_COMMON_NAME,
        help=f"Subject CN (default: {LOCAL_COMMON_NAME})",
    )
    parser.add_argument("--days", type=int, default=365, help="Validity in days (default: 365)")
    parser.add_argument("--key-size", type=int, default=4096, help="RSA key size (default: 4096)")
    parser.add_argument("--force", action="store_true", help="Overwrite existing files")
    args = parser.parse_args(argv)

    try:
        if args.force:
            result = write_self_signed(
                args.cert, args.key, args.common_name, args.key_size, args.days
            )
        else:
            result = ensure_local_cert(
                args.cert, args.key, args.common_name, args.key_size, args.days
            )
    except Exception as e:
        LOGGER.error("Certificate generation failed: %s", e)
        return 1

    if not result.generated:
        LOGGER.info("Certificates already exist, use --force to replace them")
    LOGGER.info("  Cert: %s", result.cert_path)
    LOGGER.info("  Key: %s", result.key_path)
    LOGGER.info("  Serial: %s", result.serial_number)
    return 0


if __name__ == "__main__":
    sys.exit(main())
