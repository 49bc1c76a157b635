"""Deployment configuration resolved once at startup."""

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

VERCEL_CERT_HEADERS = ("x-forwarded-client-cert", "x-client-certificate")
AZURE_CERT_HEADERS = ("x-arr-clientcert",)

DEFAULT_PORT = 3000
DEFAULT_MAX_HEADER_BYTES = 16384

_TRUTHY = {"1", "true", "yes", "on"}
VERBOSE_VARIABLES = ("MTLS_DEBUG_VERBOSE", "VERBOSE_LOGGING")


class ConfigError(ValueError):
    """Invalid environment override."""


class DeploymentContext(Enum):
    """Where client certificate material comes from in this deployment."""

    DIRECT_TLS = "direct-tls"
    FORWARDED_HEADER = "forwarded-header"
    ABSENT = "absent"


class Platform(Enum):
    """Hosting platform detected from environment signals."""

    LOCAL = "local"
    VERCEL = "vercel"
    AZURE = "azure"


@dataclass(frozen=True)
class AppConfig:
    """Service configuration with no ambient global state."""

    deployment: DeploymentContext = DeploymentContext.DIRECT_TLS
    platform: Platform = Platform.LOCAL
    cert_headers: tuple[str, ...] = ()
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    cert_path: Path = Path("cert.pem")
    key_path: Path = Path("key.pem")
    max_header_bytes: int = DEFAULT_MAX_HEADER_BYTES
    verbose_logging: bool = False

    def with_deployment(self, deployment: DeploymentContext) -> "AppConfig":
        """Return a copy of this config using a different certificate source."""
        return dataclasses.replace(self, deployment=deployment)


def detect_platform(environ: Mapping[str, str]) -> Platform:
    """Detect hosting platform the way the platforms announce themselves."""
    if environ.get("VERCEL") == "1":
        return Platform.VERCEL
    if environ.get("WEBSITE_SITE_NAME"):
        return Platform.AZURE
    return Platform.LOCAL


def _parse_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "")
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{raw}'") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _parse_headers(raw: str) -> tuple[str, ...]:
    return tuple(name.strip().lower() for name in raw.split(",") if name.strip())


def load_config(environ: Mapping[str, str] | None = None) -> AppConfig:
    """Build AppConfig from environment variables.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        AppConfig with deployment context and server settings

    Raises:
        ConfigError: If an override variable holds an invalid value
    """
    if environ is None:
        environ = os.environ

    platform = detect_platform(environ)

    if platform is Platform.VERCEL:
        deployment = DeploymentContext.FORWARDED_HEADER
        cert_headers = VERCEL_CERT_HEADERS
    elif platform is Platform.AZURE:
        deployment = DeploymentContext.FORWARDED_HEADER
        cert_headers = AZURE_CERT_HEADERS
    else:
        deployment = DeploymentContext.DIRECT_TLS
        cert_headers = VERCEL_CERT_HEADERS

    deployment_override = environ.get("MTLS_DEBUG_DEPLOYMENT", "").strip().lower()
    if deployment_override:
        try:
            deployment = DeploymentContext(deployment_override)
        except ValueError:
            choices = ", ".join(context.value for context in DeploymentContext)
            raise ConfigError(
                f"MTLS_DEBUG_DEPLOYMENT must be one of {choices}, got '{deployment_override}'"
            ) from None

    header_override = _parse_headers(environ.get("MTLS_DEBUG_CERT_HEADER", ""))
    if header_override:
        cert_headers = header_override

    # Azure App Service publishes the listening port separately
    default_port = DEFAULT_PORT
    if platform is Platform.AZURE:
        default_port = _parse_int(environ, "WEBSITE_PORT", DEFAULT_PORT)

    return AppConfig(
        deployment=deployment,
        platform=platform,
        cert_headers=cert_headers,
        host=environ.get("HOST", "0.0.0.0"),
        port=_parse_int(environ, "PORT", default_port),
        cert_path=Path(environ.get("MTLS_DEBUG_CERT_PATH", "cert.pem")),
        key_path=Path(environ.get("MTLS_DEBUG_KEY_PATH", "key.pem")),
        max_header_bytes=_parse_int(
            environ, "MTLS_DEBUG_MAX_HEADER_BYTES", DEFAULT_MAX_HEADER_BYTES
        ),
        verbose_logging=any(
            environ.get(name, "").strip().lower() in _TRUTHY
            for name in VERBOSE_VARIABLES
        ),
    )
