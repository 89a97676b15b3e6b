"""Configuration resolution for the PocketBase MCP server.

Configuration comes from the process environment, optionally overridden by an
explicit object supplied by the hosting platform (for example a per-session
config block). Override values win and are mirrored into the environment so
components that read the environment directly observe the same values.

Resolution is synchronous and performs no I/O: it is safe to run during a
tool-catalog scan.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Union
from urllib.parse import urlparse

from common.config.env import get_env_float, get_env_int, get_env_str

logger = logging.getLogger(__name__)

# Canonical override field -> environment key
CONFIG_TO_ENV: Dict[str, str] = {
    "pocketbase_url": "POCKETBASE_URL",
    "admin_email": "POCKETBASE_ADMIN_EMAIL",
    "admin_password": "POCKETBASE_ADMIN_PASSWORD",
    "stripe_secret_key": "STRIPE_SECRET_KEY",
    "email_service": "EMAIL_SERVICE",
    "smtp_host": "SMTP_HOST",
    "smtp_port": "SMTP_PORT",
    "smtp_user": "SMTP_USER",
    "smtp_password": "SMTP_PASSWORD",
    "sendgrid_api_key": "SENDGRID_API_KEY",
    "default_from_email": "DEFAULT_FROM_EMAIL",
}

# camelCase keys used by hosted config schemas
_CAMEL_ALIASES: Dict[str, str] = {
    "pocketbaseUrl": "pocketbase_url",
    "adminEmail": "admin_email",
    "adminPassword": "admin_password",
    "stripeSecretKey": "stripe_secret_key",
    "emailService": "email_service",
    "smtpHost": "smtp_host",
    "smtpPort": "smtp_port",
    "smtpUser": "smtp_user",
    "smtpPassword": "smtp_password",
    "sendgridApiKey": "sendgrid_api_key",
    "defaultFromEmail": "default_from_email",
}

DEFAULT_SMTP_PORT = 587


@dataclass(frozen=True)
class Configuration:
    """Resolved configuration for one initialization attempt."""

    pocketbase_url: Optional[str] = None
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    stripe_secret_key: Optional[str] = None
    email_service: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    sendgrid_api_key: Optional[str] = None
    default_from_email: Optional[str] = None

    @property
    def has_admin_credentials(self) -> bool:
        return bool(self.admin_email and self.admin_password)

    @property
    def has_email_settings(self) -> bool:
        return bool(self.email_service or self.smtp_host)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Configuration":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def describe(self) -> Dict[str, Any]:
        """Presence flags safe to show to clients; never includes secrets."""
        return {
            "pocketbase_url": self.pocketbase_url or "Not set",
            "admin_configured": bool(self.admin_email),
            "stripe_configured": bool(self.stripe_secret_key),
            "email_configured": self.has_email_settings,
            "email_service": self.email_service or ("smtp" if self.smtp_host else None),
        }


@dataclass(frozen=True)
class ConfigResolution:
    """Outcome of a configuration load."""

    configuration: Configuration
    is_valid: bool
    errors: List[str]

    @property
    def error_text(self) -> Optional[str]:
        return "\n".join(self.errors) if self.errors else None


OverrideSource = Union[Configuration, Mapping[str, Any], None]


def normalize_override(override: OverrideSource) -> Dict[str, Any]:
    """Map an override object onto canonical field names, dropping empty values."""
    if override is None:
        return {}
    if isinstance(override, Configuration):
        raw: Mapping[str, Any] = override.to_dict()
    else:
        raw = override

    normalized: Dict[str, Any] = {}
    for key, value in raw.items():
        canonical = _CAMEL_ALIASES.get(key, key)
        if canonical not in CONFIG_TO_ENV:
            logger.debug("Ignoring unknown configuration key '%s'", key)
            continue
        if value is None or value == "":
            continue
        normalized[canonical] = value
    return normalized


def config_to_env(override: OverrideSource) -> Dict[str, str]:
    """Pure mapping from override fields to the environment keys the system reads."""
    return {
        CONFIG_TO_ENV[name]: str(value) for name, value in normalize_override(override).items()
    }


def apply_config_to_env(
    override: OverrideSource, environ: Optional[MutableMapping[str, str]] = None
) -> Dict[str, str]:
    """Mirror override values into the environment and return what was written."""
    target = os.environ if environ is None else environ
    mapped = config_to_env(override)
    target.update(mapped)
    return mapped


def _is_valid_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_configuration(config: Configuration) -> List[str]:
    """Shallow validation: URL well-formedness and paired credential fields."""
    errors: List[str] = []

    if not config.pocketbase_url:
        errors.append(
            "POCKETBASE_URL is required. Set it as an environment variable "
            "or provide it in the configuration."
        )
    elif not _is_valid_url(config.pocketbase_url):
        errors.append(
            f'POCKETBASE_URL "{config.pocketbase_url}" is not a valid URL. '
            "Example: http://localhost:8090 or https://your-pb-server.com"
        )

    if bool(config.admin_email) != bool(config.admin_password):
        errors.append(
            "Both POCKETBASE_ADMIN_EMAIL and POCKETBASE_ADMIN_PASSWORD must be "
            "provided together for admin authentication."
        )

    if config.admin_email and "@" not in config.admin_email:
        errors.append(f'POCKETBASE_ADMIN_EMAIL "{config.admin_email}" is not a valid email address.')

    if config.stripe_secret_key and not config.stripe_secret_key.startswith("sk_"):
        errors.append(
            'STRIPE_SECRET_KEY appears to be invalid. It should start with "sk_test_" or "sk_live_".'
        )

    return errors


def _read_smtp_port(errors: List[str]) -> Optional[int]:
    try:
        return get_env_int("SMTP_PORT")
    except ValueError as e:
        errors.append(str(e))
        return None


def resolve_configuration(override: OverrideSource = None) -> ConfigResolution:
    """Resolve configuration from the environment and an optional override.

    Args:
        override: ``Configuration`` or mapping (snake_case or camelCase keys).

    Returns:
        The resolved configuration, whether it is sufficient to attempt a
        backend connection, and any validation messages.
    """
    apply_config_to_env(override)

    errors: List[str] = []
    config = Configuration(
        pocketbase_url=get_env_str("POCKETBASE_URL"),
        admin_email=get_env_str("POCKETBASE_ADMIN_EMAIL"),
        admin_password=get_env_str("POCKETBASE_ADMIN_PASSWORD"),
        stripe_secret_key=get_env_str("STRIPE_SECRET_KEY"),
        email_service=(get_env_str("EMAIL_SERVICE") or "").lower() or None,
        smtp_host=get_env_str("SMTP_HOST"),
        smtp_port=_read_smtp_port(errors),
        smtp_user=get_env_str("SMTP_USER"),
        smtp_password=get_env_str("SMTP_PASSWORD"),
        sendgrid_api_key=get_env_str("SENDGRID_API_KEY"),
        default_from_email=get_env_str("DEFAULT_FROM_EMAIL"),
    )
    errors.extend(validate_configuration(config))

    resolution = ConfigResolution(configuration=config, is_valid=not errors, errors=errors)
    if errors:
        logger.warning("Configuration warnings/errors found: %s", errors)
    else:
        logger.info(
            "event=config_loaded pocketbase_url=%s admin=%s stripe=%s email=%s",
            config.pocketbase_url,
            "set" if config.admin_email else "not set",
            "set" if config.stripe_secret_key else "not set",
            config.email_service or ("smtp" if config.smtp_host else "not set"),
        )
    return resolution


@dataclass(frozen=True)
class ServerSettings:
    """Operational settings for the server process."""

    init_timeout_ms: int = 10_000
    hibernation_threshold_seconds: float = 30 * 60
    request_timeout_seconds: float = 30.0
    session_store_dir: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ServerSettings":
        return cls(
            init_timeout_ms=get_env_int("MCP_INIT_TIMEOUT_MS", 10_000),
            hibernation_threshold_seconds=get_env_float("HIBERNATION_THRESHOLD_SECONDS", 1800.0),
            request_timeout_seconds=get_env_float("POCKETBASE_REQUEST_TIMEOUT_SECONDS", 30.0),
            session_store_dir=get_env_str("MCP_SESSION_STORE_DIR"),
        )
