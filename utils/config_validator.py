"""
Configuration Validation Module

Validates critical configuration values at startup to fail-fast
with clear error messages instead of runtime failures.
"""

import sys
from typing import Optional
from urllib.parse import urlparse


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


def validate_api_secret(api_secret: Optional[str]) -> None:
    """
    Validate the X-Api-Key secret protecting the HTTP API.

    Raises:
        ConfigValidationError: If secret is missing, empty, or too weak
    """
    if not api_secret or len(api_secret.strip()) == 0:
        raise ConfigValidationError(
            "API_SECRET_TOKEN is required and must not be empty!\n"
            "Generate a secure token with: openssl rand -hex 32\n"
            "Add to .env: API_SECRET_TOKEN=<your-generated-token>"
        )

    if len(api_secret) < 32:
        raise ConfigValidationError(
            f"API_SECRET_TOKEN is too weak (length: {len(api_secret)}, minimum: 32)!\n"
            "Generate a secure token with: openssl rand -hex 32"
        )


def validate_courier_api_url(url: Optional[str]) -> None:
    """
    Validate the courier merchant API base URL.

    Raises:
        ConfigValidationError: If the URL is missing or not an absolute http(s) URL
    """
    if not url:
        raise ConfigValidationError(
            "COURIER_API_URL is required but not set!\n"
            "Add to .env: COURIER_API_URL=https://api.alwaseet-iq.net/v1/merchant"
        )

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigValidationError(f"COURIER_API_URL must be an absolute http(s) URL (got: {url})")


def validate_sync_settings(config_module) -> None:
    """
    Validate relationships between sync settings.

    Raises:
        ConfigValidationError: If the settings contradict each other
    """
    if config_module.SYNC_FORCE_REFRESH_DAYS < config_module.SYNC_BOOTSTRAP_DAYS:
        raise ConfigValidationError(
            f"SYNC_FORCE_REFRESH_DAYS ({config_module.SYNC_FORCE_REFRESH_DAYS}) must not be shorter than "
            f"SYNC_BOOTSTRAP_DAYS ({config_module.SYNC_BOOTSTRAP_DAYS})"
        )

    if config_module.SYNC_DEBOUNCE_MINUTES > config_module.SYNC_INTERVAL_MINUTES:
        raise ConfigValidationError(
            f"SYNC_DEBOUNCE_MINUTES ({config_module.SYNC_DEBOUNCE_MINUTES}) must not exceed "
            f"SYNC_INTERVAL_MINUTES ({config_module.SYNC_INTERVAL_MINUTES}), "
            "otherwise scheduled cycles would always be skipped"
        )

    if not 0 <= config_module.EMPLOYEE_PROFIT_SHARE_PERCENT <= 100:
        raise ConfigValidationError(
            f"EMPLOYEE_PROFIT_SHARE_PERCENT must be between 0 and 100 "
            f"(got: {config_module.EMPLOYEE_PROFIT_SHARE_PERCENT})"
        )


def validate_startup_config(config_module) -> None:
    """
    Validate all critical configuration at startup.

    Raises:
        ConfigValidationError: If any validation fails
    """
    validate_api_secret(getattr(config_module, 'API_SECRET_TOKEN', None))
    validate_courier_api_url(getattr(config_module, 'COURIER_API_URL', None))
    validate_sync_settings(config_module)


def validate_or_exit(config_module) -> None:
    """
    Validate configuration and exit with error code 1 if validation fails.

    This is the main entry point for startup validation.
    """
    try:
        validate_startup_config(config_module)
    except ConfigValidationError as e:
        print(f"\n ERROR: Configuration Validation Failed\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        print("\nStartup aborted. Please fix configuration and try again.\n", file=sys.stderr)
        sys.exit(1)
