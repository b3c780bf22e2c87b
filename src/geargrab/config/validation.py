"""Startup checks for GearGrab configuration.

Each check yields ``ValidationResult`` items. Errors stop the application
before it accepts a registration; warnings are logged and startup goes on.

Usage:
    from geargrab.config.validation import validate_or_raise

    validate_or_raise(settings)
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from geargrab.config.settings import Settings, get_settings
from geargrab.utils.exceptions import ConfigurationError

logger = logging.getLogger("geargrab.config")

KNOWN_PROVIDERS = ("checkr", "iprospect", "mock")

# Vendors recommend polling no more than every 30 seconds
MIN_PRODUCTION_POLL_INTERVAL = 5
MIN_ADMIN_KEY_LENGTH = 32


class ValidationSeverity(str, Enum):
    """How a failed check affects startup."""

    ERROR = "error"  # Startup is refused
    WARNING = "warning"  # Logged; startup continues


@dataclass
class ValidationResult:
    """One failed configuration check."""

    field: str
    severity: ValidationSeverity
    message: str
    suggestion: str | None = None

    def __str__(self) -> str:
        text = f"[{self.severity.value.upper()}] {self.field}: {self.message}"
        if self.suggestion:
            text += f"\n  Suggestion: {self.suggestion}"
        return text


def _error(field: str, message: str, suggestion: str | None = None) -> ValidationResult:
    return ValidationResult(field, ValidationSeverity.ERROR, message, suggestion)


def _warning(field: str, message: str, suggestion: str | None = None) -> ValidationResult:
    return ValidationResult(field, ValidationSeverity.WARNING, message, suggestion)


def _required_in_production(
    settings: Settings, field: str, message: str, suggestion: str
) -> ValidationResult:
    """An error in production, a warning anywhere else."""
    make = _error if settings.is_production else _warning
    return make(field, message, suggestion)


# =============================================================================
# Checks
# =============================================================================


def _check_database(settings: Settings) -> Iterator[ValidationResult]:
    url = settings.DATABASE_URL
    if not url:
        yield _error("DATABASE_URL", "Database URL is not configured", "Set DATABASE_URL")
    elif not url.startswith(("postgresql", "sqlite")):
        yield _warning(
            "DATABASE_URL",
            f"Unexpected database type in URL: {url.split(':', 1)[0]}",
            "Screening records are stored in PostgreSQL or SQLite",
        )
    elif settings.is_production and url.startswith("sqlite"):
        yield _warning(
            "DATABASE_URL",
            "SQLite is not recommended in production",
            "Use postgresql+asyncpg:// for production deployments",
        )


def _check_providers(settings: Settings) -> Iterator[ValidationResult]:
    default = settings.SCREENING_DEFAULT_PROVIDER
    if default is not None and default not in KNOWN_PROVIDERS:
        yield _error(
            "SCREENING_DEFAULT_PROVIDER",
            f"Unknown screening provider: {default}",
            f"Use one of: {', '.join(KNOWN_PROVIDERS)}",
        )

    effective = default or ("checkr" if settings.is_production else "mock")
    if settings.is_production and effective == "mock":
        yield _error(
            "SCREENING_DEFAULT_PROVIDER",
            "The mock screening provider cannot be the default in production",
            "Set SCREENING_DEFAULT_PROVIDER=checkr or iprospect",
        )

    vendor_endpoints = {
        "checkr": ("CHECKR_API_KEY", settings.checkr_endpoint),
        "iprospect": ("IPROSPECT_API_KEY", settings.iprospect_endpoint),
    }
    if effective in vendor_endpoints:
        key_field, endpoint = vendor_endpoints[effective]
        if not endpoint().configured:
            yield _error(
                key_field,
                f"{effective} is the default provider but has no API key",
                f"Set {key_field}",
            )
        if settings.webhook_secret(effective) is None:
            yield _warning(
                f"{effective.upper()}_WEBHOOK_SECRET",
                f"{effective} webhooks will be rejected without a signing secret",
                "Set the secret to let vendor events resolve screenings before the next poll",
            )

    if settings.VENDOR_RETRY_ATTEMPTS < 1:
        yield _error(
            "VENDOR_RETRY_ATTEMPTS",
            "Vendor retry attempts must be at least 1",
            "Use 1 to disable retries",
        )


def _check_polling(settings: Settings) -> Iterator[ValidationResult]:
    if settings.SCREENING_MAX_POLL_ATTEMPTS < 1:
        yield _error("SCREENING_MAX_POLL_ATTEMPTS", "At least one poll attempt is required")

    interval = settings.SCREENING_POLL_INTERVAL_SECONDS
    if interval < 0:
        yield _error("SCREENING_POLL_INTERVAL_SECONDS", "Poll interval cannot be negative")
    elif settings.is_production and interval < MIN_PRODUCTION_POLL_INTERVAL:
        yield _warning(
            "SCREENING_POLL_INTERVAL_SECONDS",
            f"Poll interval {interval}s may exceed vendor rate limits",
            "Poll no more than every 30 seconds",
        )


def _check_notifications(settings: Settings) -> Iterator[ValidationResult]:
    if settings.SENDGRID_API_KEY is None:
        yield _required_in_production(
            settings,
            "SENDGRID_API_KEY",
            "SendGrid is not configured; pre-adverse notices go to the local outbox",
            "Set SENDGRID_API_KEY to deliver compliance notices",
        )

    if "@" not in settings.COMPLIANCE_FROM_EMAIL:
        yield _error(
            "COMPLIANCE_FROM_EMAIL", f"Invalid sender address: {settings.COMPLIANCE_FROM_EMAIL}"
        )


def _check_environment(settings: Settings) -> Iterator[ValidationResult]:
    if settings.is_production and settings.DEBUG:
        yield _error("DEBUG", "Debug mode must be disabled in production", "Set DEBUG=false")

    if settings.is_production and settings.log_level == "DEBUG":
        yield _warning(
            "log_level",
            "DEBUG log level in production may expose candidate data",
            "Use INFO or WARNING for production",
        )

    if settings.ADMIN_API_KEY is None:
        yield _required_in_production(
            settings,
            "ADMIN_API_KEY",
            "Admin API key not configured; admin endpoints are closed outside DEBUG",
            "Set ADMIN_API_KEY to enable /v1/admin/screenings",
        )
    elif len(settings.ADMIN_API_KEY.get_secret_value()) < MIN_ADMIN_KEY_LENGTH:
        yield _warning(
            "ADMIN_API_KEY",
            "Admin API key is short and may be weak",
            f"Use at least {MIN_ADMIN_KEY_LENGTH} characters",
        )


CHECKS: tuple[Callable[[Settings], Iterator[ValidationResult]], ...] = (
    _check_database,
    _check_providers,
    _check_polling,
    _check_notifications,
    _check_environment,
)


# =============================================================================
# Entry points
# =============================================================================


def validate_configuration(settings: Settings | None = None) -> list[ValidationResult]:
    """Run every check against ``settings`` (default: global settings).

    Returns:
        Failed checks; empty when the configuration is sound
    """
    settings = settings or get_settings()
    return [result for check in CHECKS for result in check(settings)]


def validate_or_raise(settings: Settings | None = None) -> None:
    """Log warnings and raise if any check is an error.

    Raises:
        ConfigurationError: Listing every error found
    """
    results = validate_configuration(settings)
    errors = [r for r in results if r.severity == ValidationSeverity.ERROR]
    if errors:
        listing = "\n".join(str(e) for e in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{listing}")

    for warning in results:
        logger.warning(str(warning))


def get_configuration_summary(settings: Settings | None = None) -> dict[str, Any]:
    """Non-secret view of the configuration, logged at startup."""
    settings = settings or get_settings()
    return {
        "environment": settings.ENVIRONMENT,
        "debug": settings.DEBUG,
        "log_level": settings.log_level,
        "database_pool_size": settings.DATABASE_POOL_SIZE,
        "default_provider": settings.SCREENING_DEFAULT_PROVIDER,
        "poll_interval_seconds": settings.SCREENING_POLL_INTERVAL_SECONDS,
        "max_poll_attempts": settings.SCREENING_MAX_POLL_ATTEMPTS,
        "checkr_configured": settings.checkr_endpoint().configured,
        "iprospect_configured": settings.iprospect_endpoint().configured,
        "sendgrid_configured": settings.SENDGRID_API_KEY is not None,
        "admin_api_configured": settings.ADMIN_API_KEY is not None,
    }
