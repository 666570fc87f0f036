"""Configuration validation for startup checks.

Validates that required configuration is present and valid before the
application starts accepting requests.

Usage:
    from agrifaas.config.validation import validate_or_raise

    # During startup
    validate_or_raise(settings)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from agrifaas.config.settings import Settings, get_settings
from agrifaas.utils.exceptions import ConfigurationError

logger = structlog.get_logger("agrifaas.config")

PLAN_IDS = ("starter", "grower", "business", "enterprise")
BILLING_CYCLES = ("monthly", "annually")


class ValidationSeverity(str, Enum):
    """Severity of configuration validation issues."""

    ERROR = "error"  # Must be fixed, app cannot start
    WARNING = "warning"  # Should be fixed, app can start but may have issues


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""

    field: str
    severity: ValidationSeverity
    message: str
    suggestion: str | None = None

    def __str__(self) -> str:
        prefix = "ERROR" if self.severity == ValidationSeverity.ERROR else "WARNING"
        result = f"[{prefix}] {self.field}: {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result


def validate_configuration(settings: Settings | None = None) -> list[ValidationResult]:
    """Validate application configuration.

    Args:
        settings: Settings to validate (default: global settings)

    Returns:
        List of validation results (empty if all checks pass)
    """
    if settings is None:
        settings = get_settings()

    results: list[ValidationResult] = []
    results.extend(_validate_database(settings))
    results.extend(_validate_security(settings))
    results.extend(_validate_payments(settings))
    results.extend(_validate_email(settings))
    results.extend(_validate_billing(settings))
    results.extend(_validate_environment(settings))
    return results


def validate_or_raise(settings: Settings | None = None) -> None:
    """Validate configuration and raise if errors found.

    Args:
        settings: Settings to validate

    Raises:
        ConfigurationError: If any validation errors are found
    """
    results = validate_configuration(settings)
    errors = [r for r in results if r.severity == ValidationSeverity.ERROR]

    if errors:
        error_messages = "\n".join(str(e) for e in errors)
        raise ConfigurationError(f"Configuration validation failed:\n{error_messages}")

    for warning in (r for r in results if r.severity == ValidationSeverity.WARNING):
        logger.warning("configuration_warning", detail=str(warning))


# =============================================================================
# Validators
# =============================================================================


def _validate_database(settings: Settings) -> list[ValidationResult]:
    results: list[ValidationResult] = []

    if not settings.DATABASE_URL:
        results.append(
            ValidationResult(
                field="DATABASE_URL",
                severity=ValidationSeverity.ERROR,
                message="Database URL is not configured",
                suggestion="Set DATABASE_URL environment variable",
            )
        )
    elif not settings.DATABASE_URL.startswith(("postgresql", "sqlite")):
        results.append(
            ValidationResult(
                field="DATABASE_URL",
                severity=ValidationSeverity.WARNING,
                message=f"Unexpected database type in URL: {settings.DATABASE_URL[:20]}...",
                suggestion="AgriFAAS Connect is designed for PostgreSQL or SQLite",
            )
        )

    if settings.DATABASE_TRANSACTION_RETRIES < 1:
        results.append(
            ValidationResult(
                field="DATABASE_TRANSACTION_RETRIES",
                severity=ValidationSeverity.ERROR,
                message="At least one transaction attempt is required",
            )
        )

    return results


def _validate_security(settings: Settings) -> list[ValidationResult]:
    results: list[ValidationResult] = []

    if settings.ENVIRONMENT == "production" and settings.API_SECRET_KEY is None:
        results.append(
            ValidationResult(
                field="API_SECRET_KEY",
                severity=ValidationSeverity.ERROR,
                message="API secret key is required in production",
                suggestion="Generate a secure random string for admin API authentication",
            )
        )

    if settings.API_SECRET_KEY is not None:
        if len(settings.API_SECRET_KEY.get_secret_value()) < 32:
            results.append(
                ValidationResult(
                    field="API_SECRET_KEY",
                    severity=ValidationSeverity.WARNING,
                    message="API secret key is short and may be weak",
                    suggestion="Use at least 32 characters for secure API keys",
                )
            )

    if settings.AUTH_API_KEY is None:
        results.append(
            ValidationResult(
                field="AUTH_API_KEY",
                severity=(
                    ValidationSeverity.ERROR
                    if settings.ENVIRONMENT == "production"
                    else ValidationSeverity.WARNING
                ),
                message="Authentication provider key not configured - using in-memory identities",
            )
        )

    if settings.ENVIRONMENT == "production" and not settings.BASE_URL:
        results.append(
            ValidationResult(
                field="BASE_URL",
                severity=ValidationSeverity.ERROR,
                message="Base URL is required to build invitation and payment callback links",
            )
        )

    return results


def _validate_payments(settings: Settings) -> list[ValidationResult]:
    results: list[ValidationResult] = []

    if settings.PAYSTACK_SECRET_KEY is None:
        severity = (
            ValidationSeverity.ERROR
            if settings.ENVIRONMENT == "production"
            else ValidationSeverity.WARNING
        )
        results.append(
            ValidationResult(
                field="PAYSTACK_SECRET_KEY",
                severity=severity,
                message="Paystack secret key not configured - webhooks will be rejected",
            )
        )
    elif "YOUR_SECRET_KEY" in settings.PAYSTACK_SECRET_KEY.get_secret_value():
        results.append(
            ValidationResult(
                field="PAYSTACK_SECRET_KEY",
                severity=ValidationSeverity.ERROR,
                message="Paystack secret key still holds the placeholder value",
            )
        )

    if bool(settings.PAYPAL_CLIENT_ID) != (settings.PAYPAL_CLIENT_SECRET is not None):
        results.append(
            ValidationResult(
                field="PAYPAL_CLIENT_ID",
                severity=ValidationSeverity.WARNING,
                message="Only one of PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET is set",
            )
        )

    return results


def _validate_email(settings: Settings) -> list[ValidationResult]:
    if settings.smtp_configured:
        return []
    return [
        ValidationResult(
            field="SMTP_HOST",
            severity=ValidationSeverity.WARNING,
            message="SMTP is not fully configured - invitation emails will not be delivered",
            suggestion="Set SMTP_HOST, SMTP_PORT, SMTP_USER and SMTP_PASSWORD",
        )
    ]


def _validate_billing(settings: Settings) -> list[ValidationResult]:
    results: list[ValidationResult] = []
    billing = settings.billing

    if billing.trial_days <= 0:
        results.append(
            ValidationResult(
                field="billing.trial_days",
                severity=ValidationSeverity.ERROR,
                message=f"Trial length must be positive, got {billing.trial_days}",
            )
        )

    if billing.invitation_ttl_hours <= 0:
        results.append(
            ValidationResult(
                field="billing.invitation_ttl_hours",
                severity=ValidationSeverity.ERROR,
                message=f"Invitation TTL must be positive, got {billing.invitation_ttl_hours}",
            )
        )

    for plan_id in PLAN_IDS:
        for cycle in BILLING_CYCLES:
            if billing.price_for(plan_id, cycle) is None:
                results.append(
                    ValidationResult(
                        field="billing.pricing",
                        severity=ValidationSeverity.ERROR,
                        message=f"Missing price for plan '{plan_id}' ({cycle})",
                    )
                )

    return results


def _validate_environment(settings: Settings) -> list[ValidationResult]:
    results: list[ValidationResult] = []

    if settings.ENVIRONMENT == "production" and settings.DEBUG:
        results.append(
            ValidationResult(
                field="DEBUG",
                severity=ValidationSeverity.ERROR,
                message="Debug mode must be disabled in production",
                suggestion="Set DEBUG=false for production",
            )
        )

    if settings.ENVIRONMENT == "production" and settings.log_level == "DEBUG":
        results.append(
            ValidationResult(
                field="log_level",
                severity=ValidationSeverity.WARNING,
                message="DEBUG log level in production may expose sensitive data",
                suggestion="Use INFO or WARNING for production",
            )
        )

    return results


def get_configuration_summary(settings: Settings | None = None) -> dict[str, Any]:
    """Get a summary of current configuration (safe for logging).

    Excludes sensitive values like API keys and connection strings.
    """
    if settings is None:
        settings = get_settings()

    return {
        "environment": settings.ENVIRONMENT,
        "debug": settings.DEBUG,
        "log_level": settings.log_level,
        "base_url_configured": bool(settings.BASE_URL),
        "api_key_configured": settings.API_SECRET_KEY is not None,
        "paystack_configured": settings.PAYSTACK_SECRET_KEY is not None,
        "paypal_configured": bool(settings.PAYPAL_CLIENT_ID),
        "smtp_configured": settings.smtp_configured,
        "trial_days": settings.billing.trial_days,
        "invitation_ttl_hours": settings.billing.invitation_ttl_hours,
    }
