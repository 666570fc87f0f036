"""Unit tests for configuration validation."""

import pytest
from pydantic import SecretStr

from agrifaas.config.settings import BillingConfig, Settings
from agrifaas.config.validation import (
    ValidationResult,
    ValidationSeverity,
    get_configuration_summary,
    validate_configuration,
    validate_or_raise,
)
from agrifaas.utils.exceptions import ConfigurationError

STRONG_KEY = SecretStr("k" * 40)


def production(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": "production",
        "DEBUG": False,
        "API_SECRET_KEY": STRONG_KEY,
        "AUTH_API_KEY": SecretStr("auth-key"),
        "PAYSTACK_SECRET_KEY": SecretStr("sk_live_abc"),
        "BASE_URL": "https://app.agrifaas.com",
        "SMTP_HOST": "smtp.example.com",
        "SMTP_USER": "noreply@agrifaas.com",
        "SMTP_PASSWORD": SecretStr("pw"),
        "DATABASE_URL": "postgresql+asyncpg://u:p@db/agrifaas",
    }
    values.update(overrides)
    return Settings(**values)


def fields(results: list[ValidationResult], severity: ValidationSeverity) -> set[str]:
    return {r.field for r in results if r.severity == severity}


class TestValidationResult:
    """Tests for ValidationResult class."""

    def test_str_with_suggestion(self):
        """Test string representation includes the suggestion."""
        result = ValidationResult(
            field="TEST_FIELD",
            severity=ValidationSeverity.ERROR,
            message="Test message",
            suggestion="Fix this by doing X",
        )
        text = str(result)
        assert "[ERROR] TEST_FIELD: Test message" in text
        assert "Suggestion: Fix this by doing X" in text


class TestProductionValidation:
    """Tests for production requirements."""

    def test_complete_production_config_passes(self):
        """Test a fully configured production deployment has no errors."""
        results = validate_configuration(production())
        assert fields(results, ValidationSeverity.ERROR) == set()

    @pytest.mark.parametrize(
        ("override", "field"),
        [
            ({"API_SECRET_KEY": None}, "API_SECRET_KEY"),
            ({"AUTH_API_KEY": None}, "AUTH_API_KEY"),
            ({"PAYSTACK_SECRET_KEY": None}, "PAYSTACK_SECRET_KEY"),
            ({"BASE_URL": None}, "BASE_URL"),
            ({"DEBUG": True}, "DEBUG"),
        ],
    )
    def test_missing_requirement_is_error(self, override, field):
        """Test each production requirement is enforced."""
        results = validate_configuration(production(**override))
        assert field in fields(results, ValidationSeverity.ERROR)

    def test_placeholder_paystack_key(self):
        """Test the placeholder secret is rejected."""
        results = validate_configuration(
            production(PAYSTACK_SECRET_KEY=SecretStr("sk_YOUR_SECRET_KEY"))
        )
        assert "PAYSTACK_SECRET_KEY" in fields(results, ValidationSeverity.ERROR)

    def test_validate_or_raise(self):
        """Test errors raise ConfigurationError listing the fields."""
        with pytest.raises(ConfigurationError, match="API_SECRET_KEY"):
            validate_or_raise(production(API_SECRET_KEY=None))


class TestDevelopmentValidation:
    """Tests for development defaults."""

    def test_missing_integrations_only_warn(self):
        """Test development runs with warnings when integrations are missing."""
        results = validate_configuration(Settings(ENVIRONMENT="development"))

        assert fields(results, ValidationSeverity.ERROR) == set()
        assert {"AUTH_API_KEY", "PAYSTACK_SECRET_KEY", "SMTP_HOST"} <= fields(
            results, ValidationSeverity.WARNING
        )

    def test_short_api_key_warns(self):
        """Test a short API key is flagged as weak."""
        results = validate_configuration(Settings(API_SECRET_KEY=SecretStr("short")))
        assert "API_SECRET_KEY" in fields(results, ValidationSeverity.WARNING)

    def test_half_configured_paypal_warns(self):
        """Test setting only one PayPal credential is flagged."""
        results = validate_configuration(Settings(PAYPAL_CLIENT_ID="client"))
        assert "PAYPAL_CLIENT_ID" in fields(results, ValidationSeverity.WARNING)


class TestBillingValidation:
    """Tests for billing configuration."""

    def test_non_positive_durations(self):
        """Test trial length and invitation TTL must be positive."""
        settings = Settings(billing=BillingConfig(trial_days=0, invitation_ttl_hours=0))
        errors = fields(validate_configuration(settings), ValidationSeverity.ERROR)
        assert {"billing.trial_days", "billing.invitation_ttl_hours"} <= errors

    def test_missing_price(self):
        """Test every plan and cycle needs a price."""
        settings = Settings(billing=BillingConfig(pricing={"grower": {"monthly": 209}}))
        errors = fields(validate_configuration(settings), ValidationSeverity.ERROR)
        assert "billing.pricing" in errors


class TestConfigurationSummary:
    """Tests for get_configuration_summary."""

    def test_summary_hides_secrets(self):
        """Test the summary reports presence, not values."""
        summary = get_configuration_summary(production())

        assert summary["paystack_configured"] is True
        assert summary["trial_days"] == 20
        assert "sk_live_abc" not in str(summary)
