"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from agrifaas.utils.exceptions import ConfigurationError


class BillingConfig(BaseModel):
    """Configuration for trials, invitations and plan pricing.

    Prices are whole units of ``default_currency`` keyed by plan id and then
    billing cycle.
    """

    trial_days: int = 20
    """Length of the automatic business-tier trial."""

    invitation_ttl_hours: int = 48
    """How long an invitation token stays valid after it is sent."""

    default_currency: str = "GHS"
    default_country: str = "Ghana"
    default_region: str = "Greater Accra"

    full_discount_promo_codes: list[str] = Field(default_factory=lambda: ["FREEBIZYEAR"])
    """Hard-wired codes that unlock a fully discounted plan at checkout."""

    ghs_to_usd_rate: float = 15.0
    """Static conversion rate used for PayPal orders, which are billed in USD."""

    pricing: dict[str, dict[str, int]] = Field(
        default_factory=lambda: {
            "starter": {"monthly": 0, "annually": 0},
            "grower": {"monthly": 209, "annually": 2099},
            "business": {"monthly": 449, "annually": 4499},
            "enterprise": {"monthly": 0, "annually": 0},
        }
    )

    def price_for(self, plan_id: str, billing_cycle: str) -> int | None:
        """Get the list price for a plan and cycle, or None if unknown."""
        return self.pricing.get(plan_id, {}).get(billing_cycle)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    ENVIRONMENT: Literal["development", "test", "staging", "production"] = "development"
    DEBUG: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: list[str] = Field(default_factory=list)

    # Public URL of the web application, used to build invitation and callback links
    BASE_URL: str | None = None

    # Admin API authentication
    API_SECRET_KEY: SecretStr | None = None

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./agrifaas.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_TRANSACTION_RETRIES: int = 3

    # Paystack
    PAYSTACK_SECRET_KEY: SecretStr | None = None
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"

    # PayPal
    PAYPAL_CLIENT_ID: str | None = None
    PAYPAL_CLIENT_SECRET: SecretStr | None = None
    PAYPAL_BASE_URL: str = "https://api-m.sandbox.paypal.com"

    # Authentication provider (Firebase Identity Toolkit)
    AUTH_API_KEY: SecretStr | None = None
    AUTH_BASE_URL: str = "https://identitytoolkit.googleapis.com/v1"

    # Email
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 465
    SMTP_USER: str | None = None
    SMTP_PASSWORD: SecretStr | None = None
    EMAIL_FROM_NAME: str = "AgriFAAS Connect"

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0

    billing: BillingConfig = BillingConfig()

    def require_base_url(self) -> str:
        """Get the public base URL or raise a configuration error."""
        if not self.BASE_URL:
            raise ConfigurationError(
                "Application Base URL is not configured. Cannot generate invitation links."
            )
        return self.BASE_URL.rstrip("/")

    def require_paystack_secret(self) -> str:
        """Get the Paystack secret key or raise a configuration error."""
        if self.PAYSTACK_SECRET_KEY is None or not self.PAYSTACK_SECRET_KEY.get_secret_value():
            raise ConfigurationError("Paystack secret key is not configured.")
        return self.PAYSTACK_SECRET_KEY.get_secret_value()

    def require_paypal_credentials(self) -> tuple[str, str]:
        """Get the PayPal client credentials or raise a configuration error."""
        if not self.PAYPAL_CLIENT_ID or self.PAYPAL_CLIENT_SECRET is None:
            raise ConfigurationError("PayPal API credentials are not configured.")
        return self.PAYPAL_CLIENT_ID, self.PAYPAL_CLIENT_SECRET.get_secret_value()

    def require_auth_api_key(self) -> str:
        """Get the authentication provider API key or raise a configuration error."""
        if self.AUTH_API_KEY is None:
            raise ConfigurationError("Authentication provider API key is not configured.")
        return self.AUTH_API_KEY.get_secret_value()

    @property
    def smtp_configured(self) -> bool:
        """Whether every SMTP setting needed to send mail is present."""
        return bool(self.SMTP_HOST and self.SMTP_USER and self.SMTP_PASSWORD)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
