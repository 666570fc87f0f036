"""Custom exceptions for AgriFAAS Connect."""


class AgrifaasError(Exception):
    """Base exception for all AgriFAAS Connect errors."""

    pass


class ConfigurationError(AgrifaasError):
    """Error in configuration or settings."""

    pass


class ProviderError(AgrifaasError):
    """Error returned by an external provider (payments, auth, email)."""

    pass
