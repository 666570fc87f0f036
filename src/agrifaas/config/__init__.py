"""Configuration module for AgriFAAS Connect."""

from agrifaas.config.settings import BillingConfig, Settings, get_settings

__all__ = ["BillingConfig", "Settings", "get_settings"]
