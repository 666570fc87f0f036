"""AgriFAAS Connect subscription, entitlement and onboarding backend."""

__version__ = "0.1.0"
