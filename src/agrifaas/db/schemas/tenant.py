"""Pydantic schemas for tenant settings edits."""

from pydantic import BaseModel, Field, field_validator


class TenantSettingsUpdate(BaseModel):
    """Schema for editing a tenant's profile. Only provided fields change.

    Billing fields (subscription, owner, currency) are not editable here.
    """

    name: str | None = Field(None, min_length=3, max_length=255)
    description: str | None = Field(None, max_length=500)
    country: str | None = Field(None, min_length=2, max_length=100)
    region: str | None = Field(None, min_length=2, max_length=100)
    city: str | None = Field(None, max_length=100)

    @field_validator("name", "country", "region", "city", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v
